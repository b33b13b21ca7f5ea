"""
Shared fixtures for adversarial tests.

Provides common test infrastructure for race condition and brute force
tests: every service fixture runs against PostgreSQL so row locks and
unique indexes are the real ones.
"""

import pytest

from src.adapters.repository.postgres import PostgresRegistrationStore

# Module-level marker for all adversarial tests
pytestmark = pytest.mark.adversarial


@pytest.fixture
def store(pg_store: PostgresRegistrationStore) -> PostgresRegistrationStore:
    return pg_store
