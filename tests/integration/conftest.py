"""
Fixtures for integration tests.

Rebinds the shared `store` fixture to PostgreSQL so the service fixtures
from tests/conftest.py run against the real database.
"""

import pytest

from src.adapters.repository.postgres import PostgresRegistrationStore


@pytest.fixture
def store(pg_store: PostgresRegistrationStore) -> PostgresRegistrationStore:
    return pg_store
