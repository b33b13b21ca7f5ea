"""
Blocklist checker and device validator.

Both run at the start of every flow, before any token is created or
looked up. They only read; a rejected request leaves no trace.
"""

import logging
from dataclasses import dataclass
from datetime import datetime

from .exceptions import DeviceBlocked, DeviceInvalid, EmailBlocked, PhoneBlocked
from .models import BlockScope, Device
from .ports import BlockRepository, DeviceRepository, Repositories

logger = logging.getLogger(__name__)


@dataclass
class BlocklistChecker:
    """Answers whether a scope/value pair is blocked. Never raises for a block."""

    blocks: BlockRepository

    def is_blocked(self, scope: BlockScope, value: str, now: datetime) -> bool:
        return self.blocks.find_active(scope, value, now) is not None


@dataclass
class DeviceValidator:
    """Confirms a device exists, is active, and carries no active block."""

    devices: DeviceRepository
    blocklist: BlocklistChecker

    def validate(self, device_id: str, now: datetime) -> Device:
        """
        Fetch and vet the device.

        Raises:
            DeviceInvalid: If the device is missing or inactive
            DeviceBlocked: If an active device block exists
        """
        device = self.devices.get(device_id)
        if device is None or not device.is_active:
            logger.warning("Device not found or inactive: %s", device_id)
            raise DeviceInvalid()

        if self.blocklist.is_blocked(BlockScope.DEVICE, device_id, now):
            logger.warning("Blocked device rejected: %s", device_id)
            raise DeviceBlocked(device_id)

        return device


def check_request(
    repos: Repositories,
    now: datetime,
    device_id: str,
    phone: str | None = None,
    email: str | None = None,
) -> Device:
    """
    Run the gatekeeping shared by registration, resend and verify.

    The device is validated first, then phone and email are checked
    against the blocklist when supplied.

    Returns:
        The validated device (its fingerprint is snapshotted on tokens)
    """
    blocklist = BlocklistChecker(repos.blocks)
    device = DeviceValidator(repos.devices, blocklist).validate(device_id, now)

    if phone and blocklist.is_blocked(BlockScope.PHONE, phone, now):
        logger.warning("Blocked phone rejected: %s", phone)
        raise PhoneBlocked(phone, f"Phone number {phone} has been blocked")

    if email and blocklist.is_blocked(BlockScope.EMAIL, email, now):
        logger.warning("Blocked email rejected: %s", email)
        raise EmailBlocked(email, f"Email address {email} has been blocked")

    return device
