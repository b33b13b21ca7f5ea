"""
Device registration - creates the devices that OTP flows are bound to.

Devices are anonymous until a customer registers with them; the owning
customer is linked later by the profile side of the platform.
"""

import logging
from dataclasses import dataclass

from .models import Device, new_id, utcnow
from .ports import Clock, RegistrationStore

logger = logging.getLogger(__name__)


@dataclass
class DeviceService:
    store: RegistrationStore
    clock: Clock = utcnow

    def register_device(
        self,
        device_fingerprint: str | None = None,
        device_name: str | None = None,
        device_type: str | None = None,
        os: str | None = None,
        os_version: str | None = None,
        ip: str | None = None,
    ) -> Device:
        """Create an active device and return it."""
        now = self.clock()
        device = Device(
            id=new_id(),
            device_fingerprint=device_fingerprint,
            device_name=device_name,
            device_type=device_type,
            os=os,
            os_version=os_version,
            ip=ip,
            last_used_at=now,
            created_at=now,
        )
        with self.store.transaction() as repos:
            repos.devices.add(device)

        logger.info("Device registered: %s", device.id)
        return device
