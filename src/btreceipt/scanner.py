"""
BLE scanning through the host Bluetooth stack.

Wraps ``BleakScanner`` so discovery and the registry see plain
:class:`PrinterCandidate` entries and a single "Bluetooth unavailable"
error kind.
"""

import logging
import sys
from typing import Iterable

from bleak import BleakScanner
from bleak.backends.device import BLEDevice
from bleak.exc import BleakError

from .errors import UnsupportedError
from .gatt_profiles import OPTIONAL_SERVICES, normalize_uuid
from .models import PrinterCandidate

logger = logging.getLogger(__name__)

# Platforms with a bleak backend
SUPPORTED_PLATFORMS = ("linux", "darwin", "win32")


def check_support() -> None:
    """Raise UnsupportedError if bleak has no backend for this platform."""
    if not sys.platform.startswith(SUPPORTED_PLATFORMS):
        raise UnsupportedError(
            f"Bluetooth LE is not supported on this platform ({sys.platform}). "
            "Use Linux (BlueZ), macOS or Windows 10+."
        )


async def _discover(timeout: float) -> dict:
    check_support()
    try:
        return await BleakScanner.discover(timeout=timeout, return_adv=True)
    except (BleakError, OSError) as e:
        raise UnsupportedError(
            f"Bluetooth adapter unavailable: {e}. "
            "Make sure Bluetooth is present and switched on."
        ) from e


async def scan(
    timeout: float = 10.0,
    known_services: Iterable[str] = OPTIONAL_SERVICES,
) -> list[PrinterCandidate]:
    """Scan for nearby BLE peripherals.

    Every device is accepted, since receipt printers rarely advertise a
    standard service. Devices advertising one of ``known_services`` sort
    first, then by signal strength.

    Raises:
        UnsupportedError: If the platform or adapter can't scan
    """
    known = {normalize_uuid(u) for u in known_services}
    candidates = []

    for device, adv_data in (await _discover(timeout)).values():
        advertised = {normalize_uuid(u) for u in (adv_data.service_uuids or [])}
        candidates.append(PrinterCandidate(
            name=device.name or adv_data.local_name or "Unknown",
            address=device.address,
            rssi=adv_data.rssi if adv_data.rssi is not None else -100,
            advertises_known_service=bool(advertised & known),
            device=device,
        ))

    logger.debug("Scan found %d device(s)", len(candidates))
    return sorted(
        candidates,
        key=lambda c: (not c.advertises_known_service, -c.rssi),
    )


async def known_devices(timeout: float = 5.0) -> list[BLEDevice]:
    """Devices the host can currently resolve.

    Raises:
        UnsupportedError: If the platform or adapter can't scan
    """
    return [device for device, _ in (await _discover(timeout)).values()]
