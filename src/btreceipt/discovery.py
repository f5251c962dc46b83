"""
Printer discovery.

Scans for nearby peripherals, lets the user pick one through a chooser
callback and registers the choice so later prints can reuse it.
"""

import logging
from typing import Awaitable, Callable, Iterable, Optional

from . import scanner
from .gatt_profiles import OPTIONAL_SERVICES
from .models import LinkStatus, PrinterCandidate, PrinterHandle, PrinterSession
from .registry import DeviceRegistry

logger = logging.getLogger(__name__)

# Receives the scan results, returns the chosen one or None if cancelled
Chooser = Callable[[list[PrinterCandidate]], Awaitable[Optional[PrinterCandidate]]]


class PrinterDiscovery:
    """Runs the device chooser and registers the selected printer.

    Args:
        registry: Registry the selected printer is saved to
        optional_services: Service allow-list used to rank candidates
        timeout: Scan duration in seconds
    """

    def __init__(
        self,
        registry: DeviceRegistry,
        optional_services: Iterable[str] = OPTIONAL_SERVICES,
        timeout: float = 10.0,
    ):
        self.registry = registry
        self.optional_services = tuple(optional_services)
        self.timeout = timeout

    async def discover(
        self, session: PrinterSession, chooser: Chooser
    ) -> Optional[PrinterHandle]:
        """Let the user pick a printer.

        Returns:
            The chosen printer, now saved and current, or None when the user
            cancelled or nothing was found. The session is left untouched
            in that case.

        Raises:
            UnsupportedError: If Bluetooth LE isn't available
        """
        candidates = await scanner.scan(self.timeout, self.optional_services)

        chosen = await chooser(candidates)
        if chosen is None:
            logger.debug("Device selection cancelled")
            return None

        handle = PrinterHandle(
            id=chosen.address,
            display_name=chosen.name or "Unknown",
            native_ref=chosen.device,
            link_status=LinkStatus.UNKNOWN,
        )
        self.registry.save(session, handle)
        logger.info("Printer selected: %s", handle)
        return handle


async def first_candidate(candidates: list[PrinterCandidate]) -> Optional[PrinterCandidate]:
    """Non-interactive chooser: the best-ranked candidate, if any."""
    return candidates[0] if candidates else None
