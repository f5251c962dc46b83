"""
Printer registry: remembers the chosen printer across sessions.

The printer's address and name are saved to the per-user config directory
so later prints can skip the device chooser. The live ``BLEDevice`` is
never saved; it is looked up again from the host when needed.
"""

import json
import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Awaitable, Callable, Optional

from . import scanner
from .models import LinkStatus, PrinterHandle, PrinterSession
from .settings import CONFIG_DIR

logger = logging.getLogger(__name__)

PRINTER_FILE = CONFIG_DIR / "printer.json"

# Returns the devices the host currently knows about
DeviceLookup = Callable[[], Awaitable[list[Any]]]


@dataclass
class SavedPrinter:
    """Persisted printer record."""

    id: str
    name: str
    saved_at: float  # Unix timestamp


class PrinterStore:
    """JSON file holding the saved printer.

    I/O errors are logged and treated as "nothing saved".
    """

    def __init__(self, path: Optional[Path] = None):
        self._path = path

    @property
    def path(self) -> Path:
        return self._path or PRINTER_FILE

    def load(self) -> Optional[SavedPrinter]:
        """Load the saved printer, or None if missing or invalid."""
        if not self.path.exists():
            return None

        try:
            data = json.loads(self.path.read_text())
            return SavedPrinter(
                id=data["id"],
                name=data["name"],
                saved_at=data.get("saved_at", 0.0),
            )
        except (OSError, json.JSONDecodeError, KeyError, TypeError) as e:
            logger.warning("Ignoring unreadable printer record %s: %s", self.path, e)
            return None

    def save(self, printer_id: str, name: str) -> bool:
        """Save a printer record. Returns False if it couldn't be written."""
        data = {
            "id": printer_id,
            "name": name,
            "saved_at": time.time(),
        }
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(json.dumps(data, indent=2))
            return True
        except OSError as e:
            logger.error("Could not save printer record to %s: %s", self.path, e)
            return False

    def clear(self) -> bool:
        """Remove the saved record. Returns True if one was removed."""
        try:
            if self.path.exists():
                self.path.unlink()
                return True
        except OSError as e:
            logger.error("Could not remove printer record %s: %s", self.path, e)
        return False


class DeviceRegistry:
    """Saves the chosen printer and resolves it again on later runs.

    Args:
        store: Persistence for the printer record
        lookup: Coroutine function returning the host's known devices
            (objects with ``address`` and ``name``). Defaults to a short
            BLE scan.
    """

    def __init__(
        self,
        store: Optional[PrinterStore] = None,
        lookup: Optional[DeviceLookup] = None,
    ):
        self.store = store or PrinterStore()
        self._lookup = lookup or scanner.known_devices

    def save(self, session: PrinterSession, handle: PrinterHandle) -> None:
        """Persist the handle's id and name and make it the current printer."""
        self.store.save(handle.id, handle.display_name)
        session.current = handle
        logger.debug("Current printer set: %s", handle)

    def get_current(self, session: PrinterSession) -> Optional[PrinterHandle]:
        """The in-memory current printer. Never does I/O."""
        return session.current

    def saved(self) -> Optional[SavedPrinter]:
        return self.store.load()

    async def resolve_saved(self, session: PrinterSession) -> Optional[PrinterHandle]:
        """Rebuild a handle for the saved printer.

        The host's devices are searched for the saved address to pick up a
        live ``BLEDevice``. A printer that is off or asleep doesn't show up
        there, so a miss still yields a handle, addressed by id only. The
        record is cleared later if connecting reports the device unknown
        (see :meth:`forget`).

        Returns:
            The resolved handle (also made current), or None if nothing
            is saved

        Raises:
            UnsupportedError: If the host can't look up devices at all
        """
        saved = self.store.load()
        if saved is None:
            logger.debug("No saved printer")
            return None

        device = None
        for candidate in await self._lookup():
            if candidate.address.upper() == saved.id.upper():
                device = candidate
                break
        else:
            logger.info("Saved printer %s not seen in scan, using its address", saved.id)

        handle = PrinterHandle(
            id=saved.id,
            display_name=(device.name if device else None) or saved.name,
            native_ref=device,
            link_status=LinkStatus.UNKNOWN,
        )
        session.current = handle
        logger.debug("Resolved saved printer: %s", handle)
        return handle

    def forget(self, session: PrinterSession) -> bool:
        """Clear both the saved record and the current printer."""
        session.current = None
        return self.store.clear()
