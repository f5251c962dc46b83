"""
User settings for receipt printing.

Settings live next to the saved printer record in the per-user config
directory. A missing or unreadable file gives the defaults.
"""

import json
import logging
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Optional

from .escpos import PrinterDialect

logger = logging.getLogger(__name__)

# Config directory location
CONFIG_DIR = Path.home() / ".config" / "btreceipt"
SETTINGS_FILE = CONFIG_DIR / "settings.json"


@dataclass
class Settings:
    """Printing configuration.

    Attributes:
        dialect: Command dialect of the printer (generic, epson, star)
        line_width: Characters per line on the paper
        mtu: Largest single GATT write in bytes
        chunk_delay: Pause between chunks in seconds
        scan_timeout: Device scan duration in seconds
        connect_timeout: Bound on connect + service enumeration in seconds
        write_timeout: Bound on each individual GATT write in seconds
        strict_encoding: Reject text outside the code page instead of
            replacing it with "?"
        text_encoding: Single-byte code page for receipt text
    """

    dialect: PrinterDialect = PrinterDialect.GENERIC
    line_width: int = 32
    mtu: int = 512
    chunk_delay: float = 0.1
    scan_timeout: float = 10.0
    connect_timeout: float = 20.0
    write_timeout: float = 10.0
    strict_encoding: bool = False
    text_encoding: str = "cp437"

    # Store identity used when a document doesn't carry one
    store_name: str = ""
    address: str = ""
    phone: str = ""
    email: str = ""
    footer: str = "Thank you for your business!"
    logo: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict) -> "Settings":
        """Build settings from a dict, ignoring unknown keys."""
        known = {f.name for f in fields(cls)}
        values = {k: v for k, v in data.items() if k in known}
        if "dialect" in values:
            values["dialect"] = PrinterDialect(str(values["dialect"]).lower())
        return cls(**values)

    def to_dict(self) -> dict:
        data = asdict(self)
        data["dialect"] = self.dialect.value
        return data


def load_settings(path: Optional[Path] = None) -> Settings:
    """Load settings from disk.

    Args:
        path: Settings file. Defaults to ``SETTINGS_FILE``.

    Returns:
        Settings, or defaults if the file is missing or invalid.
    """
    path = path or SETTINGS_FILE
    if not path.exists():
        return Settings()

    try:
        data = json.loads(path.read_text())
        return Settings.from_dict(data)
    except (OSError, json.JSONDecodeError, AttributeError, TypeError, ValueError) as e:
        logger.warning("Ignoring invalid settings file %s: %s", path, e)
        return Settings()


def save_settings(settings: Settings, path: Optional[Path] = None) -> None:
    """Write settings to disk, creating the config directory if needed."""
    path = path or SETTINGS_FILE
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(settings.to_dict(), indent=2))
