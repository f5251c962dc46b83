"""
ESC/POS Command Builder.

ESC/POS is the de facto control-code convention for receipt printers.
Commands are short binary sequences starting with ESC (0x1B) or GS (0x1D),
interleaved with literal text in a single-byte code page.

A few vendors deviate from the common codes. The deviations are kept in
explicit command sets selected by :class:`PrinterDialect`.
"""

from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import Optional

from .errors import EncodingUnsupportedError

ESC = b"\x1b"
GS = b"\x1d"
LF = b"\n"

INIT = ESC + b"@"


class Align(IntEnum):
    """Justification values for ESC a."""
    LEFT = 0
    CENTER = 1
    RIGHT = 2


class PrinterDialect(str, Enum):
    """Command dialect, chosen by configuration and never by device name."""
    GENERIC = "generic"
    EPSON = "epson"
    STAR = "star"


@dataclass(frozen=True)
class CommandSet:
    """Byte sequences that differ between dialects."""
    align_prefix: bytes
    cut: bytes
    supports_raster: bool = True

    def align(self, align: Align) -> bytes:
        return self.align_prefix + bytes([int(align)])


_STANDARD = CommandSet(align_prefix=ESC + b"a", cut=GS + b"VB\x00")

COMMAND_SETS: dict[PrinterDialect, CommandSet] = {
    PrinterDialect.GENERIC: _STANDARD,
    PrinterDialect.EPSON: _STANDARD,
    # Star line mode: ESC GS a n alignment, ESC d 2 cut, no GS v 0 raster
    PrinterDialect.STAR: CommandSet(
        align_prefix=ESC + GS + b"a",
        cut=ESC + b"d\x02",
        supports_raster=False,
    ),
}


def command_set(dialect: PrinterDialect) -> CommandSet:
    """Look up the command set for a dialect."""
    return COMMAND_SETS[PrinterDialect(dialect)]


class ESCPOSCommand:
    """
    ESC/POS command builder.

    Queues commands and text, then returns them as one byte string.

    Args:
        dialect: Printer dialect for alignment and cut codes
        encoding: Single-byte code page for text
        strict: Raise EncodingUnsupportedError for characters outside the
            code page instead of replacing them with "?"
    """

    def __init__(
        self,
        dialect: PrinterDialect = PrinterDialect.GENERIC,
        encoding: str = "cp437",
        strict: bool = False,
    ):
        self.commands = command_set(dialect)
        self.encoding = encoding
        self.strict = strict
        self._buffer: list[bytes] = []

    def clear(self):
        """Clear all queued commands."""
        self._buffer.clear()

    def get_commands(self) -> bytes:
        """Get all commands as a single byte string."""
        return b"".join(self._buffer)

    def _add_raw(self, data: bytes):
        self._buffer.append(data)

    def encode_text(self, text: str) -> bytes:
        """Encode text in the code page, one byte per character."""
        try:
            return text.encode(self.encoding, errors="strict" if self.strict else "replace")
        except UnicodeEncodeError as e:
            bad = text[e.start:e.end]
            raise EncodingUnsupportedError(
                f"Cannot print {bad!r} in {text!r}: not representable in {self.encoding}"
            ) from e

    # ---- Printer Control ----

    def initialize(self):
        """Reset the printer to its power-on state (ESC @)."""
        self._add_raw(INIT)

    def align(self, align: Align):
        self._add_raw(self.commands.align(align))

    def bold(self, on: bool = True):
        """Emphasis on/off (ESC E n)."""
        self._add_raw(ESC + b"E" + (b"\x01" if on else b"\x00"))

    def underline(self, on: bool = True):
        """Underline on/off (ESC - n)."""
        self._add_raw(ESC + b"-" + (b"\x01" if on else b"\x00"))

    def double_size(self, on: bool = True):
        """Double width and height (GS ! 0x11), or back to normal size."""
        self._add_raw(GS + b"!" + (b"\x11" if on else b"\x00"))

    def feed(self, lines: int = 1):
        """Emit line feeds."""
        self._add_raw(LF * lines)

    def cut(self):
        """Full paper cut."""
        self._add_raw(self.commands.cut)

    # ---- Content ----

    def text(self, text: str):
        """Add literal text without a line feed."""
        self._add_raw(self.encode_text(text))

    def line(self, text: str = ""):
        """Add a line of text followed by a line feed."""
        self._add_raw(self.encode_text(text) + LF)

    def raster(self, width_bytes: int, height: int, data: bytes) -> bool:
        """
        Print a 1-bit raster image (GS v 0).

        Args:
            width_bytes: Bytes per row (8 dots each)
            height: Number of rows
            data: Packed rows, MSB is the leftmost dot, 1 = black

        Returns:
            False if the dialect has no raster command (nothing queued)
        """
        if not self.commands.supports_raster:
            return False
        if len(data) != width_bytes * height:
            raise ValueError(
                f"Raster data is {len(data)} bytes, expected {width_bytes * height}"
            )
        header = GS + b"v0\x00" + bytes([
            width_bytes & 0xFF, (width_bytes >> 8) & 0xFF,
            height & 0xFF, (height >> 8) & 0xFF,
        ])
        self._add_raw(header + data)
        return True


def build_test_page(text: str, dialect: Optional[PrinterDialect] = None) -> bytes:
    """Short literal page used for manual test transmissions."""
    cmd = ESCPOSCommand(dialect or PrinterDialect.GENERIC)
    cmd.initialize()
    cmd.feed(2)
    cmd.line(text)
    cmd.feed(2)
    return cmd.get_commands()
