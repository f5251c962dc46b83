"""
Receipt encoder.

Renders a :class:`Receipt` into an ESC/POS byte stream laid out for narrow
thermal paper: store header, document details, a fixed-width item table,
totals and a footer, followed by a paper cut.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from .escpos import Align, ESCPOSCommand, PrinterDialect
from .image import LogoProcessor
from .models import LineItem, Money, Receipt, to_decimal

logger = logging.getLogger(__name__)

DEFAULT_LINE_WIDTH = 32

# Blank lines between the footer and the cut, clearing the cutter
TRAILING_FEED_LINES = 4

_CENTS = Decimal("0.01")


def format_money(value: Money) -> str:
    """Format an amount without currency symbol.

    Whole amounts have no decimals; anything else gets exactly two.

        >>> format_money(125), format_money(125.5), format_money(0)
        ('125', '125.50', '0')
    """
    amount = to_decimal(value).quantize(_CENTS, rounding=ROUND_HALF_UP)
    if amount == amount.to_integral_value():
        return str(int(amount))
    return f"{amount:.2f}"


def format_timestamp(value) -> str:
    if isinstance(value, datetime):
        return value.strftime("%d/%m/%Y %H:%M")
    return str(value)


def _fit(text: str, width: int) -> str:
    """Left-align text in a column, truncating so one space separates it
    from the next column."""
    if width <= 0:
        return ""
    return text[:width - 1].ljust(width)


@dataclass(frozen=True)
class ColumnLayout:
    """Widths of the item table columns; they always sum to ``width``."""
    width: int = DEFAULT_LINE_WIDTH
    name: int = 14
    qty: int = 4
    rate: int = 7
    amount: int = 7

    def __post_init__(self):
        if self.name + self.qty + self.rate + self.amount != self.width:
            raise ValueError(
                f"Column widths {self.name}+{self.qty}+{self.rate}+{self.amount} "
                f"do not sum to line width {self.width}"
            )
        if self.name < 2:
            raise ValueError(f"Line width {self.width} is too narrow for the item table")

    @classmethod
    def for_width(cls, width: int) -> "ColumnLayout":
        """Layout for a paper width; extra width goes to the name column."""
        return cls(width=width, name=width - 18)

    def row(self, name: str, qty: str, rate: str, amount: str) -> str:
        """One table row: name left-aligned and truncated, numbers right-aligned."""
        numbers = (
            (" " + qty).rjust(self.qty)
            + (" " + rate).rjust(self.rate)
            + (" " + amount).rjust(self.amount)
        )
        return _fit(name, self.width - len(numbers)) + numbers

    def item_row(self, item: LineItem) -> str:
        return self.row(
            item.name,
            str(item.quantity),
            format_money(item.unit_price),
            format_money(item.line_total),
        )

    def header_row(self) -> str:
        return self.row("Item", "Qty", "Rate", "Amount")

    def label_value(self, label: str, value: str) -> str:
        """Label padded on the right, value right-aligned, full line width."""
        if len(value) >= self.width:
            return value[:self.width]
        return _fit(label, self.width - len(value)) + value

    def rule(self, char: str = "-") -> str:
        return char * self.width


class ReceiptEncoder:
    """Encode receipts to ESC/POS bytes. Pure apart from reading a logo file.

    Args:
        dialect: Printer command dialect
        line_width: Characters per line
        encoding: Single-byte code page for text
        strict: Raise EncodingUnsupportedError for unprintable characters
        logo_processor: Converts ``header.logo`` files to rasters
    """

    def __init__(
        self,
        dialect: PrinterDialect = PrinterDialect.GENERIC,
        line_width: int = DEFAULT_LINE_WIDTH,
        encoding: str = "cp437",
        strict: bool = False,
        logo_processor: Optional[LogoProcessor] = None,
    ):
        self.dialect = PrinterDialect(dialect)
        self.layout = ColumnLayout.for_width(line_width)
        self.encoding = encoding
        self.strict = strict
        self.logo_processor = logo_processor or LogoProcessor()

    def _new_command(self) -> ESCPOSCommand:
        return ESCPOSCommand(self.dialect, encoding=self.encoding, strict=self.strict)

    def _logo(self, cmd: ESCPOSCommand, path: str):
        try:
            raster = self.logo_processor.process(path)
        except (OSError, ValueError) as e:
            logger.warning("Skipping logo %s: %s", path, e)
            return
        if not cmd.raster(raster.width_bytes, raster.height, raster.data):
            logger.debug("Dialect %s has no raster command, logo skipped", self.dialect.value)

    def encode(self, receipt: Receipt) -> bytes:
        """Render a receipt.

        Raises:
            EncodingUnsupportedError: In strict mode, if text can't be
                represented in the code page
        """
        layout = self.layout
        cmd = self._new_command()
        cmd.initialize()

        # Store header
        header = receipt.header
        cmd.align(Align.CENTER)
        if header.logo:
            self._logo(cmd, header.logo)
        cmd.bold(True)
        cmd.double_size(True)
        cmd.line(header.name)
        cmd.double_size(False)
        for text in (header.address, header.phone, header.email):
            if text:
                cmd.line(text)
        cmd.bold(False)

        # Document details
        cmd.align(Align.LEFT)
        cmd.feed()
        cmd.underline(True)
        document_line = f"{receipt.meta.document_label} #: {receipt.meta.document_id}"
        cmd.text(document_line[:layout.width])
        cmd.underline(False)
        cmd.feed()
        cmd.line(layout.label_value("Date", format_timestamp(receipt.meta.timestamp)))
        cmd.line(layout.label_value("Customer", receipt.meta.counterparty_name))

        # Item table
        cmd.line(layout.rule())
        cmd.bold(True)
        cmd.line(layout.header_row())
        cmd.bold(False)
        cmd.line(layout.rule())
        for item in receipt.line_items:
            cmd.line(layout.item_row(item))
        cmd.line(layout.rule())

        # Totals
        if receipt.subtotal is not None:
            cmd.line(layout.label_value("Subtotal", format_money(receipt.subtotal)))
        if receipt.tax:
            cmd.line(layout.label_value("Tax", format_money(receipt.tax)))
        cmd.bold(True)
        cmd.line(layout.label_value("TOTAL", format_money(receipt.total)))
        cmd.bold(False)
        cmd.line(layout.label_value("Payment", receipt.payment_label))

        # Footer
        cmd.feed()
        cmd.align(Align.CENTER)
        cmd.line(receipt.footer_text)
        cmd.feed(TRAILING_FEED_LINES)
        cmd.cut()

        return cmd.get_commands()


def encode(receipt: Receipt, **kwargs) -> bytes:
    """Encode a receipt with a one-off :class:`ReceiptEncoder`."""
    return ReceiptEncoder(**kwargs).encode(receipt)
