"""BLE thermal receipt printing: discovery, channel negotiation and ESC/POS encoding."""

__version__ = "0.1.0"

from .connection import BLEConnection, NegotiationState, ServiceInfo
from .discovery import PrinterDiscovery, first_candidate
from .errors import (
    ChannelNotFoundError,
    ConnectionFailedError,
    DeviceNotFoundError,
    EncodingUnsupportedError,
    NoPrinterConfiguredError,
    PrinterError,
    TransmitError,
    UnsupportedError,
)
from .escpos import ESCPOSCommand, PrinterDialect
from .models import (
    GattChannel,
    LineItem,
    LinkStatus,
    PrintJob,
    PrinterCandidate,
    PrinterHandle,
    PrinterSession,
    Receipt,
    ReceiptMeta,
    StoreIdentity,
    WriteMode,
)
from .printer import ReceiptPrinter
from .receipt import ColumnLayout, ReceiptEncoder, encode, format_money
from .registry import DeviceRegistry, PrinterStore, SavedPrinter
from .settings import Settings, load_settings
from .transport import transmit

__all__ = [
    "ReceiptPrinter",
    "PrinterDiscovery",
    "first_candidate",
    "DeviceRegistry",
    "PrinterStore",
    "SavedPrinter",
    "BLEConnection",
    "NegotiationState",
    "ServiceInfo",
    "transmit",
    "ReceiptEncoder",
    "ColumnLayout",
    "encode",
    "format_money",
    "ESCPOSCommand",
    "PrinterDialect",
    "Settings",
    "load_settings",
    "PrinterError",
    "UnsupportedError",
    "ConnectionFailedError",
    "DeviceNotFoundError",
    "ChannelNotFoundError",
    "TransmitError",
    "NoPrinterConfiguredError",
    "EncodingUnsupportedError",
    "GattChannel",
    "LineItem",
    "LinkStatus",
    "PrintJob",
    "PrinterCandidate",
    "PrinterHandle",
    "PrinterSession",
    "Receipt",
    "ReceiptMeta",
    "StoreIdentity",
    "WriteMode",
]
