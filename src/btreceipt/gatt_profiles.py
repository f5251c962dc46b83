"""
Known GATT identifiers for BLE receipt printers.

Receipt printers from different OEMs expose very different GATT layouts.
These tables encode which services and characteristics have been seen
carrying ESC/POS data, in the order they should be tried. Add new
hardware here; negotiation reads the tables and needs no changes.
"""

from typing import Iterable


def uuid16(short: int) -> str:
    """Expand a 16-bit Bluetooth SIG identifier to the full 128-bit form."""
    return f"0000{short:04x}-0000-1000-8000-00805f9b34fb"


def normalize_uuid(uuid: str) -> str:
    """Lower-case a UUID and expand 16-bit short forms ("ffe0", "0xffe0")."""
    value = uuid.strip().lower()
    if value.startswith("0x"):
        value = value[2:]
    if len(value) == 4:
        return uuid16(int(value, 16))
    return value


# Generic profiles
GENERIC_ACCESS = uuid16(0x1800)
GENERIC_ATTRIBUTE = uuid16(0x1801)
HUMAN_INTERFACE_DEVICE = uuid16(0x1812)
SERIAL_PORT_PROFILE = uuid16(0x1101)

# Printer / transparent UART vendor services
ISSC_SERVICE = "49535343-fe7d-4ae5-8fa9-9fafd205e455"  # Microchip/ISSC, "AT POS" printers
ISSC_TRANSPARENT_UART = "49535343-1e4d-4bd9-ba61-23c647249616"
UART_FFE0 = uuid16(0xFFE0)  # HM-10 style BLE UART
PRINTER_FFF0 = uuid16(0xFFF0)
PRINTER_FF00 = uuid16(0xFF00)
PRINTER_18F0 = uuid16(0x18F0)
ESCPOS_SERVICE = "e7810a71-73ae-499d-8c15-faa9aef0c3f2"
VENDOR_03B7 = "03b7e958-aed3-4d18-a30e-c6313ad7d9dd"
NORDIC_UART = "6e400001-b5a3-f393-e0a9-e50e24dcca9e"

# Services the chooser may later access. Broad on purpose: a printer is
# accepted even if it advertises none of them.
OPTIONAL_SERVICES: tuple[str, ...] = (
    GENERIC_ACCESS,
    GENERIC_ATTRIBUTE,
    HUMAN_INTERFACE_DEVICE,
    VENDOR_03B7,
    ISSC_SERVICE,
    ISSC_TRANSPARENT_UART,
    UART_FFE0,
    PRINTER_FFF0,
    PRINTER_FF00,
    PRINTER_18F0,
    ESCPOS_SERVICE,
    SERIAL_PORT_PROFILE,
    NORDIC_UART,
)

# Services probed before any other, highest priority first
PRIORITY_SERVICES: tuple[str, ...] = (
    ISSC_SERVICE,
    ISSC_TRANSPARENT_UART,
    UART_FFE0,
    PRINTER_18F0,
    ESCPOS_SERVICE,
    SERIAL_PORT_PROFILE,
    PRINTER_FFF0,
    PRINTER_FF00,
    VENDOR_03B7,
    NORDIC_UART,
)

# Characteristics looked up by identifier before enumerating a service
FAST_PATH_CHARACTERISTICS: tuple[str, ...] = (
    "49535343-8841-43f4-a8d4-ecbe34729bb3",  # ISSC write
    ISSC_TRANSPARENT_UART,
    uuid16(0xFFE1),  # HM-10 UART
    uuid16(0xFFF1),
    uuid16(0xFF01),
    uuid16(0x2AF1),  # 18F0 printers
    "bef8d6c9-9c21-4c9e-b632-bd58c1009f9f",  # e7810a71 ESC/POS write
    "6e400002-b5a3-f393-e0a9-e50e24dcca9e",  # Nordic UART RX
)

WRITE_PROPERTIES = frozenset({"write", "write-without-response"})


def service_rank(uuid: str, priority: Iterable[str] = PRIORITY_SERVICES) -> int:
    """Rank of a service in the priority list; unknown services rank last."""
    priority = [normalize_uuid(p) for p in priority]
    try:
        return priority.index(normalize_uuid(uuid))
    except ValueError:
        return len(priority)


def is_known_service(uuid: str) -> bool:
    """Whether a service appears in the chooser allow-list."""
    return normalize_uuid(uuid) in OPTIONAL_SERVICES
