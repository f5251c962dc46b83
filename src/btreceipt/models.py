"""Data model shared by discovery, connection and encoding."""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Optional, Union

Money = Union[int, float, str, Decimal]


class LinkStatus(str, Enum):
    """Last known reachability of a printer."""
    ONLINE = "online"
    OFFLINE = "offline"
    UNKNOWN = "unknown"


class WriteMode(str, Enum):
    """GATT write flavour used for a channel."""
    WITH_RESPONSE = "write"
    WITHOUT_RESPONSE = "write-without-response"

    @property
    def response(self) -> bool:
        """Value for bleak's ``response`` argument."""
        return self is WriteMode.WITH_RESPONSE


@dataclass
class PrinterHandle:
    """An identified, possibly connectable printer.

    Attributes:
        id: Stable peripheral identifier (MAC address, or CoreBluetooth
            UUID on macOS). This is the identity key.
        display_name: Human-readable name shown in settings.
        native_ref: The bleak ``BLEDevice`` for the current session. Never
            persisted.
        link_status: Reset to UNKNOWN at the start of every print and only
            promoted to ONLINE once a channel has been resolved.
    """
    id: str
    display_name: str
    native_ref: Any = field(default=None, repr=False, compare=False)
    link_status: LinkStatus = LinkStatus.UNKNOWN

    def __str__(self) -> str:
        return f"{self.display_name} [{self.id}]"


@dataclass(frozen=True)
class GattChannel:
    """Resolved service + characteristic pair for one connection session."""
    service_uuid: str
    characteristic_uuid: str
    write_mode: WriteMode


@dataclass
class PrinterCandidate:
    """One entry offered to the device chooser."""
    name: str
    address: str
    rssi: int
    advertises_known_service: bool = False
    device: Any = field(default=None, repr=False, compare=False)

    def __str__(self) -> str:
        marker = " *" if self.advertises_known_service else ""
        return f"{self.name} [{self.address}] RSSI: {self.rssi} dB{marker}"


@dataclass
class PrinterSession:
    """Holds the current printer for the life of the application.

    Owned by the caller and passed to every registry and printer call.
    """
    current: Optional[PrinterHandle] = None


# --- Receipt documents ---


def to_decimal(value: Money) -> Decimal:
    """Convert a money value to Decimal without float noise."""
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value))
    except InvalidOperation as e:
        raise ValueError(f"Invalid amount: {value!r}") from e


def _parse_timestamp(value):
    """ISO timestamps become datetimes; free-form date text is kept as given."""
    if not isinstance(value, str):
        return value
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        return value


@dataclass(frozen=True)
class StoreIdentity:
    name: str
    address: str = ""
    phone: str = ""
    email: str = ""
    logo: Optional[str] = None


@dataclass(frozen=True)
class ReceiptMeta:
    document_id: str
    timestamp: Union[datetime, str]
    counterparty_name: str = "Walk-in"
    document_label: str = "Invoice"


@dataclass(frozen=True)
class LineItem:
    """One row of the item table.

    ``line_total`` defaults to ``quantity * unit_price``. Quantities are
    whole units; "2", 2.0 and Decimal("2") are accepted, 2.5 is not.
    """
    name: str
    quantity: int
    unit_price: Decimal
    line_total: Optional[Decimal] = None

    def __post_init__(self):
        quantity = to_decimal(self.quantity)
        if quantity != quantity.to_integral_value():
            raise ValueError(f"Quantity must be a whole number: {self.quantity!r}")
        object.__setattr__(self, "quantity", int(quantity))
        object.__setattr__(self, "unit_price", to_decimal(self.unit_price))
        if self.line_total is None:
            object.__setattr__(self, "line_total", self.unit_price * self.quantity)
        else:
            object.__setattr__(self, "line_total", to_decimal(self.line_total))


@dataclass(frozen=True)
class Receipt:
    """A structured order or bill, immutable once handed to the encoder."""
    header: StoreIdentity
    meta: ReceiptMeta
    line_items: tuple[LineItem, ...]
    total: Decimal
    payment_label: str = "Cash"
    footer_text: str = "Thank you for your business!"
    subtotal: Optional[Decimal] = None
    tax: Optional[Decimal] = None

    def __post_init__(self):
        object.__setattr__(self, "line_items", tuple(self.line_items))
        object.__setattr__(self, "total", to_decimal(self.total))
        for name in ("subtotal", "tax"):
            value = getattr(self, name)
            if value is not None:
                object.__setattr__(self, name, to_decimal(value))

    @classmethod
    def from_dict(cls, data: dict) -> "Receipt":
        """Build a receipt from the business layer's JSON representation.

        Raises:
            ValueError: If required fields are missing or malformed
        """
        try:
            header = data["header"]
            meta = data["meta"]
            items = [
                LineItem(
                    name=str(item["name"]),
                    quantity=item["quantity"],
                    unit_price=item["unit_price"],
                    line_total=item.get("line_total"),
                )
                for item in data.get("line_items", [])
            ]

            return cls(
                header=StoreIdentity(
                    name=header["name"],
                    address=header.get("address", ""),
                    phone=header.get("phone", ""),
                    email=header.get("email", ""),
                    logo=header.get("logo"),
                ),
                meta=ReceiptMeta(
                    document_id=str(meta["document_id"]),
                    timestamp=_parse_timestamp(meta["timestamp"]),
                    counterparty_name=meta.get("counterparty_name") or "Walk-in",
                    document_label=meta.get("document_label", "Invoice"),
                ),
                line_items=tuple(items),
                total=data["total"],
                payment_label=data.get("payment_label") or "Cash",
                footer_text=data.get("footer_text") or "Thank you for your business!",
                subtotal=data.get("subtotal"),
                tax=data.get("tax"),
            )
        except (KeyError, TypeError) as e:
            raise ValueError(f"Invalid receipt document: {e}") from e


@dataclass
class PrintJob:
    """Bytes for one print call. Never retried across calls."""
    payload: bytes
    receipt: Optional[Receipt] = None
