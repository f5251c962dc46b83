"""Exception hierarchy for receipt printing.

Callers branch on the exception type to decide what to do next:
re-run discovery (:class:`ConnectionFailedError` and its subclasses
:class:`DeviceNotFoundError`, :class:`ChannelNotFoundError`),
fall back to a standard print path (:class:`UnsupportedError`,
:class:`NoPrinterConfiguredError`) or report a broken print
(:class:`TransmitError`). An empty device selection is not an error.
"""


class PrinterError(Exception):
    """Base exception for all printer errors."""

    pass


class UnsupportedError(PrinterError):
    """Bluetooth LE is not available on this host."""

    pass


class ConnectionFailedError(PrinterError):
    """GATT connection was refused or the printer is out of range."""

    pass


class DeviceNotFoundError(ConnectionFailedError):
    """The host doesn't know the printer's address (unpaired or forgotten)."""

    pass


class ChannelNotFoundError(ConnectionFailedError):
    """No writable characteristic was found on any service.

    A connection failure too: the device connected but can't take print data.
    """

    pass


class TransmitError(PrinterError):
    """A write failed after transmission had started."""

    pass


class NoPrinterConfiguredError(PrinterError):
    """No current printer and nothing saved that can be resolved."""

    pass


class EncodingUnsupportedError(PrinterError):
    """Receipt text cannot be represented in the single-byte code page."""

    pass
