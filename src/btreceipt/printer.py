"""
High-level receipt printer interface.

Sequences a print: resolve the current printer, negotiate a channel,
encode the document, transmit it and disconnect. Every stage surfaces its
own error kind; nothing is retried here.
"""

import logging
from contextlib import contextmanager
from typing import Callable, Optional

from .connection import BLEConnection, ServiceInfo
from .errors import ConnectionFailedError, DeviceNotFoundError, NoPrinterConfiguredError
from .escpos import build_test_page
from .models import LinkStatus, PrinterHandle, PrinterSession, PrintJob, Receipt
from .receipt import ReceiptEncoder
from .registry import DeviceRegistry
from .settings import Settings
from .transport import transmit

logger = logging.getLogger(__name__)

DEFAULT_TEST_TEXT = "--- Test Print ---"


class ReceiptPrinter:
    """
    Prints receipts on the session's current BLE printer.

    Callers must not print concurrently against the same printer.

    Args:
        registry: Source of the current/saved printer
        settings: Timeouts, chunking and encoding options
        connection_factory: Builds a fresh connection per print
    """

    def __init__(
        self,
        registry: Optional[DeviceRegistry] = None,
        settings: Optional[Settings] = None,
        connection_factory: Optional[Callable[[], BLEConnection]] = None,
    ):
        self.registry = registry or DeviceRegistry()
        self.settings = settings or Settings()
        self._connection_factory = connection_factory or self._default_connection
        self.encoder = ReceiptEncoder(
            dialect=self.settings.dialect,
            line_width=self.settings.line_width,
            encoding=self.settings.text_encoding,
            strict=self.settings.strict_encoding,
        )

    def _default_connection(self) -> BLEConnection:
        return BLEConnection(
            connect_timeout=self.settings.connect_timeout,
            write_timeout=self.settings.write_timeout,
        )

    async def resolve_printer(self, session: PrinterSession) -> PrinterHandle:
        """The current printer, or the saved one resolved from the host.

        Never opens the device chooser; that needs a user action.

        Raises:
            NoPrinterConfiguredError: If there is nothing to print to
            UnsupportedError: If the saved printer can't be looked up
        """
        handle = self.registry.get_current(session)
        if handle is None:
            handle = await self.registry.resolve_saved(session)
        if handle is None:
            raise NoPrinterConfiguredError(
                "No printer configured. Select one with discovery first."
            )
        return handle

    @contextmanager
    def _forget_if_unknown(self, session: PrinterSession, handle: PrinterHandle):
        """Drop the saved printer when the host reports its address unknown."""
        try:
            yield
        except DeviceNotFoundError:
            logger.info("Forgetting %s: not known to the host", handle)
            self.registry.forget(session)
            raise

    async def _send(self, session: PrinterSession, build: Callable[[], PrintJob]) -> bool:
        handle = await self.resolve_printer(session)
        handle.link_status = LinkStatus.UNKNOWN
        connection = self._connection_factory()

        try:
            with self._forget_if_unknown(session, handle):
                channel = await connection.negotiate(handle)
            logger.debug("Channel resolved: %s", channel)
            job = build()
            logger.debug("Print job: %d bytes", len(job.payload))
            return await transmit(
                connection,
                job.payload,
                mtu=self.settings.mtu,
                delay=self.settings.chunk_delay,
            )
        finally:
            await connection.disconnect()

    async def print_receipt(self, session: PrinterSession, receipt: Receipt) -> bool:
        """
        Print a receipt.

        Returns:
            True once the whole payload was sent

        Raises:
            NoPrinterConfiguredError: If no printer is current or saved
            DeviceNotFoundError: If the host no longer knows the printer; the
                saved printer is forgotten
            ConnectionFailedError: If the printer can't be reached
            ChannelNotFoundError: If the printer has no writable channel
            EncodingUnsupportedError: In strict mode, for unprintable text
            TransmitError: If a write fails mid-stream
        """
        return await self._send(
            session,
            lambda: PrintJob(payload=self.encoder.encode(receipt), receipt=receipt),
        )

    async def test_print(self, session: PrinterSession, text: str = DEFAULT_TEST_TEXT) -> bool:
        """Send a short literal test page through the normal print path."""
        return await self._send(
            session,
            lambda: PrintJob(payload=build_test_page(text, self.settings.dialect)),
        )

    async def status(self, session: PrinterSession) -> LinkStatus:
        """Check reachability by connecting and immediately disconnecting.

        Returns UNKNOWN when no printer is configured.
        """
        try:
            handle = await self.resolve_printer(session)
        except NoPrinterConfiguredError:
            return LinkStatus.UNKNOWN

        connection = self._connection_factory()
        try:
            with self._forget_if_unknown(session, handle):
                await connection.negotiate(handle)
        except ConnectionFailedError as e:
            logger.debug("Status check failed for %s: %s", handle, e)
            handle.link_status = LinkStatus.OFFLINE
        finally:
            await connection.disconnect()
        return handle.link_status

    async def list_services(self, session: PrinterSession) -> list[ServiceInfo]:
        """GATT layout of the current printer, for diagnosing new hardware."""
        handle = await self.resolve_printer(session)
        connection = self._connection_factory()
        try:
            with self._forget_if_unknown(session, handle):
                await connection.connect(handle)
            return connection.get_services()
        finally:
            await connection.disconnect()
