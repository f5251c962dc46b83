"""
Chunked writer for BLE receipt printers.

Thermal printer BLE bridges commonly lack flow control and drop data under
back-to-back writes, so payloads larger than one write are split into
fixed-size chunks with a short pause between them.
"""

import asyncio
import logging

from .connection import GATT_ERRORS, BLEConnection
from .errors import TransmitError
from .escpos import INIT

logger = logging.getLogger(__name__)

# Conservative upper bound on a single GATT write
DEFAULT_MTU = 512

# Pause between chunks in seconds
DEFAULT_CHUNK_DELAY = 0.1


def iter_chunks(payload: bytes, mtu: int = DEFAULT_MTU):
    """Split a payload into ``mtu``-sized chunks; the last may be shorter."""
    if mtu <= 0:
        raise ValueError(f"MTU must be positive, got {mtu}")
    for offset in range(0, len(payload), mtu):
        yield payload[offset:offset + mtu]


async def transmit(
    connection: BLEConnection,
    payload: bytes,
    mtu: int = DEFAULT_MTU,
    delay: float = DEFAULT_CHUNK_DELAY,
) -> bool:
    """Send a payload over the negotiated channel, then disconnect.

    An initialize command is written first. A failed write ends the job:
    resuming from a partial position could print a duplicate, partial
    receipt on a printer that is still working through the first one.

    Args:
        connection: Connection with a negotiated channel
        payload: Bytes to send
        mtu: Largest single write in bytes
        delay: Pause between chunks in seconds

    Returns:
        True once every chunk was written

    Raises:
        TransmitError: If any write fails
    """
    chunks = list(iter_chunks(payload, mtu))
    total = len(chunks)
    position = 0

    try:
        try:
            await connection.write(INIT)
        except GATT_ERRORS as e:
            raise TransmitError(f"Printer rejected the initialize command: {e}") from e

        for number, chunk in enumerate(chunks, 1):
            logger.debug("Sending chunk %d/%d: bytes %d-%d",
                         number, total, position, position + len(chunk))
            try:
                await connection.write(chunk)
            except GATT_ERRORS as e:
                raise TransmitError(
                    f"Write failed at chunk {number}/{total} "
                    f"(byte {position} of {len(payload)}): {str(e) or type(e).__name__}"
                ) from e
            position += len(chunk)

            if delay > 0 and number < total:
                await asyncio.sleep(delay)

        logger.info("Sent %d bytes in %d chunk(s)", len(payload), total)
        return True
    finally:
        await connection.disconnect()
