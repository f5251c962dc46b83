"""Tests for chunked transmission."""

from unittest.mock import AsyncMock

import pytest

from btreceipt.errors import ChannelNotFoundError, TransmitError
from btreceipt.escpos import INIT
from btreceipt.transport import DEFAULT_MTU, iter_chunks, transmit
from fakes import uuid16

UART_CHAR = uuid16(0xFFE1)


@pytest.fixture
def negotiated(handle, make_connection, uart_topology):
    """Return a factory for connected, negotiated UART connections."""

    async def make(**client_kwargs):
        connection, factory = make_connection(uart_topology, **client_kwargs)
        await connection.negotiate(handle)
        client = factory.last
        # Drop the negotiation probe so only transmitted data remains
        client.writes.clear()
        return connection, client

    return make


@pytest.fixture
def sleep(mocker):
    return mocker.patch("btreceipt.transport.asyncio.sleep", new_callable=AsyncMock)


class TestIterChunks:
    """Test payload splitting."""

    def test_exact_multiple(self):
        assert [len(c) for c in iter_chunks(b"x" * 1024, 512)] == [512, 512]

    def test_remainder(self):
        assert [len(c) for c in iter_chunks(b"x" * 1300, 512)] == [512, 512, 276]

    def test_small_payload(self):
        assert list(iter_chunks(b"abc", 512)) == [b"abc"]

    def test_empty_payload(self):
        assert list(iter_chunks(b"", 512)) == []

    def test_chunks_rejoin(self):
        payload = bytes(range(256)) * 5
        assert b"".join(iter_chunks(payload, 100)) == payload

    def test_invalid_mtu(self):
        with pytest.raises(ValueError, match="MTU"):
            list(iter_chunks(b"abc", 0))


class TestTransmit:
    """Test transmission over a negotiated channel."""

    @pytest.mark.asyncio
    async def test_small_payload_single_write(self, negotiated, sleep):
        connection, client = await negotiated()

        assert await transmit(connection, b"receipt") is True

        assert client.writes_to(UART_CHAR) == [INIT, b"receipt"]
        sleep.assert_not_called()

    @pytest.mark.asyncio
    async def test_payload_at_mtu_is_one_write(self, negotiated, sleep):
        connection, client = await negotiated()

        await transmit(connection, b"x" * DEFAULT_MTU)

        assert client.writes_to(UART_CHAR)[1:] == [b"x" * DEFAULT_MTU]

    @pytest.mark.asyncio
    async def test_large_payload_chunked(self, negotiated, sleep):
        connection, client = await negotiated()
        payload = bytes(range(256)) * 5  # 1280 bytes

        await transmit(connection, payload)

        data_writes = client.writes_to(UART_CHAR)[1:]
        assert [len(w) for w in data_writes] == [512, 512, 256]
        assert b"".join(data_writes) == payload

    @pytest.mark.asyncio
    async def test_delay_between_chunks_only(self, negotiated, sleep):
        connection, client = await negotiated()

        await transmit(connection, b"x" * 1300, delay=0.1)

        assert sleep.await_count == 2
        sleep.assert_awaited_with(0.1)

    @pytest.mark.asyncio
    async def test_zero_delay_never_sleeps(self, negotiated, sleep):
        connection, _ = await negotiated()
        await transmit(connection, b"x" * 2000, delay=0)
        sleep.assert_not_called()

    @pytest.mark.asyncio
    async def test_custom_mtu(self, negotiated, sleep):
        connection, client = await negotiated()

        await transmit(connection, b"x" * 50, mtu=20)

        assert [len(w) for w in client.writes_to(UART_CHAR)[1:]] == [20, 20, 10]

    @pytest.mark.asyncio
    async def test_disconnects_after_success(self, negotiated, sleep):
        connection, client = await negotiated()

        await transmit(connection, b"receipt")

        assert client.disconnect_calls == 1
        assert not connection.is_connected

    @pytest.mark.asyncio
    async def test_rejected_initialize(self, negotiated, sleep):
        # Write 1 was the negotiation probe; write 2 is the initialize
        connection, client = await negotiated(fail_on_write=2)

        with pytest.raises(TransmitError, match="initialize"):
            await transmit(connection, b"receipt")

        assert client.writes_to(UART_CHAR) == []
        assert client.disconnect_calls == 1

    @pytest.mark.asyncio
    async def test_failure_mid_stream_stops(self, negotiated, sleep):
        # Probe, initialize, chunk 1, then chunk 2 fails
        connection, client = await negotiated(fail_on_write=4)

        with pytest.raises(TransmitError, match=r"chunk 2/3 \(byte 512 of 1300\)"):
            await transmit(connection, b"x" * 1300)

        assert [len(w) for w in client.writes_to(UART_CHAR)] == [2, 512]
        assert client.disconnect_calls == 1

    @pytest.mark.asyncio
    async def test_not_negotiated(self, make_connection):
        connection, _ = make_connection()

        with pytest.raises(ChannelNotFoundError):
            await transmit(connection, b"receipt")
