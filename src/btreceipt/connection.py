"""
BLE connection and channel negotiation for receipt printers.

Finds a writable characteristic on a printer whose GATT layout is not
known in advance. Services from the priority list are tried first. Within
each service, well-known characteristics are probed by identifier
("fast path") before falling back to the first characteristic that
accepts writes.
"""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Iterable, Iterator, Optional

from bleak import BleakClient
from bleak.exc import BleakDeviceNotFoundError, BleakError

from .errors import ChannelNotFoundError, ConnectionFailedError, DeviceNotFoundError
from .escpos import INIT
from .gatt_profiles import (
    FAST_PATH_CHARACTERISTICS,
    PRIORITY_SERVICES,
    service_rank,
)
from .models import GattChannel, LinkStatus, PrinterHandle, WriteMode

logger = logging.getLogger(__name__)

# Errors a GATT operation can fail with
GATT_ERRORS = (BleakError, asyncio.TimeoutError, OSError)


class NegotiationState(Enum):
    """Progress of one connection attempt."""
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    SERVICES_ENUMERATED = "services-enumerated"
    CHANNEL_FOUND = "channel-found"
    CHANNEL_NOT_FOUND = "channel-not-found"


@dataclass
class ServiceInfo:
    """Information about a GATT service and its characteristics."""
    service_uuid: str
    characteristics: list[dict]


def write_mode(properties: Iterable[str]) -> Optional[WriteMode]:
    """Write mode supported by a characteristic, or None if not writable."""
    properties = set(properties)
    if "write" in properties:
        return WriteMode.WITH_RESPONSE
    if "write-without-response" in properties:
        return WriteMode.WITHOUT_RESPONSE
    return None


class BLEConnection:
    """Manages one GATT session with a receipt printer.

    Args:
        client_factory: Builds the GATT client, ``BleakClient`` by default
        connect_timeout: Bound on connect and service enumeration (seconds)
        write_timeout: Bound on each individual write (seconds)
        priority_services: Services tried first, highest priority first
        fast_path: Characteristics probed by identifier before enumerating
    """

    def __init__(
        self,
        client_factory: Callable[..., Any] = BleakClient,
        connect_timeout: float = 20.0,
        write_timeout: float = 10.0,
        priority_services: Iterable[str] = PRIORITY_SERVICES,
        fast_path: Iterable[str] = FAST_PATH_CHARACTERISTICS,
    ):
        self._client_factory = client_factory
        self.connect_timeout = connect_timeout
        self.write_timeout = write_timeout
        self.priority_services = tuple(priority_services)
        self.fast_path = tuple(fast_path)

        self.client: Optional[Any] = None
        self.state = NegotiationState.DISCONNECTED
        self.channel: Optional[GattChannel] = None
        self._characteristic: Optional[Any] = None

    def _set_state(self, state: NegotiationState):
        logger.debug("Negotiation state: %s -> %s", self.state.value, state.value)
        self.state = state

    async def connect(self, handle: PrinterHandle) -> None:
        """Open a GATT connection and enumerate services.

        Not retried; the caller decides whether to rediscover.

        Raises:
            DeviceNotFoundError: If the host doesn't know the address
            ConnectionFailedError: If the platform refuses the connection
        """
        target = handle.native_ref if handle.native_ref is not None else handle.id
        self._set_state(NegotiationState.CONNECTING)
        logger.debug("Connecting to %s", handle)

        self.client = self._client_factory(target, timeout=self.connect_timeout)
        try:
            await self.client.connect()
        except GATT_ERRORS as e:
            self.client = None
            self._set_state(NegotiationState.DISCONNECTED)
            handle.link_status = LinkStatus.OFFLINE
            if isinstance(e, BleakDeviceNotFoundError):
                raise DeviceNotFoundError(
                    f"Printer {handle} is not known to this host. Select it again with discovery."
                ) from e
            raise ConnectionFailedError(
                f"Could not connect to {handle}: {str(e) or type(e).__name__}. "
                "Check that the printer is on and in range."
            ) from e

        self._set_state(NegotiationState.SERVICES_ENUMERATED)

    def ranked_services(self) -> list:
        """Services with priority-listed ones first.

        Unknown services keep their enumeration order after them.
        """
        if not self.client:
            return []
        return sorted(
            self.client.services,
            key=lambda s: service_rank(s.uuid, self.priority_services),
        )

    async def negotiate(self, handle: PrinterHandle) -> GattChannel:
        """Resolve the channel print data is written to.

        Connects first if needed. The first service yielding a writable
        characteristic wins.

        Raises:
            ConnectionFailedError: If the connection can't be opened
            ChannelNotFoundError: If no service has a usable characteristic
        """
        if not self.is_connected:
            await self.connect(handle)

        for service in self.ranked_services():
            logger.debug("Trying service %s", service.uuid)
            rejected = set()
            match = (await self._probe_fast_path(service, rejected)
                     or self._first_writable(service, rejected))
            if match is None:
                continue

            characteristic, mode = match
            self._characteristic = characteristic
            self.channel = GattChannel(
                service_uuid=service.uuid,
                characteristic_uuid=characteristic.uuid,
                write_mode=mode,
            )
            self._set_state(NegotiationState.CHANNEL_FOUND)
            handle.link_status = LinkStatus.ONLINE
            logger.info("Using characteristic %s on service %s (%s)",
                        characteristic.uuid, service.uuid, mode.value)
            return self.channel

        self._set_state(NegotiationState.CHANNEL_NOT_FOUND)
        raise ChannelNotFoundError(
            f"No writable characteristic found on {handle}. "
            "This device may not be a receipt printer; try selecting another."
        )

    def _fast_path_candidates(self, service) -> Iterator[tuple[Any, WriteMode]]:
        for uuid in self.fast_path:
            characteristic = service.get_characteristic(uuid)
            if characteristic is None:
                continue
            mode = write_mode(characteristic.properties)
            if mode is not None:
                yield characteristic, mode

    async def _probe_fast_path(self, service, rejected: set) -> Optional[tuple[Any, WriteMode]]:
        """Known characteristics, each confirmed with an initialize write.

        Characteristics that reject the probe are added to ``rejected``.
        """
        for characteristic, mode in self._fast_path_candidates(service):
            logger.debug("Probing known characteristic %s", characteristic.uuid)
            try:
                await self._write_to(characteristic, INIT, mode)
            except GATT_ERRORS as e:
                logger.debug("Probe of %s failed: %s", characteristic.uuid, e)
                rejected.add(characteristic.uuid)
                continue
            return characteristic, mode
        return None

    def _first_writable(self, service, rejected=frozenset()) -> Optional[tuple[Any, WriteMode]]:
        for characteristic in service.characteristics:
            if characteristic.uuid in rejected:
                continue
            mode = write_mode(characteristic.properties)
            if mode is not None:
                logger.debug("Found writable characteristic %s", characteristic.uuid)
                return characteristic, mode
        return None

    async def _write_to(self, characteristic, data: bytes, mode: WriteMode):
        await asyncio.wait_for(
            self.client.write_gatt_char(characteristic, data, response=mode.response),
            timeout=self.write_timeout,
        )

    async def write(self, data: bytes) -> None:
        """Write to the negotiated channel.

        Raises:
            ChannelNotFoundError: If no channel has been negotiated
            BleakError, asyncio.TimeoutError, OSError: If the write fails
        """
        if not self.client or self._characteristic is None or self.channel is None:
            raise ChannelNotFoundError("No channel negotiated")
        await self._write_to(self._characteristic, data, self.channel.write_mode)

    async def disconnect(self):
        """Close the GATT connection. Safe to call more than once."""
        client = self.client
        self.client = None
        self.channel = None
        self._characteristic = None
        self._set_state(NegotiationState.DISCONNECTED)
        if client is not None and client.is_connected:
            try:
                await client.disconnect()
            except GATT_ERRORS as e:
                logger.warning("Disconnect failed: %s", e)

    def get_services(self) -> list[ServiceInfo]:
        """All services and characteristics (for diagnosing unknown printers)."""
        if not self.client:
            return []

        services = []
        for service in self.client.services:
            chars = []
            for char in service.characteristics:
                chars.append({
                    "uuid": char.uuid,
                    "properties": list(char.properties),
                    "handle": char.handle,
                })
            services.append(ServiceInfo(
                service_uuid=service.uuid,
                characteristics=chars,
            ))

        return services

    @property
    def is_connected(self) -> bool:
        """Check if currently connected."""
        return self.client is not None and self.client.is_connected
