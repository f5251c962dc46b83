"""Tests for scanning and the device chooser flow."""

from unittest.mock import AsyncMock

import pytest
from bleak.exc import BleakError

from btreceipt import scanner
from btreceipt.discovery import PrinterDiscovery, first_candidate
from btreceipt.errors import UnsupportedError
from btreceipt.models import LinkStatus, PrinterCandidate, PrinterHandle
from fakes import FakeAdvertisement, FakeDevice, uuid16


@pytest.fixture
def bleak_discover(mocker):
    """Patch BleakScanner.discover; set ``return_value`` to the scan result."""
    return mocker.patch(
        "btreceipt.scanner.BleakScanner.discover",
        new_callable=AsyncMock,
        return_value={},
    )


def scan_result(*entries):
    return {device.address: (device, adv) for device, adv in entries}


class TestScan:
    """Test BLE scanning."""

    @pytest.mark.asyncio
    async def test_accepts_every_device(self, bleak_discover):
        bleak_discover.return_value = scan_result(
            (FakeDevice("AA:BB:CC:DD:EE:01", "Printer"), FakeAdvertisement(-70)),
            (FakeDevice("AA:BB:CC:DD:EE:02"), FakeAdvertisement(-50, local_name="Adv Name")),
            (FakeDevice("AA:BB:CC:DD:EE:03"), FakeAdvertisement(-60)),
        )

        candidates = await scanner.scan(timeout=1.0)

        assert [c.name for c in candidates] == ["Adv Name", "Unknown", "Printer"]
        bleak_discover.assert_awaited_once_with(timeout=1.0, return_adv=True)

    @pytest.mark.asyncio
    async def test_known_service_sorts_first(self, bleak_discover):
        bleak_discover.return_value = scan_result(
            (FakeDevice("AA:BB:CC:DD:EE:01", "Headphones"), FakeAdvertisement(-40)),
            (FakeDevice("AA:BB:CC:DD:EE:02", "POS-58"),
             FakeAdvertisement(-80, service_uuids=[uuid16(0xFFE0)])),
        )

        candidates = await scanner.scan()

        assert candidates[0].name == "POS-58"
        assert candidates[0].advertises_known_service
        assert not candidates[1].advertises_known_service

    @pytest.mark.asyncio
    async def test_candidate_keeps_device(self, bleak_discover):
        device = FakeDevice("AA:BB:CC:DD:EE:01", "Printer")
        bleak_discover.return_value = scan_result((device, FakeAdvertisement(-70)))

        candidates = await scanner.scan()

        assert candidates[0].device is device
        assert candidates[0].rssi == -70

    @pytest.mark.asyncio
    async def test_adapter_failure(self, bleak_discover):
        bleak_discover.side_effect = BleakError("Bluetooth adapter not found")

        with pytest.raises(UnsupportedError, match="adapter not found"):
            await scanner.scan()

    @pytest.mark.asyncio
    async def test_unsupported_platform(self, bleak_discover, monkeypatch):
        monkeypatch.setattr("btreceipt.scanner.SUPPORTED_PLATFORMS", ("plan9",))

        with pytest.raises(UnsupportedError, match="not supported"):
            await scanner.scan()

        bleak_discover.assert_not_called()

    @pytest.mark.asyncio
    async def test_known_devices(self, bleak_discover):
        device = FakeDevice("AA:BB:CC:DD:EE:01", "Printer")
        bleak_discover.return_value = scan_result((device, FakeAdvertisement()))

        assert await scanner.known_devices() == [device]


class TestPrinterDiscovery:
    """Test the chooser flow."""

    @pytest.fixture
    def candidates(self):
        device = FakeDevice("AA:BB:CC:DD:EE:FF", "POS-58")
        return [PrinterCandidate(name="POS-58", address=device.address, rssi=-60, device=device)]

    @pytest.fixture
    def discovery(self, make_registry, mocker, candidates):
        mocker.patch("btreceipt.scanner.scan", new_callable=AsyncMock, return_value=candidates)
        return PrinterDiscovery(make_registry(), timeout=1.0)

    @pytest.mark.asyncio
    async def test_selection_becomes_current(self, discovery, session, candidates):
        handle = await discovery.discover(session, first_candidate)

        assert handle.id == "AA:BB:CC:DD:EE:FF"
        assert handle.display_name == "POS-58"
        assert handle.native_ref is candidates[0].device
        assert handle.link_status is LinkStatus.UNKNOWN
        assert session.current is handle
        assert discovery.registry.saved().id == "AA:BB:CC:DD:EE:FF"

    @pytest.mark.asyncio
    async def test_cancel_returns_none(self, discovery, session):
        async def cancel(candidates):
            return None

        assert await discovery.discover(session, cancel) is None
        assert session.current is None
        assert discovery.registry.saved() is None

    @pytest.mark.asyncio
    async def test_cancel_keeps_previous_printer(self, discovery, session, handle):
        discovery.registry.save(session, handle)

        async def cancel(candidates):
            return None

        await discovery.discover(session, cancel)

        assert session.current is handle
        assert discovery.registry.saved().id == handle.id

    @pytest.mark.asyncio
    async def test_chooser_receives_candidates(self, discovery, session, candidates):
        seen = []

        async def chooser(offered):
            seen.extend(offered)
            return offered[0]

        await discovery.discover(session, chooser)

        assert seen == candidates

    @pytest.mark.asyncio
    async def test_scan_uses_timeout_and_allow_list(self, make_registry, mocker, session):
        scan = mocker.patch("btreceipt.scanner.scan", new_callable=AsyncMock, return_value=[])
        discovery = PrinterDiscovery(make_registry(), optional_services=["ffe0"], timeout=3.0)

        await discovery.discover(session, first_candidate)

        scan.assert_awaited_once_with(3.0, ("ffe0",))

    @pytest.mark.asyncio
    async def test_unsupported_propagates(self, make_registry, mocker, session):
        mocker.patch(
            "btreceipt.scanner.scan",
            new_callable=AsyncMock,
            side_effect=UnsupportedError("no adapter"),
        )
        discovery = PrinterDiscovery(make_registry())

        with pytest.raises(UnsupportedError):
            await discovery.discover(session, first_candidate)

    @pytest.mark.asyncio
    async def test_rediscovery_replaces_current(self, discovery, session):
        old = PrinterHandle(id="11:22:33:44:55:66", display_name="Old")
        discovery.registry.save(session, old)

        handle = await discovery.discover(session, first_candidate)

        assert session.current is handle
        assert discovery.registry.saved().id == handle.id


class TestFirstCandidate:
    @pytest.mark.asyncio
    async def test_empty(self):
        assert await first_candidate([]) is None
