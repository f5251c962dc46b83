"""
Pytest configuration for receipt printer tests.

Provides fake GATT topologies, an isolated config directory, and
command-line options for hardware tests.
"""

import pytest

from btreceipt import BLEConnection, DeviceRegistry, PrinterHandle, PrinterSession, PrinterStore
from fakes import ClientFactory, FakeCharacteristic, FakeService, uuid16


def pytest_addoption(parser):
    """Add command-line options for hardware tests."""
    parser.addoption(
        "--address",
        action="store",
        default=None,
        help="Bluetooth address of the printer for hardware tests",
    )


def pytest_collection_modifyitems(config, items):
    """Skip hardware tests unless a printer address was given."""
    if config.getoption("--address"):
        return
    skip_hardware = pytest.mark.skip(reason="needs --address=XX:XX:XX:XX:XX:XX")
    for item in items:
        if "hardware" in item.keywords:
            item.add_marker(skip_hardware)


@pytest.fixture
def handle():
    """A printer handle with no live device."""
    return PrinterHandle(id="AA:BB:CC:DD:EE:FF", display_name="Test Printer")


@pytest.fixture
def session():
    return PrinterSession()


@pytest.fixture
def uart_topology():
    """A typical HM-10 style printer: generic services plus an FFE0 UART."""
    return [
        FakeService(uuid16(0x1800), [FakeCharacteristic(uuid16(0x2A00), ["read"])]),
        FakeService(uuid16(0x180A), [FakeCharacteristic(uuid16(0x2A29), ["read"])]),
        FakeService(uuid16(0xFFE0), [
            FakeCharacteristic(uuid16(0xFFE1), ["read", "write-without-response", "notify"]),
        ]),
    ]


@pytest.fixture
def make_connection():
    """Build a BLEConnection backed by fake clients."""

    def make(services=(), **client_kwargs):
        factory = ClientFactory(services, **client_kwargs)
        connection = BLEConnection(client_factory=factory, write_timeout=1.0)
        return connection, factory

    return make


@pytest.fixture
def config_dir(tmp_path, monkeypatch):
    """Point the saved printer record and settings at a temporary directory."""
    test_config_dir = tmp_path / ".config" / "btreceipt"
    monkeypatch.setattr("btreceipt.registry.PRINTER_FILE", test_config_dir / "printer.json")
    monkeypatch.setattr("btreceipt.settings.SETTINGS_FILE", test_config_dir / "settings.json")
    return test_config_dir


@pytest.fixture
def make_registry(config_dir):
    """Build a registry whose host lookup returns the given devices."""

    def make(*devices):
        async def lookup():
            return list(devices)

        return DeviceRegistry(store=PrinterStore(), lookup=lookup)

    return make


@pytest.fixture
def printer_address(request):
    """Get the printer address from command line."""
    address = request.config.getoption("--address")
    if address is None:
        pytest.skip("No printer address provided (use --address=XX:XX:XX:XX:XX:XX)")
    return address


@pytest.fixture
def hardware_session(printer_address):
    """A session holding the real printer given with --address."""
    return PrinterSession(
        current=PrinterHandle(id=printer_address, display_name="Hardware printer")
    )
