# ABOUTME: BLE scanning abstraction for passive Estimote advertisement listening
# ABOUTME: Provides Protocol interface, bleak-backed scanner, and MockScanner for tests
import asyncio
import struct
from typing import NamedTuple, Optional, Protocol

from bleak import BleakScanner
from bleak.backends.device import BLEDevice
from bleak.backends.scanner import AdvertisementData

from estimote_ble.nearable import ESTIMOTE_COMPANY_ID
from estimote_ble.telemetry import ESTIMOTE_SERVICE_UUID

NEARABLE = 'nearable'
TELEMETRY = 'telemetry'


class Advertisement(NamedTuple):
    """Raw Estimote payload captured from one advertisement."""
    address: str
    kind: str  # NEARABLE or TELEMETRY
    payload: bytes


def is_estimote_service(uuid: str) -> bool:
    """
    Check whether a service data UUID is the Estimote 16-bit service UUID.

    Accepts both the short form ('fe9a') and the 128-bit Bluetooth base
    UUID form ('0000fe9a-0000-1000-8000-00805f9b34fb') that bleak reports.
    """
    uuid = str(uuid).lower()
    if len(uuid) == 4:
        return uuid == ESTIMOTE_SERVICE_UUID
    return uuid == f'0000{ESTIMOTE_SERVICE_UUID}-0000-1000-8000-00805f9b34fb'


def extract_estimote_payloads(address: str, advertisement_data: AdvertisementData) -> list[Advertisement]:
    """
    Pull Estimote payloads out of a bleak advertisement.

    bleak strips the company identifier from manufacturer data, so it is
    prepended again (little-endian) to match the Nearable packet layout.

    Args:
        address: Device address the advertisement came from
        advertisement_data: Advertisement data from bleak

    Returns:
        List of Advertisement entries, empty if nothing Estimote-specific was found
    """
    found = []

    if advertisement_data.manufacturer_data:
        for company_id, data in advertisement_data.manufacturer_data.items():
            if company_id == ESTIMOTE_COMPANY_ID and data:
                payload = struct.pack('<H', company_id) + bytes(data)
                found.append(Advertisement(address, NEARABLE, payload))

    if advertisement_data.service_data:
        for uuid, data in advertisement_data.service_data.items():
            if is_estimote_service(uuid) and data:
                found.append(Advertisement(address, TELEMETRY, bytes(data)))

    return found


class AbstractScanner(Protocol):
    """Protocol for BLE scanners that return captured Estimote advertisements."""

    async def scan(self, duration_s: int) -> list[Advertisement]:
        """
        Scan for BLE advertisements for the specified duration.

        Args:
            duration_s: Duration to scan in seconds

        Returns:
            List of Advertisement entries
        """
        ...


class BleakScannerImpl:
    """
    Real BLE scanner implementation using bleak library.

    Collects every Estimote Nearable and Telemetry payload seen while scanning.
    Beacons repeat their advertisements, so one device may contribute many
    entries per scan.
    """

    def __init__(self):
        """Initialize the BLE scanner."""
        self.advertisements: list[Advertisement] = []

    def _detection_callback(self, device: BLEDevice, advertisement_data: AdvertisementData):
        """
        Callback invoked when a BLE advertisement is detected.

        Args:
            device: BLE device information
            advertisement_data: Advertisement data including service and manufacturer data
        """
        self.advertisements.extend(extract_estimote_payloads(device.address, advertisement_data))

    async def scan(self, duration_s: int) -> list[Advertisement]:
        """
        Scan for BLE advertisements using bleak.

        Args:
            duration_s: Duration to scan in seconds

        Returns:
            List of Advertisement entries in arrival order

        Raises:
            RuntimeError: If BLE adapter is unavailable or scanning fails
        """
        self.advertisements = []

        try:
            scanner = BleakScanner(detection_callback=self._detection_callback)
            await scanner.start()
            await asyncio.sleep(duration_s)
            await scanner.stop()
        except Exception as e:
            raise RuntimeError(f"BLE scan failed: {e}") from e

        return list(self.advertisements)


class MockScanner:
    """
    Mock BLE scanner for testing without hardware.

    Returns preconfigured list of advertisements on each scan() call.
    """

    def __init__(self, data: Optional[list[Advertisement]] = None):
        """
        Initialize mock scanner with test data.

        Args:
            data: Advertisements to return on scan
        """
        self.data = data or []

    async def scan(self, duration_s: int) -> list[Advertisement]:
        """
        Return preconfigured mock data.

        Args:
            duration_s: Duration parameter (ignored in mock)

        Returns:
            Copy of the configured advertisements
        """
        await asyncio.sleep(0.01)
        return self.data.copy()


def get_scanner(use_mock: bool = False, data: Optional[list[Advertisement]] = None) -> AbstractScanner:
    """
    Factory function to get appropriate scanner implementation.

    Args:
        use_mock: If True, return MockScanner; otherwise return BleakScannerImpl
        data: Test data for MockScanner (only used when use_mock=True)

    Returns:
        Scanner instance implementing AbstractScanner protocol
    """
    if use_mock:
        return MockScanner(data)
    else:
        return BleakScannerImpl()
