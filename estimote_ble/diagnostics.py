# ABOUTME: BLE diagnostic tool for troubleshooting Estimote beacon advertisements
# ABOUTME: Monitors one MAC address and shows raw advertisement data with decode attempts
import argparse
import asyncio
import json
from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Optional

from bleak import BleakScanner
from bleak.backends.device import BLEDevice
from bleak.backends.scanner import AdvertisementData

from estimote_ble.bitfield import DecodeError
from estimote_ble.main import decode_advertisement
from estimote_ble.models import as_dict
from estimote_ble.scanner import extract_estimote_payloads


@dataclass
class CapturedAdvertisement:
    """Single BLE advertisement capture."""
    timestamp: str
    rssi: int
    service_data: dict[str, str]  # UUID -> hex string
    manufacturer_data: dict[int, str]  # Company ID -> hex string
    parse_result: dict  # success flag plus decoded record or error


def _format_value(value) -> str:
    if isinstance(value, dict):
        return ", ".join(f"{key}={_format_value(item)}" for key, item in value.items())
    return str(value)


def format_advertisement(ad: CapturedAdvertisement) -> str:
    """Render one captured advertisement: raw payloads first, then the decode outcome."""
    lines = [f"\n[{ad.timestamp}] RSSI: {ad.rssi} dBm"]
    lines += [f"  Service UUID: {uuid}\n    Data (hex): {raw}" for uuid, raw in ad.service_data.items()]
    lines += [
        f"  Manufacturer ID: 0x{company_id:04x}\n    Data (hex): {raw}"
        for company_id, raw in ad.manufacturer_data.items()
    ]

    result = ad.parse_result
    if result["success"]:
        lines.append(f"    Estimote {result['kind']}: ✅ DECODED")
        lines += [f"      - {key}: {_format_value(value)}" for key, value in result["record"].items()]
    else:
        lines.append(f"    Estimote decode: ❌ FAILED - {result.get('error', 'Unknown error')}")
    return "\n".join(lines)


def format_statistics(stats: dict) -> str:
    """Render the summary printed when a diagnostic scan ends."""
    rule = "=" * 60
    lines = [
        f"\n{rule}\nSTATISTICS\n{rule}",
        f"Advertisements: {stats['total_advertisements']} "
        f"({stats['successful_decodes']} decoded, {stats['failed_decodes']} failed, "
        f"{stats['decode_success_rate'] * 100:.1f}%)",
        f"Average RSSI: {stats['average_rssi']} dBm",
    ]
    if stats['packet_kinds_seen']:
        lines.append(f"Packet kinds seen: {', '.join(stats['packet_kinds_seen'])}")
    return "\n".join(lines)


class DiagnosticScanner:
    """
    BLE scanner for diagnostic purposes.

    Captures all advertisement data from a specific MAC address including
    RSSI, service data, manufacturer data, and attempts Nearable/Telemetry
    decoding of every Estimote payload found.
    """

    def __init__(self, target_mac: str, quiet: bool = False):
        """
        Initialize diagnostic scanner.

        Args:
            target_mac: MAC address to monitor (case-insensitive)
            quiet: If True, suppress console output
        """
        self.target_mac = target_mac.upper()
        self.quiet = quiet
        self.advertisements: list[CapturedAdvertisement] = []
        self.running = True

    def _decode(self, address: str, advertisement_data: AdvertisementData) -> dict:
        """Try every Estimote payload in the advertisement; first decoded record wins."""
        payloads = extract_estimote_payloads(address, advertisement_data)
        if not payloads:
            return {"success": False, "error": "No Estimote payload in advertisement"}

        parse_result = {"success": False}
        for payload in payloads:
            try:
                record = decode_advertisement(payload)
            except DecodeError as e:
                parse_result = {"success": False, "kind": payload.kind, "error": str(e)}
                continue

            if record is None:
                parse_result = {
                    "success": False,
                    "kind": payload.kind,
                    "error": f"Unsupported {payload.kind} frame: {payload.payload.hex()}"
                }
                continue

            return {"success": True, "kind": payload.kind, "record": as_dict(record)}

        return parse_result

    def _detection_callback(self, device: BLEDevice, advertisement_data: AdvertisementData):
        """
        Callback invoked for each BLE advertisement.

        Args:
            device: BLE device information
            advertisement_data: Advertisement data including service data and RSSI
        """
        if device.address.upper() != self.target_mac:
            return

        timestamp = datetime.now().isoformat(timespec='milliseconds')
        rssi = advertisement_data.rssi or 0

        service_data = {}
        if advertisement_data.service_data:
            for uuid, data in advertisement_data.service_data.items():
                service_data[str(uuid)] = data.hex()

        manufacturer_data = {}
        if advertisement_data.manufacturer_data:
            for company_id, data in advertisement_data.manufacturer_data.items():
                manufacturer_data[company_id] = data.hex()

        ad = CapturedAdvertisement(
            timestamp=timestamp,
            rssi=rssi,
            service_data=service_data,
            manufacturer_data=manufacturer_data,
            parse_result=self._decode(device.address, advertisement_data)
        )
        self.advertisements.append(ad)

        if not self.quiet:
            self._display_advertisement(ad)

    def _display_advertisement(self, ad: CapturedAdvertisement):
        print(format_advertisement(ad))

    async def scan(self, duration: Optional[int] = None):
        """
        Start scanning for advertisements.

        Args:
            duration: Optional duration in seconds. If None, scan until interrupted.
        """
        print(f"Monitoring MAC: {self.target_mac}")
        if duration:
            print(f"Duration: {duration} seconds")
        else:
            print("Duration: Continuous (Ctrl+C to stop)")
        print("=" * 60)

        scanner = BleakScanner(detection_callback=self._detection_callback)

        try:
            await scanner.start()

            if duration:
                await asyncio.sleep(duration)
            else:
                while self.running:
                    await asyncio.sleep(1)

        except KeyboardInterrupt:
            if not self.quiet:
                print("\n\nScan interrupted by user")
        finally:
            await scanner.stop()

    def get_statistics(self) -> dict:
        """
        Calculate statistics from collected advertisements.

        Returns:
            Dictionary containing statistics
        """
        total = len(self.advertisements)
        if total == 0:
            return {
                "total_advertisements": 0,
                "decode_success_rate": 0.0,
                "successful_decodes": 0,
                "failed_decodes": 0,
                "average_rssi": 0.0,
                "packet_kinds_seen": []
            }

        successful = sum(1 for ad in self.advertisements if ad.parse_result["success"])
        average_rssi = sum(ad.rssi for ad in self.advertisements) / total
        kinds = {ad.parse_result["kind"] for ad in self.advertisements if "kind" in ad.parse_result}

        return {
            "total_advertisements": total,
            "decode_success_rate": round(successful / total, 2),
            "successful_decodes": successful,
            "failed_decodes": total - successful,
            "average_rssi": round(average_rssi, 1),
            "packet_kinds_seen": sorted(kinds)
        }

    def save_json(self, filename: Optional[str] = None) -> str:
        """
        Save captured advertisements to JSON file.

        Args:
            filename: Optional filename. If None, auto-generate with timestamp.

        Returns:
            Path to saved file
        """
        if filename is None:
            # e.g. estimote_diagnostics_D1A2B3C4D5E6_20251103_142315.json
            mac_sanitized = self.target_mac.replace(":", "")
            timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
            filename = f"estimote_diagnostics_{mac_sanitized}_{timestamp}.json"

        data = {
            "mac_address": self.target_mac,
            "scan_start": self.advertisements[0].timestamp if self.advertisements else None,
            "scan_end": self.advertisements[-1].timestamp if self.advertisements else None,
            "advertisements": [asdict(ad) for ad in self.advertisements],
            "statistics": self.get_statistics()
        }

        with open(filename, 'w') as f:
            json.dump(data, f, indent=2)

        return filename


def main():
    """Main entry point for diagnostic tool."""
    parser = argparse.ArgumentParser(
        description='Estimote Beacon Diagnostic Tool - Monitor and decode advertisements',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Monitor for 30 seconds
  python -m estimote_ble.diagnostics D1:A2:B3:C4:D5:E6 --duration 30

  # Continuous monitoring with JSON output
  python -m estimote_ble.diagnostics D1:A2:B3:C4:D5:E6 --json

  # Custom JSON filename, quiet mode
  python -m estimote_ble.diagnostics D1:A2:B3:C4:D5:E6 --json debug.json --quiet
        """
    )

    parser.add_argument(
        'mac_address',
        help='MAC address of the beacon to monitor (e.g., D1:A2:B3:C4:D5:E6)'
    )

    parser.add_argument(
        '--duration',
        type=int,
        metavar='SECONDS',
        help='Scan duration in seconds (default: continuous until Ctrl+C)'
    )

    parser.add_argument(
        '--json',
        nargs='?',
        const='',
        metavar='FILENAME',
        help='Save results to JSON file (auto-generates filename if not provided)'
    )

    parser.add_argument(
        '--quiet',
        action='store_true',
        help='Suppress console output (useful with --json)'
    )

    args = parser.parse_args()

    scanner = DiagnosticScanner(args.mac_address, quiet=args.quiet)

    try:
        asyncio.run(scanner.scan(duration=args.duration))
    except KeyboardInterrupt:
        pass

    if not args.quiet:
        print(format_statistics(scanner.get_statistics()))

    if args.json is not None:
        filename = args.json if args.json else None
        saved_path = scanner.save_json(filename)
        print(f"\nResults saved to: {saved_path}")


if __name__ == '__main__':
    main()
