# ABOUTME: Main entry point for the Estimote beacon scanner
# ABOUTME: Wires together scanner, Nearable/Telemetry decoders, and the log file
import argparse
import asyncio
import json
import logging
from typing import Dict, Optional

from estimote_ble.bitfield import DecodeError
from estimote_ble.config import load_config
from estimote_ble.logger import get_logger
from estimote_ble.models import DecodedNearable, DecodedPacket, as_dict
from estimote_ble.nearable import decode_nearable
from estimote_ble.scanner import NEARABLE, TELEMETRY, Advertisement, get_scanner
from estimote_ble.telemetry import decode_telemetry

RETRY_DELAY_SECONDS = 5

_DECODERS = {
    NEARABLE: decode_nearable,
    TELEMETRY: decode_telemetry,
}


def decode_advertisement(advertisement: Advertisement) -> Optional[DecodedPacket]:
    """
    Decode one captured advertisement with the decoder matching its kind.

    Returns:
        Decoded record, or None if the payload is not a supported packet

    Raises:
        DecodeError: If the payload is a truncated Estimote packet
        ValueError: If the advertisement kind is unknown
    """
    decoder = _DECODERS.get(advertisement.kind)
    if decoder is None:
        raise ValueError(f"Unknown advertisement kind: {advertisement.kind}")
    return decoder(advertisement.payload)


def beacon_identifier(record: DecodedPacket) -> str:
    """Return the identifier a decoded record was broadcast under."""
    if isinstance(record, DecodedNearable):
        return record.nearable_id
    return record.short_identifier


def decode_scan_results(
    scan_results: list[Advertisement],
    devices: Dict[str, str],
    logger: logging.Logger
) -> list[tuple[str, DecodedPacket]]:
    """
    Decode all advertisements captured during one scan.

    Args:
        scan_results: Advertisements from the scanner, in arrival order
        devices: Beacon identifier -> friendly name; empty means report all
        logger: Logger instance for warnings

    Returns:
        List of (device_address, record) pairs in arrival order

    Behavior:
        - Payloads that are not Nearable/Telemetry packets are skipped
        - Truncated packets are logged as warnings and skipped
        - When `devices` is non-empty, only listed beacons are kept
    """
    decoded = []

    for advertisement in scan_results:
        try:
            record = decode_advertisement(advertisement)
        except DecodeError as e:
            logger.warning(
                f"Malformed {advertisement.kind} packet from {advertisement.address}: {e}"
            )
            continue

        if record is None:
            continue

        if devices and beacon_identifier(record) not in devices:
            logger.debug(f"Ignoring unknown beacon {beacon_identifier(record)}")
            continue

        decoded.append((advertisement.address, record))

    return decoded


async def scan_loop(scanner, config, logger, max_scans: Optional[int] = None):
    """
    Background task that repeatedly scans, decodes and logs Estimote packets.

    Args:
        scanner: Scanner instance (MockScanner or BleakScannerImpl)
        config: Application configuration
        logger: Logger instance
        max_scans: Stop after this many scans; None runs until cancelled
    """
    scans = 0
    while max_scans is None or scans < max_scans:
        scans += 1
        try:
            logger.info(f"Starting BLE scan for {config.scan_duration_seconds}s")
            results = await scanner.scan(config.scan_duration_seconds)

            decoded = decode_scan_results(results, config.devices, logger)
            for address, record in decoded:
                identifier = beacon_identifier(record)
                name = config.devices.get(identifier, identifier)
                logger.info(f"{name} ({address}): {json.dumps(as_dict(record))}")

            logger.info(f"Scan complete: {len(decoded)} packets decoded")

            if max_scans is not None and scans >= max_scans:
                break

            sleep_duration = config.scan_interval_seconds - config.scan_duration_seconds
            if sleep_duration > 0:
                await asyncio.sleep(sleep_duration)
            else:
                logger.warning(
                    f"scan_interval_seconds ({config.scan_interval_seconds}) "
                    f"is less than scan_duration_seconds ({config.scan_duration_seconds}). "
                    f"Running scans back-to-back."
                )

        except Exception as e:
            logger.error(f"Error in scan loop: {e}", exc_info=True)
            await asyncio.sleep(RETRY_DELAY_SECONDS)


def main():
    """
    Main entry point. Parses CLI arguments, loads config, and runs the scan loop.
    """
    parser = argparse.ArgumentParser(
        description='Estimote Nearable and Telemetry beacon scanner'
    )
    parser.add_argument(
        '--config',
        type=str,
        required=True,
        help='Path to config YAML file'
    )
    parser.add_argument(
        '--mock-scanner',
        action='store_true',
        help='Use MockScanner instead of real BLE scanner (for testing)'
    )
    parser.add_argument(
        '--once',
        action='store_true',
        help='Run a single scan and exit'
    )

    args = parser.parse_args()

    config = load_config(args.config)

    logger = get_logger(config)
    logger.info("Starting Estimote beacon scanner")
    logger.info(f"Config loaded from {args.config}")

    scanner = get_scanner(use_mock=args.mock_scanner)
    if args.mock_scanner:
        logger.info("Using MockScanner (no real BLE hardware)")
    else:
        logger.info("Using BleakScanner for real BLE devices")

    try:
        asyncio.run(scan_loop(scanner, config, logger, max_scans=1 if args.once else None))
    except KeyboardInterrupt:
        logger.info("Scanner stopped by user")


if __name__ == '__main__':
    main()
