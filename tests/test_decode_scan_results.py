# ABOUTME: Tests for decoding a batch of scanned advertisements
# ABOUTME: Tests dispatch by packet kind, beacon filtering, and malformed packet handling
import logging
from unittest.mock import MagicMock

import pytest

from estimote_ble.models import DecodedNearable, TelemetryA, TelemetryB
from estimote_ble.main import beacon_identifier, decode_advertisement, decode_scan_results
from estimote_ble.scanner import NEARABLE, TELEMETRY, Advertisement

NEARABLE_PACKET = bytes([
    0x5D, 0x01, 0x01,                                 # company id, frame type
    0xD1, 0xA2, 0xB3, 0xC4, 0xD5, 0xE6, 0xF7, 0x08,   # nearable id
    0x00, 0x00,
    0x90, 0x01,                                       # temperature 25.0°C
    0x40,                                             # moving
    0x0A, 0xEC, 0xE2,                                 # acceleration
    0x05, 0x05,                                       # durations
])

TELEMETRY_B_PACKET = bytes([
    0x12,                                             # version 1, telemetry
    0x01, 0x02, 0x03, 0x04, 0x05, 0x06, 0x07, 0x08,   # short identifier
    0x01,                                             # subframe B
    0x40, 0xC0, 0x00, 0x35, 0x23, 0x21, 0x5A, 0xE0, 0x2E, 0x57,
])

TELEMETRY_A_PACKET = bytes([
    0x22,                                             # version 2, telemetry
    0x01, 0x02, 0x03, 0x04, 0x05, 0x06, 0x07, 0x08,
    0x00,                                             # subframe A
    0x7F, 0x81, 0x00, 0x01, 0x42, 0b10110101, 0xFC, 0x98, 0x88, 0x01,
])


@pytest.fixture
def mock_logger():
    """Create a mock logger."""
    return MagicMock(spec=logging.Logger)


def test_decode_advertisement_dispatches_by_kind():
    """Test that each kind reaches its own decoder."""
    nearable = decode_advertisement(Advertisement("C1:C2:C3:C4:C5:C6", NEARABLE, NEARABLE_PACKET))
    telemetry = decode_advertisement(Advertisement("D1:D2:D3:D4:D5:D6", TELEMETRY, TELEMETRY_B_PACKET))

    assert isinstance(nearable, DecodedNearable)
    assert isinstance(telemetry, TelemetryB)


def test_decode_advertisement_unknown_kind():
    """Test that an unknown kind is rejected."""
    with pytest.raises(ValueError, match="Unknown advertisement kind"):
        decode_advertisement(Advertisement("C1:C2:C3:C4:C5:C6", "eddystone", b"\x00"))


def test_beacon_identifier():
    """Test the identifier used for filtering each record type."""
    nearable = decode_advertisement(Advertisement("C1:C2:C3:C4:C5:C6", NEARABLE, NEARABLE_PACKET))
    telemetry = decode_advertisement(Advertisement("D1:D2:D3:D4:D5:D6", TELEMETRY, TELEMETRY_A_PACKET))

    assert beacon_identifier(nearable) == "d1a2b3c4d5e6f708"
    assert beacon_identifier(telemetry) == "0102030405060708"


def test_decode_all_packets_without_filter(mock_logger):
    """Test that every packet is decoded when no devices are configured."""
    scan_results = [
        Advertisement("C1:C2:C3:C4:C5:C6", NEARABLE, NEARABLE_PACKET),
        Advertisement("D1:D2:D3:D4:D5:D6", TELEMETRY, TELEMETRY_A_PACKET),
        Advertisement("D1:D2:D3:D4:D5:D6", TELEMETRY, TELEMETRY_B_PACKET),
    ]

    result = decode_scan_results(scan_results, {}, mock_logger)

    assert [address for address, _ in result] == [
        "C1:C2:C3:C4:C5:C6", "D1:D2:D3:D4:D5:D6", "D1:D2:D3:D4:D5:D6"
    ]
    assert isinstance(result[1][1], TelemetryA)
    assert isinstance(result[2][1], TelemetryB)
    mock_logger.warning.assert_not_called()


def test_decode_filters_unknown_beacons(mock_logger):
    """Test that only configured beacon identifiers are kept."""
    scan_results = [
        Advertisement("C1:C2:C3:C4:C5:C6", NEARABLE, NEARABLE_PACKET),
        Advertisement("D1:D2:D3:D4:D5:D6", TELEMETRY, TELEMETRY_B_PACKET),
    ]

    result = decode_scan_results(scan_results, {"0102030405060708": "front_door"}, mock_logger)

    assert len(result) == 1
    assert isinstance(result[0][1], TelemetryB)


def test_decode_skips_foreign_packets_silently(mock_logger):
    """Test that non-Estimote frames are dropped without warnings."""
    eddystone_like = bytes([0x10] + [0x00] * 19)
    scan_results = [Advertisement("D1:D2:D3:D4:D5:D6", TELEMETRY, eddystone_like)]

    result = decode_scan_results(scan_results, {}, mock_logger)

    assert result == []
    mock_logger.warning.assert_not_called()


def test_decode_warns_on_truncated_packet(mock_logger):
    """Test that truncated packets are logged and skipped."""
    scan_results = [
        Advertisement("D1:D2:D3:D4:D5:D6", TELEMETRY, TELEMETRY_B_PACKET[:12]),
        Advertisement("C1:C2:C3:C4:C5:C6", NEARABLE, NEARABLE_PACKET),
    ]

    result = decode_scan_results(scan_results, {}, mock_logger)

    assert len(result) == 1
    assert isinstance(result[0][1], DecodedNearable)
    mock_logger.warning.assert_called_once()
    assert "D1:D2:D3:D4:D5:D6" in mock_logger.warning.call_args[0][0]


def test_decode_empty_scan(mock_logger):
    """Test decoding an empty scan."""
    assert decode_scan_results([], {}, mock_logger) == []
