# ABOUTME: Decoder for Estimote Nearable packets (manufacturer-specific data)
# ABOUTME: Extracts identifier, temperature, motion, acceleration and motion durations
from typing import Optional

from estimote_ble.bitfield import (
    NEARABLE_DURATION,
    decode_duration,
    extract_bits,
    read_int8,
    require_length,
    signed_from_unsigned,
)
from estimote_ble.models import DecodedNearable, MotionStateDuration, Vector3

ESTIMOTE_COMPANY_ID = 0x015d
NEARABLE_FRAME_TYPE = 0x01
NEARABLE_PACKET_LENGTH = 21

MOTION_FLAG_MASK = 0b01000000
ACCELERATION_SCALE_MG = 15.625


def decode_nearable(data: bytes) -> Optional[DecodedNearable]:
    """
    Decode an Estimote Nearable packet.

    The buffer is the manufacturer-specific data including the 2-byte
    little-endian company identifier at offset 0. Some BLE stacks report the
    company identifier separately; callers must prepend it in that case.

    Layout:
        0-1   company identifier (0x015d)
        2     frame type (0x01)
        3-10  nearable identifier
        13-14 temperature, signed 12-bit fixed point, 4 fractional bits
        15    bit 6 = moving
        16-18 acceleration x/y/z, signed 8-bit, 15.625 mg per unit
        19    current motion state duration
        20    previous motion state duration

    Args:
        data: Raw manufacturer-specific data

    Returns:
        DecodedNearable, or None if the packet is not an Estimote Nearable

    Raises:
        PacketTooShortError: If the buffer ends before a field being read
    """
    require_length(data, 2, "Nearable")
    if extract_bits(data, 0, 16) != ESTIMOTE_COMPANY_ID:
        return None

    require_length(data, 3, "Nearable")
    if data[2] != NEARABLE_FRAME_TYPE:
        return None

    require_length(data, NEARABLE_PACKET_LENGTH, "Nearable")

    nearable_id = bytes(data[3:11]).hex()

    # Low 12 bits of the little-endian word at byte 13
    temperature_raw = signed_from_unsigned(extract_bits(data, 13 * 8, 12), 12)
    temperature = temperature_raw / 16.0

    is_moving = (data[15] & MOTION_FLAG_MASK) == MOTION_FLAG_MASK

    acceleration = Vector3(
        x=read_int8(data, 16) * ACCELERATION_SCALE_MG,
        y=read_int8(data, 17) * ACCELERATION_SCALE_MG,
        z=read_int8(data, 18) * ACCELERATION_SCALE_MG,
    )

    motion_state_duration = MotionStateDuration(
        current=decode_duration(data[19], NEARABLE_DURATION),
        previous=decode_duration(data[20], NEARABLE_DURATION),
    )

    return DecodedNearable(
        nearable_id=nearable_id,
        temperature=temperature,
        is_moving=is_moving,
        motion_state_duration=motion_state_duration,
        acceleration=acceleration,
    )
