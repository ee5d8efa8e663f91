# ABOUTME: Decoder for Estimote Telemetry packets (service data under UUID fe9a)
# ABOUTME: Handles subframes A and B across protocol versions 0, 1 and 2
from typing import Optional

from estimote_ble.bitfield import (
    TELEMETRY_DURATION,
    decode_duration,
    decode_uptime_unit,
    extract_bits,
    read_int8,
    require_length,
    signed_from_unsigned,
)
from estimote_ble.models import (
    DecodedTelemetry,
    DurationValue,
    ErrorFlags,
    Gpio,
    MotionStateDuration,
    PinState,
    TelemetryA,
    TelemetryB,
    Vector3,
)

ESTIMOTE_SERVICE_UUID = 'fe9a'
TELEMETRY_FRAME_TYPE = 2
MAX_PROTOCOL_VERSION = 2
TELEMETRY_PACKET_LENGTH = 20

SUBFRAME_A = 0
SUBFRAME_B = 1

BATTERY_VOLTAGE_UNMEASURED = 0b11111111111111
BATTERY_LEVEL_UNMEASURED = 0b11111111


def decode_telemetry(data: bytes) -> Optional[DecodedTelemetry]:
    """
    Decode an Estimote Telemetry packet.

    Byte 0 holds the frame type (low nibble, always 2 for Telemetry) and the
    protocol version (high nibble). Bytes 1-8 are the first half of the
    beacon identifier, and the low 2 bits of byte 9 select the subframe.

    Args:
        data: Raw service data broadcast under the Estimote service UUID

    Returns:
        TelemetryA or TelemetryB, or None if the packet is not Telemetry, uses
        a protocol version newer than 2, or carries an unknown subframe

    Raises:
        PacketTooShortError: If the buffer ends before a field being read
    """
    require_length(data, 1, "Telemetry")
    if extract_bits(data, 0, 4) != TELEMETRY_FRAME_TYPE:
        return None

    protocol_version = extract_bits(data, 4, 4)
    if protocol_version > MAX_PROTOCOL_VERSION:
        return None

    require_length(data, 10, "Telemetry")
    sub_frame_type = extract_bits(data, 9 * 8, 2)
    if sub_frame_type not in (SUBFRAME_A, SUBFRAME_B):
        return None

    require_length(data, TELEMETRY_PACKET_LENGTH, "Telemetry")

    short_identifier = bytes(data[1:9]).hex()

    if sub_frame_type == SUBFRAME_A:
        return _decode_subframe_a(data, short_identifier, protocol_version)
    return _decode_subframe_b(data, short_identifier, protocol_version)


def _bit_is_set(byte: int, bit: int) -> bool:
    return (byte >> bit) & 1 == 1


def _pin_state(byte: int, bit: int) -> PinState:
    return PinState.HIGH if _bit_is_set(byte, bit) else PinState.LOW


def _decode_subframe_a(data: bytes, short_identifier: str, protocol_version: int) -> TelemetryA:
    """Decode motion, GPIO, error and pressure fields of subframe A."""
    acceleration = Vector3(
        x=read_int8(data, 10) * 2 / 127.0,
        y=read_int8(data, 11) * 2 / 127.0,
        z=read_int8(data, 12) * 2 / 127.0,
    )

    # Telemetry sends "previous" before "current", unlike Nearable
    motion_state_duration = MotionStateDuration(
        previous=decode_duration(data[13], TELEMETRY_DURATION),
        current=decode_duration(data[14], TELEMETRY_DURATION),
    )

    state = data[15]
    is_moving = (state & 0b00000011) == 1

    gpio = Gpio(
        pin0=_pin_state(state, 4),
        pin1=_pin_state(state, 5),
        pin2=_pin_state(state, 6),
        pin3=_pin_state(state, 7),
    )

    errors = None
    pressure = None
    if protocol_version == 2:
        errors = ErrorFlags(
            has_firmware_error=_bit_is_set(state, 2),
            has_clock_error=_bit_is_set(state, 3),
        )
        pressure = extract_bits(data, 16 * 8, 32) / 256.0
    elif protocol_version == 1:
        errors = ErrorFlags(
            has_firmware_error=_bit_is_set(data[16], 0),
            has_clock_error=_bit_is_set(data[16], 1),
        )
    # Version 0 reports errors in subframe B

    return TelemetryA(
        short_identifier=short_identifier,
        protocol_version=protocol_version,
        acceleration=acceleration,
        is_moving=is_moving,
        motion_state_duration=motion_state_duration,
        gpio=gpio,
        errors=errors,
        pressure=pressure,
    )


def _decode_subframe_b(data: bytes, short_identifier: str, protocol_version: int) -> TelemetryB:
    """
    Decode environment, uptime and battery fields of subframe B.

    Bit layout of bytes 14-18:
        bits 112-123  uptime magnitude (byte 14 + low nibble of byte 15)
        bits 124-125  uptime unit
        bits 126-137  temperature, signed 12-bit, 4 fractional bits
        bits 138-151  battery voltage in mV, all ones = not measured yet
    """
    # 0 on an axis may mean the magnetometer is not calibrated yet
    magnetic_field = Vector3(
        x=read_int8(data, 10) / 128.0,
        y=read_int8(data, 11) / 128.0,
        z=read_int8(data, 12) / 128.0,
    )

    light_exponent = extract_bits(data, 13 * 8 + 4, 4)
    light_mantissa = extract_bits(data, 13 * 8, 4)
    ambient_light_level = pow(2, light_exponent) * light_mantissa * 0.72

    uptime = DurationValue(
        number=extract_bits(data, 112, 12),
        unit=decode_uptime_unit(extract_bits(data, 124, 2)),
    )

    temperature = signed_from_unsigned(extract_bits(data, 126, 12), 12) / 16.0

    battery_voltage = extract_bits(data, 138, 14)
    if battery_voltage == BATTERY_VOLTAGE_UNMEASURED:
        battery_voltage = None

    errors = None
    battery_level = None
    if protocol_version == 0:
        errors = ErrorFlags(
            has_firmware_error=_bit_is_set(data[19], 0),
            has_clock_error=_bit_is_set(data[19], 1),
        )
    else:
        battery_level = data[19]
        if battery_level == BATTERY_LEVEL_UNMEASURED:
            battery_level = None

    return TelemetryB(
        short_identifier=short_identifier,
        protocol_version=protocol_version,
        magnetic_field=magnetic_field,
        ambient_light_level=ambient_light_level,
        temperature=temperature,
        uptime=uptime,
        battery_voltage=battery_voltage,
        battery_level=battery_level,
        errors=errors,
    )
