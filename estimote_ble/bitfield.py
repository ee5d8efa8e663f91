# ABOUTME: Bit-level helpers shared by the Estimote packet decoders
# ABOUTME: Signed conversion, boundary-crossing bit fields, and duration decoding
from dataclasses import dataclass

from estimote_ble.models import DurationUnit, DurationValue


class DecodeError(ValueError):
    """Base class for failures while decoding an Estimote packet."""


class PacketTooShortError(DecodeError):
    """Raised when a buffer ends before a field the layout requires."""


@dataclass(frozen=True)
class DurationPolicy:
    """
    Rule for the "days or weeks" duration unit code (0b11).

    Magnitudes below `first_week_magnitude` are days, the rest are
    `magnitude - 32` weeks.
    """
    first_week_magnitude: int


# Nearable: days 0-31, weeks from magnitude 32
NEARABLE_DURATION = DurationPolicy(first_week_magnitude=32)
# Telemetry: days 0-32, weeks from magnitude 33
TELEMETRY_DURATION = DurationPolicy(first_week_magnitude=33)

_DURATION_UNITS = {
    0: DurationUnit.SECONDS,
    1: DurationUnit.MINUTES,
    2: DurationUnit.HOURS,
}

_UPTIME_UNITS = {
    0: DurationUnit.SECONDS,
    1: DurationUnit.MINUTES,
    2: DurationUnit.HOURS,
    3: DurationUnit.DAYS,
}


def require_length(data: bytes, length: int, packet: str) -> None:
    """
    Check that a buffer holds at least `length` bytes.

    Args:
        data: Raw packet bytes
        length: Minimum number of bytes the layout reads
        packet: Packet name used in the error message

    Raises:
        PacketTooShortError: If the buffer is shorter than `length`
    """
    if len(data) < length:
        raise PacketTooShortError(
            f"{packet} packet too short: need {length} bytes, got {len(data)}"
        )


def signed_from_unsigned(raw: int, width: int) -> int:
    """Convert an unsigned `width`-bit two's-complement value to a signed int."""
    if raw > (1 << (width - 1)) - 1:
        return raw - (1 << width)
    return raw


def extract_bits(data: bytes, bit_offset: int, bit_width: int) -> int:
    """
    Read an unsigned bit field that may straddle byte boundaries.

    Bits are numbered little-endian: bit 0 is the least-significant bit of
    byte 0, bit 8 the least-significant bit of byte 1, and so on. The lowest
    numbered bit of the field becomes the least-significant bit of the result.

    Args:
        data: Raw packet bytes
        bit_offset: Absolute bit position of the field's lowest bit
        bit_width: Number of bits in the field

    Returns:
        Field value as a non-negative integer

    Raises:
        PacketTooShortError: If the field extends past the end of the buffer
    """
    first_byte = bit_offset // 8
    last_byte = (bit_offset + bit_width - 1) // 8
    if last_byte >= len(data):
        raise PacketTooShortError(
            f"Bit field at bit {bit_offset} (width {bit_width}) "
            f"needs {last_byte + 1} bytes, got {len(data)}"
        )

    window = int.from_bytes(data[first_byte:last_byte + 1], 'little')
    return (window >> (bit_offset % 8)) & ((1 << bit_width) - 1)


def read_int8(data: bytes, offset: int) -> int:
    """Read a two's-complement signed byte."""
    return signed_from_unsigned(extract_bits(data, offset * 8, 8), 8)


def decode_duration(byte: int, policy: DurationPolicy) -> DurationValue:
    """
    Decode a motion state duration byte.

    The lower 6 bits are the magnitude and the upper 2 bits the unit code:
    0 = seconds, 1 = minutes, 2 = hours, 3 = days or weeks depending on the
    magnitude and the packet's `policy`.

    Args:
        byte: Raw duration byte (0-255)
        policy: Days/weeks split for the packet type being decoded

    Returns:
        DurationValue with the decoded number and unit
    """
    number = byte & 0b00111111
    unit_code = (byte & 0b11000000) >> 6

    if unit_code in _DURATION_UNITS:
        return DurationValue(number=number, unit=_DURATION_UNITS[unit_code])
    if number < policy.first_week_magnitude:
        return DurationValue(number=number, unit=DurationUnit.DAYS)
    return DurationValue(number=number - 32, unit=DurationUnit.WEEKS)


def decode_uptime_unit(code: int) -> DurationUnit:
    """Map a 2-bit uptime unit code to its unit (uptime never uses weeks)."""
    return _UPTIME_UNITS[code & 0b11]
