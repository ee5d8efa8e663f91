# ABOUTME: Immutable record types produced by the Estimote packet decoders
# ABOUTME: Frozen dataclasses for Nearable and Telemetry packets plus dict rendering
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Optional, Union


class DurationUnit(str, Enum):
    """Unit attached to a duration or uptime value."""
    SECONDS = 'seconds'
    MINUTES = 'minutes'
    HOURS = 'hours'
    DAYS = 'days'
    WEEKS = 'weeks'


class PinState(str, Enum):
    """Logic level of a GPIO pin."""
    HIGH = 'high'
    LOW = 'low'


@dataclass(frozen=True)
class DurationValue:
    """A duration as broadcast by the beacon: a small number plus its unit."""
    number: int
    unit: DurationUnit


@dataclass(frozen=True)
class Vector3:
    """Per-axis reading (acceleration or magnetic field)."""
    x: float
    y: float
    z: float


@dataclass(frozen=True)
class MotionStateDuration:
    """
    How long the beacon has been in its current motion state, and how long
    it stayed in the previous one.
    """
    current: DurationValue
    previous: DurationValue


@dataclass(frozen=True)
class Gpio:
    """State of the four GPIO pins."""
    pin0: PinState
    pin1: PinState
    pin2: PinState
    pin3: PinState


@dataclass(frozen=True)
class ErrorFlags:
    """Error bits reported by the beacon firmware."""
    has_firmware_error: bool
    has_clock_error: bool


@dataclass(frozen=True)
class DecodedNearable:
    """Decoded Estimote Nearable packet."""
    nearable_id: str
    temperature: float  # Celsius
    is_moving: bool
    motion_state_duration: MotionStateDuration
    acceleration: Vector3  # milli-g


@dataclass(frozen=True)
class TelemetryA:
    """
    Decoded Estimote Telemetry subframe A (motion, GPIO, pressure).

    `errors` is present for protocol versions 1 and 2, `pressure` (Pa, not
    normalized to sea level) for version 2 only.
    """
    short_identifier: str
    protocol_version: int
    acceleration: Vector3  # g
    is_moving: bool
    motion_state_duration: MotionStateDuration
    gpio: Gpio
    errors: Optional[ErrorFlags] = None
    pressure: Optional[float] = None
    frame_type: str = 'Estimote Telemetry'
    sub_frame_type: str = 'A'


@dataclass(frozen=True)
class TelemetryB:
    """
    Decoded Estimote Telemetry subframe B (environment, uptime, battery).

    A magnetic field of exactly 0 on every axis usually means the sensor is
    not calibrated yet. `errors` is present for protocol version 0 only,
    `battery_level` for versions 1 and 2. Battery fields are None until the
    beacon has measured them.
    """
    short_identifier: str
    protocol_version: int
    magnetic_field: Vector3  # normalized, -1 to 1
    ambient_light_level: float  # lux
    temperature: float  # Celsius
    uptime: DurationValue
    battery_voltage: Optional[int] = None  # mV
    battery_level: Optional[int] = None  # percent
    errors: Optional[ErrorFlags] = None
    frame_type: str = 'Estimote Telemetry'
    sub_frame_type: str = 'B'


DecodedTelemetry = Union[TelemetryA, TelemetryB]
DecodedPacket = Union[DecodedNearable, TelemetryA, TelemetryB]


def _plain_dict_factory(items: list[tuple[str, Any]]) -> dict[str, Any]:
    return {key: value.value if isinstance(value, Enum) else value for key, value in items}


def as_dict(record: DecodedPacket) -> dict[str, Any]:
    """
    Render a decoded record as nested plain dicts.

    Enum members are replaced by their string values so the result can be
    passed straight to json.dumps.
    """
    return asdict(record, dict_factory=_plain_dict_factory)
