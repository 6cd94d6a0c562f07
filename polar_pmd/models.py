"""
Records and protocol vocabulary for the Polar H10 GATT / PMD payloads.

Every decoded record is a frozen snapshot of one notification; a new buffer
always produces a new record. Raw bytes are turned into enum members only
through from_byte(), which raises instead of producing an out-of-range value.
"""

from dataclasses import dataclass, field
from enum import IntEnum
from typing import NamedTuple

from polar_pmd.errors import InvalidCommand, UnknownResponseCode, UnsupportedSensor


def _from_byte(enum_cls, value: int, error_cls, what: str):
    try:
        return enum_cls(value)
    except ValueError:
        shown = f"0x{value:02X}" if isinstance(value, int) else repr(value)
        raise error_cls(f"unknown {what}: {shown}") from None


class MeasurementSensor(IntEnum):
    ECG = 0x00
    PPG = 0x01
    ACC = 0x02
    PPI = 0x03
    BIOZ = 0x04
    GYRO = 0x05
    MAGNETOMETER = 0x06
    BAROMETER = 0x07
    AMBIENT = 0x08
    UNKNOWN = 0xFF

    @classmethod
    def from_byte(cls, value: int) -> "MeasurementSensor":
        return _from_byte(cls, value, UnsupportedSensor, "measurement type")


class ControlCommand(IntEnum):
    GET_MEASUREMENT_SETTINGS = 0x01
    REQUEST_MEASUREMENT_START = 0x02
    STOP_MEASUREMENT = 0x03

    @classmethod
    def from_byte(cls, value: int) -> "ControlCommand":
        return _from_byte(cls, value, InvalidCommand, "control point command")


class ControlResponseCode(IntEnum):
    FEATURES_READ_RESPONSE = 0x0F
    CONTROL_POINT_RESPONSE = 0xF0

    @classmethod
    def from_byte(cls, value: int) -> "ControlResponseCode":
        return _from_byte(cls, value, UnknownResponseCode, "control point response code")


class ControlStatus(IntEnum):
    SUCCESS = 0x00
    ERROR_INVALID_OP_CODE = 0x01
    ERROR_INVALID_MEASUREMENT_TYPE = 0x02
    ERROR_NOT_SUPPORTED = 0x03
    ERROR_INVALID_LENGTH = 0x04
    ERROR_INVALID_PARAMETER = 0x05
    ERROR_INVALID_STATE = 0x06
    ERROR_INVALID_RESOLUTION = 0x07
    ERROR_INVALID_SAMPLE_RATE = 0x08
    ERROR_INVALID_RANGE = 0x09
    ERROR_INVALID_MTU = 0x0A

    @classmethod
    def from_byte(cls, value: int) -> "ControlStatus":
        return _from_byte(cls, value, UnknownResponseCode, "control point status")


class SettingType(IntEnum):
    SAMPLE_RATE = 0x00
    RESOLUTION = 0x01
    RANGE = 0x02

    @property
    def unit(self) -> str:
        return {SettingType.SAMPLE_RATE: "Hz", SettingType.RESOLUTION: "-bit", SettingType.RANGE: "G"}[self]

    @classmethod
    def from_byte(cls, value: int) -> "SettingType":
        return _from_byte(cls, value, UnknownResponseCode, "measurement setting type")


class FrameEncoding(IntEnum):
    """Per-axis sample width of a PMD data frame (ACC only)."""

    T3_BYTES = 0  # x,y,z * 8-bit unsigned
    T6_BYTES = 1  # x,y,z * 16-bit signed
    T9_BYTES = 2  # x,y,z * 24-bit signed

    @property
    def bytes_per_axis(self) -> int:
        return int(self) + 1

    @classmethod
    def from_byte(cls, value: int) -> "FrameEncoding":
        return _from_byte(cls, value, UnknownResponseCode, "frame type")


@dataclass(frozen=True)
class SupportedMeasurements:
    ecg: bool = False
    ppg: bool = False
    acc: bool = False
    ppi: bool = False

    @classmethod
    def from_bitmask(cls, mask: int) -> "SupportedMeasurements":
        # bit0=ECG, bit1=PPG, bit2=ACC, bit3=PPI
        return cls(
            ecg=bool(mask & 0x01),
            ppg=bool(mask & 0x02),
            acc=bool(mask & 0x04),
            ppi=bool(mask & 0x08),
        )


@dataclass(frozen=True)
class SettingGroup:
    setting: SettingType
    values: tuple[int, ...]


@dataclass(frozen=True)
class StreamSettings:
    """Settings in the order the device sent (or we send) them."""

    groups: tuple[SettingGroup, ...] = ()

    def values(self, setting: SettingType) -> tuple[int, ...]:
        for group in self.groups:
            if group.setting == setting:
                return group.values
        return ()

    def describe(self) -> str:
        lines = []
        for group in self.groups:
            vals = " ".join(f"{v}{group.setting.unit}" for v in group.values)
            lines.append(f"{group.setting.name}: {vals}")
        return "\n".join(lines)


@dataclass(frozen=True)
class FeaturesReply:
    supported: SupportedMeasurements


@dataclass(frozen=True)
class CommandResult:
    op_code: ControlCommand
    sensor: MeasurementSensor
    status: ControlStatus
    settings: StreamSettings | None = None
    more_data_follows: bool = False
    trailing_parameters: bytes = b""

    @property
    def ok(self) -> bool:
        return self.status == ControlStatus.SUCCESS


ControlPointReply = FeaturesReply | CommandResult


@dataclass(frozen=True)
class HeartRateSample:
    heart_rate_bpm: int
    energy_expended_kj: int | None = None
    rr_intervals_ms: tuple[float, ...] = ()
    # None when the strap reports sensor contact as unsupported
    sensor_contact: bool | None = None


class AccSample(NamedTuple):
    x: int
    y: int
    z: int


@dataclass(frozen=True)
class EcgFrame:
    timestamp_ns: int
    samples_microvolts: tuple[int, ...] = field(default_factory=tuple)

    sensor = MeasurementSensor.ECG

    @property
    def sample_count(self) -> int:
        return len(self.samples_microvolts)


@dataclass(frozen=True)
class AccFrame:
    timestamp_ns: int
    encoding: FrameEncoding
    samples: tuple[AccSample, ...] = field(default_factory=tuple)

    sensor = MeasurementSensor.ACC

    @property
    def sample_count(self) -> int:
        return len(self.samples)


@dataclass(frozen=True)
class BatteryLevel:
    percent: int
