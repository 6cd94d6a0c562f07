"""
Build PMD control point command buffers.

Every command starts with [command, sensor]. START appends a fixed parameter
block per sensor: (setting type, array count, u16 LE value) for each setting.
"""

from polar_pmd.errors import InvalidCommand, UnsupportedSensor
from polar_pmd.models import ControlCommand, MeasurementSensor, SettingGroup, SettingType, StreamSettings

# Presets negotiated on START. ECG: 130 Hz, 14-bit. ACC: 200 Hz, 16-bit, 8 G.
START_PRESETS: dict[MeasurementSensor, StreamSettings] = {
    MeasurementSensor.ECG: StreamSettings(
        (
            SettingGroup(SettingType.SAMPLE_RATE, (130,)),
            SettingGroup(SettingType.RESOLUTION, (14,)),
        )
    ),
    MeasurementSensor.ACC: StreamSettings(
        (
            SettingGroup(SettingType.SAMPLE_RATE, (200,)),
            SettingGroup(SettingType.RESOLUTION, (16,)),
            SettingGroup(SettingType.RANGE, (8,)),
        )
    ),
}


def encode_settings(settings: StreamSettings) -> bytes:
    out = bytearray()
    for group in settings.groups:
        out.append(int(group.setting))
        out.append(len(group.values))
        for value in group.values:
            out += value.to_bytes(2, "little")
    return bytes(out)


def _coerce_sensor(sensor) -> MeasurementSensor:
    if isinstance(sensor, MeasurementSensor):
        return sensor
    return MeasurementSensor.from_byte(sensor)


def encode_command(command, sensor) -> bytes:
    """
    Control point write for command/sensor (enum members or raw ints).

    GET_MEASUREMENT_SETTINGS / STOP_MEASUREMENT: 2 bytes.
    REQUEST_MEASUREMENT_START: 10 bytes for ECG, 14 for ACC.
    """
    try:
        command = ControlCommand(command)
    except ValueError:
        raise InvalidCommand(f"unknown control point command: {command!r}") from None
    sensor = _coerce_sensor(sensor)

    header = bytes([int(command), int(sensor)])
    if command in (ControlCommand.GET_MEASUREMENT_SETTINGS, ControlCommand.STOP_MEASUREMENT):
        return header

    preset = START_PRESETS.get(sensor)
    if preset is None:
        raise UnsupportedSensor(f"no start preset for {sensor.name}")
    return header + encode_settings(preset)
