"""Tests for PMD control point command buffers."""

import pytest

from polar_pmd.commands import START_PRESETS, encode_command, encode_settings
from polar_pmd.errors import InvalidCommand, UnsupportedSensor
from polar_pmd.models import ControlCommand, MeasurementSensor


def test_start_ecg_preset_bytes():
    """ECG: 130 Hz, 14-bit."""
    out = encode_command(ControlCommand.REQUEST_MEASUREMENT_START, MeasurementSensor.ECG)
    assert out == bytes.fromhex("02 00 00 01 82 00 01 01 0E 00")
    assert len(out) == 10


def test_start_acc_preset_bytes():
    """ACC: 200 Hz, 16-bit, 8 G."""
    out = encode_command(ControlCommand.REQUEST_MEASUREMENT_START, MeasurementSensor.ACC)
    assert out == bytes.fromhex("02 02 00 01 C8 00 01 01 10 00 02 01 08 00")
    assert len(out) == 14


def test_get_settings_and_stop_are_two_bytes():
    assert encode_command(ControlCommand.GET_MEASUREMENT_SETTINGS, MeasurementSensor.ECG) == bytes([0x01, 0x00])
    assert encode_command(ControlCommand.STOP_MEASUREMENT, MeasurementSensor.ACC) == bytes([0x03, 0x02])
    # Any known sensor may be queried, not only ECG / ACC
    assert encode_command(ControlCommand.GET_MEASUREMENT_SETTINGS, MeasurementSensor.PPG) == bytes([0x01, 0x01])


def test_raw_ints_accepted():
    assert encode_command(0x02, 0x00) == encode_command(ControlCommand.REQUEST_MEASUREMENT_START, MeasurementSensor.ECG)
    assert encode_command(0x03, 0x00) == bytes([0x03, 0x00])


def test_start_other_sensor_raises():
    with pytest.raises(UnsupportedSensor):
        encode_command(ControlCommand.REQUEST_MEASUREMENT_START, MeasurementSensor.PPG)


def test_unknown_sensor_byte_raises():
    with pytest.raises(UnsupportedSensor):
        encode_command(ControlCommand.STOP_MEASUREMENT, 0x42)


@pytest.mark.parametrize("sensor", [None, "ecg", 1.5, 0x42])
def test_unknown_sensor_type_raises(sensor):
    """Non-int sensors get the same typed error as unknown bytes."""
    with pytest.raises(UnsupportedSensor) as exc:
        encode_command(ControlCommand.STOP_MEASUREMENT, sensor)
    assert "measurement type" in str(exc.value)


@pytest.mark.parametrize("command", [0x00, 0x04, 0xFF, "start", None])
def test_unknown_command_raises(command):
    with pytest.raises(InvalidCommand):
        encode_command(command, MeasurementSensor.ECG)


def test_encode_settings_matches_preset_tail():
    """The START tail is exactly the encoded preset settings."""
    acc = START_PRESETS[MeasurementSensor.ACC]
    assert encode_settings(acc) == bytes.fromhex("00 01 C8 00 01 01 10 00 02 01 08 00")
