"""
Parse PMD control point (FB005C81-...) replies.

Byte 0 selects the reply kind:
  0x0F  features read: byte 1 is a bitmask of supported measurements.
  0xF0  command result: op code, measurement type, status, then (on success)
        a "more" flag, echoed settings (GET_MEASUREMENT_SETTINGS only) and any
        remaining parameter bytes.
"""

import logging

from polar_pmd.bitfields import read_u8, read_u16
from polar_pmd.errors import TruncatedBuffer
from polar_pmd.models import (
    CommandResult,
    ControlCommand,
    ControlPointReply,
    ControlResponseCode,
    ControlStatus,
    FeaturesReply,
    MeasurementSensor,
    SettingGroup,
    SettingType,
    StreamSettings,
    SupportedMeasurements,
)

logger = logging.getLogger(__name__)

SETTINGS_OFFSET = 5

# Setting groups each sensor echoes for GET_MEASUREMENT_SETTINGS
SETTING_GROUP_COUNT: dict[MeasurementSensor, int] = {
    MeasurementSensor.ECG: 2,  # SAMPLE_RATE, RESOLUTION
    MeasurementSensor.ACC: 3,  # SAMPLE_RATE, RESOLUTION, RANGE
}


def _decode_settings(data: bytes, sensor: MeasurementSensor) -> tuple[StreamSettings, int]:
    """Returns (settings, offset just past the settings region)."""
    offset = SETTINGS_OFFSET
    groups = []
    for _ in range(SETTING_GROUP_COUNT.get(sensor, 0)):
        setting = SettingType.from_byte(read_u8(data, offset, "setting type"))
        count = read_u8(data, offset + 1, f"{setting.name} array count")
        offset += 2
        if len(data) < offset + 2 * count:
            raise TruncatedBuffer(f"{setting.name} values", offset + 2 * count, len(data))
        values = tuple(read_u16(data, offset + 2 * i, setting.name) for i in range(count))
        offset += 2 * count
        groups.append(SettingGroup(setting, values))
    return StreamSettings(tuple(groups)), offset


def decode_control_response(data: bytes) -> ControlPointReply:
    """
    Decode one control point notification / read value.

    A non-SUCCESS status is a valid reply, not an error: decoding stops after
    the status byte and settings / trailing parameters stay empty.
    """
    data = bytes(data)
    code = ControlResponseCode.from_byte(read_u8(data, 0, "response code"))

    if code == ControlResponseCode.FEATURES_READ_RESPONSE:
        mask = read_u8(data, 1, "supported measurements")
        return FeaturesReply(SupportedMeasurements.from_bitmask(mask))

    if len(data) < 4:
        raise TruncatedBuffer("control point response header", 4, len(data))
    op_code = ControlCommand.from_byte(data[1])
    sensor = MeasurementSensor.from_byte(data[2])
    status = ControlStatus.from_byte(data[3])
    if status != ControlStatus.SUCCESS:
        logger.debug("Control point %s for %s rejected: %s", op_code.name, sensor.name, status.name)
        return CommandResult(op_code=op_code, sensor=sensor, status=status)

    more = len(data) > 4 and data[4] != 0
    settings = None
    trailing_from = SETTINGS_OFFSET
    if op_code == ControlCommand.GET_MEASUREMENT_SETTINGS and len(data) > SETTINGS_OFFSET:
        settings, trailing_from = _decode_settings(data, sensor)
        logger.info("%s settings:\n%s", sensor.name, settings.describe())

    return CommandResult(
        op_code=op_code,
        sensor=sensor,
        status=status,
        settings=settings,
        more_data_follows=more,
        trailing_parameters=data[trailing_from:],
    )
