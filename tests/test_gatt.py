"""Tests for characteristic identities and notification dispatch."""

import pytest

from polar_pmd.errors import TruncatedBuffer, UnknownCharacteristic
from polar_pmd.gatt import (
    BATTERY_SERVICE_UUID,
    HR_SERVICE_UUID,
    HRM_CHAR_UUID,
    PMD_SERVICE_UUID,
    Characteristic,
    decode_battery_level,
    decode_notification,
)
from polar_pmd.models import BatteryLevel, EcgFrame, FeaturesReply, HeartRateSample


def test_from_uuid_is_case_insensitive():
    assert Characteristic.from_uuid("FB005C82-02E7-F387-1CAD-8ACD2D8DF0C8") == Characteristic.PMD_DATA
    assert Characteristic.from_uuid(HRM_CHAR_UUID) == Characteristic.HEART_RATE_MEASUREMENT


def test_service_of_each_characteristic():
    assert Characteristic.BATTERY_LEVEL.service_uuid == BATTERY_SERVICE_UUID
    assert Characteristic.HEART_RATE_MEASUREMENT.service_uuid == HR_SERVICE_UUID
    assert Characteristic.PMD_CONTROL_POINT.service_uuid == PMD_SERVICE_UUID
    assert Characteristic.PMD_DATA.service_uuid == PMD_SERVICE_UUID


def test_unknown_uuid_raises():
    with pytest.raises(UnknownCharacteristic):
        Characteristic.from_uuid("00002a38-0000-1000-8000-00805f9b34fb")


def test_battery_level():
    assert decode_battery_level(bytes([0x55])) == BatteryLevel(85)
    with pytest.raises(TruncatedBuffer):
        decode_battery_level(b"")


def test_dispatch_by_characteristic():
    assert decode_notification(Characteristic.BATTERY_LEVEL, bytearray([100])) == BatteryLevel(100)
    assert isinstance(decode_notification(HRM_CHAR_UUID, bytes([0x00, 0x48])), HeartRateSample)
    assert isinstance(decode_notification(Characteristic.PMD_CONTROL_POINT, bytes([0x0F, 0x05])), FeaturesReply)
    frame = decode_notification(Characteristic.PMD_DATA, bytes(10) + bytes([0x01, 0x00, 0x00]))
    assert isinstance(frame, EcgFrame)
    assert frame.samples_microvolts == (1,)


def test_each_call_returns_new_record():
    a = decode_notification(Characteristic.HEART_RATE_MEASUREMENT, bytes([0x00, 0x48]))
    b = decode_notification(Characteristic.HEART_RATE_MEASUREMENT, bytes([0x00, 0x50]))
    assert a.heart_rate_bpm == 72
    assert b.heart_rate_bpm == 80
