"""
GATT services / characteristics of the Polar H10 and notification dispatch.
"""

from enum import Enum

from polar_pmd.bitfields import read_u8
from polar_pmd.control_point import decode_control_response
from polar_pmd.data_frames import decode_data_frame
from polar_pmd.errors import UnknownCharacteristic
from polar_pmd.gatt_hrm import decode_heart_rate
from polar_pmd.models import BatteryLevel

# Battery
BATTERY_SERVICE_UUID = "0000180f-0000-1000-8000-00805f9b34fb"
BATTERY_LEVEL_CHAR_UUID = "00002a19-0000-1000-8000-00805f9b34fb"

# Heart Rate (standard 16-bit UUIDs)
HR_SERVICE_UUID = "0000180d-0000-1000-8000-00805f9b34fb"
HRM_CHAR_UUID = "00002a37-0000-1000-8000-00805f9b34fb"

# Polar Measurement Data
PMD_SERVICE_UUID = "fb005c80-02e7-f387-1cad-8acd2d8df0c8"
PMD_CONTROL_POINT_UUID = "fb005c81-02e7-f387-1cad-8acd2d8df0c8"
PMD_DATA_UUID = "fb005c82-02e7-f387-1cad-8acd2d8df0c8"


class Characteristic(Enum):
    BATTERY_LEVEL = BATTERY_LEVEL_CHAR_UUID
    HEART_RATE_MEASUREMENT = HRM_CHAR_UUID
    PMD_CONTROL_POINT = PMD_CONTROL_POINT_UUID
    PMD_DATA = PMD_DATA_UUID

    @property
    def uuid(self) -> str:
        return self.value

    @property
    def service_uuid(self) -> str:
        return _SERVICE_OF[self]

    @classmethod
    def from_uuid(cls, uuid: str) -> "Characteristic":
        try:
            return cls(str(uuid).lower())
        except ValueError:
            raise UnknownCharacteristic(f"unknown characteristic: {uuid}") from None


_SERVICE_OF = {
    Characteristic.BATTERY_LEVEL: BATTERY_SERVICE_UUID,
    Characteristic.HEART_RATE_MEASUREMENT: HR_SERVICE_UUID,
    Characteristic.PMD_CONTROL_POINT: PMD_SERVICE_UUID,
    Characteristic.PMD_DATA: PMD_SERVICE_UUID,
}


def decode_battery_level(data: bytes) -> BatteryLevel:
    return BatteryLevel(percent=read_u8(data, 0, "battery level"))


_DECODERS = {
    Characteristic.BATTERY_LEVEL: decode_battery_level,
    Characteristic.HEART_RATE_MEASUREMENT: decode_heart_rate,
    Characteristic.PMD_CONTROL_POINT: decode_control_response,
    Characteristic.PMD_DATA: decode_data_frame,
}


def decode_notification(characteristic, data: bytes):
    """
    Decode a value from characteristic (Characteristic member or UUID string).
    Returns a fresh record; raises a PmdError subclass when the payload can't be decoded.
    """
    if not isinstance(characteristic, Characteristic):
        characteristic = Characteristic.from_uuid(characteristic)
    return _DECODERS[characteristic](bytes(data))
