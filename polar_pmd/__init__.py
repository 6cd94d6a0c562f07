"""Decoders for the Polar H10 heart rate and Polar Measurement Data (PMD) GATT payloads."""

from polar_pmd.commands import encode_command
from polar_pmd.control_point import decode_control_response
from polar_pmd.data_frames import decode_data_frame
from polar_pmd.gatt import decode_notification
from polar_pmd.gatt_hrm import decode_heart_rate

__all__ = [
    "decode_control_response",
    "decode_data_frame",
    "decode_heart_rate",
    "decode_notification",
    "encode_command",
]
