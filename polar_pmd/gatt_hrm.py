"""
Parse GATT Heart Rate Measurement characteristic (0x2A37) payloads.

Flags byte: bit 0 = HR 16-bit, bits 1-2 = sensor contact, bit 3 = Energy Expended present,
bit 4 = RR present.
RR intervals: UINT16 LE, unit 1/1024 s → rr_ms = value * 1000 / 1024.
"""

from polar_pmd.bitfields import read_u8, read_u16
from polar_pmd.errors import TruncatedBuffer
from polar_pmd.models import HeartRateSample

FLAG_HR_UINT16 = 0x01
FLAG_CONTACT_DETECTED = 0x02
FLAG_CONTACT_SUPPORTED = 0x04
FLAG_EE_PRESENT = 0x08
FLAG_RR_PRESENT = 0x10


def rr_ticks_to_ms(ticks: int) -> float:
    return ticks * 1000.0 / 1024.0


def decode_heart_rate(data: bytes) -> HeartRateSample:
    """
    Parse a Heart Rate Measurement characteristic value.

    Raises TruncatedBuffer for an empty payload or when a field the flags
    declare (HR, EE, or half of an RR pair) does not fit.
    """
    flags = read_u8(data, 0, "HRM flags")

    offset = 1

    # Heart rate
    if flags & FLAG_HR_UINT16:
        hr = read_u16(data, offset, "HR (uint16)")
        offset += 2
    else:
        hr = read_u8(data, offset, "HR (uint8)")
        offset += 1

    # Energy expended
    ee = None
    if flags & FLAG_EE_PRESENT:
        ee = read_u16(data, offset, "energy expended")
        offset += 2

    # RR intervals (pairs of UINT16 LE)
    rr_ms: list[float] = []
    if flags & FLAG_RR_PRESENT:
        if (len(data) - offset) % 2:
            raise TruncatedBuffer("RR interval", len(data) + 1, len(data))
        while offset < len(data):
            rr_ms.append(rr_ticks_to_ms(read_u16(data, offset, "RR interval")))
            offset += 2

    contact = None
    if flags & FLAG_CONTACT_SUPPORTED:
        contact = bool(flags & FLAG_CONTACT_DETECTED)

    return HeartRateSample(
        heart_rate_bpm=hr,
        energy_expended_kj=ee,
        rr_intervals_ms=tuple(rr_ms),
        sensor_contact=contact,
    )
