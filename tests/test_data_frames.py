"""Tests for PMD data frame parsing (ECG and accelerometer)."""

import pytest

from polar_pmd.data_frames import decode_data_frame, encode_acc_frame, encode_ecg_frame
from polar_pmd.errors import TruncatedBuffer, UnknownResponseCode, UnsupportedSensor
from polar_pmd.models import AccFrame, AccSample, EcgFrame, FrameEncoding

TIMESTAMP = 0x0102030405060708
TS_BYTES = bytes([0x08, 0x07, 0x06, 0x05, 0x04, 0x03, 0x02, 0x01])


def _frame(sensor: int, frame_type: int, body: bytes) -> bytes:
    return bytes([sensor]) + TS_BYTES + bytes([frame_type]) + body


def test_ecg_header_and_samples():
    """ECG: 3-byte signed samples from offset 10."""
    body = bytes([0x01, 0x00, 0x00, 0xFF, 0xFF, 0xFF, 0x38, 0xFF, 0xFF])
    frame = decode_data_frame(_frame(0x00, 0x00, body))
    assert isinstance(frame, EcgFrame)
    assert frame.timestamp_ns == TIMESTAMP
    assert frame.samples_microvolts == (1, -1, -200)
    assert frame.sample_count == 3


def test_ecg_minus_one_exact():
    frame = decode_data_frame(_frame(0x00, 0x00, bytes([0xFF, 0xFF, 0xFF])))
    assert frame.samples_microvolts == (-1,)


def test_ecg_sign_bit_boundaries():
    """FF FF 7F is the largest positive value; 00 00 80 the most negative."""
    frame = decode_data_frame(_frame(0x00, 0x00, bytes([0xFF, 0xFF, 0x7F, 0x00, 0x00, 0x80])))
    assert frame.samples_microvolts == (8388607, -8388608)


def test_ecg_ignores_frame_type_byte():
    frame = decode_data_frame(_frame(0x00, 0x02, bytes([0x05, 0x00, 0x00])))
    assert frame.samples_microvolts == (5,)


def test_ecg_trailing_partial_sample_dropped():
    frame = decode_data_frame(_frame(0x00, 0x00, bytes([0x05, 0x00, 0x00, 0x07, 0x00])))
    assert frame.samples_microvolts == (5,)


def test_ecg_header_only_has_no_samples():
    frame = decode_data_frame(_frame(0x00, 0x00, b""))
    assert frame.samples_microvolts == ()


def test_acc_t3_unsigned():
    """1 byte per axis, read unsigned."""
    frame = decode_data_frame(_frame(0x02, 0x00, bytes([0x01, 0x02, 0xFF, 0x10, 0x20, 0x30])))
    assert isinstance(frame, AccFrame)
    assert frame.encoding == FrameEncoding.T3_BYTES
    assert frame.samples == (AccSample(1, 2, 255), AccSample(16, 32, 48))


def test_acc_t6_signed16():
    body = bytes([0xFE, 0xFF, 0xE8, 0x03, 0x00, 0x80])  # -2, 1000, -32768
    frame = decode_data_frame(_frame(0x02, 0x01, body))
    assert frame.encoding == FrameEncoding.T6_BYTES
    assert frame.samples == (AccSample(-2, 1000, -32768),)


def test_acc_t9_signed24():
    """24-bit axes use the same sign extension as ECG."""
    body = bytes([0xFF, 0xFF, 0xFF, 0x00, 0x00, 0x80, 0xE8, 0x03, 0x00])
    frame = decode_data_frame(_frame(0x02, 0x02, body))
    assert frame.encoding == FrameEncoding.T9_BYTES
    assert frame.samples == (AccSample(-1, -8388608, 1000),)


def test_acc_trailing_partial_sample_dropped():
    # T6: one full sample (6 bytes) + 4 stray bytes
    body = bytes([0x01, 0x00, 0x02, 0x00, 0x03, 0x00, 0x04, 0x00, 0x05, 0x00])
    frame = decode_data_frame(_frame(0x02, 0x01, body))
    assert frame.samples == (AccSample(1, 2, 3),)
    assert frame.sample_count == 1


SAMPLES_BY_ENCODING = {
    FrameEncoding.T3_BYTES: [(0, 1, 255), (128, 64, 7), (12, 200, 99)],
    FrameEncoding.T6_BYTES: [(-32768, 0, 32767), (-1, 1, 256), (1000, -1000, 42)],
    FrameEncoding.T9_BYTES: [(-8388608, 0, 8388607), (-1, 1, 65536), (-70000, 70000, 3)],
}


@pytest.mark.parametrize("encoding", list(FrameEncoding))
@pytest.mark.parametrize("n", [0, 1, 3, 7])
def test_acc_encode_decode_preserves_samples(encoding, n):
    pool = SAMPLES_BY_ENCODING[encoding]
    samples = [pool[i % len(pool)] for i in range(n)]
    frame = decode_data_frame(encode_acc_frame(TIMESTAMP, encoding, samples))
    assert frame.timestamp_ns == TIMESTAMP
    assert frame.encoding == encoding
    assert frame.sample_count == n
    assert [tuple(s) for s in frame.samples] == samples


def test_ecg_encode_decode_preserves_samples():
    samples = [0, -1, 1, 8388607, -8388608, -4321]
    frame = decode_data_frame(encode_ecg_frame(TIMESTAMP, samples))
    assert list(frame.samples_microvolts) == samples


@pytest.mark.parametrize("length", [0, 1, 5, 9])
def test_truncated_header_raises(length):
    full = _frame(0x00, 0x00, bytes([0x01, 0x00, 0x00]))
    with pytest.raises(TruncatedBuffer):
        decode_data_frame(full[:length])


def test_acc_truncated_header_raises():
    with pytest.raises(TruncatedBuffer):
        decode_data_frame(_frame(0x02, 0x01, b"")[:9])


def test_known_but_undecoded_sensor_raises():
    """PPG / PPI payload shapes are not decoded."""
    with pytest.raises(UnsupportedSensor):
        decode_data_frame(_frame(0x01, 0x00, bytes(9)))
    with pytest.raises(UnsupportedSensor):
        decode_data_frame(_frame(0x03, 0x00, bytes(6)))


def test_unknown_sensor_byte_raises():
    with pytest.raises(UnsupportedSensor):
        decode_data_frame(_frame(0x42, 0x00, bytes(3)))


def test_acc_unknown_frame_type_raises():
    with pytest.raises(UnknownResponseCode):
        decode_data_frame(_frame(0x02, 0x05, bytes(9)))
