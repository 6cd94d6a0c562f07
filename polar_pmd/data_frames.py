"""
Parse PMD data characteristic (FB005C82-...) frames.

Header (10 bytes):
  byte 0     measurement type (ECG=0x00, ACC=0x02)
  bytes 1-8  timestamp of the last sample, UINT64 LE, nanoseconds
  byte 9     frame type (ACC: 0/1/2 -> 1/2/3 bytes per axis; ignored for ECG)

ECG samples are always 3 bytes, signed 24-bit microvolts.
ACC samples are x,y,z back to back, each axis 1 (unsigned), 2 or 3 (signed) bytes.
A trailing partial sample is dropped; BLE notifications may be padded to the MTU.
"""

import logging

from polar_pmd.bitfields import encode_i24, read_i16, read_i24, read_u8, read_u64
from polar_pmd.errors import TruncatedBuffer, UnsupportedSensor
from polar_pmd.models import AccFrame, AccSample, EcgFrame, FrameEncoding, MeasurementSensor

logger = logging.getLogger(__name__)

HEADER_SIZE = 10
ECG_SAMPLE_SIZE = 3
NUM_AXES = 3


def _read_header(data: bytes) -> tuple[int, int]:
    """Returns (timestamp_ns, frame type byte)."""
    if len(data) < HEADER_SIZE:
        raise TruncatedBuffer("PMD data header", HEADER_SIZE, len(data))
    return read_u64(data, 1, "timestamp"), data[9]


def _log_partial(sensor: MeasurementSensor, leftover: int) -> None:
    if leftover:
        logger.debug("%s frame: dropped %d trailing byte(s)", sensor.name, leftover)


def decode_ecg_frame(data: bytes) -> EcgFrame:
    timestamp, _ = _read_header(data)
    payload = len(data) - HEADER_SIZE
    count = payload // ECG_SAMPLE_SIZE
    _log_partial(MeasurementSensor.ECG, payload % ECG_SAMPLE_SIZE)
    samples = tuple(read_i24(data, HEADER_SIZE + i * ECG_SAMPLE_SIZE, "ECG sample") for i in range(count))
    return EcgFrame(timestamp_ns=timestamp, samples_microvolts=samples)


def _axis_reader(encoding: FrameEncoding):
    if encoding == FrameEncoding.T3_BYTES:
        return read_u8
    if encoding == FrameEncoding.T6_BYTES:
        return read_i16
    return read_i24


def decode_acc_frame(data: bytes) -> AccFrame:
    timestamp, frame_type = _read_header(data)
    encoding = FrameEncoding.from_byte(frame_type)
    step = encoding.bytes_per_axis
    sample_size = step * NUM_AXES
    payload = len(data) - HEADER_SIZE
    count = payload // sample_size
    _log_partial(MeasurementSensor.ACC, payload % sample_size)

    read_axis = _axis_reader(encoding)
    samples = []
    offset = HEADER_SIZE
    for _ in range(count):
        x = read_axis(data, offset, "ACC x")
        y = read_axis(data, offset + step, "ACC y")
        z = read_axis(data, offset + 2 * step, "ACC z")
        samples.append(AccSample(x, y, z))
        offset += sample_size
    return AccFrame(timestamp_ns=timestamp, encoding=encoding, samples=tuple(samples))


_DECODERS = {
    MeasurementSensor.ECG: decode_ecg_frame,
    MeasurementSensor.ACC: decode_acc_frame,
}


def decode_data_frame(data: bytes) -> EcgFrame | AccFrame:
    """Dispatch on the measurement type byte; only ECG and ACC are decoded."""
    data = bytes(data)
    sensor = MeasurementSensor.from_byte(read_u8(data, 0, "measurement type"))
    decoder = _DECODERS.get(sensor)
    if decoder is None:
        raise UnsupportedSensor(f"no data frame decoder for {sensor.name}")
    return decoder(data)


def _header(sensor: MeasurementSensor, timestamp_ns: int, frame_type: int) -> bytes:
    return bytes([int(sensor)]) + timestamp_ns.to_bytes(8, "little") + bytes([frame_type])


def encode_ecg_frame(timestamp_ns: int, samples: list[int]) -> bytes:
    """Build an ECG data frame; the inverse of decode_ecg_frame."""
    body = b"".join(encode_i24(s) for s in samples)
    return _header(MeasurementSensor.ECG, timestamp_ns, 0) + body


def encode_acc_frame(timestamp_ns: int, encoding: FrameEncoding, samples: list[tuple[int, int, int]]) -> bytes:
    """Build an ACC data frame; the inverse of decode_acc_frame."""
    body = bytearray()
    for sample in samples:
        for value in sample:
            if encoding == FrameEncoding.T3_BYTES:
                body += value.to_bytes(1, "little")
            elif encoding == FrameEncoding.T6_BYTES:
                body += value.to_bytes(2, "little", signed=True)
            else:
                body += encode_i24(value)
    return _header(MeasurementSensor.ACC, timestamp_ns, int(encoding)) + bytes(body)
