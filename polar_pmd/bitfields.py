"""
Little-endian readers for GATT payloads.

Every reader takes (data, offset, field) and raises TruncatedBuffer naming the
field when the read would run past the end of the buffer.
"""

from polar_pmd.errors import TruncatedBuffer

INT24_SIGN_BIT = 0x800000
INT24_RANGE = 0x1000000


def _require(data: bytes, offset: int, size: int, field: str) -> None:
    if offset < 0 or len(data) < offset + size:
        raise TruncatedBuffer(field, offset + size, len(data))


def read_u8(data: bytes, offset: int, field: str = "u8") -> int:
    _require(data, offset, 1, field)
    return data[offset]


def read_u16(data: bytes, offset: int, field: str = "u16") -> int:
    _require(data, offset, 2, field)
    return int.from_bytes(data[offset : offset + 2], "little")


def read_i16(data: bytes, offset: int, field: str = "i16") -> int:
    _require(data, offset, 2, field)
    return int.from_bytes(data[offset : offset + 2], "little", signed=True)


def read_u64(data: bytes, offset: int, field: str = "u64") -> int:
    _require(data, offset, 8, field)
    return int.from_bytes(data[offset : offset + 8], "little")


def sign_extend_24(raw: int) -> int:
    """
    24-bit two's complement -> int.
    The top bit of the third (most significant) byte is the sign bit.
    """
    raw &= INT24_RANGE - 1
    if raw & INT24_SIGN_BIT:
        return raw - INT24_RANGE
    return raw


def read_i24(data: bytes, offset: int, field: str = "i24") -> int:
    _require(data, offset, 3, field)
    raw = data[offset] | (data[offset + 1] << 8) | (data[offset + 2] << 16)
    return sign_extend_24(raw)


def encode_i24(value: int) -> bytes:
    """Inverse of read_i24. Value must fit in [-2**23, 2**23)."""
    if not -INT24_SIGN_BIT <= value < INT24_SIGN_BIT:
        raise ValueError(f"{value} does not fit in 24 bits")
    return (value % INT24_RANGE).to_bytes(3, "little")
