#!/usr/bin/env python3
"""
sgjw_codec.py - Little-endian byte codec for the SGJW metadata block

Get/set primitives over a byte buffer at an explicit offset:

    get_uint / set_uint         unsigned integers, 1-8 bytes
    get_float32 / set_float32   IEEE 754 single precision
    get_float64 / set_float64   IEEE 754 double precision
    get_bytes / set_bytes       verbatim byte runs
    get_float32_array / set_float32_array

All multi-byte values are little-endian regardless of host byte order.
Every access is bounds-checked; out-of-range access raises
CodecBoundsError instead of reading past the buffer.
"""

import struct
from typing import List, Sequence, Union

Buffer = Union[bytes, bytearray, memoryview]

MAX_UINT_BYTES = 8


class CodecError(ValueError):
    """Value cannot be read from or written to the buffer."""


class CodecBoundsError(CodecError):
    """Access would run past the end of the buffer."""


class CodecRangeError(CodecError):
    """Value does not fit the requested encoding."""


def _check_bounds(buf: Buffer, offset: int, size: int) -> None:
    if offset < 0 or size < 0 or offset + size > len(buf):
        raise CodecBoundsError(
            f"Buffer too short: need {size} bytes at pos {offset}, have {len(buf)}"
        )


def _uint_width(n_bytes: int) -> int:
    if n_bytes < 1:
        raise CodecRangeError(f"Invalid integer width: {n_bytes}")
    # Widths above 8 are clamped to a 64-bit read
    return min(n_bytes, MAX_UINT_BYTES)


# =============================================================================
# Decode
# =============================================================================

def get_uint(buf: Buffer, offset: int, n_bytes: int) -> int:
    """Read an unsigned little-endian integer of n_bytes (1-8)."""
    size = _uint_width(n_bytes)
    _check_bounds(buf, offset, size)
    return int.from_bytes(buf[offset:offset + size], 'little', signed=False)


def get_float32(buf: Buffer, offset: int) -> float:
    _check_bounds(buf, offset, 4)
    return struct.unpack_from('<f', buf, offset)[0]


def get_float64(buf: Buffer, offset: int) -> float:
    _check_bounds(buf, offset, 8)
    return struct.unpack_from('<d', buf, offset)[0]


def get_bytes(buf: Buffer, offset: int, length: int) -> bytes:
    """Copy length bytes verbatim."""
    _check_bounds(buf, offset, length)
    return bytes(buf[offset:offset + length])


def get_float32_array(buf: Buffer, offset: int, count: int) -> List[float]:
    _check_bounds(buf, offset, count * 4)
    return list(struct.unpack_from(f'<{count}f', buf, offset))


# =============================================================================
# Encode
# =============================================================================

def set_uint(buf: bytearray, offset: int, value: int, n_bytes: int) -> None:
    """Write value as an unsigned little-endian integer of n_bytes."""
    size = _uint_width(n_bytes)
    _check_bounds(buf, offset, size)
    try:
        buf[offset:offset + size] = int(value).to_bytes(size, 'little', signed=False)
    except OverflowError as e:
        raise CodecRangeError(f"Value {value} does not fit in {size} bytes") from e


def set_float32(buf: bytearray, offset: int, value: float) -> None:
    _check_bounds(buf, offset, 4)
    try:
        struct.pack_into('<f', buf, offset, value)
    except (struct.error, OverflowError) as e:
        raise CodecRangeError(f"Cannot encode {value!r} as float32: {e}") from e


def set_float64(buf: bytearray, offset: int, value: float) -> None:
    _check_bounds(buf, offset, 8)
    try:
        struct.pack_into('<d', buf, offset, value)
    except struct.error as e:
        raise CodecRangeError(f"Cannot encode {value!r} as float64: {e}") from e


def set_bytes(buf: bytearray, offset: int, data: bytes, length: int) -> None:
    """Write data into a run of exactly length bytes, NUL-padding short data."""
    if len(data) > length:
        raise CodecRangeError(f"{len(data)} bytes do not fit in {length}")
    _check_bounds(buf, offset, length)
    buf[offset:offset + length] = bytes(data).ljust(length, b'\x00')


def set_float32_array(buf: bytearray, offset: int, values: Sequence[float]) -> None:
    count = len(values)
    _check_bounds(buf, offset, count * 4)
    try:
        struct.pack_into(f'<{count}f', buf, offset, *values)
    except (struct.error, OverflowError) as e:
        raise CodecRangeError(f"Cannot encode float32 array: {e}") from e
