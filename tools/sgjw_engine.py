#!/usr/bin/env python3
"""
sgjw_engine.py - Descriptor-driven decode/encode of the SGJW metadata block

Walks the field table in sgjw_fields with a running cursor, decoding each
field through sgjw_codec into a MetadataRecord (or encoding the record
into one freshly sized buffer). The first failing field aborts the whole
operation; on the read side the partially filled record is released
before the error propagates.

Usage:
    from sgjw_engine import decode_buffer, encode_record

    record = decode_buffer(open('image.jpg', 'rb').read())
    block = encode_record(record, block_offset=len(host_bytes))
"""

import logging
from contextlib import contextmanager
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple

from sgjw_codec import (
    Buffer, CodecError, CodecRangeError,
    get_uint, get_float32, get_float64, get_bytes, get_float32_array,
    set_uint, set_float32, set_float64, set_bytes, set_float32_array,
)
from sgjw_errors import (
    AllocationFailed, FieldDecodeFailed, FieldEncodeFailed,
    InvalidOffset, InvalidParameters, InvalidSignature,
)
from sgjw_fields import (
    APPENDIX_FIELD, FIELD_TABLE, FieldDescriptor, FieldKind,
    resolve_count, resolve_size,
)
from sgjw_record import MetadataRecord
from sgjw_trailer import (
    MAX_BLOCK_OFFSET, TRAILER_BYTES, build_trailer, locate_block,
    verify_signature,
)

log = logging.getLogger(__name__)


# =============================================================================
# Per-kind decoders: (buf, offset, size, count) -> value
# =============================================================================

def _decode_uint(buf: Buffer, pos: int, size: int, count: int) -> int:
    return get_uint(buf, pos, size)


def _decode_float32(buf: Buffer, pos: int, size: int, count: int) -> float:
    return get_float32(buf, pos)


def _decode_float64(buf: Buffer, pos: int, size: int, count: int) -> float:
    return get_float64(buf, pos)


def _decode_text(buf: Buffer, pos: int, size: int, count: int) -> str:
    # latin-1 keeps every byte; only trailing NUL padding is dropped
    raw = get_bytes(buf, pos, size * count)
    return raw.rstrip(b'\x00').decode('latin-1')


def _decode_matrix(buf: Buffer, pos: int, size: int, count: int) -> List[float]:
    return get_float32_array(buf, pos, count)


def _decode_bytes(buf: Buffer, pos: int, size: int, count: int) -> bytes:
    return get_bytes(buf, pos, size * count)


_DECODERS: Dict[FieldKind, Callable[[Buffer, int, int, int], Any]] = {
    FieldKind.UINT8: _decode_uint,
    FieldKind.UINT16: _decode_uint,
    FieldKind.UINT32: _decode_uint,
    FieldKind.FLOAT32: _decode_float32,
    FieldKind.FLOAT64: _decode_float64,
    FieldKind.CHAR_ARRAY: _decode_text,
    FieldKind.FLOAT_MATRIX: _decode_matrix,
    FieldKind.BYTES: _decode_bytes,
}


# =============================================================================
# Per-kind encoders: (buf, offset, size, count, value) -> None
# =============================================================================

def _encode_uint(buf: bytearray, pos: int, size: int, count: int, value: Any) -> None:
    if isinstance(value, bool) or not isinstance(value, int):
        raise CodecRangeError(f"Expected an integer, got {type(value).__name__}")
    set_uint(buf, pos, value, size)


def _encode_float32(buf: bytearray, pos: int, size: int, count: int, value: Any) -> None:
    set_float32(buf, pos, float(value))


def _encode_float64(buf: bytearray, pos: int, size: int, count: int, value: Any) -> None:
    set_float64(buf, pos, float(value))


def _encode_text(buf: bytearray, pos: int, size: int, count: int, value: Any) -> None:
    data = value if isinstance(value, (bytes, bytearray)) else str(value).encode('latin-1')
    set_bytes(buf, pos, data, size * count)


def _encode_matrix(buf: bytearray, pos: int, size: int, count: int, value: Any) -> None:
    if len(value) != count:
        raise CodecRangeError(f"Matrix holds {len(value)} values, width x height is {count}")
    set_float32_array(buf, pos, [float(v) for v in value])


def _encode_bytes(buf: bytearray, pos: int, size: int, count: int, value: Any) -> None:
    if not isinstance(value, (bytes, bytearray, memoryview)):
        raise CodecRangeError(f"Expected bytes, got {type(value).__name__}")
    if len(value) != size * count:
        raise CodecRangeError(f"Holds {len(value)} bytes, declared length is {size * count}")
    set_bytes(buf, pos, bytes(value), size * count)


_ENCODERS: Dict[FieldKind, Callable[[bytearray, int, int, int, Any], None]] = {
    FieldKind.UINT8: _encode_uint,
    FieldKind.UINT16: _encode_uint,
    FieldKind.UINT32: _encode_uint,
    FieldKind.FLOAT32: _encode_float32,
    FieldKind.FLOAT64: _encode_float64,
    FieldKind.CHAR_ARRAY: _encode_text,
    FieldKind.FLOAT_MATRIX: _encode_matrix,
    FieldKind.BYTES: _encode_bytes,
}


# =============================================================================
# Diagnostics
# =============================================================================

def _log_field(logger: logging.Logger, desc: FieldDescriptor, value: Any,
               raw: bytes) -> None:
    if not logger.isEnabledFor(logging.DEBUG):
        return
    kind = desc.kind
    if kind in (FieldKind.UINT8, FieldKind.UINT16, FieldKind.UINT32):
        logger.debug("%s: [%x][%d]", desc.label, value, value)
    elif kind in (FieldKind.FLOAT32, FieldKind.FLOAT64):
        bits = int.from_bytes(raw, 'little')
        logger.debug("%s: [%x][%.2f]", desc.label, bits, value)
    elif kind == FieldKind.CHAR_ARRAY:
        logger.debug("%s: [%s]", desc.label, value)
    elif kind == FieldKind.FLOAT_MATRIX:
        for i, name in enumerate(('First', 'Second')):
            if i < len(value):
                logger.debug("%s: %s element [%.2f]", desc.label, name, value[i])
    else:
        logger.debug("%s: [%d bytes]", desc.label, len(value))


# =============================================================================
# Decode
# =============================================================================

@contextmanager
def _released_on_error(record: MetadataRecord) -> Iterator[MetadataRecord]:
    """Release record if the body raises; the error still propagates."""
    try:
        yield record
    except BaseException:
        record.release()
        raise


def _read_field(buf: Buffer, cursor: int, desc: FieldDescriptor,
                record: MetadataRecord, logger: logging.Logger) -> int:
    """Decode one field at cursor into record; returns the advanced cursor."""
    try:
        size = resolve_size(desc, record)
        count = resolve_count(desc, record)
    except ValueError as e:
        raise FieldDecodeFailed(desc.label, str(e)) from e

    width = size * count
    if cursor < 0 or cursor + width > len(buf):
        raise FieldDecodeFailed(
            desc.label,
            f"need {width} bytes at offset {cursor}, buffer holds {len(buf)}"
        )

    decoder = _DECODERS.get(desc.kind)
    if decoder is None:
        raise FieldDecodeFailed(desc.label, f"unknown field kind {desc.kind}")

    try:
        value = decoder(buf, cursor, size, count)
    except MemoryError as e:
        raise AllocationFailed(f"Allocate memory for {desc.label} failed") from e
    except CodecError as e:
        raise FieldDecodeFailed(desc.label, str(e)) from e

    setattr(record, desc.slot, value)
    _log_field(logger, desc, value, bytes(buf[cursor:cursor + min(width, 8)]))
    return cursor + width


def decode_record(buf: Buffer, start_offset: int,
                  logger: Optional[logging.Logger] = None) -> MetadataRecord:
    """
    Decode the metadata block that starts at start_offset.

    Fields are decoded in table order; width and height are read before
    the matrix, whose element count is width * height. The appendix is
    decoded only when appendix_length > 0.

    Raises:
        FieldDecodeFailed: a field runs past the buffer or cannot be decoded.
        AllocationFailed: storage for a field could not be allocated.
    """
    if buf is None:
        raise InvalidParameters("No buffer given")
    logger = logger or log
    record = MetadataRecord()
    cursor = start_offset

    with _released_on_error(record):
        for desc in FIELD_TABLE:
            try:
                cursor = _read_field(buf, cursor, desc, record, logger)
            except FieldDecodeFailed:
                logger.debug("Failed to read field: %s", desc.label)
                raise

        if record.appendix_length:
            try:
                cursor = _read_field(buf, cursor, APPENDIX_FIELD, record, logger)
            except FieldDecodeFailed:
                logger.debug("Failed to read appendix")
                raise

    return record


def decode_buffer(buf: Buffer, logger: Optional[logging.Logger] = None) -> MetadataRecord:
    """
    Find and decode the metadata block of a whole host file.

    Raises:
        InvalidSignature: the file does not end with the SGJW signature.
        InvalidOffset: the offset pointer is missing or zero.
    """
    if buf is None:
        raise InvalidParameters("No buffer given")
    logger = logger or log

    if not verify_signature(buf):
        logger.debug("File EOF label verification fail.")
        raise InvalidSignature("File does not end with the SGJW signature")
    logger.debug("Verification Success")

    offset = locate_block(buf)
    # Zero is a legal position but is indistinguishable from "no offset"
    if not offset:
        logger.debug("Get offset fail.")
        raise InvalidOffset("Block offset is missing or zero")
    logger.debug("Offset is: [%x][%d]", offset, offset)

    return decode_record(buf, offset, logger)


# =============================================================================
# Encode
# =============================================================================

def _encode_plan(record: MetadataRecord) -> List[Tuple[FieldDescriptor, int, int]]:
    """Resolve (descriptor, size, count) for every field to be written."""
    plan = []
    for desc in FIELD_TABLE:
        if getattr(record, desc.slot) is None:
            raise FieldEncodeFailed(desc.label, "field is unset")
        try:
            size = resolve_size(desc, record)
            count = resolve_count(desc, record)
        except (TypeError, ValueError) as e:
            raise FieldEncodeFailed(desc.label, str(e)) from e
        if not all(isinstance(v, int) and not isinstance(v, bool) for v in (size, count)):
            raise FieldEncodeFailed(desc.label, f"size {size!r} x count {count!r} is not an integer")
        if size * count < 0:
            raise FieldEncodeFailed(desc.label, "negative field width")
        plan.append((desc, size, count))

    if isinstance(record.appendix_length, int) and record.appendix_length > 0:
        if record.appendix is None:
            raise FieldEncodeFailed(APPENDIX_FIELD.label, "field is unset")
        plan.append((APPENDIX_FIELD, resolve_size(APPENDIX_FIELD, record), 1))
    elif record.appendix:
        raise FieldEncodeFailed(
            APPENDIX_FIELD.label,
            f"{len(record.appendix)} bytes given but appendix_length is {record.appendix_length}"
        )
    return plan


def block_size(record: MetadataRecord) -> int:
    """Encoded size of the metadata block, excluding offset and signature."""
    return sum(size * count for _, size, count in _encode_plan(record))


def field_layout(record: MetadataRecord, start_offset: int = 0) -> List[Tuple[int, FieldDescriptor, int]]:
    """(absolute offset, descriptor, element count) for every encoded field."""
    layout = []
    cursor = start_offset
    for desc, size, count in _encode_plan(record):
        layout.append((cursor, desc, count))
        cursor += size * count
    return layout


def encode_record(record: MetadataRecord, block_offset: int,
                  logger: Optional[logging.Logger] = None) -> bytes:
    """
    Encode record as metadata block + offset pointer + signature.

    block_offset is where the block will start in the final file, i.e.
    the size of the host file it is appended to.

    Raises:
        FieldEncodeFailed: a field is unset or its value does not fit.
        InvalidOffset: block_offset is 0 and could never be read back.
    """
    if record is None:
        raise InvalidParameters("No record given")
    logger = logger or log

    if block_offset == 0:
        raise InvalidOffset("Block offset 0 is not readable; host file is empty")
    if not 0 < block_offset <= MAX_BLOCK_OFFSET:
        raise FieldEncodeFailed('Offset', f"{block_offset} does not fit in 32 bits")

    plan = _encode_plan(record)
    total = sum(size * count for _, size, count in plan) + TRAILER_BYTES

    try:
        buf = bytearray(total)
    except MemoryError as e:
        raise AllocationFailed(f"Allocate {total} byte output buffer failed") from e

    cursor = 0
    for desc, size, count in plan:
        value = getattr(record, desc.slot)
        width = size * count
        try:
            _ENCODERS[desc.kind](buf, cursor, size, count, value)
        except (CodecError, TypeError, ValueError) as e:
            logger.debug("Failed to write field: %s", desc.label)
            raise FieldEncodeFailed(desc.label, str(e)) from e
        _log_field(logger, desc, value, bytes(buf[cursor:cursor + min(width, 8)]))
        cursor += width

    buf[cursor:] = build_trailer(block_offset)
    logger.debug("Offset is: [%x][%d]", block_offset, block_offset)
    return bytes(buf)
