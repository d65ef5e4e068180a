#!/usr/bin/env python3
"""
sgjw_trailer.py - Locate the SGJW metadata block inside a host file

The block is found from the end of the file:

    [... host JPEG bytes ...]
    [metadata block]
    [offset: u32 LE, absolute position of the block]
    [signature: 16 fixed bytes]

The host file itself is treated as opaque bytes.
"""

from typing import Optional

from sgjw_codec import Buffer, get_uint

SIGNATURE = bytes([
    0x37, 0x66, 0x07, 0x1A, 0x12, 0x3A, 0x4C, 0x9F,
    0xA9, 0x5D, 0x21, 0xD2, 0xDA, 0x7D, 0x26, 0xBC,
])

SIGNATURE_BYTES = 16
OFFSET_BYTES = 4
TRAILER_BYTES = OFFSET_BYTES + SIGNATURE_BYTES

MAX_BLOCK_OFFSET = 0xFFFFFFFF


def verify_signature(buf: Buffer) -> bool:
    """True if the last 16 bytes of buf are the SGJW signature."""
    if len(buf) < SIGNATURE_BYTES:
        return False
    return bytes(buf[-SIGNATURE_BYTES:]) == SIGNATURE


def locate_block(buf: Buffer) -> Optional[int]:
    """
    Decode the block offset stored just before the signature.

    Returns None if buf is too short to hold a trailer. The signature is
    not checked here; call verify_signature first.

    A returned 0 is a structurally valid position, but callers treat it
    as "no block" (see sgjw_engine.decode_buffer).
    """
    if len(buf) < TRAILER_BYTES:
        return None
    return get_uint(buf, len(buf) - TRAILER_BYTES, OFFSET_BYTES)


def build_trailer(block_offset: int) -> bytes:
    """Offset pointer followed by the signature."""
    if not 0 <= block_offset <= MAX_BLOCK_OFFSET:
        raise ValueError(f"Block offset out of range: {block_offset}")
    return block_offset.to_bytes(OFFSET_BYTES, 'little') + SIGNATURE
