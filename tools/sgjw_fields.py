#!/usr/bin/env python3
"""
sgjw_fields.py - Field descriptor table for the SGJW metadata block

The block layout is declared once, as an ordered list of descriptors.
Decode and encode both walk this table, so the two directions cannot
drift apart.

Layout (little-endian):
    version(u16) width(u16) height(u16) date(char[14])
    matrix(f32[width*height])
    emissivity(f32) ambient_temp(f32) fov(u8) distance(u32) humidity(u8)
    reflective_temp(f32) manufacturer(char[32]) product(char[32])
    serial_number(char[32]) longitude(f64) latitude(f64) altitude(u32)
    appendix_length(u32)
    appendix(bytes[appendix_length])    only if appendix_length > 0
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional, Tuple


class FieldKind(Enum):
    """Closed set of on-wire field kinds."""
    UINT8 = 'u8'
    UINT16 = 'u16'
    UINT32 = 'u32'
    FLOAT32 = 'f32'
    FLOAT64 = 'f64'
    CHAR_ARRAY = 'char'
    FLOAT_MATRIX = 'f32[]'
    BYTES = 'bytes'


@dataclass(frozen=True)
class FieldDescriptor:
    """
    One field of the metadata block.

    size is the width of one element in bytes; count the number of
    elements. count_from names the fields whose product gives the count
    at run time, size_from the field holding the byte width.
    """
    slot: str
    size: int
    kind: FieldKind
    label: str
    count: int = 1
    count_from: Optional[Tuple[str, ...]] = None
    size_from: Optional[str] = None

    @property
    def is_dynamic(self) -> bool:
        return self.count_from is not None or self.size_from is not None


# Field widths in bytes
VERSION_BYTES = 2
WIDTH_BYTES = 2
HEIGHT_BYTES = 2
DATE_BYTES = 14
FLOAT32_BYTES = 4
EMISSIVITY_BYTES = 4
AMBIENT_TEMP_BYTES = 4
FOV_BYTES = 1
DISTANCE_BYTES = 4
HUMIDITY_BYTES = 1
REFLECTIVE_TEMP_BYTES = 4
MANUFACTURER_BYTES = 32
PRODUCT_BYTES = 32
SN_BYTES = 32
LONGITUDE_BYTES = 8
LATITUDE_BYTES = 8
ALTITUDE_BYTES = 4
APPENDIX_LENGTH_BYTES = 4


FIELD_TABLE: Tuple[FieldDescriptor, ...] = (
    FieldDescriptor('version', VERSION_BYTES, FieldKind.UINT16, 'Version'),
    FieldDescriptor('width', WIDTH_BYTES, FieldKind.UINT16, 'Width'),
    FieldDescriptor('height', HEIGHT_BYTES, FieldKind.UINT16, 'Height'),
    FieldDescriptor('date', DATE_BYTES, FieldKind.CHAR_ARRAY, 'Date'),
    FieldDescriptor('matrix', FLOAT32_BYTES, FieldKind.FLOAT_MATRIX, 'Matrix',
                    count_from=('width', 'height')),
    FieldDescriptor('emissivity', EMISSIVITY_BYTES, FieldKind.FLOAT32, 'Emissivity'),
    FieldDescriptor('ambient_temp', AMBIENT_TEMP_BYTES, FieldKind.FLOAT32, 'Ambient Temperature'),
    FieldDescriptor('fov', FOV_BYTES, FieldKind.UINT8, 'FOV'),
    FieldDescriptor('distance', DISTANCE_BYTES, FieldKind.UINT32, 'Distance'),
    FieldDescriptor('humidity', HUMIDITY_BYTES, FieldKind.UINT8, 'Humidity'),
    FieldDescriptor('reflective_temp', REFLECTIVE_TEMP_BYTES, FieldKind.FLOAT32, 'Reflective Temperature'),
    FieldDescriptor('manufacturer', MANUFACTURER_BYTES, FieldKind.CHAR_ARRAY, 'Manufacturer'),
    FieldDescriptor('product', PRODUCT_BYTES, FieldKind.CHAR_ARRAY, 'Product'),
    FieldDescriptor('serial_number', SN_BYTES, FieldKind.CHAR_ARRAY, 'Serial Number'),
    FieldDescriptor('longitude', LONGITUDE_BYTES, FieldKind.FLOAT64, 'Longitude'),
    FieldDescriptor('latitude', LATITUDE_BYTES, FieldKind.FLOAT64, 'Latitude'),
    FieldDescriptor('altitude', ALTITUDE_BYTES, FieldKind.UINT32, 'Altitude'),
    FieldDescriptor('appendix_length', APPENDIX_LENGTH_BYTES, FieldKind.UINT32, 'Appendix Length'),
)

# Trails the fixed table; present only when appendix_length > 0
APPENDIX_FIELD = FieldDescriptor('appendix', 1, FieldKind.BYTES, 'Appendix',
                                 size_from='appendix_length')

SLOTS: Tuple[str, ...] = tuple(d.slot for d in FIELD_TABLE) + (APPENDIX_FIELD.slot,)


def fixed_block_size() -> int:
    """Bytes taken by every field except the matrix and appendix."""
    return sum(d.size * d.count for d in FIELD_TABLE if not d.is_dynamic)


def resolve_count(desc: FieldDescriptor, record: Any) -> int:
    """Element count of desc, reading any dynamic inputs from record."""
    if desc.count_from is None:
        return desc.count
    count = 1
    for slot in desc.count_from:
        value = getattr(record, slot)
        if value is None:
            raise ValueError(f"{desc.label} count depends on unset field '{slot}'")
        count *= value
    return count


def resolve_size(desc: FieldDescriptor, record: Any) -> int:
    """Element width of desc, reading a dynamic width from record."""
    if desc.size_from is None:
        return desc.size
    value = getattr(record, desc.size_from)
    if value is None:
        raise ValueError(f"{desc.label} size depends on unset field '{desc.size_from}'")
    return value


def field_width(desc: FieldDescriptor, record: Any) -> int:
    """Total bytes desc occupies for this record."""
    return resolve_size(desc, record) * resolve_count(desc, record)
