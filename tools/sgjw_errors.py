#!/usr/bin/env python3
"""
sgjw_errors.py - Error kinds for the SGJW trailer reader/writer

Every failure surfaces as one exception carrying a single discriminated
ErrorKind. The numeric codes are stable and double as CLI exit codes.

Usage:
    from sgjw_errors import SGJWError, ErrorKind

    try:
        record = sgjw.read('image.jpg')
    except SGJWError as e:
        print(e.kind.name, e.code)
"""

from enum import IntEnum
from typing import Optional


class ErrorKind(IntEnum):
    """Result codes (0 = success, failures are negative)."""
    SUCCESS = 0
    FILE_NOT_FOUND = -1
    ALLOCATION_FAILED = -2
    READ_SIZE_MISMATCH = -3
    INVALID_SIGNATURE = -4
    INVALID_OFFSET = -5
    FIELD_DECODE_FAILED = -6
    FIELD_ENCODE_FAILED = -7
    INVALID_PARAMETERS = -8
    FILE_WRITE_FAILED = -9


class SGJWError(Exception):
    """Base class for all trailer errors."""
    kind = ErrorKind.SUCCESS

    def __init__(self, message: str = ''):
        super().__init__(message or self.kind.name.replace('_', ' ').lower())

    @property
    def code(self) -> int:
        return int(self.kind)


class SGJWFileNotFound(SGJWError):
    kind = ErrorKind.FILE_NOT_FOUND


class AllocationFailed(SGJWError):
    kind = ErrorKind.ALLOCATION_FAILED


class ReadSizeMismatch(SGJWError):
    kind = ErrorKind.READ_SIZE_MISMATCH


class InvalidSignature(SGJWError):
    kind = ErrorKind.INVALID_SIGNATURE


class InvalidOffset(SGJWError):
    kind = ErrorKind.INVALID_OFFSET


class FieldError(SGJWError):
    """Failure tied to one field of the metadata block."""

    def __init__(self, field_name: Optional[str], message: str = ''):
        self.field_name = field_name
        if field_name and message:
            message = f"{field_name}: {message}"
        elif field_name:
            message = f"{self.kind.name.replace('_', ' ').lower()}: {field_name}"
        super().__init__(message)


class FieldDecodeFailed(FieldError):
    kind = ErrorKind.FIELD_DECODE_FAILED


class FieldEncodeFailed(FieldError):
    kind = ErrorKind.FIELD_ENCODE_FAILED


class InvalidParameters(SGJWError):
    kind = ErrorKind.INVALID_PARAMETERS


class FileWriteFailed(SGJWError):
    kind = ErrorKind.FILE_WRITE_FAILED


_BY_KIND = {cls.kind: cls for cls in (
    SGJWFileNotFound, AllocationFailed, ReadSizeMismatch, InvalidSignature,
    InvalidOffset, FieldDecodeFailed, FieldEncodeFailed, InvalidParameters,
    FileWriteFailed,
)}


def error_for(kind: ErrorKind) -> type:
    """Return the exception class raised for a given kind."""
    return _BY_KIND[ErrorKind(kind)]
