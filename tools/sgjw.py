#!/usr/bin/env python3
"""
sgjw.py - Read and append SGJW thermal metadata trailers on JPEG files

An SGJW file is an ordinary JPEG with a metadata block, an offset pointer
and a 16-byte signature appended after the image data. This module holds
the file-level entry points and the command-line tool.

Usage:
    import sgjw

    record = sgjw.read('thermal.jpg')
    print(record.width, record.height, record.temperature_stats())
    sgjw.release(record)

    sgjw.append('plain.jpg', record)

Command line:
    python tools/sgjw.py read thermal.jpg
    python tools/sgjw.py read thermal.jpg -o record.yaml --no-matrix
    python tools/sgjw.py dump thermal.jpg
    python tools/sgjw.py append plain.jpg record.yaml
    python tools/sgjw.py probe thermal.jpg
"""

import argparse
import logging
import os
import sys
from pathlib import Path
from typing import List, Optional, Union

import yaml

from sgjw_engine import decode_buffer, encode_record, field_layout
from sgjw_errors import (
    AllocationFailed, FileWriteFailed, InvalidParameters, ReadSizeMismatch,
    SGJWError, SGJWFileNotFound,
)
from sgjw_fields import FieldKind
from sgjw_record import MetadataRecord
from sgjw_trailer import SIGNATURE, TRAILER_BYTES, locate_block, verify_signature

log = logging.getLogger(__name__)

PathLike = Union[str, Path]


def _read_whole_file(path: PathLike, logger: logging.Logger) -> bytes:
    p = Path(path)
    try:
        expected = p.stat().st_size
        with open(p, 'rb') as f:
            data = f.read()
    except MemoryError as e:
        raise AllocationFailed(f"Malloc buffer fail for {p}") from e
    except OSError as e:
        logger.debug("No such file: [%s]", p)
        raise SGJWFileNotFound(f"Cannot open {p}: {e.strerror or e}") from e

    if len(data) != expected:
        logger.debug("Buffer size not equal file size.")
        raise ReadSizeMismatch(f"Read {len(data)} bytes from {p}, expected {expected}")
    logger.debug("Read Success")
    return data


def read(path: PathLike, logger: Optional[logging.Logger] = None) -> MetadataRecord:
    """
    Read the metadata record from an SGJW file.

    Raises an SGJWError subclass on any failure; no partial record is
    ever returned.
    """
    if not path:
        raise InvalidParameters("No path given")
    logger = logger or log
    return decode_buffer(_read_whole_file(path, logger), logger)


def append(path: PathLike, record: MetadataRecord,
           logger: Optional[logging.Logger] = None) -> None:
    """
    Append record as an SGJW trailer to an existing file.

    The block offset written is the current file size, so the file must
    exist and be non-empty.
    """
    if not path or record is None:
        raise InvalidParameters("Path and record are required")
    logger = logger or log
    p = Path(path)

    try:
        host_size = p.stat().st_size
    except OSError as e:
        raise SGJWFileNotFound(f"Cannot open {p}: {e.strerror or e}") from e

    block = encode_record(record, host_size, logger)

    try:
        with open(p, 'ab') as f:
            written = f.write(block)
    except OSError as e:
        raise FileWriteFailed(f"Append to {p} failed: {e.strerror or e}") from e
    if written != len(block):
        raise FileWriteFailed(f"Wrote {written} of {len(block)} bytes to {p}")
    logger.debug("Appended %d bytes to %s at offset %d", len(block), p, host_size)


def release(record: Optional[MetadataRecord]) -> None:
    """Drop all fields of record. Safe on None and on released records."""
    if record is not None:
        record.release()


def probe(path: PathLike) -> Optional[int]:
    """Block offset if path carries a readable trailer, else None."""
    data = _read_whole_file(path, log)
    if not verify_signature(data):
        return None
    return locate_block(data) or None


# =============================================================================
# Command line
# =============================================================================

def _format_value(record: MetadataRecord, kind: FieldKind, slot: str) -> str:
    value = getattr(record, slot)
    if kind == FieldKind.FLOAT_MATRIX:
        stats = record.temperature_stats()
        if stats is None:
            return '(empty)'
        return (f"{record.width}x{record.height} "
                f"min={stats['min']:.2f} max={stats['max']:.2f} mean={stats['mean']:.2f}")
    if kind == FieldKind.BYTES:
        preview = value[:16].hex(' ')
        return f"{preview}{' ...' if len(value) > 16 else ''}"
    if slot == 'version':
        return record.version_string
    if kind in (FieldKind.FLOAT32, FieldKind.FLOAT64):
        return f"{value:.6g}"
    if kind == FieldKind.CHAR_ARRAY:
        return repr(value)
    return str(value)


def _cmd_read(args) -> int:
    record = read(args.input)
    output = yaml.dump(record.to_dict(include_matrix=not args.no_matrix),
                       default_flow_style=None, sort_keys=False)
    if args.output:
        args.output.write_text(output)
        print(f"Decoded to {args.output}", file=sys.stderr)
    else:
        print(output, end='')
    return 0


def _cmd_dump(args) -> int:
    data = args.input.read_bytes()
    record = decode_buffer(data)
    start = locate_block(data)

    print(f"File: {args.input} ({len(data)} bytes)")
    print(f"Block: offset {start} (0x{start:X})")
    print()
    print(f"{'Offset':>10}  {'Bytes':>6}  {'Field':<24} Value")
    for offset, desc, count in field_layout(record, start):
        size = getattr(record, desc.size_from) if desc.size_from else desc.size
        print(f"{offset:>10}  {size * count:>6}  {desc.label:<24} "
              f"{_format_value(record, desc.kind, desc.slot)}")

    trailer = len(data) - TRAILER_BYTES
    print(f"{trailer:>10}  {4:>6}  {'Offset':<24} {start}")
    print(f"{trailer + 4:>10}  {len(SIGNATURE):>6}  {'Signature':<24} {SIGNATURE.hex(' ')}")
    return 0


def _cmd_append(args) -> int:
    record = MetadataRecord.from_dict(yaml.safe_load(args.record.read_text()) or {})
    append(args.input, record)
    print(f"Appended metadata to {args.input}", file=sys.stderr)
    return 0


def _cmd_probe(args) -> int:
    offset = probe(args.input)
    if offset is None:
        print(f"{args.input}: no SGJW trailer")
        return 1
    print(f"{args.input}: SGJW block at offset {offset} (0x{offset:X})")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description='SGJW thermal metadata trailer tool')
    parser.add_argument('-v', '--verbose', action='store_true',
                        help='Print per-field diagnostics to stderr')
    subparsers = parser.add_subparsers(dest='command', required=True)

    rd = subparsers.add_parser('read', help='Decode trailer to YAML')
    rd.add_argument('input', type=Path, help='Input JPEG file')
    rd.add_argument('-o', '--output', type=Path, help='Output YAML file')
    rd.add_argument('--no-matrix', action='store_true', help='Omit the temperature matrix')

    dmp = subparsers.add_parser('dump', help='Field-by-field layout of the trailer')
    dmp.add_argument('input', type=Path, help='Input JPEG file')

    app = subparsers.add_parser('append', help='Append a YAML record as trailer')
    app.add_argument('input', type=Path, help='JPEG file to append to')
    app.add_argument('record', type=Path, help='Record YAML file')

    prb = subparsers.add_parser('probe', help='Check for a trailer')
    prb.add_argument('input', type=Path, help='Input JPEG file')

    args = parser.parse_args(argv)

    if args.verbose or os.environ.get('SGJW_DEBUG', '') not in ('', '0'):
        logging.basicConfig(level=logging.DEBUG, format='%(message)s', stream=sys.stderr)

    commands = {
        'read': _cmd_read,
        'dump': _cmd_dump,
        'append': _cmd_append,
        'probe': _cmd_probe,
    }
    try:
        return commands[args.command](args)
    except SGJWError as e:
        print(f"Error: {e}", file=sys.stderr)
        return abs(e.code)
    except (OSError, ValueError, yaml.YAMLError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == '__main__':
    sys.exit(main())
