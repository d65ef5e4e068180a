#!/usr/bin/env python3
"""
sgjw_record.py - The SGJW metadata record

One MetadataRecord per file. Every slot starts unset (None), is filled
field-by-field by the decoder or by the caller before encoding, and is
cleared by release().
"""

from dataclasses import dataclass, fields
from typing import Any, Dict, List, Optional


@dataclass
class MetadataRecord:
    """Thermal acquisition parameters carried in the SGJW trailer."""
    version: Optional[int] = None          # raw hex-coded value, e.g. 0x0101
    width: Optional[int] = None
    height: Optional[int] = None
    date: Optional[str] = None             # YYYYMMDDHHMMSS
    matrix: Optional[List[float]] = None   # row-major, Celsius
    emissivity: Optional[float] = None
    ambient_temp: Optional[float] = None
    fov: Optional[int] = None
    distance: Optional[int] = None
    humidity: Optional[int] = None
    reflective_temp: Optional[float] = None
    manufacturer: Optional[str] = None
    product: Optional[str] = None
    serial_number: Optional[str] = None
    longitude: Optional[float] = None
    latitude: Optional[float] = None
    altitude: Optional[int] = None
    appendix_length: Optional[int] = None
    appendix: Optional[bytes] = None

    def release(self) -> None:
        """Drop every field. Safe to call any number of times."""
        for f in fields(self):
            setattr(self, f.name, None)

    @property
    def is_empty(self) -> bool:
        return all(getattr(self, f.name) is None for f in fields(self))

    @property
    def version_string(self) -> Optional[str]:
        if self.version is None:
            return None
        return f"0x{self.version:04X}"

    def text(self, name: str, encoding: str = 'ascii') -> Optional[str]:
        """
        String field as readable text.

        Slots hold the raw bytes as latin-1 code points; this cuts at the
        first NUL and decodes with the camera's encoding (e.g. 'gbk').
        """
        value = getattr(self, name)
        if value is None:
            return None
        raw = value.encode('latin-1').split(b'\x00', 1)[0]
        return raw.decode(encoding, errors='replace')

    def matrix_rows(self) -> List[List[float]]:
        """Matrix as height rows of width values."""
        if not self.matrix or not self.width:
            return []
        w = self.width
        return [self.matrix[i:i + w] for i in range(0, len(self.matrix), w)]

    def temperature_stats(self) -> Optional[Dict[str, float]]:
        if not self.matrix:
            return None
        return {
            'min': min(self.matrix),
            'max': max(self.matrix),
            'mean': sum(self.matrix) / len(self.matrix),
        }

    def to_dict(self, include_matrix: bool = True) -> Dict[str, Any]:
        """
        Plain-data form for YAML/JSON output.

        version is written as a hex string, the matrix as a list of rows
        and the appendix as a hex string.
        """
        out: Dict[str, Any] = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if f.name == 'version':
                value = self.version_string
            elif f.name == 'matrix':
                if not include_matrix:
                    continue
                value = self.matrix_rows() if value is not None else None
            elif f.name == 'appendix' and value is not None:
                value = value.hex()
            out[f.name] = value
        return out

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'MetadataRecord':
        """
        Build a record from to_dict() output or hand-written YAML.

        Accepts version as int or hex string ('0x0101' or '0101'), the
        matrix flat or as rows,
        and the appendix as bytes, a hex string, or plain text under
        'appendix_text'. A missing appendix_length is taken from the
        appendix.
        """
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known - {'appendix_text'}
        if unknown:
            raise ValueError(f"Unknown record fields: {', '.join(sorted(unknown))}")

        values = {k: v for k, v in data.items() if k in known}

        version = values.get('version')
        if isinstance(version, str):
            values['version'] = int(version, 16)

        matrix = values.get('matrix')
        if matrix is not None:
            flat: List[float] = []
            for item in matrix:
                if isinstance(item, (list, tuple)):
                    flat.extend(float(v) for v in item)
                else:
                    flat.append(float(item))
            values['matrix'] = flat

        appendix = values.get('appendix')
        if 'appendix_text' in data and data['appendix_text'] is not None:
            appendix = str(data['appendix_text']).encode('ascii')
        elif isinstance(appendix, str):
            appendix = bytes.fromhex(appendix)
        values['appendix'] = appendix

        if values.get('appendix_length') is None:
            values['appendix_length'] = len(appendix) if appendix else 0

        for name in ('date', 'manufacturer', 'product', 'serial_number'):
            if values.get(name) is not None:
                values[name] = str(values[name])

        return cls(**values)
