"""
test_hypothesis.py - Property-based testing with Hypothesis

Covers the properties the trailer format must hold for any input:
- Round trip: decode(encode(R)) == R field-by-field
- Decoder safety: arbitrary or truncated bytes fail with an SGJWError,
  never an unhandled exception
- Signature rejection: any single-bit change in the signature is detected
- Release idempotence

Run with:
    pytest tests/test_hypothesis.py -v
    pytest tests/test_hypothesis.py -v --hypothesis-show-statistics
"""

import struct

import pytest
from hypothesis import given, settings, assume, HealthCheck
from hypothesis import strategies as st

from sgjw_engine import decode_buffer, decode_record, encode_record
from sgjw_errors import FieldDecodeFailed, InvalidSignature, SGJWError
from sgjw_fields import fixed_block_size
from sgjw_record import MetadataRecord
from sgjw_trailer import SIGNATURE


# =============================================================================
# Strategies for generating test data
# =============================================================================

u8_values = st.integers(min_value=0, max_value=255)
u16_values = st.integers(min_value=0, max_value=65535)
u32_values = st.integers(min_value=0, max_value=2**32 - 1)

# Values exactly representable as float32, so round trips compare equal
float32_values = st.floats(width=32, allow_nan=False)
float64_values = st.floats(allow_nan=False)


def latin1_text(max_size):
    # Any byte but NUL; string slots carry raw bytes as latin-1 code points
    return st.text(
        alphabet=st.characters(min_codepoint=1, max_codepoint=255),
        max_size=max_size,
    )


@st.composite
def records(draw):
    width = draw(st.integers(min_value=0, max_value=6))
    height = draw(st.integers(min_value=0, max_value=6))
    appendix = draw(st.binary(max_size=64))
    return MetadataRecord(
        version=draw(u16_values),
        width=width,
        height=height,
        date=draw(latin1_text(14)),
        matrix=draw(st.lists(float32_values, min_size=width * height,
                             max_size=width * height)),
        emissivity=draw(float32_values),
        ambient_temp=draw(float32_values),
        fov=draw(u8_values),
        distance=draw(u32_values),
        humidity=draw(u8_values),
        reflective_temp=draw(float32_values),
        manufacturer=draw(latin1_text(32)),
        product=draw(latin1_text(32)),
        serial_number=draw(latin1_text(32)),
        longitude=draw(float64_values),
        latitude=draw(float64_values),
        altitude=draw(u32_values),
        appendix_length=len(appendix),
        appendix=appendix or None,
    )


host_bytes = st.binary(min_size=1, max_size=64)


# =============================================================================
# Property Tests: Roundtrip
# =============================================================================

class TestRoundtrip:
    """decode(encode(R)) reproduces R exactly."""

    @given(records(), host_bytes)
    @settings(max_examples=300)
    def test_roundtrip(self, record, host):
        buf = host + encode_record(record, len(host))
        assert decode_buffer(buf) == record

    @given(records())
    @settings(max_examples=200)
    def test_reencode_is_identical(self, record):
        encoded = encode_record(record, 1)
        assert encode_record(decode_record(encoded, 0), 1) == encoded

    @given(records())
    @settings(max_examples=200)
    def test_encoded_size(self, record):
        expected = (fixed_block_size() + 4 * record.width * record.height
                    + record.appendix_length + 20)
        assert len(encode_record(record, 1)) == expected


# =============================================================================
# Property Tests: Decoder Safety
# =============================================================================

class TestDecoderSafety:
    """The decoder never crashes and never returns a partial record."""

    @given(st.binary(min_size=0, max_size=512))
    @settings(max_examples=1000, suppress_health_check=[HealthCheck.too_slow])
    def test_random_bytes(self, data):
        try:
            decode_buffer(data)
        except SGJWError:
            pass

    @given(st.binary(max_size=300), u32_values)
    @settings(max_examples=500)
    def test_random_block_with_valid_trailer(self, block, offset):
        data = block + struct.pack('<I', offset) + SIGNATURE
        try:
            record = decode_buffer(data)
        except SGJWError:
            return
        assert record.matrix is not None
        assert len(record.matrix) == record.width * record.height

    @given(records(), st.data())
    @settings(max_examples=300)
    def test_truncated(self, record, data):
        block = encode_record(record, 1)[:-20]
        cut = data.draw(st.integers(min_value=0, max_value=len(block) - 1))
        with pytest.raises(FieldDecodeFailed):
            decode_record(block[:cut], 0)


# =============================================================================
# Property Tests: Signature
# =============================================================================

class TestSignature:

    @given(records(), st.integers(min_value=0, max_value=16 * 8 - 1))
    @settings(max_examples=300)
    def test_bit_flip_rejected(self, record, bit):
        buf = bytearray(b'\xFF\xD8' + encode_record(record, 2))
        buf[len(buf) - 16 + bit // 8] ^= 1 << (bit % 8)
        with pytest.raises(InvalidSignature):
            decode_buffer(bytes(buf))

    @given(st.binary(min_size=16, max_size=128))
    def test_foreign_tail_rejected(self, data):
        assume(data[-16:] != SIGNATURE)
        with pytest.raises(InvalidSignature):
            decode_buffer(data)


# =============================================================================
# Property Tests: Lifecycle
# =============================================================================

class TestRelease:

    @given(records(), st.integers(min_value=1, max_value=4))
    def test_release_idempotent(self, record, times):
        for _ in range(times):
            record.release()
        assert record == MetadataRecord()
