"""
pytest configuration and fixtures for SGJW trailer tests.

Provides reusable fixtures for:
- Sample metadata records (float32-exact values so round trips compare equal)
- Minimal host JPEG bytes and files
- Hypothesis property-based testing configuration
"""

import pytest
import sys
from pathlib import Path

# Add project paths
sys.path.insert(0, str(Path(__file__).parent.parent / "tools"))

from sgjw_record import MetadataRecord

# Configure Hypothesis profiles
try:
    from hypothesis import settings

    # Default profile: balanced speed and coverage
    settings.register_profile(
        "default",
        max_examples=100,
        deadline=None,  # Disable deadline for slow interpreters
    )

    # Dev profile: fast iteration
    settings.register_profile(
        "dev",
        max_examples=10,
        deadline=None,
    )

    # Load profile from environment
    import os
    profile = os.environ.get("HYPOTHESIS_PROFILE", "default")
    settings.load_profile(profile)

except ImportError:
    pass  # Hypothesis not installed


# Smallest byte sequence that looks like a JPEG (SOI, APP0 stub, EOI)
JPEG_STUB = bytes([0xFF, 0xD8, 0xFF, 0xE0, 0x00, 0x10]) + b'JFIF\x00' + bytes(11) + bytes([0xFF, 0xD9])


@pytest.fixture
def jpeg_bytes():
    return JPEG_STUB


@pytest.fixture
def jpeg_file(tmp_path):
    """A plain JPEG on disk with no trailer."""
    path = tmp_path / "plain.jpg"
    path.write_bytes(JPEG_STUB)
    return path


@pytest.fixture
def sample_record():
    """2x3 record with an appendix."""
    appendix = b'substation 7, bay 3'
    return MetadataRecord(
        version=0x0101,
        width=2,
        height=3,
        date='20240315093000',
        matrix=[20.5, 21.25, 22.0, 35.75, 36.5, -4.125],
        emissivity=0.875,
        ambient_temp=25.5,
        fov=56,
        distance=1500,
        humidity=65,
        reflective_temp=23.25,
        manufacturer='Acme Thermal',
        product='TX-160',
        serial_number='SN0001234',
        longitude=116.397128,
        latitude=39.916527,
        altitude=44,
        appendix_length=len(appendix),
        appendix=appendix,
    )


@pytest.fixture
def bare_record(sample_record):
    """Same record without an appendix."""
    sample_record.appendix_length = 0
    sample_record.appendix = None
    return sample_record


# Markers for test categorization
def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
