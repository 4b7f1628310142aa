import pathlib

import pytest

from pecoff import Image, parse_bytes
from pe_test_utils import build_sample_image


@pytest.fixture
def sample_image_bytes() -> bytes:
    """Bytes of the synthetic sample image (see pe_test_utils)."""
    return build_sample_image()


@pytest.fixture
def sample_image(sample_image_bytes: bytes) -> Image:
    """The sample image, decoded."""
    return parse_bytes(sample_image_bytes)


@pytest.fixture
def sample_image_path(sample_image_bytes: bytes, tmp_path: pathlib.Path) -> pathlib.Path:
    """The sample image written to a temporary .exe file."""
    path = tmp_path / "sample.exe"
    path.write_bytes(sample_image_bytes)
    return path


@pytest.fixture
def overlay_image_bytes() -> bytes:
    """Sample image with trailing data after the last section."""
    return build_sample_image(overlay=b"OVERLAY-SIGNATURE-BLOB" * 4)
