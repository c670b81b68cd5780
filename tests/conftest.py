"""
Pytest configuration and fixtures for the effects engine.

This module provides:
- Synthetic RGBA test images (solid, gradient, random)
- Encoded image bytes helpers
- Test client for the FastAPI app
"""

from io import BytesIO
from typing import Generator

import numpy as np
import pytest
from fastapi.testclient import TestClient
from PIL import Image

from imagestudio.main import app
from imagestudio.services.raster import RasterImage


def encode_png(image: RasterImage) -> bytes:
    buffer = BytesIO()
    image.to_pil().save(buffer, format="PNG")
    return buffer.getvalue()


# =============================================================================
# IMAGE FIXTURES
# =============================================================================


@pytest.fixture
def black_image() -> RasterImage:
    """100x100 opaque black image."""
    return RasterImage.blank(100, 100, (0, 0, 0, 255))


@pytest.fixture
def white_image() -> RasterImage:
    """100x100 opaque white image."""
    return RasterImage.blank(100, 100, (255, 255, 255, 255))


@pytest.fixture
def gradient_image() -> RasterImage:
    """64x48 image with distinct values per channel and a varying alpha."""
    h, w = 48, 64
    ys, xs = np.mgrid[0:h, 0:w]
    pixels = np.empty((h, w, 4), dtype=np.uint8)
    pixels[:, :, 0] = (xs * 4) % 256
    pixels[:, :, 1] = (ys * 5) % 256
    pixels[:, :, 2] = ((xs + ys) * 3) % 256
    pixels[:, :, 3] = 200 + (xs % 56)
    return RasterImage(pixels)


@pytest.fixture
def noisy_image() -> RasterImage:
    """40x30 image with seeded random pixels."""
    rng = np.random.default_rng(1234)
    pixels = rng.integers(0, 256, size=(30, 40, 4), dtype=np.uint8)
    return RasterImage(pixels)


@pytest.fixture
def png_bytes(gradient_image: RasterImage) -> bytes:
    return encode_png(gradient_image)


@pytest.fixture
def jpeg_bytes() -> bytes:
    buffer = BytesIO()
    Image.new("RGB", (32, 24), (200, 120, 40)).save(buffer, format="JPEG", quality=95)
    return buffer.getvalue()


# =============================================================================
# TEST CLIENT FIXTURES
# =============================================================================


@pytest.fixture
def client() -> Generator[TestClient, None, None]:
    """Create a synchronous test client for the FastAPI app."""
    with TestClient(app) as test_client:
        yield test_client
