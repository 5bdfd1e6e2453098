"""
Test configuration and fixtures for JewelTone tests.
"""
import pytest
from fastapi.testclient import TestClient

from main import app
from jeweltone.utils.metrics import reset_metrics as _reset_metrics

from synthetic import (
    GOLD_SWATCH, gray_image, half_swatch_image, png_bytes, solid_image,
)


@pytest.fixture
def test_client():
    """Create test client for the FastAPI app."""
    return TestClient(app)


@pytest.fixture(autouse=True)
def reset_metrics():
    """Reset metrics before each test."""
    _reset_metrics()


@pytest.fixture
def swatch_pixels():
    """16x16 solid yellow gold swatch."""
    return solid_image(GOLD_SWATCH)


@pytest.fixture
def swatch_png(swatch_pixels):
    """PNG bytes of the yellow gold swatch."""
    return png_bytes(swatch_pixels)


@pytest.fixture
def gray_png():
    """PNG bytes of a neutral gray image with no metal."""
    return png_bytes(gray_image())


@pytest.fixture
def half_swatch_pixels():
    """Gold swatch on the top half, gray on the bottom half."""
    return half_swatch_image()
