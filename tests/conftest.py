"""Shared fixtures for HEIC conversion service tests."""

import io
import os

# Settings are read once and cached, so they must be in place before any
# application module is imported.
os.environ.setdefault("ENVIRONMENT", "development")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("ERROR_WEBHOOK_ENABLED", "false")

import pytest
import pillow_heif
from PIL import Image

from src.heicserver.models.upload import UploadedFile
from src.heicserver.services.stats_service import ConversionStats, get_conversion_stats

pillow_heif.register_heif_opener()


class TestImageFactory:
    """Factory for creating test images."""

    @staticmethod
    def create_heic_image(width=64, height=48, color=(200, 30, 30), mode="RGB", quality=90):
        """Create a real HEIC image with the pillow-heif encoder."""
        if mode == "RGBA":
            color = color + (128,) if len(color) == 3 else color
        img = Image.new(mode, (width, height), color=color)
        img_buffer = io.BytesIO()
        img.save(img_buffer, format="HEIF", quality=quality)
        return img_buffer.getvalue()

    @staticmethod
    def create_jpeg_image(width=64, height=48, color=(0, 0, 255), quality=95, exif=None):
        """Create a test JPEG image."""
        img = Image.new("RGB", (width, height), color=color)
        img_buffer = io.BytesIO()
        if exif is not None:
            img.save(img_buffer, format="JPEG", quality=quality, exif=exif)
        else:
            img.save(img_buffer, format="JPEG", quality=quality)
        return img_buffer.getvalue()

    @staticmethod
    def create_png_image(width=64, height=48, color=(0, 128, 0)):
        """Create a test PNG image."""
        img = Image.new("RGB", (width, height), color=color)
        img_buffer = io.BytesIO()
        img.save(img_buffer, format="PNG")
        return img_buffer.getvalue()


@pytest.fixture
def image_factory():
    """Provide image factory for tests."""
    return TestImageFactory


@pytest.fixture(scope="session")
def heic_bytes():
    """A small real HEIC image."""
    return TestImageFactory.create_heic_image()


@pytest.fixture(scope="session")
def jpeg_bytes():
    """A small JPEG image."""
    return TestImageFactory.create_jpeg_image()


@pytest.fixture(scope="session")
def png_bytes():
    """A small PNG image."""
    return TestImageFactory.create_png_image()


@pytest.fixture
def make_upload():
    """Build UploadedFile records with sensible defaults."""

    def _make(buffer=b"data", originalname="photo.heic", mimetype="image/heic", fieldname="file", size=None):
        return UploadedFile(
            buffer=buffer,
            originalname=originalname,
            mimetype=mimetype,
            size=len(buffer) if size is None else size,
            fieldname=fieldname,
            encoding="7bit",
        )

    return _make


@pytest.fixture
def heic_upload_file(make_upload, heic_bytes):
    """A real HEIC upload record."""
    return make_upload(buffer=heic_bytes, originalname="IMG_0001.HEIC", mimetype="image/heic")


@pytest.fixture
def stats():
    """A fresh statistics accumulator."""
    return ConversionStats()


@pytest.fixture
def reset_global_stats():
    """Reset the application-wide statistics around a test."""
    get_conversion_stats().reset()
    yield get_conversion_stats()
    get_conversion_stats().reset()
