import io
from collections.abc import Callable
from pathlib import Path

import pytest
from PIL import Image, ImageDraw

from textlens.storage.image_store import ImageStore


def make_image_bytes(
    size: tuple[int, int] = (320, 200),
    fmt: str = "PNG",
    text: str | None = "Hello Scan",
    mode: str = "RGB",
) -> bytes:
    """Encode a small synthetic image, optionally with text drawn on it."""
    img = Image.new(mode, size, "white" if mode in ("RGB", "L") else (255, 255, 255, 0))
    if text:
        ImageDraw.Draw(img).text((10, 10), text, fill="black")
    buf = io.BytesIO()
    img.save(buf, format=fmt)
    return buf.getvalue()


@pytest.fixture()
def png_bytes() -> bytes:
    return make_image_bytes(fmt="PNG")


@pytest.fixture()
def jpeg_bytes() -> bytes:
    return make_image_bytes(fmt="JPEG")


@pytest.fixture()
def large_png_bytes() -> bytes:
    """A 4000x1000 image that must be downscaled."""
    return make_image_bytes(size=(4000, 1000), fmt="PNG")


@pytest.fixture()
def image_store(tmp_path: Path) -> ImageStore:
    return ImageStore(tmp_path / "uploads")


@pytest.fixture()
def make_image() -> Callable[..., bytes]:
    """Factory fixture around make_image_bytes for tests needing custom images."""
    return make_image_bytes
