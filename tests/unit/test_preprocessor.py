import io
from collections.abc import Callable

import pytest
from PIL import Image

from textlens.imaging.exceptions import PreprocessError
from textlens.imaging.preprocessor import ImagePreprocessor
from textlens.storage.image_store import ImageStore


class TestNormalize:
    def test_produces_new_jpeg_and_keeps_original(
        self, image_store: ImageStore, png_bytes: bytes
    ) -> None:
        with image_store.scope() as scope:
            original = scope.save(png_bytes, ".png")
            derived = ImagePreprocessor().normalize(original, scope)

            assert derived.path != original.path
            assert original.path.read_bytes() == png_bytes
            with Image.open(derived.path) as img:
                assert img.format == "JPEG"
                assert img.mode == "RGB"
            assert derived.path in {image.path for image in scope.images}

    def test_downscales_longest_side(
        self, image_store: ImageStore, large_png_bytes: bytes
    ) -> None:
        with image_store.scope() as scope:
            original = scope.save(large_png_bytes, ".png")
            derived = ImagePreprocessor(max_dimension=2000).normalize(original, scope)

            assert (derived.width, derived.height) == (2000, 500)
            with Image.open(derived.path) as img:
                assert img.size == (2000, 500)

    def test_small_image_is_not_upscaled(
        self, image_store: ImageStore, png_bytes: bytes
    ) -> None:
        with image_store.scope() as scope:
            derived = ImagePreprocessor().normalize(scope.save(png_bytes), scope)
            assert (derived.width, derived.height) == (320, 200)

    def test_converts_transparent_png_to_rgb(
        self, image_store: ImageStore, make_image: Callable[..., bytes]
    ) -> None:
        raw = make_image(fmt="PNG", mode="RGBA")
        with image_store.scope() as scope:
            derived = ImagePreprocessor().normalize(scope.save(raw, ".png"), scope)
            with Image.open(derived.path) as img:
                assert img.mode == "RGB"

    def test_applies_exif_orientation(self, image_store: ImageStore) -> None:
        img = Image.new("RGB", (300, 100), "white")
        exif = Image.Exif()
        exif[0x0112] = 6  # rotate 90 CW on display
        buf = io.BytesIO()
        img.save(buf, format="JPEG", exif=exif)

        with image_store.scope() as scope:
            derived = ImagePreprocessor().normalize(scope.save(buf.getvalue()), scope)
            assert (derived.width, derived.height) == (100, 300)

    @pytest.mark.parametrize("fmt", ["JPEG", "PNG", "WEBP", "TIFF", "BMP"])
    def test_accepts_supported_formats(
        self, image_store: ImageStore, make_image: Callable[..., bytes], fmt: str
    ) -> None:
        with image_store.scope() as scope:
            derived = ImagePreprocessor().normalize(scope.save(make_image(fmt=fmt)), scope)
            assert derived.size_bytes > 0

    def test_rejects_unsupported_format(
        self, image_store: ImageStore, make_image: Callable[..., bytes]
    ) -> None:
        with image_store.scope() as scope:
            original = scope.save(make_image(fmt="GIF", mode="L"), ".gif")
            with pytest.raises(PreprocessError, match="Unsupported image format: GIF"):
                ImagePreprocessor().normalize(original, scope)

    def test_rejects_non_image_bytes(self, image_store: ImageStore) -> None:
        with image_store.scope() as scope:
            original = scope.save(b"%PDF-1.4 not an image")
            with pytest.raises(PreprocessError, match="not a recognizable image"):
                ImagePreprocessor().normalize(original, scope)
            assert len(scope.images) == 1

    def test_rejects_truncated_image(
        self, image_store: ImageStore, jpeg_bytes: bytes
    ) -> None:
        with image_store.scope() as scope:
            original = scope.save(jpeg_bytes[: len(jpeg_bytes) // 2])
            with pytest.raises(PreprocessError):
                ImagePreprocessor().normalize(original, scope)


class TestConstructor:
    def test_rejects_non_positive_dimension(self) -> None:
        with pytest.raises(ValueError, match="max_dimension"):
            ImagePreprocessor(max_dimension=0)
