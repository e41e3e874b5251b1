import io
from typing import Protocol

from PIL import Image, ImageOps, UnidentifiedImageError

from textlens.imaging.exceptions import PreprocessError
from textlens.logging.logger import Log
from textlens.storage.image_store import StoredImage

SUPPORTED_FORMATS = frozenset({"JPEG", "MPO", "PNG", "WEBP", "TIFF", "BMP"})


class ImageSink(Protocol):
    def save(self, raw_bytes: bytes, suffix: str = ".jpg") -> StoredImage: ...


class ImagePreprocessor:
    """Downscales and re-encodes images to keep recognition payloads bounded."""

    def __init__(self, max_dimension: int = 2000, jpeg_quality: int = 85) -> None:
        if max_dimension <= 0:
            raise ValueError("max_dimension must be positive")
        self._max_dimension = max_dimension
        self._jpeg_quality = max(1, min(95, jpeg_quality))

    def normalize(self, image: StoredImage, sink: ImageSink) -> StoredImage:
        """Produce a new JPEG derived from ``image`` and write it through ``sink``.

        The source file is left untouched.

        Raises:
            PreprocessError: if the file is not a supported image or cannot be encoded.
            ImageStoreError: if the source cannot be read or the result cannot be stored.
        """
        raw = image.read_bytes()
        encoded, width, height = self._encode(raw)
        derived = sink.save(encoded, ".jpg")
        Log.debug(
            "Normalized image",
            source=image.name,
            derived=derived.name,
            width=width,
            height=height,
            size_bytes=derived.size_bytes,
        )
        return StoredImage(
            path=derived.path,
            size_bytes=derived.size_bytes,
            width=width,
            height=height,
        )

    def _encode(self, raw: bytes) -> tuple[bytes, int, int]:
        try:
            with Image.open(io.BytesIO(raw)) as img:
                if img.format not in SUPPORTED_FORMATS:
                    raise PreprocessError(f"Unsupported image format: {img.format}")
                oriented = ImageOps.exif_transpose(img)
                rgb = oriented.convert("RGB")
                rgb.thumbnail(
                    (self._max_dimension, self._max_dimension),
                    Image.Resampling.LANCZOS,
                )
                buf = io.BytesIO()
                rgb.save(buf, format="JPEG", quality=self._jpeg_quality, optimize=True)
                return buf.getvalue(), rgb.width, rgb.height
        except PreprocessError:
            raise
        except UnidentifiedImageError as exc:
            raise PreprocessError("File is not a recognizable image") from exc
        except (OSError, ValueError, Image.DecompressionBombError) as exc:
            raise PreprocessError(f"Image normalization failed: {exc}") from exc
