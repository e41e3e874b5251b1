import base64
import binascii
import re
import uuid
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path

from textlens.aggregation.models import AggregatedText
from textlens.assembly.models import Artifact
from textlens.processor.exceptions import ErrorCategory, InvalidInputError
from textlens.records.models import CompletedRecord, ProcessingRecord
from textlens.storage.image_store import StoredImage

_DATA_URL_PREFIX = re.compile(r"^data:image/[\w.+-]+;base64,", re.IGNORECASE)
_IMAGE_SUFFIXES = frozenset({".jpg", ".jpeg", ".png", ".webp", ".tif", ".tiff", ".bmp"})


@dataclass(frozen=True)
class ImageInput:
    """One decoded image as received from the invoking boundary."""

    data: bytes
    name: str = "upload.jpg"

    @classmethod
    def from_base64(cls, payload: str, name: str = "upload.jpg") -> "ImageInput":
        """Decode raw base64 or a ``data:image/...;base64,`` URL.

        Raises:
            InvalidInputError: if the payload is not valid base64.
        """
        body = _DATA_URL_PREFIX.sub("", payload.strip(), count=1)
        try:
            data = base64.b64decode(body, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise InvalidInputError("Image data is not valid base64") from exc
        return cls(data=data, name=name)

    @property
    def suffix(self) -> str:
        suffix = Path(self.name).suffix.lower()
        return suffix if suffix in _IMAGE_SUFFIXES else ".jpg"


def default_title(today: date | None = None) -> str:
    return f"Scan_{(today or date.today()).isoformat()}"


@dataclass(frozen=True)
class ScanRequest:
    """An ingestion request: one image, or an ordered batch of pages."""

    images: tuple[ImageInput, ...]
    title: str = field(default_factory=default_title)
    language: str = "eng"
    owner_id: str | None = None

    @property
    def is_batch(self) -> bool:
        return len(self.images) > 1


@dataclass(frozen=True)
class PipelineSuccess:
    record: CompletedRecord
    aggregated: AggregatedText
    artifact: Artifact


@dataclass(frozen=True)
class PipelineFailure:
    category: ErrorCategory
    message: str
    detail: str = ""
    document_id: uuid.UUID | None = None


PipelineOutcome = PipelineSuccess | PipelineFailure


@dataclass(slots=True)
class PipelineContext:
    """Mutable state of one run, used for error translation and cleanup."""

    request: ScanRequest
    record: ProcessingRecord | None = None
    completed: CompletedRecord | None = None
    stored_images: list[StoredImage] = field(default_factory=list)
    artifact: Artifact | None = None
    started_at: float = 0.0
