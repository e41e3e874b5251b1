from dataclasses import dataclass
from enum import StrEnum

from textlens.storage.image_store import StoredImage


class ConfidencePolicy(StrEnum):
    """Where a page's confidence value comes from."""

    NOMINAL = "nominal"  # fixed configured value for every page
    PROVIDER = "provider"  # value reported by the recognition provider


@dataclass(frozen=True)
class RecognitionResponse:
    """Raw provider output for one image."""

    text: str
    confidence: float | None = None


@dataclass(frozen=True)
class PageResult:
    """Extraction outcome for a single image."""

    text: str
    confidence: int
    word_count: int
    processing_time_ms: int
    source_image: StoredImage
    confidence_policy: ConfidencePolicy = ConfidencePolicy.NOMINAL

    def __post_init__(self) -> None:
        if not 0 <= self.confidence <= 100:
            raise ValueError(f"confidence must be within 0-100, got {self.confidence}")
        if self.word_count < 0:
            raise ValueError("word_count must be non-negative")
        if self.processing_time_ms < 0:
            raise ValueError("processing_time_ms must be non-negative")


def count_words(text: str) -> int:
    """Number of non-empty tokens separated by runs of whitespace."""
    return len(text.split())
