from dataclasses import dataclass

from textlens.recognition.exceptions import RecognitionError
from textlens.recognition.models import PageResult
from textlens.storage.image_store import StoredImage


@dataclass(frozen=True)
class PageOutcome:
    """Result of attempting one page of a batch: a PageResult or the error that replaced it."""

    ordinal: int
    image: StoredImage
    result: PageResult | None = None
    error: RecognitionError | None = None

    def __post_init__(self) -> None:
        if (self.result is None) == (self.error is None):
            raise ValueError("PageOutcome needs exactly one of result or error")

    @property
    def failed(self) -> bool:
        return self.error is not None

    def as_page_result(self) -> PageResult:
        """The page as it enters aggregation; a failed page scores zero everywhere."""
        if self.result is not None:
            return self.result
        return PageResult(
            text="",
            confidence=0,
            word_count=0,
            processing_time_ms=0,
            source_image=self.image,
        )


@dataclass(frozen=True)
class AggregatedText:
    """Text of one logical document merged from its pages."""

    combined_text: str
    total_word_count: int
    average_confidence: int
    page_count: int
    pages: tuple[PageResult, ...]
    failed_pages: tuple[int, ...] = ()
    blank_pages: tuple[int, ...] = ()
    processing_time_ms: int = 0

    @classmethod
    def from_single(cls, page: PageResult) -> "AggregatedText":
        """Single-image documents keep the page text as-is, without page markers."""
        return cls(
            combined_text=page.text,
            total_word_count=page.word_count,
            average_confidence=page.confidence,
            page_count=1,
            pages=(page,),
            processing_time_ms=page.processing_time_ms,
        )

    @property
    def all_pages_failed(self) -> bool:
        return len(self.failed_pages) == self.page_count
