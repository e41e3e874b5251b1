"""Multi-page recognition with per-page failure tolerance.

Collecting page outcomes and merging them are separate steps: ``collect``
absorbs per-page recognition failures, ``merge_pages`` never short-circuits.
"""

import math
from collections.abc import Awaitable, Callable, Sequence

from textlens.aggregation.models import AggregatedText, PageOutcome
from textlens.logging.logger import Log
from textlens.recognition.exceptions import NoTextDetectedError, RecognitionError
from textlens.recognition.models import PageResult
from textlens.storage.image_store import StoredImage

PageReader = Callable[[StoredImage], Awaitable[PageResult]]


def page_header(ordinal: int) -> str:
    return f"Page {ordinal}"


class PageAggregator:
    """Runs recognition over a batch of images in submission order."""

    async def collect(
        self,
        images: Sequence[StoredImage],
        read_page: PageReader,
    ) -> list[PageOutcome]:
        """Read every page sequentially.

        A RecognitionError (including NoTextDetectedError) on one page is
        recorded and the batch continues. Any other exception aborts the batch.
        """
        outcomes: list[PageOutcome] = []
        for ordinal, image in enumerate(images, start=1):
            try:
                result = await read_page(image)
            except RecognitionError as exc:
                Log.warning(
                    f"Page {ordinal}/{len(images)} failed recognition: {exc.reason}"
                )
                outcomes.append(PageOutcome(ordinal=ordinal, image=image, error=exc))
                continue
            outcomes.append(PageOutcome(ordinal=ordinal, image=image, result=result))
        return outcomes

    async def aggregate(
        self,
        images: Sequence[StoredImage],
        read_page: PageReader,
    ) -> AggregatedText:
        return merge_pages(await self.collect(images, read_page))


def merge_pages(outcomes: Sequence[PageOutcome]) -> AggregatedText:
    """Merge page outcomes into one document, keeping their order."""
    if not outcomes:
        raise ValueError("Cannot merge an empty batch")
    pages = tuple(outcome.as_page_result() for outcome in outcomes)
    sections = []
    for ordinal, page in enumerate(pages, start=1):
        header = page_header(ordinal)
        sections.append(f"{header}\n{page.text}" if page.text else header)
    total_confidence = sum(page.confidence for page in pages)
    return AggregatedText(
        combined_text="\n\n".join(sections),
        total_word_count=sum(page.word_count for page in pages),
        average_confidence=math.floor(total_confidence / len(pages) + 0.5),
        page_count=len(pages),
        pages=pages,
        failed_pages=tuple(o.ordinal for o in outcomes if o.failed),
        blank_pages=tuple(
            o.ordinal for o in outcomes if isinstance(o.error, NoTextDetectedError)
        ),
        processing_time_ms=sum(page.processing_time_ms for page in pages),
    )
