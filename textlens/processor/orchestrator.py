import asyncio
import time
import uuid

from textlens.aggregation.aggregator import PageAggregator
from textlens.aggregation.models import AggregatedText
from textlens.assembly.assembler import DocumentAssembler
from textlens.assembly.factory import AssemblerFactory
from textlens.config.settings import Settings
from textlens.database.repositories.documents_repository import DocumentsRepository
from textlens.imaging.preprocessor import ImagePreprocessor
from textlens.logging.logger import Log
from textlens.processor.exceptions import (
    USER_MESSAGES,
    ErrorCategory,
    InvalidInputError,
    categorize,
)
from textlens.processor.models import (
    PipelineContext,
    PipelineFailure,
    PipelineOutcome,
    PipelineSuccess,
    ScanRequest,
)
from textlens.recognition.exceptions import NoTextDetectedError, RecognitionError
from textlens.recognition.factory import RecognitionClientFactory
from textlens.recognition.models import PageResult
from textlens.recognition.recognizer import Recognizer
from textlens.records.manager import DocumentRecordManager
from textlens.records.models import ProcessingMetadata
from textlens.storage.image_store import ImageScope, ImageStore, StoredImage


class PipelineOrchestrator:
    """Drives one scan request from raw images to a completed or failed record.

    Pipeline: validate -> begin record -> store images -> preprocess + recognize
    (one page, or every page of a batch) -> assemble PDF -> complete record.
    Temporary images live in an ImageScope that is released on every exit path.
    """

    def __init__(
        self,
        *,
        image_store: ImageStore,
        preprocessor: ImagePreprocessor,
        recognizer: Recognizer,
        aggregator: PageAggregator,
        assembler: DocumentAssembler,
        records: DocumentRecordManager,
        max_upload_bytes: int = 20 * 1024 * 1024,
        max_batch_images: int = 20,
    ) -> None:
        self._image_store = image_store
        self._preprocessor = preprocessor
        self._recognizer = recognizer
        self._aggregator = aggregator
        self._assembler = assembler
        self._records = records
        self._max_upload_bytes = max_upload_bytes
        self._max_batch_images = max_batch_images

    async def process(self, request: ScanRequest) -> PipelineOutcome:
        """Run the full pipeline for one request.

        Failures are returned as PipelineFailure. Cancellation marks the record
        failed, cleans up, and propagates.
        """
        try:
            self._validate(request)
        except InvalidInputError as exc:
            Log.warning(f"Rejected scan request: {exc}")
            return PipelineFailure(
                category=ErrorCategory.INVALID_INPUT,
                message=str(exc),
                detail=str(exc),
            )

        context = PipelineContext(request=request, started_at=time.perf_counter())
        try:
            with self._image_store.scope() as images:
                return await self._run(context, images)
        except asyncio.CancelledError:
            Log.warning("Scan run cancelled", document_id=_document_id(context))
            self._abort(context, ErrorCategory.CANCELLED, "Run cancelled by caller")
            raise
        except Exception as exc:
            category = categorize(exc)
            if category is ErrorCategory.INTERNAL_ERROR:
                Log.exception("Unexpected pipeline error", document_id=_document_id(context))
            else:
                Log.warning(f"Pipeline aborted: {exc}", category=category)
            self._abort(context, category, str(exc))
            return PipelineFailure(
                category=category,
                message=USER_MESSAGES[category],
                detail=str(exc),
                document_id=_document_id(context),
            )

    async def aclose(self) -> None:
        """Release network clients held by the recognition provider."""
        await self._recognizer.aclose()

    async def _run(self, context: PipelineContext, images: ImageScope) -> PipelineSuccess:
        request = context.request
        Log.info(
            f"Processing scan '{request.title}' with {len(request.images)} image(s)",
            language=request.language,
        )
        context.record = self._records.begin(
            title=request.title,
            owner_id=request.owner_id,
            language=request.language,
            source_refs=[image.name for image in request.images],
        )
        context.stored_images = [images.save(image.data, image.suffix) for image in request.images]

        async def read_page(image: StoredImage) -> PageResult:
            derived = self._preprocessor.normalize(image, images)
            return await self._recognizer.extract(derived, request.language)

        source_image: StoredImage | None = None
        if request.is_batch:
            aggregated = await self._aggregator.aggregate(context.stored_images, read_page)
            _raise_if_nothing_recognized(aggregated)
        else:
            page = await read_page(context.stored_images[0])
            aggregated = AggregatedText.from_single(page)
            source_image = page.source_image

        context.artifact = await self._assembler.assemble(
            aggregated.combined_text, request.title, source_image
        )
        context.completed = self._records.complete(
            context.record,
            aggregated,
            context.artifact,
            self._metadata(context, aggregated, source_image),
        )
        Log.info(
            "Document processed",
            document_id=context.completed.id,
            pages=aggregated.page_count,
            words=aggregated.total_word_count,
        )
        return PipelineSuccess(
            record=context.completed,
            aggregated=aggregated,
            artifact=context.artifact,
        )

    def _validate(self, request: ScanRequest) -> None:
        if not request.images:
            raise InvalidInputError("No image provided")
        if len(request.images) > self._max_batch_images:
            raise InvalidInputError(
                f"Too many images: {len(request.images)} (max {self._max_batch_images})"
            )
        for ordinal, image in enumerate(request.images, start=1):
            if not image.data:
                raise InvalidInputError(f"Image {ordinal} is empty")
            if len(image.data) > self._max_upload_bytes:
                limit_mb = self._max_upload_bytes / (1024 * 1024)
                raise InvalidInputError(f"Image {ordinal} exceeds the {limit_mb:g} MB limit")
        if not request.title.strip():
            raise InvalidInputError("Title must not be empty")

    def _metadata(
        self,
        context: PipelineContext,
        aggregated: AggregatedText,
        source_image: StoredImage | None,
    ) -> ProcessingMetadata:
        return ProcessingMetadata(
            original_size_bytes=sum(image.size_bytes for image in context.stored_images),
            processing_time_ms=aggregated.processing_time_ms,
            pipeline_time_ms=int((time.perf_counter() - context.started_at) * 1000),
            image_width=source_image.width if source_image is not None else None,
            image_height=source_image.height if source_image is not None else None,
            confidence_policy=self._recognizer.confidence_policy.value,
            failed_pages=aggregated.failed_pages,
        )

    def _abort(self, context: PipelineContext, category: ErrorCategory, message: str) -> None:
        if context.completed is not None:
            return
        if context.artifact is not None:
            self._assembler.discard(context.artifact)
            context.artifact = None
        if context.record is None:
            return
        try:
            self._records.fail(context.record, category=category.value, message=message)
        except Exception:
            Log.exception("Failed to mark document as failed", document_id=context.record.id)


def _raise_if_nothing_recognized(aggregated: AggregatedText) -> None:
    if not aggregated.all_pages_failed:
        return
    if len(aggregated.blank_pages) == aggregated.page_count:
        raise NoTextDetectedError(f"No text detected on any of {aggregated.page_count} pages")
    raise RecognitionError(f"Recognition failed on all {aggregated.page_count} pages")


def _document_id(context: PipelineContext) -> uuid.UUID | None:
    return context.record.id if context.record is not None else None


def build_orchestrator(settings: Settings) -> PipelineOrchestrator:
    """Build a PipelineOrchestrator with all required adapters."""
    return PipelineOrchestrator(
        image_store=ImageStore(settings.image_store_dir),
        preprocessor=ImagePreprocessor(
            max_dimension=settings.preprocess_max_dimension,
            jpeg_quality=settings.preprocess_jpeg_quality,
        ),
        recognizer=RecognitionClientFactory.create(settings),
        aggregator=PageAggregator(),
        assembler=AssemblerFactory.create(settings),
        records=DocumentRecordManager(DocumentsRepository()),
        max_upload_bytes=settings.max_upload_bytes,
        max_batch_images=settings.max_batch_images,
    )
