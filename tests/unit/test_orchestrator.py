import asyncio
from collections.abc import Callable
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

from textlens.aggregation.aggregator import PageAggregator
from textlens.assembly.assembler import DocumentAssembler
from textlens.assembly.base import BaseDocumentEngine
from textlens.assembly.exceptions import AssemblyError
from textlens.database.repositories.documents_repository import DocumentsRepository
from textlens.imaging.preprocessor import ImagePreprocessor
from textlens.processor.exceptions import USER_MESSAGES, ErrorCategory
from textlens.processor.models import ImageInput, PipelineFailure, PipelineSuccess, ScanRequest
from textlens.processor.orchestrator import PipelineOrchestrator
from textlens.recognition.base import BaseRecognitionClient
from textlens.recognition.exceptions import RecognitionError, RecognitionNetworkError
from textlens.recognition.models import RecognitionResponse
from textlens.recognition.recognizer import Recognizer
from textlens.records.exceptions import RecordStateError
from textlens.records.manager import DocumentRecordManager
from textlens.records.models import CompletedRecord, FailedRecord
from textlens.storage.image_store import ImageStore


class _TextEngine(BaseDocumentEngine):
    def __init__(self) -> None:
        self.calls: list[tuple[str, str, Path | None]] = []

    def render(self, text, title, output_path, source_image=None):  # type: ignore[no-untyped-def]
        self.calls.append((text, title, source_image))
        output_path.write_text(text)


class _BrokenEngine(BaseDocumentEngine):
    def render(self, text, title, output_path, source_image=None):  # type: ignore[no-untyped-def]
        raise AssemblyError("disk full")


class _Harness:
    """Real store, preprocessor, aggregator and assembler around a scripted provider."""

    def __init__(
        self,
        tmp_path: Path,
        responses: list[RecognitionResponse | Exception] | None = None,
        engine: BaseDocumentEngine | None = None,
        max_upload_bytes: int = 20 * 1024 * 1024,
        max_batch_images: int = 20,
    ) -> None:
        self.uploads = tmp_path / "uploads"
        self.pdfs = tmp_path / "pdfs"
        self.client = MagicMock(spec=BaseRecognitionClient)
        self.client.recognize = AsyncMock(
            side_effect=responses or [RecognitionResponse(text="Hello scanned world")]
        )
        self.client.aclose = AsyncMock()
        self.engine = engine or _TextEngine()
        self.repo = MagicMock(spec=DocumentsRepository)
        self.orchestrator = PipelineOrchestrator(
            image_store=ImageStore(self.uploads),
            preprocessor=ImagePreprocessor(),
            recognizer=Recognizer(client=self.client),
            aggregator=PageAggregator(),
            assembler=DocumentAssembler(engine=self.engine, output_dir=self.pdfs),
            records=DocumentRecordManager(self.repo),
            max_upload_bytes=max_upload_bytes,
            max_batch_images=max_batch_images,
        )

    def temp_files(self) -> list[Path]:
        return list(self.uploads.iterdir()) if self.uploads.exists() else []

    def artifacts(self) -> list[Path]:
        return list(self.pdfs.iterdir()) if self.pdfs.exists() else []

    def failed_record(self) -> FailedRecord:
        self.repo.mark_failed.assert_called_once()
        return self.repo.mark_failed.call_args.args[0]


def _request(*images: bytes, title: str = "Receipt") -> ScanRequest:
    return ScanRequest(
        images=tuple(ImageInput(data=data, name=f"p{i}.png") for i, data in enumerate(images, 1)),
        title=title,
    )


class TestSingleImage:
    @pytest.mark.asyncio
    async def test_success(self, tmp_path: Path, png_bytes: bytes) -> None:
        harness = _Harness(tmp_path)

        outcome = await harness.orchestrator.process(_request(png_bytes))

        assert isinstance(outcome, PipelineSuccess)
        record = outcome.record
        assert isinstance(record, CompletedRecord)
        assert record.extracted_text == "Hello scanned world"
        assert record.word_count == 3
        assert record.confidence == 90
        assert record.page_count == 1
        assert record.source_refs == ("p1.png",)
        assert record.metadata.original_size_bytes == len(png_bytes)
        assert (record.metadata.image_width, record.metadata.image_height) == (320, 200)
        assert outcome.artifact.path.exists()
        assert harness.artifacts() == [outcome.artifact.path]
        assert harness.temp_files() == []
        harness.repo.insert_processing.assert_called_once()
        harness.repo.mark_completed.assert_called_once_with(record)
        harness.repo.mark_failed.assert_not_called()

    @pytest.mark.asyncio
    async def test_embeds_preprocessed_image(self, tmp_path: Path, png_bytes: bytes) -> None:
        harness = _Harness(tmp_path)

        await harness.orchestrator.process(_request(png_bytes))

        _text, _title, source_image = harness.engine.calls[0]
        assert source_image is not None
        assert source_image.suffix == ".jpg"
        assert source_image.parent == harness.uploads

    @pytest.mark.asyncio
    async def test_no_text_detected(self, tmp_path: Path, png_bytes: bytes) -> None:
        harness = _Harness(tmp_path, responses=[RecognitionResponse(text="   ")])

        outcome = await harness.orchestrator.process(_request(png_bytes))

        assert isinstance(outcome, PipelineFailure)
        assert outcome.category is ErrorCategory.NO_TEXT_DETECTED
        assert outcome.message == USER_MESSAGES[ErrorCategory.NO_TEXT_DETECTED]
        assert harness.failed_record().failure_category == "no_text_detected"
        assert outcome.document_id == harness.failed_record().id
        assert harness.artifacts() == []
        assert harness.temp_files() == []

    @pytest.mark.asyncio
    async def test_recognition_failure(self, tmp_path: Path, png_bytes: bytes) -> None:
        harness = _Harness(tmp_path, responses=[RecognitionNetworkError("HTTP 503")])

        outcome = await harness.orchestrator.process(_request(png_bytes))

        assert isinstance(outcome, PipelineFailure)
        assert outcome.category is ErrorCategory.RECOGNITION_FAILURE
        assert outcome.detail == "HTTP 503"
        assert harness.temp_files() == []

    @pytest.mark.asyncio
    async def test_corrupt_image_is_preprocess_failure(self, tmp_path: Path) -> None:
        harness = _Harness(tmp_path)

        outcome = await harness.orchestrator.process(_request(b"definitely not an image"))

        assert isinstance(outcome, PipelineFailure)
        assert outcome.category is ErrorCategory.PREPROCESS_FAILURE
        harness.client.recognize.assert_not_awaited()
        assert harness.failed_record().failure_category == "preprocess_failure"
        assert harness.temp_files() == []

    @pytest.mark.asyncio
    async def test_assembly_failure(self, tmp_path: Path, png_bytes: bytes) -> None:
        harness = _Harness(tmp_path, engine=_BrokenEngine())

        outcome = await harness.orchestrator.process(_request(png_bytes))

        assert isinstance(outcome, PipelineFailure)
        assert outcome.category is ErrorCategory.ASSEMBLY_FAILURE
        assert harness.failed_record().failure_category == "assembly_failure"
        harness.repo.mark_completed.assert_not_called()
        assert harness.artifacts() == []
        assert harness.temp_files() == []


class TestBatch:
    @pytest.mark.asyncio
    async def test_failed_middle_page_is_tolerated(
        self, tmp_path: Path, make_image: Callable[..., bytes]
    ) -> None:
        harness = _Harness(
            tmp_path,
            responses=[
                RecognitionResponse(text="Alpha beta"),
                RecognitionError("unreadable"),
                RecognitionResponse(text="Gamma"),
            ],
        )
        pages = [make_image(text=f"page {i}") for i in range(3)]

        outcome = await harness.orchestrator.process(_request(*pages))

        assert isinstance(outcome, PipelineSuccess)
        assert outcome.record.extracted_text == "Page 1\nAlpha beta\n\nPage 2\n\nPage 3\nGamma"
        assert outcome.record.confidence == 60
        assert outcome.record.word_count == 3
        assert outcome.record.page_count == 3
        assert outcome.record.metadata.failed_pages == (2,)
        assert harness.client.recognize.await_count == 3
        assert harness.temp_files() == []

    @pytest.mark.asyncio
    async def test_batch_renders_text_only(
        self, tmp_path: Path, make_image: Callable[..., bytes]
    ) -> None:
        harness = _Harness(
            tmp_path,
            responses=[RecognitionResponse(text="one"), RecognitionResponse(text="two")],
        )

        await harness.orchestrator.process(_request(make_image(), make_image()))

        assert harness.engine.calls[0][2] is None

    @pytest.mark.asyncio
    async def test_all_pages_blank_is_no_text_detected(
        self, tmp_path: Path, make_image: Callable[..., bytes]
    ) -> None:
        harness = _Harness(
            tmp_path,
            responses=[RecognitionResponse(text=""), RecognitionResponse(text=" ")],
        )

        outcome = await harness.orchestrator.process(_request(make_image(), make_image()))

        assert isinstance(outcome, PipelineFailure)
        assert outcome.category is ErrorCategory.NO_TEXT_DETECTED
        assert harness.artifacts() == []

    @pytest.mark.asyncio
    async def test_all_pages_failed_is_recognition_failure(
        self, tmp_path: Path, make_image: Callable[..., bytes]
    ) -> None:
        harness = _Harness(
            tmp_path,
            responses=[RecognitionResponse(text=""), RecognitionNetworkError("down")],
        )

        outcome = await harness.orchestrator.process(_request(make_image(), make_image()))

        assert isinstance(outcome, PipelineFailure)
        assert outcome.category is ErrorCategory.RECOGNITION_FAILURE

    @pytest.mark.asyncio
    async def test_corrupt_page_aborts_batch(
        self, tmp_path: Path, make_image: Callable[..., bytes]
    ) -> None:
        harness = _Harness(tmp_path, responses=[RecognitionResponse(text="one")])

        outcome = await harness.orchestrator.process(_request(make_image(), b"garbage"))

        assert isinstance(outcome, PipelineFailure)
        assert outcome.category is ErrorCategory.PREPROCESS_FAILURE
        assert harness.temp_files() == []


class TestValidation:
    @pytest.mark.asyncio
    async def test_empty_request(self, tmp_path: Path) -> None:
        harness = _Harness(tmp_path)

        outcome = await harness.orchestrator.process(ScanRequest(images=()))

        assert isinstance(outcome, PipelineFailure)
        assert outcome.category is ErrorCategory.INVALID_INPUT
        assert outcome.document_id is None
        harness.repo.insert_processing.assert_not_called()

    @pytest.mark.asyncio
    async def test_oversized_image(self, tmp_path: Path) -> None:
        harness = _Harness(tmp_path, max_upload_bytes=10)

        outcome = await harness.orchestrator.process(_request(b"x" * 11))

        assert isinstance(outcome, PipelineFailure)
        assert outcome.category is ErrorCategory.INVALID_INPUT
        assert "exceeds" in outcome.message
        harness.repo.insert_processing.assert_not_called()

    @pytest.mark.asyncio
    async def test_too_many_images(self, tmp_path: Path) -> None:
        harness = _Harness(tmp_path, max_batch_images=2)

        outcome = await harness.orchestrator.process(_request(b"a", b"b", b"c"))

        assert isinstance(outcome, PipelineFailure)
        assert "Too many images" in outcome.message

    @pytest.mark.asyncio
    async def test_empty_image_data(self, tmp_path: Path) -> None:
        harness = _Harness(tmp_path)
        outcome = await harness.orchestrator.process(_request(b""))
        assert isinstance(outcome, PipelineFailure)
        assert outcome.message == "Image 1 is empty"

    @pytest.mark.asyncio
    async def test_blank_title(self, tmp_path: Path, png_bytes: bytes) -> None:
        harness = _Harness(tmp_path)
        outcome = await harness.orchestrator.process(_request(png_bytes, title="  "))
        assert isinstance(outcome, PipelineFailure)
        assert outcome.category is ErrorCategory.INVALID_INPUT


class TestUnexpectedErrors:
    @pytest.mark.asyncio
    async def test_begin_failure_is_internal_error(self, tmp_path: Path, png_bytes: bytes) -> None:
        harness = _Harness(tmp_path)
        harness.repo.insert_processing.side_effect = RuntimeError("db down")

        outcome = await harness.orchestrator.process(_request(png_bytes))

        assert isinstance(outcome, PipelineFailure)
        assert outcome.category is ErrorCategory.INTERNAL_ERROR
        assert outcome.document_id is None
        harness.repo.mark_failed.assert_not_called()
        harness.client.recognize.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_completion_failure_discards_artifact(
        self, tmp_path: Path, png_bytes: bytes
    ) -> None:
        harness = _Harness(tmp_path)
        harness.repo.mark_completed.side_effect = RecordStateError("not in processing state")

        outcome = await harness.orchestrator.process(_request(png_bytes))

        assert isinstance(outcome, PipelineFailure)
        assert outcome.category is ErrorCategory.INTERNAL_ERROR
        assert harness.artifacts() == []
        assert harness.failed_record().failure_category == "internal_error"

    @pytest.mark.asyncio
    async def test_failure_to_mark_failed_still_returns_failure(
        self, tmp_path: Path, png_bytes: bytes
    ) -> None:
        harness = _Harness(tmp_path, engine=_BrokenEngine())
        harness.repo.mark_failed.side_effect = RuntimeError("db down")

        outcome = await harness.orchestrator.process(_request(png_bytes))

        assert isinstance(outcome, PipelineFailure)
        assert outcome.category is ErrorCategory.ASSEMBLY_FAILURE
        assert harness.temp_files() == []


class TestCancellation:
    @pytest.mark.asyncio
    async def test_cancel_marks_record_cancelled_and_cleans_up(
        self, tmp_path: Path, png_bytes: bytes
    ) -> None:
        harness = _Harness(tmp_path)
        entered = asyncio.Event()

        async def hang(*args: object, **kwargs: object) -> RecognitionResponse:
            entered.set()
            await asyncio.sleep(10)
            return RecognitionResponse(text="late")

        harness.client.recognize = AsyncMock(side_effect=hang)

        task = asyncio.create_task(harness.orchestrator.process(_request(png_bytes)))
        await asyncio.wait_for(entered.wait(), 5)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert harness.failed_record().failure_category == "cancelled"
        assert harness.temp_files() == []
        assert harness.artifacts() == []


class TestClose:
    @pytest.mark.asyncio
    async def test_aclose_closes_provider(self, tmp_path: Path) -> None:
        harness = _Harness(tmp_path)
        await harness.orchestrator.aclose()
        harness.client.aclose.assert_awaited_once()
