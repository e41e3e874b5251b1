import uuid
from collections.abc import Callable, Sequence
from datetime import UTC, datetime
from pathlib import Path

from textlens.aggregation.models import AggregatedText
from textlens.assembly.models import Artifact
from textlens.database.models import DocumentRow
from textlens.database.repositories.documents_repository import DocumentsRepository
from textlens.logging.logger import Log
from textlens.records.exceptions import RecordStateError
from textlens.records.models import (
    CompletedRecord,
    DocumentRecord,
    FailedRecord,
    ProcessingMetadata,
    ProcessingRecord,
    RecordStatus,
)


def _utcnow() -> datetime:
    return datetime.now(UTC)


class DocumentRecordManager:
    """Owns the processing -> completed | failed lifecycle of document records.

    Every transition is persisted before the new record variant is returned.
    The repository only updates rows still in ``processing``, so terminal
    records can never be moved again.
    """

    def __init__(
        self,
        repository: DocumentsRepository,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._repository = repository
        self._clock = clock

    def begin(
        self,
        title: str,
        owner_id: str | None,
        language: str,
        source_refs: Sequence[str],
    ) -> ProcessingRecord:
        """Create and durably persist a record in the processing state."""
        record = ProcessingRecord(
            id=uuid.uuid4(),
            title=title,
            owner_id=owner_id,
            language=language,
            source_refs=tuple(source_refs),
            created_at=self._clock(),
        )
        self._repository.insert_processing(record)
        Log.info("Document record created", document_id=record.id, status=record.status)
        return record

    def complete(
        self,
        record: ProcessingRecord,
        aggregated: AggregatedText,
        artifact: Artifact,
        metadata: ProcessingMetadata,
    ) -> CompletedRecord:
        """Transition to completed once the artifact exists.

        Raises:
            RecordStateError: if the text is blank or the record is no longer processing.
        """
        _require_processing(record)
        if not aggregated.combined_text.strip():
            raise RecordStateError(f"Document {record.id} cannot complete without text")
        completed = CompletedRecord(
            id=record.id,
            title=record.title,
            owner_id=record.owner_id,
            language=record.language,
            source_refs=record.source_refs,
            created_at=record.created_at,
            updated_at=self._clock(),
            artifact_path=artifact.path,
            extracted_text=aggregated.combined_text,
            confidence=aggregated.average_confidence,
            word_count=aggregated.total_word_count,
            page_count=aggregated.page_count,
            metadata=metadata,
        )
        self._repository.mark_completed(completed)
        Log.info("Document record completed", document_id=record.id)
        return completed

    def fail(
        self,
        record: ProcessingRecord,
        category: str | None = None,
        message: str | None = None,
    ) -> FailedRecord:
        """Transition to failed.

        Raises:
            RecordStateError: if the record is no longer processing.
        """
        _require_processing(record)
        failed = FailedRecord(
            id=record.id,
            title=record.title,
            owner_id=record.owner_id,
            language=record.language,
            source_refs=record.source_refs,
            created_at=record.created_at,
            updated_at=self._clock(),
            failure_category=category,
            failure_message=message,
        )
        self._repository.mark_failed(failed)
        Log.warning("Document record failed", document_id=record.id, category=category)
        return failed

    def load(self, document_id: uuid.UUID) -> DocumentRecord:
        """Fetch a record as its lifecycle variant.

        Raises:
            DocumentNotFoundError: if no document with this ID exists.
        """
        return to_record(self._repository.find_by_id(document_id))

    def list_recent(
        self,
        owner_id: str | None = None,
        limit: int = 20,
        offset: int = 0,
    ) -> list[DocumentRow]:
        """Completed documents, newest first. Rows carry no extracted text."""
        return self._repository.list_recent(owner_id=owner_id, limit=limit, offset=offset)

    def count_completed(self, owner_id: str | None = None) -> int:
        return self._repository.count(owner_id=owner_id)

    def rename(self, document_id: uuid.UUID, title: str) -> None:
        title = title.strip()
        if not title:
            raise ValueError("title must not be empty")
        self._repository.update_title(document_id, title)

    def delete(self, document_id: uuid.UUID) -> None:
        """Remove a record and its generated PDF."""
        artifact_path = self._repository.delete(document_id)
        if artifact_path:
            try:
                Path(artifact_path).unlink(missing_ok=True)
            except OSError as exc:
                Log.error("Failed to delete artifact", document_id=document_id, error=exc)
        Log.info("Document deleted", document_id=document_id)


def _require_processing(record: DocumentRecord) -> None:
    if not isinstance(record, ProcessingRecord):
        raise RecordStateError(
            f"Document {record.id} is {record.status}; only processing records can transition"
        )


def to_record(row: DocumentRow) -> DocumentRecord:
    """Convert a database row into the matching lifecycle variant."""
    created_at = row.created_at or _utcnow()
    common = {
        "id": row.id,
        "title": row.title,
        "owner_id": row.owner_id,
        "language": row.language,
        "source_refs": tuple(row.source_refs),
        "created_at": created_at,
    }
    status = RecordStatus(row.status)
    if status is RecordStatus.PROCESSING:
        return ProcessingRecord(**common)
    if status is RecordStatus.FAILED:
        return FailedRecord(
            **common,
            updated_at=row.updated_at or created_at,
            failure_category=row.failure_category,
            failure_message=row.failure_message,
        )
    return CompletedRecord(
        **common,
        updated_at=row.updated_at or created_at,
        artifact_path=Path(row.artifact_path or ""),
        extracted_text=row.extracted_text,
        confidence=row.confidence,
        word_count=row.word_count,
        page_count=row.page_count,
        metadata=ProcessingMetadata.from_payload(row.metadata),
    )
