"""JSON payloads handed back to the invoking boundary (HTTP handler, CLI)."""

from datetime import datetime
from typing import Any

from textlens.database.models import DocumentRow
from textlens.processor.models import PipelineFailure, PipelineSuccess
from textlens.records.models import CompletedRecord, DocumentRecord, FailedRecord


def artifact_url(public_base_url: str, artifact_path: str | None) -> str | None:
    if not artifact_path:
        return None
    file_name = artifact_path.replace("\\", "/").rsplit("/", 1)[-1]
    return f"{public_base_url.rstrip('/')}/pdfs/{file_name}"


def build_success_payload(success: PipelineSuccess, public_base_url: str) -> dict[str, Any]:
    record = success.record
    return {
        "success": True,
        "message": "Image processed successfully",
        "data": {
            "documentId": str(record.id),
            "title": record.title,
            "extractedText": record.extracted_text,
            "wordCount": record.word_count,
            "confidence": record.confidence,
            "pageCount": record.page_count,
            "processingTime": success.aggregated.processing_time_ms,
            "pdfUrl": artifact_url(public_base_url, str(success.artifact.path)),
            "language": record.language,
            "status": record.status.value,
            "createdAt": _iso(record.created_at),
            "updatedAt": _iso(record.updated_at),
        },
    }


def build_error_payload(failure: PipelineFailure, expose_details: bool) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "success": False,
        "category": failure.category.value,
        "message": failure.message,
    }
    if failure.document_id is not None:
        payload["documentId"] = str(failure.document_id)
    if expose_details and failure.detail:
        payload["error"] = failure.detail
    return payload


def build_record_payload(record: DocumentRecord, public_base_url: str) -> dict[str, Any]:
    """Full view of one stored document."""
    data: dict[str, Any] = {
        "id": str(record.id),
        "title": record.title,
        "language": record.language,
        "status": record.status.value,
        "sourceRefs": list(record.source_refs),
        "createdAt": _iso(record.created_at),
    }
    if isinstance(record, CompletedRecord):
        data.update(
            {
                "extractedText": record.extracted_text,
                "wordCount": record.word_count,
                "confidence": record.confidence,
                "pageCount": record.page_count,
                "pdfUrl": artifact_url(public_base_url, str(record.artifact_path)),
                "metadata": record.metadata.to_payload(),
                "updatedAt": _iso(record.updated_at),
            }
        )
    elif isinstance(record, FailedRecord):
        data["failureCategory"] = record.failure_category
        data["updatedAt"] = _iso(record.updated_at)
    return {"success": True, "data": data}


def build_list_payload(
    rows: list[DocumentRow],
    total: int,
    limit: int,
    offset: int,
    public_base_url: str,
) -> dict[str, Any]:
    return {
        "success": True,
        "total": total,
        "limit": limit,
        "offset": offset,
        "data": [
            {
                "id": str(row.id),
                "title": row.title,
                "wordCount": row.word_count,
                "confidence": row.confidence,
                "pageCount": row.page_count,
                "language": row.language,
                "pdfUrl": artifact_url(public_base_url, row.artifact_path),
                "createdAt": _iso(row.created_at),
            }
            for row in rows
        ],
    }


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None
