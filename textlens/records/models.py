"""Lifecycle variants of a scanned document record.

A record is created as ProcessingRecord and ends as exactly one of
CompletedRecord or FailedRecord. Only DocumentRecordManager builds them.
"""

import uuid
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from pathlib import Path
from typing import Any, ClassVar


class RecordStatus(StrEnum):
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True)
class ProcessingMetadata:
    """Facts about how a document was produced, persisted as JSONB."""

    original_size_bytes: int = 0
    processing_time_ms: int = 0
    pipeline_time_ms: int = 0
    image_width: int | None = None
    image_height: int | None = None
    confidence_policy: str = "nominal"
    failed_pages: tuple[int, ...] = ()

    def to_payload(self) -> dict[str, Any]:
        return {
            "original_size_bytes": self.original_size_bytes,
            "processing_time_ms": self.processing_time_ms,
            "pipeline_time_ms": self.pipeline_time_ms,
            "image_width": self.image_width,
            "image_height": self.image_height,
            "confidence_policy": self.confidence_policy,
            "failed_pages": list(self.failed_pages),
        }

    @classmethod
    def from_payload(cls, data: Mapping[str, Any] | None) -> "ProcessingMetadata":
        data = data or {}
        return cls(
            original_size_bytes=int(data.get("original_size_bytes") or 0),
            processing_time_ms=int(data.get("processing_time_ms") or 0),
            pipeline_time_ms=int(data.get("pipeline_time_ms") or 0),
            image_width=data.get("image_width"),
            image_height=data.get("image_height"),
            confidence_policy=str(data.get("confidence_policy") or "nominal"),
            failed_pages=tuple(data.get("failed_pages") or ()),
        )


@dataclass(frozen=True, kw_only=True)
class _RecordFields:
    id: uuid.UUID
    title: str
    owner_id: str | None
    language: str
    source_refs: tuple[str, ...]
    created_at: datetime


@dataclass(frozen=True, kw_only=True)
class ProcessingRecord(_RecordFields):
    status: ClassVar[RecordStatus] = RecordStatus.PROCESSING


@dataclass(frozen=True, kw_only=True)
class CompletedRecord(_RecordFields):
    status: ClassVar[RecordStatus] = RecordStatus.COMPLETED

    updated_at: datetime
    artifact_path: Path
    extracted_text: str
    confidence: int
    word_count: int
    page_count: int
    metadata: ProcessingMetadata = field(default_factory=ProcessingMetadata)

    def __post_init__(self) -> None:
        if not self.extracted_text.strip():
            raise ValueError("A completed record must carry extracted text")


@dataclass(frozen=True, kw_only=True)
class FailedRecord(_RecordFields):
    status: ClassVar[RecordStatus] = RecordStatus.FAILED

    updated_at: datetime
    failure_category: str | None = None
    failure_message: str | None = None


DocumentRecord = ProcessingRecord | CompletedRecord | FailedRecord
