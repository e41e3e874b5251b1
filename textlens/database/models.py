import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


@dataclass
class DocumentRow:
    """Represents a row from the scan_documents table."""

    id: uuid.UUID
    title: str
    status: str
    language: str = "eng"
    owner_id: str | None = None
    source_refs: list[str] = field(default_factory=list)
    artifact_path: str | None = None
    extracted_text: str = ""
    confidence: int = 0
    word_count: int = 0
    page_count: int = 1
    failure_category: str | None = None
    failure_message: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    created_at: datetime | None = None
    updated_at: datetime | None = None
