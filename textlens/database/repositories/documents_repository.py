import uuid
from typing import Any

from psycopg.rows import dict_row
from psycopg.types.json import Jsonb

from textlens.database.connection import get_connection
from textlens.database.models import DocumentRow
from textlens.records.exceptions import DocumentNotFoundError, RecordStateError
from textlens.records.models import CompletedRecord, FailedRecord, ProcessingRecord

_COLUMNS = """
    id, owner_id, title, language, source_refs, status, artifact_path,
    extracted_text, confidence, word_count, page_count, failure_category,
    failure_message, metadata, created_at, updated_at
"""

# list view leaves out the potentially large text body
_LIST_COLUMNS = """
    id, owner_id, title, language, source_refs, status, artifact_path,
    '' AS extracted_text, confidence, word_count, page_count, failure_category,
    failure_message, metadata, created_at, updated_at
"""


class DocumentsRepository:
    """Database operations for the scan_documents table."""

    def insert_processing(self, record: ProcessingRecord) -> None:
        """Persist a new record in the processing state."""
        with get_connection() as conn:
            conn.execute(
                """
                INSERT INTO scan_documents
                    (id, owner_id, title, language, source_refs, status,
                     created_at, updated_at)
                VALUES (%s, %s, %s, %s, %s, 'processing', %s, %s)
                """,
                (
                    record.id,
                    record.owner_id,
                    record.title,
                    record.language,
                    list(record.source_refs),
                    record.created_at,
                    record.created_at,
                ),
            )
            conn.commit()

    def mark_completed(self, record: CompletedRecord) -> None:
        """Move a processing record to completed.

        Raises:
            RecordStateError: if the row is missing or no longer processing.
        """
        with get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    UPDATE scan_documents
                    SET status = 'completed',
                        artifact_path = %s,
                        extracted_text = %s,
                        confidence = %s,
                        word_count = %s,
                        page_count = %s,
                        metadata = %s,
                        updated_at = %s
                    WHERE id = %s AND status = 'processing'
                    """,
                    (
                        str(record.artifact_path),
                        record.extracted_text,
                        record.confidence,
                        record.word_count,
                        record.page_count,
                        Jsonb(record.metadata.to_payload()),
                        record.updated_at,
                        record.id,
                    ),
                )
                if cur.rowcount == 0:
                    raise RecordStateError(f"Document {record.id} is not in processing state")
            conn.commit()

    def mark_failed(self, record: FailedRecord) -> None:
        """Move a processing record to failed.

        Raises:
            RecordStateError: if the row is missing or no longer processing.
        """
        with get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    UPDATE scan_documents
                    SET status = 'failed',
                        failure_category = %s,
                        failure_message = %s,
                        updated_at = %s
                    WHERE id = %s AND status = 'processing'
                    """,
                    (
                        record.failure_category,
                        record.failure_message,
                        record.updated_at,
                        record.id,
                    ),
                )
                if cur.rowcount == 0:
                    raise RecordStateError(f"Document {record.id} is not in processing state")
            conn.commit()

    def find_by_id(self, document_id: uuid.UUID) -> DocumentRow:
        """Find a document by ID.

        Raises:
            DocumentNotFoundError: if no document with this ID exists.
        """
        with get_connection() as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(
                    f"SELECT {_COLUMNS} FROM scan_documents WHERE id = %s",
                    (document_id,),
                )
                row = cur.fetchone()

        if row is None:
            raise DocumentNotFoundError(f"Document {document_id} not found")
        return _to_row(row)

    def list_recent(
        self,
        *,
        owner_id: str | None = None,
        status: str = "completed",
        limit: int = 20,
        offset: int = 0,
    ) -> list[DocumentRow]:
        """Most recent documents first, optionally restricted to one owner."""
        with get_connection() as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(
                    f"""
                    SELECT {_LIST_COLUMNS}
                    FROM scan_documents
                    WHERE status = %s
                      AND (%s::text IS NULL OR owner_id = %s)
                    ORDER BY created_at DESC
                    LIMIT %s OFFSET %s
                    """,
                    (status, owner_id, owner_id, limit, offset),
                )
                rows = cur.fetchall()
        return [_to_row(row) for row in rows]

    def count(self, *, owner_id: str | None = None, status: str = "completed") -> int:
        with get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    SELECT COUNT(*)
                    FROM scan_documents
                    WHERE status = %s
                      AND (%s::text IS NULL OR owner_id = %s)
                    """,
                    (status, owner_id, owner_id),
                )
                row = cur.fetchone()
        return int(row[0]) if row is not None else 0

    def update_title(self, document_id: uuid.UUID, title: str) -> None:
        """Rename a document.

        Raises:
            DocumentNotFoundError: if no document with this ID exists.
        """
        with get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    UPDATE scan_documents
                    SET title = %s, updated_at = NOW()
                    WHERE id = %s
                    """,
                    (title, document_id),
                )
                if cur.rowcount == 0:
                    raise DocumentNotFoundError(f"Document {document_id} not found")
            conn.commit()

    def delete(self, document_id: uuid.UUID) -> str | None:
        """Delete a document row and return its artifact path, if any.

        Raises:
            DocumentNotFoundError: if no document with this ID exists.
        """
        with get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    "DELETE FROM scan_documents WHERE id = %s RETURNING artifact_path",
                    (document_id,),
                )
                row = cur.fetchone()
                if row is None:
                    raise DocumentNotFoundError(f"Document {document_id} not found")
            conn.commit()
        return row[0]


def _to_row(row: dict[str, Any]) -> DocumentRow:
    return DocumentRow(
        id=row["id"],
        owner_id=row["owner_id"],
        title=row["title"],
        language=row["language"],
        source_refs=list(row["source_refs"] or []),
        status=row["status"],
        artifact_path=row["artifact_path"],
        extracted_text=row["extracted_text"] or "",
        confidence=row["confidence"],
        word_count=row["word_count"],
        page_count=row["page_count"],
        failure_category=row["failure_category"],
        failure_message=row["failure_message"],
        metadata=row["metadata"] or {},
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )
