from textlens.database.connection import get_connection

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS scan_documents (
    id               UUID PRIMARY KEY,
    owner_id         TEXT NULL,
    title            TEXT NOT NULL,
    language         TEXT NOT NULL DEFAULT 'eng',
    source_refs      TEXT[] NOT NULL DEFAULT '{}',
    status           TEXT NOT NULL
                     CHECK (status IN ('processing', 'completed', 'failed')),
    artifact_path    TEXT NULL,
    extracted_text   TEXT NOT NULL DEFAULT '',
    confidence       INTEGER NOT NULL DEFAULT 0,
    word_count       INTEGER NOT NULL DEFAULT 0,
    page_count       INTEGER NOT NULL DEFAULT 1,
    failure_category TEXT NULL,
    failure_message  TEXT NULL,
    metadata         JSONB NOT NULL DEFAULT '{}'::jsonb,
    created_at       TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    updated_at       TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

CREATE INDEX IF NOT EXISTS scan_documents_owner_created_idx
    ON scan_documents (owner_id, created_at DESC);

CREATE INDEX IF NOT EXISTS scan_documents_status_idx
    ON scan_documents (status);
"""


def ensure_schema() -> None:
    """Create the scan_documents table and its indexes if missing."""
    with get_connection() as conn:
        conn.execute(SCHEMA_SQL)
        conn.commit()
