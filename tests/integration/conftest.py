import os
import uuid
from collections.abc import Generator
from typing import Any

import psycopg
import pytest

from textlens.config.settings import Settings
from textlens.database.connection import build_conninfo, close_pool, get_connection, init_pool
from textlens.database.schema import ensure_schema


def _test_settings() -> Settings:
    os.environ.setdefault("DB_DATABASE", "textlens_test")
    return Settings()


@pytest.fixture(scope="session")
def test_settings() -> Settings:
    return _test_settings()


@pytest.fixture(scope="session")
def integration_pool(test_settings: Settings) -> Generator[None, None, None]:
    try:
        with psycopg.connect(build_conninfo(test_settings), connect_timeout=3):
            pass
        init_pool(test_settings)
        ensure_schema()
    except Exception as e:
        close_pool()
        pytest.skip(
            f"PostgreSQL test DB not available: {e}. "
            "Set DB_* env to point at a disposable database"
        )
    try:
        yield
    finally:
        close_pool()


@pytest.fixture
def db_conn(integration_pool: None) -> Generator[psycopg.Connection[Any], None, None]:
    with get_connection() as conn:
        yield conn


@pytest.fixture
def integration_cleanup(integration_pool: None) -> Generator[list[uuid.UUID], None, None]:
    """Document IDs appended here are deleted after the test."""
    cleanup: list[uuid.UUID] = []
    yield cleanup
    if not cleanup:
        return
    with get_connection() as conn:
        conn.execute("DELETE FROM scan_documents WHERE id = ANY(%s)", (cleanup,))
        conn.commit()
