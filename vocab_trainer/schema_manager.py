from __future__ import annotations

import logging

from sqlalchemy import inspect, text
from sqlalchemy.exc import SQLAlchemyError

from .db import VocabStore
from .models import Base

logger = logging.getLogger("vocab_trainer.schema")

_TRIPLE = ["lesson", "source_text", "target_text"]

_DEDUPLICATE_SQL = """
DELETE FROM vocabulary
WHERE id NOT IN (
    SELECT MIN(id) FROM vocabulary GROUP BY lesson, source_text, target_text
)
"""

_LESSON_INDEX_SQL = "CREATE INDEX IF NOT EXISTS idx_lesson ON vocabulary (lesson)"

_UNIQUE_INDEX_SQL = (
    "CREATE UNIQUE INDEX IF NOT EXISTS uq_vocabulary_triple ON vocabulary (lesson, source_text, target_text)"
)


def ensure_schema(store: VocabStore) -> None:
    """Create missing tables and indexes, then drop duplicate vocabulary rows.

    DDL errors propagate. Deduplication errors are logged only: rows written
    before the unique constraint existed should not block startup.
    """
    Base.metadata.create_all(bind=store.engine)
    # create_all skips existing tables.
    with store.engine.begin() as connection:
        connection.execute(text(_LESSON_INDEX_SQL))
    logger.info("Schema ensured", extra={"event": "schema_ensured"})

    removed = remove_duplicate_vocabulary(store)
    if removed is not None:
        logger.info("Duplicates removed", extra={"event": "duplicates_removed", "count": removed})
        ensure_unique_triple(store)


def remove_duplicate_vocabulary(store: VocabStore) -> int | None:
    try:
        with store.session() as session:
            result = session.execute(text(_DEDUPLICATE_SQL))
            return max(int(result.rowcount or 0), 0)
    except SQLAlchemyError:
        logger.exception("Failed to remove duplicates", extra={"event": "dedupe_failed"})
        return None


def ensure_unique_triple(store: VocabStore) -> None:
    """Add the (lesson, source_text, target_text) unique index to tables created without it."""
    inspector = inspect(store.engine)
    unique_sets = [constraint["column_names"] for constraint in inspector.get_unique_constraints("vocabulary")]
    unique_sets += [index["column_names"] for index in inspector.get_indexes("vocabulary") if index.get("unique")]
    if _TRIPLE in unique_sets:
        return

    try:
        with store.engine.begin() as connection:
            connection.execute(text(_UNIQUE_INDEX_SQL))
    except SQLAlchemyError:
        logger.exception("Failed to add unique index", extra={"event": "unique_index_failed"})
        return
    logger.info("Unique index added to legacy vocabulary table", extra={"event": "unique_index_added"})
