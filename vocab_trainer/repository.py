from __future__ import annotations

from datetime import datetime
import logging
import re
from typing import Any, Iterable, Mapping, Optional

from sqlalchemy import Table, delete, func, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from .db import StoreError, VocabStore
from .models import Lesson, Vocabulary, utcnow

logger = logging.getLogger("vocab_trainer.repository")

LESSON_SLUG_RE = re.compile(r"lesson([0-9]+)")
_VOCAB_KEY = ["lesson", "source_text", "target_text"]


class DuplicateEntryError(StoreError):
    """Raised when a (lesson, source_text, target_text) triple already exists."""


def format_lesson_title(slug: str) -> str:
    match = LESSON_SLUG_RE.fullmatch(slug)
    if not match:
        return slug
    return f"Lesson {int(match.group(1)):02d}"


def lesson_number(slug: str) -> Optional[int]:
    match = LESSON_SLUG_RE.fullmatch(slug)
    return int(match.group(1)) if match else None


def _insert_ignoring_conflicts(dialect_name: str, table: Table, values: dict[str, Any], index_elements: list[str]):
    if dialect_name == "postgresql":
        return pg_insert(table).values(values).on_conflict_do_nothing(index_elements=index_elements)
    if dialect_name == "sqlite":
        return sqlite_insert(table).values(values).on_conflict_do_nothing(index_elements=index_elements)
    return table.insert().values(values)


def _upsert(dialect_name: str, table: Table, values: dict[str, Any], index_elements: list[str]):
    if dialect_name == "postgresql":
        statement = pg_insert(table).values(values)
    elif dialect_name == "sqlite":
        statement = sqlite_insert(table).values(values)
    else:
        raise StoreError(f"Upsert is not supported on {dialect_name}")

    updates = {key: statement.excluded[key] for key in values if key not in index_elements}
    return statement.on_conflict_do_update(index_elements=index_elements, set_=updates)


class VocabularyRepository:
    """Vocabulary rows.

    Two insert operations exist on purpose: ``insert_or_fail`` for the
    single-entry API path, ``insert_or_ignore`` for every bulk ingestion path.
    """

    def __init__(self, store: VocabStore) -> None:
        self.store = store
        self.table = Vocabulary.__table__

    def list_by_lesson(self, lesson: str) -> list[dict[str, Any]]:
        statement = (
            select(self.table)
            .where(self.table.c.lesson == lesson)
            .order_by(self.table.c.created_at.asc(), self.table.c.id.asc())
        )
        with self.store.session() as session:
            rows = [dict(row) for row in session.execute(statement).mappings().all()]
        logger.debug("Fetched vocabulary", extra={"event": "vocab_fetched", "lesson": lesson, "count": len(rows)})
        return rows

    def list_all(self) -> list[dict[str, Any]]:
        statement = select(self.table).order_by(self.table.c.lesson, self.table.c.id)
        with self.store.session() as session:
            return [dict(row) for row in session.execute(statement).mappings().all()]

    def count(self, lesson: Optional[str] = None) -> int:
        statement = select(func.count()).select_from(self.table)
        if lesson is not None:
            statement = statement.where(self.table.c.lesson == lesson)
        with self.store.session() as session:
            return int(session.execute(statement).scalar_one())

    def insert_or_fail(self, lesson: str, source_text: str, target_text: str) -> int:
        values = {
            "lesson": lesson,
            "source_text": source_text,
            "target_text": target_text,
            "created_at": utcnow(),
        }
        try:
            with self.store.session() as session:
                result = session.execute(self.table.insert().values(values))
                entry_id = int(result.inserted_primary_key[0])
        except IntegrityError as exc:
            logger.warning(
                "Duplicate vocabulary entry rejected",
                extra={"event": "vocab_duplicate", "lesson": lesson},
            )
            raise DuplicateEntryError(f"{lesson}: {source_text} / {target_text} already exists") from exc
        except SQLAlchemyError as exc:
            logger.exception("Failed to add vocabulary", extra={"event": "vocab_add_failed", "lesson": lesson})
            raise StoreError("Could not store vocabulary entry") from exc

        logger.info("Vocabulary added", extra={"event": "vocab_added", "lesson": lesson, "entry_id": entry_id})
        return entry_id

    def insert_or_ignore(
        self,
        lesson: str,
        source_text: str,
        target_text: str,
        created_at: Optional[datetime] = None,
    ) -> bool:
        """Insert one row; returns False when the triple already existed."""
        return self.insert_many_or_ignore(
            [{"lesson": lesson, "source_text": source_text, "target_text": target_text, "created_at": created_at}]
        ) == 1

    def insert_many_or_ignore(self, rows: Iterable[Mapping[str, Any]]) -> int:
        """Insert rows one statement at a time, skipping existing triples.

        Returns the number of rows actually inserted.
        """
        inserted = 0
        with self.store.session() as session:
            dialect_name = session.get_bind().dialect.name
            for row in rows:
                values = {
                    "lesson": row["lesson"],
                    "source_text": row["source_text"],
                    "target_text": row["target_text"],
                    "created_at": row.get("created_at") or utcnow(),
                }
                result = session.execute(_insert_ignoring_conflicts(dialect_name, self.table, values, _VOCAB_KEY))
                if result.rowcount and result.rowcount > 0:
                    inserted += 1
        return inserted

    def update(self, entry_id: int, source_text: str, target_text: str) -> int:
        statement = (
            update(self.table)
            .where(self.table.c.id == entry_id)
            .values(source_text=source_text, target_text=target_text)
        )
        try:
            with self.store.session() as session:
                updated = int(session.execute(statement).rowcount or 0)
        except IntegrityError as exc:
            raise DuplicateEntryError(f"Entry {entry_id} would duplicate an existing entry") from exc
        except SQLAlchemyError as exc:
            logger.exception("Failed to update vocabulary", extra={"event": "vocab_update_failed", "entry_id": entry_id})
            raise StoreError("Could not update vocabulary entry") from exc

        logger.info("Vocabulary updated", extra={"event": "vocab_updated", "entry_id": entry_id, "count": updated})
        return updated

    def delete(self, entry_id: int) -> int:
        try:
            with self.store.session() as session:
                deleted = int(session.execute(delete(self.table).where(self.table.c.id == entry_id)).rowcount or 0)
        except SQLAlchemyError as exc:
            logger.exception("Failed to delete vocabulary", extra={"event": "vocab_delete_failed", "entry_id": entry_id})
            raise StoreError("Could not delete vocabulary entry") from exc

        logger.info("Vocabulary deleted", extra={"event": "vocab_deleted", "entry_id": entry_id, "count": deleted})
        return deleted


class LessonRepository:
    def __init__(self, store: VocabStore) -> None:
        self.store = store
        self.table = Lesson.__table__

    def _with_live_counts(self, session: Session) -> list[dict[str, Any]]:
        vocabulary = Vocabulary.__table__
        statement = (
            select(
                self.table.c.slug,
                self.table.c.title,
                self.table.c.description,
                func.count(vocabulary.c.id).label("entry_count"),
                self.table.c.created_at,
            )
            .select_from(self.table.outerjoin(vocabulary, vocabulary.c.lesson == self.table.c.slug))
            .group_by(self.table.c.slug)
            .order_by(self.table.c.slug)
        )
        return [dict(row) for row in session.execute(statement).mappings().all()]

    def list_records(self) -> list[dict[str, Any]]:
        """Rows of the lessons table, with entry counts computed from vocabulary."""
        with self.store.session() as session:
            return self._with_live_counts(session)

    def list_lessons(self) -> list[dict[str, Any]]:
        """Every known lesson, including ones that only exist as vocabulary rows."""
        vocabulary = Vocabulary.__table__
        with self.store.session() as session:
            lessons = self._with_live_counts(session)
            known = {row["slug"] for row in lessons}
            orphan_rows = session.execute(
                select(vocabulary.c.lesson, func.count(vocabulary.c.id).label("entry_count"))
                .group_by(vocabulary.c.lesson)
                .order_by(vocabulary.c.lesson)
            ).mappings().all()

        for row in orphan_rows:
            if row["lesson"] in known:
                continue
            lessons.append(
                {
                    "slug": row["lesson"],
                    "title": None,
                    "description": None,
                    "entry_count": int(row["entry_count"]),
                    "created_at": None,
                }
            )

        for lesson in lessons:
            lesson["title"] = lesson["title"] or format_lesson_title(lesson["slug"])
        return sorted(lessons, key=lambda item: item["slug"])

    def slugs(self) -> list[str]:
        with self.store.session() as session:
            return list(session.execute(select(self.table.c.slug).order_by(self.table.c.slug)).scalars().all())

    def upsert(
        self,
        slug: str,
        title: Optional[str] = None,
        description: Optional[str] = None,
        entry_count: int = 0,
        created_at: Optional[datetime] = None,
    ) -> None:
        self.upsert_many(
            [
                {
                    "slug": slug,
                    "title": title,
                    "description": description,
                    "entry_count": entry_count,
                    "created_at": created_at,
                }
            ]
        )

    def upsert_many(self, rows: Iterable[Mapping[str, Any]]) -> int:
        """Insert-or-replace lessons by slug; returns the number of rows written."""
        written = 0
        with self.store.session() as session:
            dialect_name = session.get_bind().dialect.name
            for row in rows:
                values = {
                    "slug": row["slug"],
                    "title": row.get("title") or format_lesson_title(row["slug"]),
                    "description": row.get("description"),
                    "entry_count": int(row.get("entry_count") or 0),
                    "created_at": row.get("created_at") or utcnow(),
                }
                session.execute(_upsert(dialect_name, self.table, values, ["slug"]))
                written += 1
        return written
