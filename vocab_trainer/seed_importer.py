from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Iterable, Optional, Sequence

from .db import VocabStore
from .repository import LessonRepository, VocabularyRepository, format_lesson_title
from .schemas import valid_pairs

logger = logging.getLogger("vocab_trainer.seed")


def seed_file_name(slug: str) -> str:
    return f"vocab-{slug}.json"


def find_seed_file(slug: str, search_paths: Iterable[Path]) -> Optional[Path]:
    for directory in search_paths:
        candidate = directory / seed_file_name(slug)
        if candidate.is_file():
            return candidate
    return None


def import_seeds(
    store: VocabStore,
    lesson_slugs: Sequence[str],
    search_paths: Sequence[Path],
    quiet_missing: bool = False,
) -> None:
    """Import ``vocab-<slug>.json`` for each slug from the first directory that has it.

    A malformed file skips its lesson only. Pairs go through insert-or-ignore,
    so running the import twice is harmless.
    """
    vocabulary = VocabularyRepository(store)
    lessons = LessonRepository(store)

    for slug in lesson_slugs:
        seed_path = find_seed_file(slug, search_paths)
        if seed_path is None:
            log = logger.debug if quiet_missing else logger.warning
            log(
                "Seed file not found",
                extra={
                    "event": "seed_missing",
                    "lesson": slug,
                    "candidates": [str(directory / seed_file_name(slug)) for directory in search_paths],
                },
            )
            continue

        try:
            raw = json.loads(seed_path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
            logger.error(
                "Failed to parse lesson JSON",
                extra={"event": "seed_malformed", "lesson": slug, "path": str(seed_path), "reason": str(exc)},
            )
            continue

        if not isinstance(raw, list):
            logger.error(
                "Lesson JSON is not an array",
                extra={"event": "seed_malformed", "lesson": slug, "path": str(seed_path)},
            )
            continue

        pairs = valid_pairs(raw)
        imported = vocabulary.insert_many_or_ignore(
            {"lesson": slug, "source_text": pair.source_text, "target_text": pair.target_text}
            for pair in pairs
        )
        lessons.upsert(slug, title=format_lesson_title(slug), entry_count=imported)
        logger.info(
            "Seed file imported",
            extra={"event": "seed_imported", "lesson": slug, "path": str(seed_path), "count": imported},
        )

    logger.info(
        "Seed import completed",
        extra={"event": "seed_import_completed", "count": vocabulary.count()},
    )
