from __future__ import annotations

import logging
from typing import Any

from .db import StoreError, VocabStore
from .repository import LessonRepository, VocabularyRepository, format_lesson_title, lesson_number
from .schemas import valid_pairs

logger = logging.getLogger("vocab_trainer.lessons")

MAX_LESSON_NUMBER = 99


class LessonLimitReachedError(StoreError):
    """Raised when every slug up to lesson99 is taken."""


def next_lesson_slug(existing_slugs: list[str]) -> str:
    numbers = [number for number in (lesson_number(slug) for slug in existing_slugs) if number]
    next_number = max(numbers) + 1 if numbers else 1
    if next_number > MAX_LESSON_NUMBER:
        raise LessonLimitReachedError(f"Maximum number of lessons ({MAX_LESSON_NUMBER}) reached")
    return f"lesson{next_number:02d}"


def create_lesson(store: VocabStore, raw_pairs: Any) -> dict[str, Any]:
    """Allocate the next slug, import the valid pairs and record the lesson.

    ``raw_pairs`` is a decoded JSON value; anything that is not a list of
    well-formed pairs contributes nothing.
    """
    lessons = LessonRepository(store)
    vocabulary = VocabularyRepository(store)

    slug = next_lesson_slug(lessons.slugs())
    pairs = valid_pairs(raw_pairs)
    vocabulary.insert_many_or_ignore(
        {"lesson": slug, "source_text": pair.source_text, "target_text": pair.target_text}
        for pair in pairs
    )

    entry_count = vocabulary.count(lesson=slug)
    title = format_lesson_title(slug)
    lessons.upsert(slug, title=title, entry_count=entry_count)

    logger.info(
        "New lesson created",
        extra={
            "event": "lesson_created",
            "slug": slug,
            "count": entry_count,
            "vocabulary": len(pairs),
        },
    )
    return {"slug": slug, "title": title, "description": None, "entry_count": entry_count}
