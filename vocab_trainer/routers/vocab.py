from __future__ import annotations

import logging
import re

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException

from ..config import Settings
from ..db import StoreError, VocabStore
from ..dependencies import get_settings, get_store
from ..repository import DuplicateEntryError, VocabularyRepository
from ..schemas import MutationResponse, VocabCreateRequest, VocabEntryItem
from ..tasks import submit_backup

router = APIRouter(prefix="/vocab", tags=["vocab"])
logger = logging.getLogger("vocab_trainer.vocab")

LESSON_PATH_RE = re.compile(r"lesson(0[1-9]|[1-9][0-9])")


def ensure_valid_lesson(lesson: str) -> str:
    if not LESSON_PATH_RE.fullmatch(lesson):
        raise HTTPException(status_code=400, detail="invalid_lesson")
    return lesson


@router.get(
    "/{lesson}",
    response_model=list[VocabEntryItem],
    responses={400: {"description": "Lesson is not lesson01..lesson99"}},
)
async def list_vocabulary(lesson: str, store: VocabStore = Depends(get_store)) -> list[VocabEntryItem]:
    """Entries of one lesson, oldest first."""
    ensure_valid_lesson(lesson)
    try:
        rows = VocabularyRepository(store).list_by_lesson(lesson)
    except StoreError as exc:
        logger.exception("Failed to load vocabulary", extra={"event": "vocab_load_failed", "lesson": lesson})
        raise HTTPException(status_code=500, detail="store_error") from exc
    return [VocabEntryItem(**row) for row in rows]


@router.post(
    "/{lesson}",
    response_model=MutationResponse,
    response_model_exclude_none=True,
    responses={
        400: {"description": "Lesson is not lesson01..lesson99"},
        409: {"description": "The pair already exists in this lesson"},
    },
)
async def add_vocabulary(
    lesson: str,
    payload: VocabCreateRequest,
    background_tasks: BackgroundTasks,
    store: VocabStore = Depends(get_store),
    app_settings: Settings = Depends(get_settings),
) -> MutationResponse:
    ensure_valid_lesson(lesson)
    try:
        entry_id = VocabularyRepository(store).insert_or_fail(lesson, payload.source_text, payload.target_text)
    except DuplicateEntryError as exc:
        raise HTTPException(status_code=409, detail="duplicate") from exc
    except StoreError as exc:
        raise HTTPException(status_code=500, detail="store_error") from exc

    submit_backup(background_tasks, store, app_settings, reason="vocab_added")
    return MutationResponse(id=entry_id)
