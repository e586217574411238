from __future__ import annotations

import logging

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Request

from ..config import Settings
from ..db import StoreError, VocabStore
from ..dependencies import get_settings, get_store, read_json_payload
from ..lesson_service import LessonLimitReachedError, create_lesson
from ..repository import LessonRepository
from ..schemas import LessonCreateResponse, LessonItem
from ..tasks import submit_backup

router = APIRouter(prefix="/lessons", tags=["lessons"])
logger = logging.getLogger("vocab_trainer.lessons")


@router.get("", response_model=list[LessonItem])
async def list_lessons(store: VocabStore = Depends(get_store)) -> list[LessonItem]:
    try:
        rows = LessonRepository(store).list_lessons()
    except StoreError as exc:
        logger.exception("Failed to fetch lessons", extra={"event": "lessons_load_failed"})
        raise HTTPException(status_code=500, detail="store_error") from exc
    return [LessonItem(**row) for row in rows]


@router.post(
    "",
    response_model=LessonCreateResponse,
    responses={
        400: {"description": "Upload is not valid JSON, or lesson99 already exists"},
    },
)
async def create_lesson_route(
    request: Request,
    background_tasks: BackgroundTasks,
    store: VocabStore = Depends(get_store),
    app_settings: Settings = Depends(get_settings),
) -> LessonCreateResponse:
    """Create the next lesson, optionally filled from an uploaded pairs array.

    Accepts a multipart ``file`` holding a JSON array of pairs, or a JSON body
    ``{"vocabulary": [...]}``, or nothing at all.
    """
    payload = await read_json_payload(request)
    raw_pairs = payload.get("vocabulary", []) if isinstance(payload, dict) else payload

    try:
        lesson = create_lesson(store, raw_pairs or [])
    except LessonLimitReachedError as exc:
        raise HTTPException(status_code=400, detail="lesson_limit_reached") from exc
    except StoreError as exc:
        logger.exception("Failed to create lesson", extra={"event": "lesson_create_failed"})
        raise HTTPException(status_code=500, detail="store_error") from exc

    submit_backup(background_tasks, store, app_settings, reason="lesson_created")
    return LessonCreateResponse(lesson=LessonItem(**lesson))
