from __future__ import annotations

from datetime import datetime, timezone
import logging

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Path, Request
from fastapi.responses import Response

from ..backup_service import InvalidBackupError, build_snapshot, dump_snapshot, parse_snapshot, restore_snapshot
from ..bootstrap import ensure_initialized
from ..config import Settings
from ..db import StoreError, VocabStore
from ..dependencies import get_settings, get_store, read_json_payload
from ..repository import DuplicateEntryError, VocabularyRepository
from ..schemas import ImportedCounts, ImportResponse, InitResultResponse, MutationResponse, VocabUpdateRequest
from ..security import require_api_key
from ..tasks import submit_backup

router = APIRouter(prefix="/admin", tags=["admin"], dependencies=[Depends(require_api_key)])
logger = logging.getLogger("vocab_trainer.admin")


@router.put("/vocab/{entry_id}", response_model=MutationResponse, response_model_exclude_none=True)
async def update_vocabulary(
    payload: VocabUpdateRequest,
    background_tasks: BackgroundTasks,
    entry_id: int = Path(gt=0),
    store: VocabStore = Depends(get_store),
    app_settings: Settings = Depends(get_settings),
) -> MutationResponse:
    try:
        updated = VocabularyRepository(store).update(entry_id, payload.source_text, payload.target_text)
    except DuplicateEntryError as exc:
        raise HTTPException(status_code=409, detail="duplicate") from exc
    except StoreError as exc:
        raise HTTPException(status_code=500, detail="store_error") from exc

    if updated == 0:
        raise HTTPException(status_code=404, detail="not_found")

    submit_backup(background_tasks, store, app_settings, reason="vocab_updated")
    return MutationResponse(updated=updated)


@router.delete("/vocab/{entry_id}", response_model=MutationResponse, response_model_exclude_none=True)
async def delete_vocabulary(
    background_tasks: BackgroundTasks,
    entry_id: int = Path(gt=0),
    store: VocabStore = Depends(get_store),
    app_settings: Settings = Depends(get_settings),
) -> MutationResponse:
    try:
        deleted = VocabularyRepository(store).delete(entry_id)
    except StoreError as exc:
        raise HTTPException(status_code=500, detail="store_error") from exc

    if deleted == 0:
        raise HTTPException(status_code=404, detail="not_found")

    submit_backup(background_tasks, store, app_settings, reason="vocab_deleted")
    return MutationResponse(deleted=deleted)


@router.get("/export")
async def export_backup(store: VocabStore = Depends(get_store)) -> Response:
    """Download the whole store as a manual snapshot."""
    snapshot = build_snapshot(store, "manual")
    filename = f"vocab-trainer-backup-{datetime.now(timezone.utc).date().isoformat()}.json"
    logger.info(
        "Manual backup exported",
        extra={
            "event": "backup_exported",
            "lessons": snapshot["stats"]["lessonsCount"],
            "vocabulary": snapshot["stats"]["vocabularyCount"],
        },
    )
    return Response(
        content=dump_snapshot(snapshot),
        media_type="application/json",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.post("/import", response_model=ImportResponse)
async def import_backup(
    request: Request,
    background_tasks: BackgroundTasks,
    store: VocabStore = Depends(get_store),
    app_settings: Settings = Depends(get_settings),
) -> ImportResponse:
    """Merge an exported snapshot into the store.

    Lessons are replaced by slug; vocabulary already present is left alone.
    """
    payload = await read_json_payload(request)
    if payload is None:
        raise HTTPException(status_code=400, detail="missing_backup")

    try:
        document = parse_snapshot(payload)
    except InvalidBackupError as exc:
        raise HTTPException(status_code=400, detail="invalid_backup") from exc

    counts = restore_snapshot(store, document)
    logger.info(
        "Manual backup imported",
        extra={"event": "backup_imported", "lessons": counts.lessons, "vocabulary": counts.vocabulary},
    )
    submit_backup(background_tasks, store, app_settings, reason="backup_imported")
    return ImportResponse(imported=ImportedCounts(lessons=counts.lessons, vocabulary=counts.vocabulary))


@router.post("/reinitialize", response_model=InitResultResponse)
async def reinitialize(app_settings: Settings = Depends(get_settings)) -> InitResultResponse:
    result = ensure_initialized(app_settings)
    return InitResultResponse(state=result.state.value, source=result.source, vocabulary_count=result.vocabulary_count)
