from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
import json
import logging
from pathlib import Path
from typing import Any, Literal, Optional

from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError

from .config import Settings
from .db import StoreError, VocabStore
from .repository import LessonRepository, VocabularyRepository
from .schemas import BackupDocument

logger = logging.getLogger("vocab_trainer.backup")

BACKUP_FILE_NAME = "auto-backup.json"
BACKUP_VERSION = "1.0"

BackupType = Literal["auto", "manual"]


class InvalidBackupError(ValueError):
    """Raised when a snapshot document cannot be used for a restore."""


@dataclass(frozen=True)
class RestoreCounts:
    lessons: int
    vocabulary: int


def resolve_backup_dir(app_settings: Settings, destination_dir: Optional[Path] = None, data_root: Optional[Path] = None) -> Path:
    """Explicit argument, then AUTO_BACKUP_DIR, then ``<data root>/backups``."""
    if destination_dir is not None:
        return Path(destination_dir)
    if app_settings.backup_dir is not None:
        return app_settings.backup_dir
    return Path(data_root or app_settings.data_dir) / "backups"


def _json_default(value: Any) -> str:
    if isinstance(value, datetime):
        return value.isoformat()
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def build_snapshot(store: VocabStore, backup_type: BackupType = "auto") -> dict[str, Any]:
    lessons = LessonRepository(store).list_records()
    vocabulary = VocabularyRepository(store).list_all()
    return {
        "backupDate": datetime.now(timezone.utc).isoformat(),
        "version": BACKUP_VERSION,
        "type": backup_type,
        "lessons": lessons,
        "vocabulary": vocabulary,
        "stats": {
            "lessonsCount": len(lessons),
            "vocabularyCount": len(vocabulary),
        },
    }


def dump_snapshot(snapshot: dict[str, Any]) -> str:
    return json.dumps(snapshot, indent=2, ensure_ascii=False, default=_json_default)


def create_backup(
    store: VocabStore,
    app_settings: Settings,
    destination_dir: Optional[Path] = None,
) -> Optional[Path]:
    """Write the full store to ``auto-backup.json``, replacing any previous copy.

    Never raises: a failed backup is logged and reported as ``None``.
    """
    try:
        backup_dir = resolve_backup_dir(app_settings, destination_dir)
        backup_dir.mkdir(parents=True, exist_ok=True)

        snapshot = build_snapshot(store, "auto")
        backup_path = backup_dir / BACKUP_FILE_NAME
        backup_path.write_text(dump_snapshot(snapshot), encoding="utf-8")
    except Exception:
        logger.exception("Auto-backup failed", extra={"event": "backup_failed"})
        return None

    logger.info(
        "Auto-backup created successfully",
        extra={
            "event": "backup_created",
            "path": str(backup_path),
            "lessons": snapshot["stats"]["lessonsCount"],
            "vocabulary": snapshot["stats"]["vocabularyCount"],
        },
    )
    return backup_path


def parse_snapshot(raw: Any) -> BackupDocument:
    if isinstance(raw, (str, bytes, bytearray)):
        try:
            raw = json.loads(raw)
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise InvalidBackupError(f"Backup is not valid JSON: {exc}") from exc

    if not isinstance(raw, dict):
        raise InvalidBackupError("Backup must be a JSON object")

    try:
        return BackupDocument.model_validate(raw)
    except ValidationError as exc:
        raise InvalidBackupError(f"Backup lacks lessons or vocabulary: {exc.error_count()} problem(s)") from exc


def restore_snapshot(store: VocabStore, document: BackupDocument) -> RestoreCounts:
    """Upsert every lesson, then insert-or-ignore every vocabulary entry."""
    lessons_written = LessonRepository(store).upsert_many(
        lesson.model_dump() for lesson in document.lessons
    )
    vocabulary_written = VocabularyRepository(store).insert_many_or_ignore(
        entry.model_dump() for entry in document.vocabulary
    )
    return RestoreCounts(lessons=lessons_written, vocabulary=vocabulary_written)


def restore_from_backup(store: VocabStore, backup_dir: Path) -> bool:
    backup_path = Path(backup_dir) / BACKUP_FILE_NAME
    if not backup_path.is_file():
        logger.info(
            "No auto-backup found, will use seed files",
            extra={"event": "backup_missing", "path": str(backup_path)},
        )
        return False

    try:
        document = parse_snapshot(backup_path.read_bytes())
    except (OSError, InvalidBackupError) as exc:
        logger.warning(
            "Backup restore failed (falling back to seed files)",
            extra={"event": "backup_invalid", "path": str(backup_path), "reason": str(exc)},
        )
        return False

    logger.info(
        "Restoring from auto-backup",
        extra={
            "event": "backup_restore_started",
            "lessons": len(document.lessons),
            "vocabulary": len(document.vocabulary),
        },
    )
    try:
        counts = restore_snapshot(store, document)
    except (StoreError, SQLAlchemyError) as exc:
        logger.warning(
            "Backup restore failed (falling back to seed files)",
            extra={"event": "backup_restore_failed", "path": str(backup_path), "reason": str(exc)},
        )
        return False

    logger.info(
        "Auto-backup restored",
        extra={"event": "backup_restored", "lessons": counts.lessons, "vocabulary": counts.vocabulary},
    )
    return True
