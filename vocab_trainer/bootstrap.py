from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
import logging
from pathlib import Path
from typing import Optional

from .backup_service import resolve_backup_dir, restore_from_backup
from .config import Settings, settings
from .db import VocabStore
from .metrics import INIT_RUNS_TOTAL
from .repository import VocabularyRepository
from .schema_manager import ensure_schema
from .seed_importer import import_seeds

logger = logging.getLogger("vocab_trainer.bootstrap")


class InitState(str, Enum):
    SCHEMA_PENDING = "schema_pending"
    POPULATION_CHECK = "population_check"
    RESTORE_ATTEMPT = "restore_attempt"
    SEED_IMPORT = "seed_import"
    DONE = "done"
    FAILED = "failed"


@dataclass(frozen=True)
class InitResult:
    state: InitState
    source: Optional[str]
    vocabulary_count: int


def _database_path(app_settings: Settings, data_root: Path) -> Path:
    return app_settings.database_path or data_root / "vocab.db"


def seed_search_paths(app_settings: Settings, data_root: Path, db_dir: Path) -> list[Path]:
    """Directory of the database file first, then the data root, then SEED_DIR."""
    paths: list[Path] = []
    for candidate in (db_dir, data_root, app_settings.seed_dir):
        if candidate is not None and candidate not in paths:
            paths.append(candidate)
    return paths


def ensure_initialized(app_settings: Optional[Settings] = None, data_root: Optional[Path] = None) -> InitResult:
    """Bring the store to a usable state; safe to call on every start.

    Steps run strictly in order: schema, population check, backup restore,
    seed import. The store opened here is always closed before returning or
    re-raising.
    """
    app_settings = app_settings or settings
    root = Path(data_root or app_settings.data_dir)
    if not root.exists():
        root.mkdir(parents=True, exist_ok=True)
        logger.info("Data directory created", extra={"event": "data_dir_created", "path": str(root)})

    if app_settings.is_sqlite:
        db_path = _database_path(app_settings, root)
        store = VocabStore.for_path(db_path)
        db_dir = db_path.parent
    else:
        store = VocabStore(app_settings.database_url)
        db_dir = root

    state = InitState.SCHEMA_PENDING
    try:
        store.check_connection()
        ensure_schema(store)

        state = InitState.POPULATION_CHECK
        vocabulary = VocabularyRepository(store)
        existing = vocabulary.count()
        if existing > 0:
            logger.info(
                "Database already contains data, skipping initialization",
                extra={"event": "init_skipped", "count": existing},
            )
            return _finish("existing", existing)

        state = InitState.RESTORE_ATTEMPT
        if restore_from_backup(store, resolve_backup_dir(app_settings, data_root=root)):
            logger.info("Database initialized from auto-backup", extra={"event": "init_from_backup"})
            return _finish("backup", vocabulary.count())

        state = InitState.SEED_IMPORT
        import_seeds(
            store,
            app_settings.seed_lessons,
            seed_search_paths(app_settings, root, db_dir),
            quiet_missing=app_settings.is_test,
        )
        logger.info("Database initialized from seed files", extra={"event": "init_from_seeds"})
        return _finish("seeds", vocabulary.count())
    except Exception:
        logger.exception(
            "Database initialization failed",
            extra={"event": "init_failed", "state": state.value},
        )
        INIT_RUNS_TOTAL.labels(source=InitState.FAILED.value).inc()
        raise
    finally:
        store.close()


def _finish(source: str, vocabulary_count: int) -> InitResult:
    INIT_RUNS_TOTAL.labels(source=source).inc()
    return InitResult(state=InitState.DONE, source=source, vocabulary_count=vocabulary_count)
