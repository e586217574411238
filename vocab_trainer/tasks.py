from __future__ import annotations

import logging

from fastapi import BackgroundTasks

from .backup_service import create_backup
from .config import Settings
from .db import VocabStore
from .metrics import BACKUPS_TOTAL

logger = logging.getLogger("vocab_trainer.tasks")


def run_backup(store: VocabStore, app_settings: Settings) -> None:
    """Background entry point; its outcome only reaches logs and metrics."""
    path = create_backup(store, app_settings)
    BACKUPS_TOTAL.labels(status="ok" if path is not None else "failed").inc()


def submit_backup(background_tasks: BackgroundTasks, store: VocabStore, app_settings: Settings, reason: str) -> None:
    """Schedule an auto-backup to run after the response has been sent."""
    logger.debug("Auto-backup submitted", extra={"event": "backup_submitted", "reason": reason})
    background_tasks.add_task(run_backup, store, app_settings)
