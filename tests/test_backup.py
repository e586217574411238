from dataclasses import replace
import json
from pathlib import Path

import pytest

from vocab_trainer.backup_service import (
    BACKUP_FILE_NAME,
    InvalidBackupError,
    build_snapshot,
    create_backup,
    parse_snapshot,
    resolve_backup_dir,
    restore_from_backup,
    restore_snapshot,
)
from vocab_trainer.config import settings
from vocab_trainer.db import VocabStore, sqlite_url
from vocab_trainer.repository import LessonRepository, VocabularyRepository
from vocab_trainer.schema_manager import ensure_schema


@pytest.fixture()
def test_settings(tmp_path: Path):
    data_dir = tmp_path / "data"
    return replace(
        settings,
        env="test",
        data_dir=data_dir,
        database_url=sqlite_url(data_dir / "vocab.db"),
        backup_dir=None,
        seed_dir=None,
    )


@pytest.fixture()
def store(test_settings):
    test_store = VocabStore.for_path(test_settings.database_path)
    ensure_schema(test_store)
    try:
        yield test_store
    finally:
        test_store.close()


def _fill(store: VocabStore) -> None:
    LessonRepository(store).upsert("lesson01", title="Lesson 01", entry_count=2)
    vocabulary = VocabularyRepository(store)
    vocabulary.insert_or_fail("lesson01", "Haus", "house")
    vocabulary.insert_or_fail("lesson01", "Straße", "street")


def test_backup_file_holds_full_snapshot(store: VocabStore, test_settings):
    _fill(store)

    path = create_backup(store, test_settings)

    assert path == test_settings.data_dir / "backups" / BACKUP_FILE_NAME
    raw = path.read_text(encoding="utf-8")
    document = json.loads(raw)
    assert set(document) == {"backupDate", "version", "type", "lessons", "vocabulary", "stats"}
    assert document["version"] == "1.0"
    assert document["type"] == "auto"
    assert document["stats"] == {"lessonsCount": 1, "vocabularyCount": 2}
    assert [entry["source_text"] for entry in document["vocabulary"]] == ["Haus", "Straße"]
    assert document["lessons"][0]["slug"] == "lesson01"
    # Non-ASCII text is written as-is, pretty-printed.
    assert "Straße" in raw
    assert raw.startswith("{\n  ")


def test_backup_overwrites_previous_copy(store: VocabStore, test_settings):
    _fill(store)
    first = create_backup(store, test_settings)
    VocabularyRepository(store).insert_or_fail("lesson01", "Baum", "tree")

    second = create_backup(store, test_settings)

    assert first == second
    assert json.loads(second.read_text(encoding="utf-8"))["stats"]["vocabularyCount"] == 3


def test_backup_destination_priority(tmp_path: Path, test_settings):
    configured = replace(test_settings, backup_dir=tmp_path / "configured")

    assert resolve_backup_dir(configured, tmp_path / "explicit") == tmp_path / "explicit"
    assert resolve_backup_dir(configured) == tmp_path / "configured"
    assert resolve_backup_dir(test_settings) == test_settings.data_dir / "backups"
    assert resolve_backup_dir(test_settings, data_root=tmp_path / "root") == tmp_path / "root" / "backups"


def test_backup_on_closed_store_reports_failure(test_settings):
    closed_store = VocabStore.for_path(test_settings.database_path)
    closed_store.close()

    assert create_backup(closed_store, test_settings) is None
    assert not (test_settings.data_dir / "backups" / BACKUP_FILE_NAME).exists()


def test_manual_snapshot_is_typed(store: VocabStore):
    _fill(store)

    snapshot = build_snapshot(store, "manual")

    assert snapshot["type"] == "manual"
    assert snapshot["stats"]["vocabularyCount"] == 2


@pytest.mark.parametrize(
    "raw",
    [
        "{nope",
        b"\x80\x81",
        "[]",
        {"lessons": []},
        {"vocabulary": []},
        {"lessons": [], "vocabulary": [{"lesson": "lesson01"}]},
    ],
)
def test_parse_snapshot_rejects_unusable_documents(raw):
    with pytest.raises(InvalidBackupError):
        parse_snapshot(raw)


def test_restore_merges_without_duplicating(store: VocabStore, test_settings):
    _fill(store)
    backup_path = create_backup(store, test_settings)
    VocabularyRepository(store).insert_or_fail("lesson02", "Tisch", "table")

    counts = restore_snapshot(store, parse_snapshot(backup_path.read_bytes()))

    assert counts.lessons == 1
    assert counts.vocabulary == 0
    assert VocabularyRepository(store).count() == 3


def test_restore_from_backup_missing_file(store: VocabStore, tmp_path: Path):
    assert restore_from_backup(store, tmp_path / "nowhere") is False


def test_restore_into_fresh_store(store: VocabStore, test_settings, tmp_path: Path):
    _fill(store)
    create_backup(store, test_settings)

    fresh = VocabStore.for_path(tmp_path / "fresh" / "vocab.db")
    ensure_schema(fresh)
    try:
        assert restore_from_backup(fresh, test_settings.data_dir / "backups") is True
        restored = VocabularyRepository(fresh).list_all()
        lessons = LessonRepository(fresh).list_records()
    finally:
        fresh.close()

    assert [(row["lesson"], row["source_text"], row["target_text"]) for row in restored] == [
        ("lesson01", "Haus", "house"),
        ("lesson01", "Straße", "street"),
    ]
    assert [(row["slug"], row["entry_count"]) for row in lessons] == [("lesson01", 2)]
