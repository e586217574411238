from dataclasses import replace
import json
from pathlib import Path

import pytest

from vocab_trainer import bootstrap
from vocab_trainer.backup_service import BACKUP_FILE_NAME
from vocab_trainer.bootstrap import InitState, ensure_initialized, seed_search_paths
from vocab_trainer.config import settings
from vocab_trainer.db import VocabStore, sqlite_url
from vocab_trainer.repository import LessonRepository, VocabularyRepository


def _settings(tmp_path: Path, **overrides):
    data_dir = tmp_path / "data"
    values = {
        "env": "test",
        "data_dir": data_dir,
        "database_url": sqlite_url(data_dir / "vocab.db"),
        "backup_dir": None,
        "seed_dir": None,
        "seed_lessons": ("lesson01", "lesson02"),
        "admin_api_key": "test-admin-key",
    }
    values.update(overrides)
    return replace(settings, **values)


def _write_json(path: Path, payload) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(payload), encoding="utf-8")
    return path


def _read_back(test_settings):
    store = VocabStore(test_settings.database_url)
    try:
        return VocabularyRepository(store).list_all(), LessonRepository(store).list_lessons()
    finally:
        store.close()


def test_empty_store_is_filled_from_seed_files(tmp_path: Path):
    test_settings = _settings(tmp_path)
    _write_json(test_settings.data_dir / "vocab-lesson01.json", [
        {"source_text": "Haus", "target_text": "house"},
        {"source_text": "Baum", "target_text": "tree"},
    ])
    _write_json(test_settings.data_dir / "vocab-lesson02.json", [{"source_text": "Hund", "target_text": "dog"}])

    result = ensure_initialized(test_settings)

    assert result.state is InitState.DONE
    assert result.source == "seeds"
    assert result.vocabulary_count == 3

    vocabulary, lessons = _read_back(test_settings)
    assert {(row["lesson"], row["source_text"]) for row in vocabulary} == {
        ("lesson01", "Haus"),
        ("lesson01", "Baum"),
        ("lesson02", "Hund"),
    }
    assert [(row["slug"], row["title"], row["entry_count"]) for row in lessons] == [
        ("lesson01", "Lesson 01", 2),
        ("lesson02", "Lesson 02", 1),
    ]


def test_second_run_leaves_populated_store_alone(tmp_path: Path):
    test_settings = _settings(tmp_path)
    seed = _write_json(test_settings.data_dir / "vocab-lesson01.json", [{"source_text": "Haus", "target_text": "house"}])

    assert ensure_initialized(test_settings).source == "seeds"

    seed.write_text(json.dumps([{"source_text": "Tisch", "target_text": "table"}]), encoding="utf-8")
    result = ensure_initialized(test_settings)

    assert result.source == "existing"
    assert result.vocabulary_count == 1
    vocabulary, _ = _read_back(test_settings)
    assert [row["source_text"] for row in vocabulary] == ["Haus"]


def test_missing_data_directory_is_created(tmp_path: Path):
    test_settings = _settings(tmp_path, data_dir=tmp_path / "fresh" / "data", database_url=sqlite_url(tmp_path / "fresh" / "data" / "vocab.db"))

    result = ensure_initialized(test_settings)

    assert (tmp_path / "fresh" / "data").is_dir()
    assert result.source == "seeds"
    assert result.vocabulary_count == 0


def test_backup_takes_precedence_over_seed_files(tmp_path: Path):
    test_settings = _settings(tmp_path)
    _write_json(test_settings.data_dir / "vocab-lesson01.json", [{"source_text": "Haus", "target_text": "house"}])
    _write_json(
        test_settings.data_dir / "backups" / BACKUP_FILE_NAME,
        {
            "backupDate": "2024-03-01T10:00:00+00:00",
            "version": "1.0",
            "type": "auto",
            "lessons": [{"slug": "lesson03", "title": "Farben", "description": "colours", "entry_count": 2}],
            "vocabulary": [
                {"lesson": "lesson03", "source_text": "rot", "target_text": "red", "created_at": "2024-03-01T09:00:00Z"},
                {"lesson": "lesson03", "source_text": "blau", "target_text": "blue"},
            ],
        },
    )

    result = ensure_initialized(test_settings)

    assert result.source == "backup"
    assert result.vocabulary_count == 2
    vocabulary, lessons = _read_back(test_settings)
    assert {row["source_text"] for row in vocabulary} == {"rot", "blau"}
    assert [(row["slug"], row["title"], row["description"]) for row in lessons] == [("lesson03", "Farben", "colours")]


def test_backup_dir_setting_is_used_for_restore(tmp_path: Path):
    test_settings = _settings(tmp_path, backup_dir=tmp_path / "elsewhere")
    _write_json(
        tmp_path / "elsewhere" / BACKUP_FILE_NAME,
        {"lessons": [], "vocabulary": [{"lesson": "lesson01", "de": "Haus", "en": "house"}]},
    )

    result = ensure_initialized(test_settings)

    assert result.source == "backup"
    assert result.vocabulary_count == 1


def test_unparseable_backup_falls_back_to_seeds(tmp_path: Path):
    test_settings = _settings(tmp_path)
    backup_path = test_settings.data_dir / "backups" / BACKUP_FILE_NAME
    backup_path.parent.mkdir(parents=True)
    backup_path.write_text("{not json", encoding="utf-8")
    _write_json(test_settings.data_dir / "vocab-lesson01.json", [{"source_text": "Haus", "target_text": "house"}])

    result = ensure_initialized(test_settings)

    assert result.source == "seeds"
    assert result.vocabulary_count == 1


def test_backup_without_lessons_collection_is_ignored(tmp_path: Path):
    test_settings = _settings(tmp_path)
    _write_json(
        test_settings.data_dir / "backups" / BACKUP_FILE_NAME,
        {"vocabulary": [{"lesson": "lesson09", "source_text": "neun", "target_text": "nine"}]},
    )
    _write_json(test_settings.data_dir / "vocab-lesson01.json", [{"source_text": "Haus", "target_text": "house"}])

    result = ensure_initialized(test_settings)

    assert result.source == "seeds"
    vocabulary, _ = _read_back(test_settings)
    assert [row["lesson"] for row in vocabulary] == ["lesson01"]


def test_malformed_seed_file_only_skips_its_lesson(tmp_path: Path):
    test_settings = _settings(tmp_path, seed_lessons=("lesson01", "lesson02", "lesson03"))
    (test_settings.data_dir).mkdir(parents=True)
    (test_settings.data_dir / "vocab-lesson01.json").write_text("[{broken", encoding="utf-8")
    _write_json(test_settings.data_dir / "vocab-lesson02.json", {"source_text": "kein", "target_text": "array"})
    _write_json(test_settings.data_dir / "vocab-lesson03.json", [{"source_text": "drei", "target_text": "three"}])

    result = ensure_initialized(test_settings)

    assert result.source == "seeds"
    _, lessons = _read_back(test_settings)
    assert [row["slug"] for row in lessons] == ["lesson03"]


def test_seed_items_accept_legacy_keys_and_skip_invalid(tmp_path: Path):
    test_settings = _settings(tmp_path, seed_lessons=("lesson01",))
    _write_json(
        test_settings.data_dir / "vocab-lesson01.json",
        [
            {"de": "Haus", "en": "house"},
            {"source_text": "Baum", "target_text": "tree"},
            {"source_text": "", "target_text": "empty"},
            {"source_text": "x" * 61, "target_text": "too long"},
            {"en": "only target"},
            "not an object",
        ],
    )

    result = ensure_initialized(test_settings)

    assert result.vocabulary_count == 2
    vocabulary, _ = _read_back(test_settings)
    assert [(row["source_text"], row["target_text"]) for row in vocabulary] == [("Haus", "house"), ("Baum", "tree")]


def test_single_digit_slug_gets_padded_title(tmp_path: Path):
    test_settings = _settings(tmp_path, seed_lessons=("lesson6",))
    _write_json(test_settings.data_dir / "vocab-lesson6.json", [
        {"source_text": "sechs", "target_text": "six"},
        {"source_text": "sieben", "target_text": "seven"},
    ])

    ensure_initialized(test_settings)

    _, lessons = _read_back(test_settings)
    assert lessons == [
        {"slug": "lesson6", "title": "Lesson 06", "description": None, "entry_count": 2, "created_at": lessons[0]["created_at"]}
    ]


def test_database_directory_seed_wins_over_data_root(tmp_path: Path):
    db_dir = tmp_path / "db"
    test_settings = _settings(tmp_path, database_url=sqlite_url(db_dir / "vocab.db"), seed_lessons=("lesson01",))
    _write_json(db_dir / "vocab-lesson01.json", [{"source_text": "Haus", "target_text": "house"}])
    _write_json(test_settings.data_dir / "vocab-lesson01.json", [{"source_text": "Baum", "target_text": "tree"}])

    ensure_initialized(test_settings)

    vocabulary, _ = _read_back(test_settings)
    assert [row["source_text"] for row in vocabulary] == ["Haus"]


def test_seed_search_paths_are_deduplicated(tmp_path: Path):
    data_root = tmp_path / "data"
    test_settings = _settings(tmp_path, seed_dir=tmp_path / "seeds")

    assert seed_search_paths(test_settings, data_root, data_root) == [data_root, tmp_path / "seeds"]
    assert seed_search_paths(test_settings, data_root, tmp_path / "db") == [tmp_path / "db", data_root, tmp_path / "seeds"]


def test_store_is_closed_when_initialization_fails(tmp_path: Path, monkeypatch):
    test_settings = _settings(tmp_path)
    closed: list[VocabStore] = []
    original_close = VocabStore.close

    def tracking_close(self):
        closed.append(self)
        original_close(self)

    def broken_schema(_store):
        raise RuntimeError("disk full")

    monkeypatch.setattr(VocabStore, "close", tracking_close)
    monkeypatch.setattr(bootstrap, "ensure_schema", broken_schema)

    with pytest.raises(RuntimeError, match="disk full"):
        ensure_initialized(test_settings)

    assert len(closed) == 1
    assert closed[0].closed
