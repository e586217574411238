from __future__ import annotations

import argparse
from pathlib import Path
import sys

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.append(str(ROOT_DIR))

from vocab_trainer.backup_service import (  # noqa: E402
    BACKUP_FILE_NAME,
    InvalidBackupError,
    create_backup,
    parse_snapshot,
    restore_snapshot,
)
from vocab_trainer.config import settings  # noqa: E402
from vocab_trainer.db import VocabStore  # noqa: E402
from vocab_trainer.logging_utils import configure_logging  # noqa: E402
from vocab_trainer.schema_manager import ensure_schema  # noqa: E402


def open_store() -> VocabStore:
    if settings.database_path is not None:
        return VocabStore.for_path(settings.database_path)
    return VocabStore(settings.database_url)


def cmd_create(args: argparse.Namespace) -> int:
    store = open_store()
    try:
        path = create_backup(store, settings, destination_dir=Path(args.dest) if args.dest else None)
    finally:
        store.close()

    if path is None:
        print("Backup failed; see log output for details.")
        return 1
    print(f"Backup written to {path}")
    return 0


def cmd_restore(args: argparse.Namespace) -> int:
    backup_path = Path(args.file)
    if not backup_path.is_file():
        print(f"Backup file not found: {backup_path}")
        return 1

    try:
        document = parse_snapshot(backup_path.read_bytes())
    except InvalidBackupError as exc:
        print(f"Backup file is not usable: {exc}")
        return 1

    store = open_store()
    try:
        ensure_schema(store)
        counts = restore_snapshot(store, document)
    finally:
        store.close()

    print(f"Restored lessons: {counts.lessons}")
    print(f"Inserted vocabulary rows: {counts.vocabulary}")
    return 0


def main() -> int:
    parser = argparse.ArgumentParser(description="Create or restore vocabulary snapshots")
    subparsers = parser.add_subparsers(dest="command", required=True)

    create = subparsers.add_parser("create", help=f"Write {BACKUP_FILE_NAME} from the current database")
    create.add_argument("--dest", default=None, help="Target directory (defaults to AUTO_BACKUP_DIR or DATA_DIR/backups)")
    create.set_defaults(func=cmd_create)

    restore = subparsers.add_parser("restore", help="Merge a snapshot file into the database")
    restore.add_argument("file", help="Path to a snapshot JSON file")
    restore.set_defaults(func=cmd_restore)

    args = parser.parse_args()
    configure_logging()
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
