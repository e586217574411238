from __future__ import annotations

from contextlib import contextmanager
import logging
from pathlib import Path
from typing import Iterator, Optional

from sqlalchemy import Engine, create_engine, text
from sqlalchemy.orm import Session, sessionmaker

logger = logging.getLogger("vocab_trainer.db")


class StoreError(Exception):
    """Raised when a store operation fails for a reason other than a constraint."""


class StoreClosedError(StoreError):
    """Raised when a closed store is used."""


def sqlite_url(path: Path) -> str:
    return f"sqlite:///{path}"


def _build_engine(database_url: str) -> Engine:
    if database_url.startswith("sqlite"):
        return create_engine(
            database_url,
            connect_args={"check_same_thread": False},
            future=True,
        )

    return create_engine(database_url, pool_pre_ping=True, future=True)


class VocabStore:
    """Owns the engine and session factory for one database.

    Every collaborator that touches the database receives a store explicitly.
    Sessions are short-lived: one per logical operation.
    """

    def __init__(self, database_url: str) -> None:
        self.database_url = database_url
        self._engine: Optional[Engine] = _build_engine(database_url)
        self._sessionmaker = sessionmaker(
            bind=self._engine,
            autoflush=False,
            autocommit=False,
            expire_on_commit=False,
            class_=Session,
            future=True,
        )

    @classmethod
    def for_path(cls, path: Path) -> "VocabStore":
        path.parent.mkdir(parents=True, exist_ok=True)
        return cls(sqlite_url(path))

    @property
    def closed(self) -> bool:
        return self._engine is None

    @property
    def engine(self) -> Engine:
        if self._engine is None:
            raise StoreClosedError("Store is closed")
        return self._engine

    @contextmanager
    def session(self) -> Iterator[Session]:
        if self._engine is None:
            raise StoreClosedError("Store is closed")
        session = self._sessionmaker()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def check_connection(self) -> None:
        with self.engine.connect() as connection:
            connection.execute(text("SELECT 1"))

    def close(self) -> None:
        if self._engine is None:
            return
        self._engine.dispose()
        self._engine = None
        logger.info("Database connection closed", extra={"event": "store_closed"})
