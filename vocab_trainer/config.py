from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from sqlalchemy.engine import make_url

load_dotenv()

DEFAULT_SEED_LESSONS = ("lesson01", "lesson02", "lesson03", "lesson04", "lesson05")


def _as_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _as_int(value: str | None, default: int) -> int:
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _as_path(value: str | None) -> Optional[Path]:
    if value is None or not value.strip():
        return None
    return Path(value.strip())


def _as_list(value: str | None, default: tuple[str, ...]) -> tuple[str, ...]:
    if value is None:
        return default
    items = tuple(item.strip() for item in value.split(",") if item.strip())
    return items or default


def _normalize_database_url(value: str | None, db_path: str | None, data_dir: Path) -> str:
    raw = (value or "").strip()
    # Some dashboards accidentally store quoted values.
    if (raw.startswith('"') and raw.endswith('"')) or (raw.startswith("'") and raw.endswith("'")):
        raw = raw[1:-1].strip()
    if raw:
        scheme, _, suffix = raw.partition("://")
        if scheme.lower() in {"postgres", "postgresql"}:
            return f"postgresql+psycopg2://{suffix}"
        return raw

    if db_path and db_path.strip():
        return f"sqlite:///{Path(db_path.strip())}"
    return f"sqlite:///{data_dir / 'vocab.db'}"


@dataclass(frozen=True)
class Settings:
    env: str
    port: int
    data_dir: Path
    database_url: str
    backup_dir: Optional[Path]
    seed_dir: Optional[Path]
    seed_lessons: tuple[str, ...]
    admin_api_key: str
    cors_origins: list[str]
    debug: bool
    log_level: str
    enable_prometheus_metrics: bool

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")

    @property
    def is_production(self) -> bool:
        return self.env.lower() not in {"development", "dev", "test", "testing"}

    @property
    def is_test(self) -> bool:
        return self.env.lower() in {"test", "testing"}

    @property
    def database_path(self) -> Optional[Path]:
        """Filesystem location of the SQLite file, ``None`` for server databases."""
        if not self.is_sqlite:
            return None
        database = make_url(self.database_url).database
        if not database or database == ":memory:":
            return None
        return Path(database)

    def validate(self) -> None:
        """Raise early on dangerous mis-configurations in non-dev environments."""
        if self.is_production and not self.admin_api_key:
            raise RuntimeError(
                "ADMIN_API_KEY must be explicitly set in production. "
                "Generate one with: openssl rand -base64 32"
            )


def load_settings() -> Settings:
    data_dir = Path(os.getenv("DATA_DIR", "./data").strip() or "./data")
    return Settings(
        env=os.getenv("ENV", "development"),
        port=_as_int(os.getenv("PORT"), 3000),
        data_dir=data_dir,
        database_url=_normalize_database_url(os.getenv("DATABASE_URL"), os.getenv("DB_PATH"), data_dir),
        backup_dir=_as_path(os.getenv("AUTO_BACKUP_DIR")),
        seed_dir=_as_path(os.getenv("SEED_DIR")),
        seed_lessons=_as_list(os.getenv("SEED_LESSONS"), DEFAULT_SEED_LESSONS),
        admin_api_key=os.getenv("ADMIN_API_KEY", "").strip(),
        cors_origins=[
            origin.strip()
            for origin in os.getenv("CORS_ORIGINS", "*").split(",")
            if origin.strip()
        ],
        debug=_as_bool(os.getenv("DEBUG"), False),
        log_level=os.getenv("LOG_LEVEL", "INFO").strip().upper(),
        enable_prometheus_metrics=_as_bool(os.getenv("ENABLE_PROMETHEUS_METRICS"), True),
    )


settings = load_settings()
