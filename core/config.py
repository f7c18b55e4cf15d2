"""Runtime configuration.

Settings come from environment variables, optionally loaded from a ``.env``
file at the repository root:

- RECON_STORE: record store backend, ``json`` (default) or ``sqlite``
- RECON_DATA_DIR: JSON export directory (default ``<repo>/data``)
- RECON_DB_PATH: SQLite database file (default ``<repo>/reconciliation.db``)
- RECON_LOG_LEVEL: logging level name (default ``INFO``)
- RECON_LOG_JSON: truthy for JSON log lines
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from storage.base import RecordStore
from storage.json_store import JsonDirectoryRecordStore
from storage.sqlite_store import SqliteRecordStore


REPO_ROOT = Path(__file__).resolve().parents[1]

env_path = REPO_ROOT / ".env"
if env_path.exists():
    load_dotenv(env_path)


STORE_BACKENDS = ("json", "sqlite")
_TRUTHY = {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Settings:
    store_backend: str = "json"
    data_dir: Path = REPO_ROOT / "data"
    db_path: Path = REPO_ROOT / "reconciliation.db"
    log_level: str = "INFO"
    log_json: bool = False


def get_settings() -> Settings:
    """Read settings from the environment."""
    return Settings(
        store_backend=os.getenv("RECON_STORE", "json").strip().lower(),
        data_dir=Path(os.getenv("RECON_DATA_DIR") or REPO_ROOT / "data"),
        db_path=Path(os.getenv("RECON_DB_PATH") or REPO_ROOT / "reconciliation.db"),
        log_level=os.getenv("RECON_LOG_LEVEL", "INFO").upper(),
        log_json=os.getenv("RECON_LOG_JSON", "").strip().lower() in _TRUTHY,
    )


def build_record_store(settings: Optional[Settings] = None) -> RecordStore:
    """Create the record store selected by ``settings``.

    Raises:
        ValueError: If the backend name is not recognised
    """
    settings = settings or get_settings()
    if settings.store_backend == "json":
        return JsonDirectoryRecordStore(settings.data_dir)
    if settings.store_backend == "sqlite":
        return SqliteRecordStore(settings.db_path)
    raise ValueError(
        f"Unknown record store '{settings.store_backend}'. "
        f"Must be one of: {', '.join(STORE_BACKENDS)}"
    )
