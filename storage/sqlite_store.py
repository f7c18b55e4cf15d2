"""SQLite record store.

All collections share one ``records`` table. Each row holds one document's
JSON payload; a unique (collection, content_hash) index makes re-importing
an identical document a no-op.
"""

import asyncio
import hashlib
import json
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from core.observability.logging import get_logger
from storage.base import Collection, RecordStore
from storage.json_store import read_collection


logger = get_logger(__name__)

DEFAULT_DB_PATH = Path(__file__).resolve().parents[1] / "reconciliation.db"


def compute_content_hash(document: Any) -> str:
    """SHA256 of the document's canonical JSON (sorted keys, compact)."""
    canonical = json.dumps(document, sort_keys=True, separators=(",", ":"), default=str)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def init_record_db(db_path: Path = DEFAULT_DB_PATH) -> None:
    """Initialize the records table.

    Creates:
    - records: one row per stored document, unique per (collection, content_hash)

    Args:
        db_path: Path to SQLite database file
    """
    conn = sqlite3.connect(db_path)
    try:
        cursor = conn.cursor()

        cursor.execute("""
            CREATE TABLE IF NOT EXISTS records (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                collection TEXT NOT NULL,
                content_hash TEXT NOT NULL,
                file_name TEXT,
                payload TEXT NOT NULL,
                uploaded_at TEXT NOT NULL,
                UNIQUE(collection, content_hash)
            )
        """)
        cursor.execute("""
            CREATE INDEX IF NOT EXISTS idx_records_collection
            ON records(collection, id)
        """)

        conn.commit()
        logger.info("Record tables initialized", extra_fields={"db_path": str(db_path)})
    finally:
        conn.close()


def add_record(
    collection: Collection,
    document: Dict[str, Any],
    db_path: Path = DEFAULT_DB_PATH,
) -> bool:
    """Store one document.

    Returns:
        True if inserted, False if an identical document was already stored
    """
    collection = Collection(collection)
    file_name = document.get("fileName") if isinstance(document, dict) else None

    conn = sqlite3.connect(db_path)
    try:
        cursor = conn.cursor()
        cursor.execute("""
            INSERT OR IGNORE INTO records
            (collection, content_hash, file_name, payload, uploaded_at)
            VALUES (?, ?, ?, ?, ?)
        """, (
            collection.value,
            compute_content_hash(document),
            file_name if isinstance(file_name, str) else None,
            json.dumps(document, default=str),
            datetime.now(timezone.utc).isoformat(),
        ))
        conn.commit()
        return cursor.rowcount == 1
    finally:
        conn.close()


def import_directory(directory: Path, db_path: Path = DEFAULT_DB_PATH) -> Dict[str, Dict[str, int]]:
    """Load a JSON export directory (see storage.json_store) into SQLite.

    Returns:
        Per collection, how many documents were inserted and skipped as duplicates
    """
    init_record_db(db_path)
    summary: Dict[str, Dict[str, int]] = {}

    for collection in Collection:
        inserted = skipped = 0
        for document in read_collection(Path(directory), collection):
            if not isinstance(document, dict):
                skipped += 1
                continue
            if add_record(collection, document, db_path):
                inserted += 1
            else:
                skipped += 1
        summary[collection.value] = {"inserted": inserted, "skipped": skipped}
        logger.info(
            f"Imported {collection.value}",
            extra_fields={"inserted": inserted, "skipped": skipped},
        )

    return summary


def count_records(db_path: Path = DEFAULT_DB_PATH) -> Dict[str, int]:
    """Number of stored documents per collection."""
    conn = sqlite3.connect(db_path)
    try:
        cursor = conn.cursor()
        cursor.execute("SELECT collection, COUNT(*) FROM records GROUP BY collection")
        return {row[0]: row[1] for row in cursor.fetchall()}
    finally:
        conn.close()


def select_documents(collection: Collection, db_path: Path = DEFAULT_DB_PATH) -> List[Any]:
    """Payloads of ``collection`` in insertion order.

    Raises:
        FileNotFoundError: If the database file does not exist
        sqlite3.OperationalError: If the records table has not been created
    """
    if not Path(db_path).is_file():
        raise FileNotFoundError(f"Record database not found: {db_path}")

    conn = sqlite3.connect(db_path)
    try:
        cursor = conn.cursor()
        cursor.execute(
            "SELECT payload FROM records WHERE collection = ? ORDER BY id",
            (collection.value,),
        )
        return [json.loads(row[0]) for row in cursor.fetchall()]
    finally:
        conn.close()


class SqliteRecordStore(RecordStore):
    """Reads collections from the records table; queries run in a worker thread."""

    name = "sqlite"

    def __init__(self, db_path: Optional[Path] = None):
        self.db_path = Path(db_path) if db_path else DEFAULT_DB_PATH

    async def load_documents(self, collection: Collection) -> List[Any]:
        return await asyncio.to_thread(select_documents, collection, self.db_path)

    def describe(self) -> Dict[str, Any]:
        details = {
            "store": self.name,
            "db_path": str(self.db_path),
            "available": self.db_path.is_file(),
        }
        if details["available"]:
            try:
                details["counts"] = count_records(self.db_path)
            except sqlite3.Error as e:
                details["available"] = False
                details["error"] = str(e)
        return details
