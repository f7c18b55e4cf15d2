"""Storage Package.

Read-only record stores serving the Formula, Batch, Requisition and COA
collections to the reconciliation engine.
"""

from storage.base import Collection, RecordStore, parse_records
from storage.json_store import JsonDirectoryRecordStore
from storage.memory import InMemoryRecordStore
from storage.sqlite_store import (
    SqliteRecordStore,
    add_record,
    import_directory,
    init_record_db,
)

__all__ = [
    "Collection",
    "RecordStore",
    "parse_records",
    "InMemoryRecordStore",
    "JsonDirectoryRecordStore",
    "SqliteRecordStore",
    "add_record",
    "import_directory",
    "init_record_db",
]
