"""Record store over a directory of JSON exports.

Layout, per collection (either or both may exist):
    <root>/<collection>.json        a document or a list of documents
    <root>/<collection>/*.json      one file per document (or list)
"""

import asyncio
import json
from pathlib import Path
from typing import Any, Dict, List

from core.observability.logging import get_logger
from storage.base import Collection, RecordStore


logger = get_logger(__name__)


def collection_files(root: Path, collection: Collection) -> List[Path]:
    """JSON files holding ``collection`` under ``root``, in a stable order."""
    files = []
    single = root / f"{collection.value}.json"
    if single.is_file():
        files.append(single)
    folder = root / collection.value
    if folder.is_dir():
        files.extend(sorted(folder.glob("*.json")))
    return files


def read_json_documents(path: Path) -> List[Any]:
    """Documents in one file; unreadable files contribute nothing."""
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
        logger.warning(f"Skipping unreadable JSON file {path.name}: {e}")
        return []
    if isinstance(data, list):
        return data
    return [data]


def read_collection(root: Path, collection: Collection) -> List[Any]:
    """Every document of ``collection`` under ``root``.

    Raises:
        FileNotFoundError: If ``root`` is not a directory
    """
    if not root.is_dir():
        raise FileNotFoundError(f"Data directory not found: {root}")
    documents: List[Any] = []
    for path in collection_files(root, collection):
        documents.extend(read_json_documents(path))
    return documents


class JsonDirectoryRecordStore(RecordStore):
    """Reads collections from JSON files; file I/O runs in a worker thread."""

    name = "json"

    def __init__(self, root: Path):
        self.root = Path(root)

    async def load_documents(self, collection: Collection) -> List[Any]:
        return await asyncio.to_thread(read_collection, self.root, collection)

    def describe(self) -> Dict[str, Any]:
        return {
            "store": self.name,
            "data_dir": str(self.root),
            "available": self.root.is_dir(),
        }
