"""In-memory record store, used by tests and embedding callers."""

from typing import Any, Dict, Iterable, List, Optional

from storage.base import Collection, RecordStore


class InMemoryRecordStore(RecordStore):
    """Holds documents (dicts or record models) handed in at construction."""

    name = "memory"

    def __init__(
        self,
        formulas: Optional[Iterable[Any]] = None,
        batches: Optional[Iterable[Any]] = None,
        requisitions: Optional[Iterable[Any]] = None,
        coa: Optional[Iterable[Any]] = None,
    ):
        self._documents: Dict[Collection, List[Any]] = {
            Collection.FORMULAS: list(formulas or []),
            Collection.BATCHES: list(batches or []),
            Collection.REQUISITIONS: list(requisitions or []),
            Collection.COA: list(coa or []),
        }

    def add(self, collection: Collection, document: Any) -> None:
        self._documents[Collection(collection)].append(document)

    async def load_documents(self, collection: Collection) -> List[Any]:
        return list(self._documents[collection])

    def describe(self) -> Dict[str, Any]:
        return {
            "store": self.name,
            "counts": {c.value: len(docs) for c, docs in self._documents.items()},
        }
