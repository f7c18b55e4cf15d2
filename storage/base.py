"""Read-only record store interface.

Stores hand back raw documents; this module turns them into the tolerant
record views the engine consumes. A document that is not an object is
skipped with a warning rather than failing the whole read.
"""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Type

from pydantic import BaseModel, ValidationError

from core.observability.logging import get_logger
from models.records import (
    BatchRecord,
    COARecord,
    COAStage,
    FormulaRecord,
    RequisitionRecord,
)


logger = get_logger(__name__)


class Collection(str, Enum):
    """Source collections, named as they are stored."""
    FORMULAS = "formulas"
    BATCHES = "batches"
    REQUISITIONS = "requisitions"
    COA = "coa"


RECORD_MODELS: Dict[Collection, Type[BaseModel]] = {
    Collection.FORMULAS: FormulaRecord,
    Collection.BATCHES: BatchRecord,
    Collection.REQUISITIONS: RequisitionRecord,
    Collection.COA: COARecord,
}


def parse_records(collection: Collection, documents: Iterable[Any], source: str = "") -> List[BaseModel]:
    """Validate raw documents into record views for ``collection``."""
    model = RECORD_MODELS[collection]
    records = []
    for position, document in enumerate(documents):
        if isinstance(document, model):
            records.append(document)
            continue
        if not isinstance(document, dict):
            logger.warning(
                f"Skipping non-object {collection.value} document",
                extra_fields={"source": source, "position": position},
            )
            continue
        try:
            records.append(model.model_validate(document))
        except ValidationError as e:
            logger.warning(
                f"Skipping unreadable {collection.value} document: {e.error_count()} errors",
                extra_fields={"source": source, "position": position},
            )
    return records


class RecordStore(ABC):
    """Async, read-only access to the four source collections.

    Subclasses implement ``load_documents``; parsing into record views is
    shared.
    """

    name = "abstract"

    @abstractmethod
    async def load_documents(self, collection: Collection) -> List[Any]:
        """Return every raw document of ``collection``."""

    async def _fetch(self, collection: Collection) -> List[Any]:
        documents = await self.load_documents(collection)
        return parse_records(collection, documents, source=self.name)

    async def fetch_formulas(self) -> List[FormulaRecord]:
        return await self._fetch(Collection.FORMULAS)

    async def fetch_batches(self) -> List[BatchRecord]:
        return await self._fetch(Collection.BATCHES)

    async def fetch_requisitions(self) -> List[RequisitionRecord]:
        return await self._fetch(Collection.REQUISITIONS)

    async def fetch_coa(self, stage: Optional[COAStage] = None) -> List[COARecord]:
        """COA records, optionally only those of one stage."""
        records = await self._fetch(Collection.COA)
        if stage is None:
            return records
        return [record for record in records if record.stage == stage.value]

    def describe(self) -> Dict[str, Any]:
        """Backend details for readiness checks."""
        return {"store": self.name}
