"""Request-scoped lookup indexes over the Batch, COA and Requisition collections.

Each index is built once per request, before any MFC is examined, and is
only read afterwards.
"""

from dataclasses import dataclass, field
from typing import Dict, Iterable, Iterator, List, Set

from models.records import (
    NOT_AVAILABLE,
    BatchEntry,
    BatchRecord,
    COARecord,
    COAStage,
    RequisitionRecord,
    Section,
)


# =============================================================================
# Batch Index
# =============================================================================

@dataclass(frozen=True)
class IndexedBatch:
    """One batch entry flattened out of its registry document."""
    item_code: str
    batch_number: str
    item_name: str
    file_name: str
    entry: BatchEntry


@dataclass
class BatchIndex:
    """Batches grouped by item (product) code."""
    batch_counts: Dict[str, int] = field(default_factory=dict)
    batches_by_item_code: Dict[str, List[IndexedBatch]] = field(default_factory=dict)

    @property
    def total_batches(self) -> int:
        return sum(self.batch_counts.values())

    def count_for(self, product_code: str) -> int:
        return self.batch_counts.get(product_code, 0)

    def batches_for(self, product_code: str) -> List[IndexedBatch]:
        return self.batches_by_item_code.get(product_code, [])


def iter_batches(batch_records: Iterable[BatchRecord]) -> Iterator[IndexedBatch]:
    """Flatten every batch entry of every registry document.

    Entries without an item code or batch number are kept under "N/A" so they
    surface as unmatched batches instead of vanishing.
    """
    for record in batch_records:
        for entry in record.batches:
            yield IndexedBatch(
                item_code=entry.item_code or NOT_AVAILABLE,
                batch_number=entry.batch_number or NOT_AVAILABLE,
                item_name=entry.item_name or "",
                file_name=record.file_name or NOT_AVAILABLE,
                entry=entry,
            )


def build_batch_index(batch_records: Iterable[BatchRecord]) -> BatchIndex:
    """Group all batches by item code in a single pass."""
    index = BatchIndex()
    for batch in iter_batches(batch_records):
        index.batches_by_item_code.setdefault(batch.item_code, []).append(batch)
        index.batch_counts[batch.item_code] = index.batch_counts.get(batch.item_code, 0) + 1
    return index


# =============================================================================
# Section Availability Index
# =============================================================================

COA_STAGE_BY_SECTION = {
    Section.BULK: COAStage.BULK,
    Section.FINISH: COAStage.FINISH,
}


def build_section_index(
    section: Section,
    coa_records: Iterable[COARecord],
    requisitions: Iterable[RequisitionRecord],
) -> Dict[str, bool]:
    """Map batch number -> True for every batch that has data for the section.

    Bulk/Finish presence comes from COA records of the matching stage;
    RM/PPM/PM presence from requisition batches holding at least one material
    of that type. A batch missing from the map has no data.
    """
    available: Dict[str, bool] = {}

    stage = COA_STAGE_BY_SECTION.get(section)
    if stage is not None:
        for coa in coa_records:
            if coa.stage == stage.value and coa.batch_number:
                available[coa.batch_number] = True
        return available

    for requisition in requisitions:
        for batch in requisition.batches:
            if not batch.batch_number:
                continue
            if any(material.material_type == section.value for material in batch.materials):
                available[batch.batch_number] = True
    return available


# =============================================================================
# Requisition Material Index
# =============================================================================

def build_requisition_material_index(
    requisitions: Iterable[RequisitionRecord],
) -> Dict[str, Set[str]]:
    """Map batch number -> material codes requisitioned for it."""
    codes_by_batch: Dict[str, Set[str]] = {}
    for requisition in requisitions:
        for batch in requisition.batches:
            if not batch.batch_number:
                continue
            codes = codes_by_batch.setdefault(batch.batch_number, set())
            for material in batch.materials:
                if material.material_code:
                    codes.add(material.material_code)
    return codes_by_batch
