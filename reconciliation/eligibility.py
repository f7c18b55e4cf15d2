"""Batch eligibility: per-MFC batch aggregation, qualification and tiering."""

from dataclasses import dataclass, field
from typing import Dict, Iterable, List

from models.records import BatchTier, FormulaRecord

from reconciliation.indexes import BatchIndex, IndexedBatch
from reconciliation.product_codes import resolve_product_codes


DEFAULT_MIN_BATCHES = 3
PLACEBO_MARKERS = ("placebo", "mediafill", "media fill")


@dataclass
class FormulaBatches:
    """An MFC joined with its product codes and every batch under them.

    ``batches`` is the concatenation over product codes; a batch number shared
    by two codes appears twice.
    """
    formula: FormulaRecord
    product_codes: List[str]
    batches: List[IndexedBatch] = field(default_factory=list)

    @property
    def batch_count(self) -> int:
        return len(self.batches)

    @property
    def batch_numbers(self) -> List[str]:
        return [batch.batch_number for batch in self.batches]

    @property
    def mfc_no(self) -> str:
        return self.formula.mfc_no

    @property
    def product_name(self) -> str:
        return self.formula.product_name


def gather_formula_batches(formula: FormulaRecord, index: BatchIndex) -> FormulaBatches:
    """Join one MFC to the batch index through its product code set."""
    product_codes = resolve_product_codes(formula)
    batches: List[IndexedBatch] = []
    for code in product_codes:
        batches.extend(index.batches_for(code))
    return FormulaBatches(formula=formula, product_codes=product_codes, batches=batches)


def is_qualifying(batch_count: int, min_batches: int = DEFAULT_MIN_BATCHES) -> bool:
    """Inclusive threshold: exactly ``min_batches`` qualifies."""
    return batch_count >= min_batches


def select_qualifying(
    formulas: Iterable[FormulaRecord],
    index: BatchIndex,
    min_batches: int = DEFAULT_MIN_BATCHES,
) -> List[FormulaBatches]:
    """MFCs whose aggregate batch count meets the threshold, in input order."""
    joined = (gather_formula_batches(formula, index) for formula in formulas)
    return [item for item in joined if is_qualifying(item.batch_count, min_batches)]


def is_placebo(product_name: str) -> bool:
    name = (product_name or "").lower()
    return any(marker in name for marker in PLACEBO_MARKERS)


def classify_tier(product_name: str, batch_count: int) -> BatchTier:
    """Dashboard tier, first match wins: placebo, no-batch, low-batch, main."""
    if is_placebo(product_name):
        return BatchTier.PLACEBO
    if batch_count == 0:
        return BatchTier.NO_BATCH
    if batch_count < DEFAULT_MIN_BATCHES:
        return BatchTier.LOW_BATCH
    return BatchTier.MAIN


def partition_by_tier(
    formulas: Iterable[FormulaRecord],
    index: BatchIndex,
) -> Dict[BatchTier, List[FormulaBatches]]:
    """Split every MFC into exactly one tier. All four tiers are present."""
    tiers: Dict[BatchTier, List[FormulaBatches]] = {tier: [] for tier in BatchTier}
    for formula in formulas:
        joined = gather_formula_batches(formula, index)
        tiers[classify_tier(joined.product_name, joined.batch_count)].append(joined)
    return tiers
