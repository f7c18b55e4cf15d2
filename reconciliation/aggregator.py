"""Deduplicating batch aggregation across dashboard tiers."""

from typing import Dict, List, Mapping, Optional, Set, Tuple

from models.records import BatchTier

from reconciliation.eligibility import FormulaBatches
from reconciliation.indexes import BatchIndex


TIER_ORDER = (
    BatchTier.MAIN,
    BatchTier.LOW_BATCH,
    BatchTier.NO_BATCH,
    BatchTier.PLACEBO,
)


def count_tier_batches(
    formulas: List[FormulaBatches],
    index: BatchIndex,
    counted: Set[str],
) -> int:
    """Sum batches of codes not yet in ``counted``, marking each code as counted.

    ``counted`` is updated in place.
    """
    total = 0
    for item in formulas:
        for code in item.product_codes:
            if code in counted:
                continue
            counted.add(code)
            total += index.count_for(code)
    return total


def aggregate_tier_totals(
    tiers: Mapping[BatchTier, List[FormulaBatches]],
    index: BatchIndex,
    counted: Optional[Set[str]] = None,
) -> Tuple[Dict[BatchTier, int], Set[str]]:
    """Per-tier batch totals where every product code contributes exactly once.

    Tiers are walked in TIER_ORDER, so a code shared by MFCs in different
    tiers is attributed to the earliest one. Returns the totals and the set
    of codes counted (the caller's set, when one is given).
    """
    if counted is None:
        counted = set()
    totals: Dict[BatchTier, int] = {}
    for tier in TIER_ORDER:
        totals[tier] = count_tier_batches(tiers.get(tier, []), index, counted)
    return totals, counted
