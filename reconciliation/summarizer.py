"""Rollups from detector output into response shapes.

Caps on list sizes are applied here, as a last step, so the detectors stay
uncapped and independently testable.
"""

from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, Iterable, List, Sequence, TypeVar

from models.api_responses import (
    BatchReconciliationSummary,
    MaterialCodeSummary,
    MissingMaterial,
)
from models.records import MaterialType


MISSING_MATERIALS_LIMIT = 500
MATERIAL_CODE_SUMMARY_LIMIT = 100
MATERIAL_SUMMARY_BATCH_PREVIEW = 10
LICENSE_MISMATCH_LIMIT = 100

T = TypeVar("T")


def truncate(items: Sequence[T], limit: int) -> List[T]:
    return list(items[:limit])


def round_half_up(value) -> int:
    """Round like a spreadsheet would (0.5 goes up), not banker's rounding."""
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


# =============================================================================
# Material rollups
# =============================================================================

def count_missing_by_type(entries: Iterable[MissingMaterial]) -> Dict[str, int]:
    """Misses per material type; every type is present, zero when unaffected."""
    counts = {material_type.value: 0 for material_type in MaterialType}
    for entry in entries:
        counts[entry.material_type] = counts.get(entry.material_type, 0) + 1
    return counts


def count_unique_batches(entries: Iterable[MissingMaterial]) -> int:
    return len({entry.batch_number for entry in entries})


def summarize_material_codes(entries: Iterable[MissingMaterial]) -> List[MaterialCodeSummary]:
    """Group misses by (material type, code), most affected batches first.

    The same code under two types is two groups. Each group lists at most
    MATERIAL_SUMMARY_BATCH_PREVIEW batch numbers; ``missing_in_batches``
    counts all distinct batches.
    """
    groups: Dict[tuple, dict] = {}
    for entry in entries:
        key = (entry.material_type, entry.material_code)
        group = groups.get(key)
        if group is None:
            group = {
                "material_code": entry.material_code,
                "material_name": entry.material_name,
                "material_type": entry.material_type,
                "batches": [],
                "seen": set(),
            }
            groups[key] = group
        if entry.batch_number not in group["seen"]:
            group["seen"].add(entry.batch_number)
            group["batches"].append(entry.batch_number)

    summaries = [
        MaterialCodeSummary(
            material_code=group["material_code"],
            material_name=group["material_name"],
            material_type=group["material_type"],
            missing_in_batches=len(group["batches"]),
            batches=group["batches"][:MATERIAL_SUMMARY_BATCH_PREVIEW],
        )
        for group in groups.values()
    ]
    # stable sort keeps first-seen order among ties
    summaries.sort(key=lambda summary: summary.missing_in_batches, reverse=True)
    return summaries


# =============================================================================
# Batch reconciliation rollups
# =============================================================================

def reconciliation_percentage(matched: int, total: int) -> int:
    """Share of batches matched to a formula; 100 when there are no batches."""
    if total == 0:
        return 100
    return round_half_up(Decimal(matched) / Decimal(total) * 100)


def summarize_batch_reconciliation(
    total: int,
    matched: int,
    mismatched: int = 0,
) -> BatchReconciliationSummary:
    not_matched = total - matched
    return BatchReconciliationSummary(
        total_batches_in_system=total,
        batches_matched_to_formula=matched,
        batches_not_matched_to_formula=not_matched,
        all_batches_accounted_for=not_matched == 0,
        reconciled_batch_count=matched - mismatched,
        mismatched_batch_count=mismatched,
        reconciliation_percentage=reconciliation_percentage(matched, total),
    )


def compliance_score(fully: int, partially: int, with_batches: int) -> int:
    """(fully + half of partially) over formulas with batches; 100 when none."""
    if with_batches == 0:
        return 100
    score = (Decimal(fully) + Decimal(partially) / 2) / Decimal(with_batches) * 100
    return round_half_up(score)
