"""Batch-Formula-Requisition reconciliation engine.

Pure functions over already-loaded records. Each ``run_*`` builds its indexes
once, walks the formulas, and returns a response model:
- run_section_validation: per-section batch availability
- run_material_validation: per-material requisition gaps
- run_batch_reconciliation: batch <-> formula reconciliation report
- run_dashboard: batch-volume tiers with deduplicated totals
- run_duplicate_report: repeated batch numbers per MFC
- run_matched_batches: batches grouped by MFC and product code
"""

import re
import time
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Union

from models.api_responses import (
    BatchOccurrence,
    DashboardResponse,
    DataSources,
    DuplicateBatch,
    DuplicateBatchesResponse,
    FormulaReconciliation,
    LicenseMismatch,
    MatchedBatch,
    MatchedBatchesResponse,
    MaterialAvailabilityResponse,
    MaterialAvailabilitySummary,
    MfcBatchGroup,
    MfcDuplicateReport,
    OrphanBatchGroup,
    OverallStats,
    ProductCodeGroup,
    Recommendation,
    ReconciliationReport,
    ReconciliationResponse,
    SectionSummary,
    SectionValidationResponse,
    TierBatchTotals,
    TierFormula,
)
from models.records import (
    NOT_AVAILABLE,
    BatchRecord,
    BatchTier,
    COARecord,
    FormulaRecord,
    MaterialType,
    RequisitionRecord,
    Section,
)

from reconciliation.aggregator import aggregate_tier_totals
from reconciliation.detector import detect_missing_materials, detect_section_gaps
from reconciliation.eligibility import (
    DEFAULT_MIN_BATCHES,
    partition_by_tier,
    select_qualifying,
)
from reconciliation.indexes import (
    IndexedBatch,
    build_batch_index,
    build_requisition_material_index,
    build_section_index,
    iter_batches,
)
from reconciliation.product_codes import claim_product_codes, resolve_product_codes
from reconciliation.summarizer import (
    LICENSE_MISMATCH_LIMIT,
    MATERIAL_CODE_SUMMARY_LIMIT,
    MISSING_MATERIALS_LIMIT,
    compliance_score,
    count_missing_by_type,
    count_unique_batches,
    summarize_batch_reconciliation,
    summarize_material_codes,
    truncate,
)


# =============================================================================
# Input Validation
# =============================================================================

class InvalidInputError(ValueError):
    """Raised when a caller-supplied parameter is not recognised."""


def parse_section(value: Optional[str]) -> Section:
    try:
        return Section(value)
    except ValueError:
        valid = ", ".join(section.value for section in Section)
        raise InvalidInputError(f"Invalid section. Must be one of: {valid}") from None


def parse_material_type(value: Optional[str]) -> Optional[MaterialType]:
    """Parse the optional material filter; empty means all types."""
    if value is None or not value.strip():
        return None
    try:
        return MaterialType(value.strip().upper())
    except ValueError:
        valid = ", ".join(material_type.value for material_type in MaterialType)
        raise InvalidInputError(f"Invalid material type. Must be one of: {valid}") from None


def parse_min_batches(value: Union[int, str, None]) -> int:
    """Parse the qualification threshold; missing means the default."""
    if value is None or (isinstance(value, str) and not value.strip()):
        return DEFAULT_MIN_BATCHES
    try:
        parsed = int(value.strip() if isinstance(value, str) else value)
    except (TypeError, ValueError):
        parsed = -1
    if isinstance(value, bool) or parsed < 0:
        raise InvalidInputError("Invalid minBatches. Must be a non-negative integer")
    return parsed


def _or_na(value: Optional[str]) -> str:
    return value or NOT_AVAILABLE


# =============================================================================
# Data Validation
# =============================================================================

def run_section_validation(
    section: Section,
    formulas: Sequence[FormulaRecord],
    batch_records: Sequence[BatchRecord],
    coa_records: Sequence[COARecord],
    requisitions: Sequence[RequisitionRecord],
    min_batches: int = DEFAULT_MIN_BATCHES,
) -> SectionValidationResponse:
    """Flag every batch of every qualifying MFC lacking data for ``section``."""
    index = build_batch_index(batch_records)
    availability = build_section_index(section, coa_records, requisitions)
    qualifying = select_qualifying(formulas, index, min_batches)

    detection = detect_section_gaps(qualifying, availability, section)

    return SectionValidationResponse(
        success=True,
        message=(
            f"Validated {section.value} data for {detection.total_batches} batches "
            f"across {detection.total_mfcs} MFCs"
        ),
        section=section.value,
        summary=SectionSummary(
            total_mfcs=detection.total_mfcs,
            total_batches=detection.total_batches,
            batches_with_data=detection.batches_with_data,
            batches_missing_data=detection.batches_missing_data,
        ),
        issues=detection.issues,
        batches=detection.batches,
    )


def run_material_validation(
    formulas: Sequence[FormulaRecord],
    batch_records: Sequence[BatchRecord],
    requisitions: Sequence[RequisitionRecord],
    min_batches: int = DEFAULT_MIN_BATCHES,
    material_type: Optional[MaterialType] = None,
) -> MaterialAvailabilityResponse:
    """Check every material of every qualifying MFC against batch requisitions."""
    index = build_batch_index(batch_records)
    requisition_codes = build_requisition_material_index(requisitions)
    qualifying = select_qualifying(formulas, index, min_batches)

    detection = detect_missing_materials(qualifying, requisition_codes, material_type)
    missing = detection.missing

    return MaterialAvailabilityResponse(
        success=True,
        message=(
            f"Found {len(missing)} missing material entries across "
            f"{detection.total_batches} batches in {detection.total_mfcs} MFCs"
        ),
        summary=MaterialAvailabilitySummary(
            total_mfcs=detection.total_mfcs,
            total_batches=detection.total_batches,
            total_materials_in_mfc=detection.total_materials_in_mfc,
            total_missing_materials=len(missing),
            batches_with_missing_materials=count_unique_batches(missing),
            missing_by_type=count_missing_by_type(missing),
        ),
        missing_materials=truncate(missing, MISSING_MATERIALS_LIMIT),
        material_code_summary=truncate(
            summarize_material_codes(missing), MATERIAL_CODE_SUMMARY_LIMIT
        ),
    )


# =============================================================================
# Batch <-> Formula Matching
# =============================================================================

@dataclass
class BatchMatching:
    """Every batch attributed to the formula claiming its item code, or orphaned."""
    claims: Dict[str, int]
    total_batches: int = 0
    by_formula: Dict[int, List[IndexedBatch]] = field(default_factory=dict)
    orphans: Dict[str, List[IndexedBatch]] = field(default_factory=dict)

    @property
    def matched_count(self) -> int:
        return sum(len(batches) for batches in self.by_formula.values())

    @property
    def orphan_count(self) -> int:
        return sum(len(batches) for batches in self.orphans.values())


def match_batches(
    formulas: Sequence[FormulaRecord],
    batch_records: Sequence[BatchRecord],
) -> BatchMatching:
    matching = BatchMatching(claims=claim_product_codes(formulas))
    for batch in iter_batches(batch_records):
        matching.total_batches += 1
        position = matching.claims.get(batch.item_code)
        if position is None:
            matching.orphans.setdefault(batch.item_code, []).append(batch)
        else:
            matching.by_formula.setdefault(position, []).append(batch)
    return matching


def group_orphans(orphans: Dict[str, List[IndexedBatch]]) -> List[OrphanBatchGroup]:
    """One group per unclaimed item code, largest first."""
    groups = [
        OrphanBatchGroup(
            item_code=item_code,
            item_name=batches[0].item_name or NOT_AVAILABLE,
            batch_count=len(batches),
            batch_numbers=[batch.batch_number for batch in batches],
            compliance_risk="high" if len(batches) > 5 else "medium",
        )
        for item_code, batches in orphans.items()
    ]
    groups.sort(key=lambda group: group.batch_count, reverse=True)
    return groups


# =============================================================================
# Licence Checks
# =============================================================================

_WHITESPACE = re.compile(r"\s+")


def normalize_license(value: Optional[str]) -> Optional[str]:
    """Licence number with whitespace removed, upper-cased; None when absent."""
    if not value:
        return None
    normalized = _WHITESPACE.sub("", value).upper()
    if not normalized or normalized == NOT_AVAILABLE:
        return None
    return normalized


def licenses_differ(batch_license: Optional[str], formula_license: Optional[str]) -> bool:
    """True only when both licences are known and differ."""
    batch_value = normalize_license(batch_license)
    formula_value = normalize_license(formula_license)
    if batch_value is None or formula_value is None:
        return False
    return batch_value != formula_value


def _reconciliation_status(total: int, reconciled: int, mismatched: int) -> str:
    if total == 0:
        return "no_batches"
    if mismatched == 0:
        return "fully_reconciled"
    if reconciled > 0:
        return "partially_reconciled"
    return "not_reconciled"


def _compliance_notes(total: int, reconciled: int, mismatched: int) -> List[str]:
    notes = []
    if total == 0:
        notes.append("No batch records found for this formula")
    if mismatched > 0:
        notes.append(f"{mismatched} batch(es) have manufacturing license mismatch - CRITICAL")
    if total > 0 and reconciled == total:
        notes.append("All batches are fully compliant with Formula Master")
    return notes


# =============================================================================
# Batch Reconciliation Report
# =============================================================================

def run_batch_reconciliation(
    formulas: Sequence[FormulaRecord],
    batch_records: Sequence[BatchRecord],
) -> ReconciliationResponse:
    """Attribute every batch to a formula, check licences, and score compliance."""
    matching = match_batches(formulas, batch_records)

    formula_results: List[FormulaReconciliation] = []
    mismatches: List[LicenseMismatch] = []

    for position, formula in enumerate(formulas):
        batches = matching.by_formula.get(position, [])
        formula_license = formula.master_formula_details.manufacturing_license_no
        mismatched = 0

        for batch in batches:
            if not licenses_differ(batch.entry.mfg_lic_no, formula_license):
                continue
            mismatched += 1
            mismatches.append(LicenseMismatch(
                batch_number=batch.batch_number,
                item_code=batch.item_code,
                item_name=_or_na(batch.item_name),
                master_card_no=formula.mfc_no,
                batch_license=batch.entry.mfg_lic_no,
                formula_license=formula_license,
                details=(
                    f"Batch Mfg License ({batch.entry.mfg_lic_no}) does not match "
                    f"Formula Mfg License ({formula_license})"
                ),
            ))

        reconciled = len(batches) - mismatched
        formula_results.append(FormulaReconciliation(
            master_card_no=formula.mfc_no,
            product_code=_or_na(formula.product_code),
            product_name=formula.product_name,
            linked_product_codes=resolve_product_codes(formula),
            total_batches=len(batches),
            reconciled_batches=reconciled,
            mismatched_batches=mismatched,
            reconciliation_status=_reconciliation_status(len(batches), reconciled, mismatched),
            compliance_notes=_compliance_notes(len(batches), reconciled, mismatched),
        ))

    orphan_groups = group_orphans(matching.orphans)
    statuses = [result.reconciliation_status for result in formula_results]
    fully = statuses.count("fully_reconciled")
    partially = statuses.count("partially_reconciled")
    not_reconciled = statuses.count("not_reconciled")
    no_batches = statuses.count("no_batches")
    with_batches = len(formula_results) - no_batches

    report = ReconciliationReport(
        report_id=f"RECON-{int(time.time() * 1000)}",
        data_sources=DataSources(
            formula_master_count=len(formulas),
            total_batch_records=matching.total_batches,
            unique_product_codes=len(matching.claims),
        ),
        batch_reconciliation=summarize_batch_reconciliation(
            total=matching.total_batches,
            matched=matching.matched_count,
            mismatched=len(mismatches),
        ),
        formula_results=sorted(
            formula_results, key=lambda result: result.total_batches, reverse=True
        ),
        unmatched_batches=orphan_groups,
        license_mismatches=truncate(mismatches, LICENSE_MISMATCH_LIMIT),
        overall_stats=OverallStats(
            fully_reconciled_formulas=fully,
            partially_reconciled_formulas=partially,
            not_reconciled_formulas=not_reconciled,
            formulas_with_no_batches=no_batches,
            total_orphan_batches=matching.orphan_count,
            total_mismatches=len(mismatches),
            compliance_score=compliance_score(fully, partially, with_batches),
        ),
        recommendations=_recommendations(formula_results, orphan_groups, no_batches),
    )

    return ReconciliationResponse(
        success=True,
        message=(
            f"Reconciliation completed. {len(formulas)} formulas and "
            f"{matching.total_batches} batches analyzed."
        ),
        data=report,
    )


def _recommendations(
    formula_results: List[FormulaReconciliation],
    orphan_groups: List[OrphanBatchGroup],
    formulas_with_no_batches: int,
) -> List[Recommendation]:
    recommendations = []

    for result in formula_results:
        if result.total_batches > 10 and result.mismatched_batches > 0:
            recommendations.append(Recommendation(
                type="licence_correction",
                master_card_no=result.master_card_no,
                description=(
                    f"Formula {result.master_card_no} has {result.total_batches} batches but "
                    f"{result.mismatched_batches} licence mismatches - urgent correction needed"
                ),
                priority="high",
            ))

    high_risk = [group for group in orphan_groups if group.batch_count > 5]
    for group in high_risk[:5]:
        recommendations.append(Recommendation(
            type="urgent_review",
            description=(
                f"Product {group.item_code} ({group.item_name}) has {group.batch_count} "
                f"batches but NO Formula Master - requires immediate review"
            ),
            priority="high",
        ))

    if formulas_with_no_batches > 5:
        recommendations.append(Recommendation(
            type="formula_cleanup",
            description=(
                f"{formulas_with_no_batches} formulas have no linked batches - "
                f"review for obsolescence"
            ),
            priority="low",
        ))

    return recommendations


# =============================================================================
# Dashboard
# =============================================================================

def run_dashboard(
    formulas: Sequence[FormulaRecord],
    batch_records: Sequence[BatchRecord],
) -> DashboardResponse:
    """Partition MFCs into volume tiers and total their batches without double counting."""
    index = build_batch_index(batch_records)
    tiers = partition_by_tier(formulas, index)
    totals, _ = aggregate_tier_totals(tiers, index)
    claims = claim_product_codes(formulas)
    orphans = {
        item_code: batches
        for item_code, batches in index.batches_by_item_code.items()
        if item_code not in claims
    }
    orphan_count = sum(len(batches) for batches in orphans.values())

    return DashboardResponse(
        success=True,
        message=f"Classified {len(formulas)} formulas over {index.total_batches} batches",
        tiers={
            tier.value: [
                TierFormula(
                    mfc_no=item.mfc_no,
                    product_name=item.product_name,
                    product_codes=item.product_codes,
                    batch_count=item.batch_count,
                )
                for item in members
            ]
            for tier, members in tiers.items()
        },
        total_formulas=len(formulas),
        total_batches=index.total_batches,
        section_batch_totals=TierBatchTotals(
            main=totals[BatchTier.MAIN],
            low_batch=totals[BatchTier.LOW_BATCH],
            no_batch=totals[BatchTier.NO_BATCH],
            placebo=totals[BatchTier.PLACEBO],
        ),
        unmatched_batches=group_orphans(orphans),
        batch_reconciliation=summarize_batch_reconciliation(
            total=index.total_batches,
            matched=index.total_batches - orphan_count,
        ),
    )


# =============================================================================
# Duplicate Batches
# =============================================================================

def _occurrence(batch: IndexedBatch) -> BatchOccurrence:
    entry = batch.entry
    return BatchOccurrence(
        item_code=batch.item_code,
        item_name=_or_na(batch.item_name),
        mfg_date=_or_na(entry.mfg_date),
        expiry_date=_or_na(entry.expiry_date),
        batch_size=_or_na(entry.batch_size),
        mfg_lic_no=_or_na(entry.mfg_lic_no),
        pack=_or_na(entry.pack),
        file_name=batch.file_name,
    )


def run_duplicate_report(
    formulas: Sequence[FormulaRecord],
    batch_records: Sequence[BatchRecord],
) -> DuplicateBatchesResponse:
    """Report batch numbers recorded more than once under the same MFC number."""
    # MFC number -> (product name, product codes); formulas sharing a number merge
    mfc_groups: Dict[str, dict] = {}
    for formula in formulas:
        mfc_number = (formula.master_formula_details.master_card_no or "").strip() or "Unknown"
        group = mfc_groups.setdefault(
            mfc_number, {"product_name": formula.product_name, "codes": []}
        )
        for code in resolve_product_codes(formula):
            if code not in group["codes"]:
                group["codes"].append(code)

    all_batches = list(iter_batches(batch_records))
    reports: List[MfcDuplicateReport] = []

    for mfc_number, group in mfc_groups.items():
        codes = set(group["codes"])
        mfc_batches = [batch for batch in all_batches if batch.item_code in codes]
        if not mfc_batches:
            continue

        by_number: Dict[str, List[IndexedBatch]] = {}
        for batch in mfc_batches:
            by_number.setdefault(batch.batch_number, []).append(batch)

        duplicates = [
            DuplicateBatch(
                batch_number=batch_number,
                occurrences=len(batches),
                batches=[_occurrence(batch) for batch in batches],
            )
            for batch_number, batches in by_number.items()
            if len(batches) > 1
        ]
        if not duplicates:
            continue

        duplicates.sort(key=lambda duplicate: duplicate.occurrences, reverse=True)
        reports.append(MfcDuplicateReport(
            mfc_number=mfc_number,
            product_name=group["product_name"],
            product_codes=group["codes"],
            total_batches=len(mfc_batches),
            duplicate_batch_count=len(duplicates),
            duplicates=duplicates,
        ))

    reports.sort(key=lambda report: report.duplicate_batch_count, reverse=True)
    total_duplicates = sum(report.duplicate_batch_count for report in reports)

    return DuplicateBatchesResponse(
        success=True,
        message=f"Found {total_duplicates} duplicate batch numbers across {len(reports)} MFCs",
        total_mfcs_with_duplicates=len(reports),
        total_duplicate_batch_numbers=total_duplicates,
        reports=reports,
    )


# =============================================================================
# Matched Batches
# =============================================================================

_DIGITS = re.compile(r"(\d+)")


def natural_sort_key(value: str):
    """Case-insensitive key that orders embedded numbers numerically (MFC-2 < MFC-10)."""
    return [
        (0, int(part), "") if part.isdigit() else (1, 0, part.lower())
        for part in _DIGITS.split(value)
        if part
    ]


def _matched_batch(batch: IndexedBatch) -> MatchedBatch:
    entry = batch.entry
    return MatchedBatch(
        batch_number=batch.batch_number,
        item_code=batch.item_code,
        item_name=_or_na(batch.item_name),
        mfg_date=_or_na(entry.mfg_date),
        expiry_date=_or_na(entry.expiry_date),
        batch_size=_or_na(entry.batch_size),
        mfg_lic_no=_or_na(entry.mfg_lic_no),
        pack=_or_na(entry.pack),
        type=_or_na(entry.type),
        file_name=batch.file_name,
    )


def run_matched_batches(
    formulas: Sequence[FormulaRecord],
    batch_records: Sequence[BatchRecord],
) -> MatchedBatchesResponse:
    """Group every claimed batch by MFC number, then by product code."""
    claims = claim_product_codes(formulas)
    if not claims:
        return MatchedBatchesResponse(success=True, message="No matched product codes found")

    groups: Dict[str, MfcBatchGroup] = {}
    total_batches = 0

    for batch in iter_batches(batch_records):
        position = claims.get(batch.item_code)
        if position is None:
            continue
        formula = formulas[position]
        details = formula.master_formula_details
        group = groups.get(formula.mfc_no)
        if group is None:
            group = MfcBatchGroup(
                master_card_no=formula.mfc_no,
                product_name=_or_na(details.product_name),
                generic_name=_or_na(details.generic_name),
                manufacturer=_or_na(details.manufacturer),
                revision_no=_or_na(details.revision_no),
            )
            groups[formula.mfc_no] = group

        code_group = next(
            (item for item in group.product_codes if item.product_code == batch.item_code),
            None,
        )
        if code_group is None:
            code_group = ProductCodeGroup(
                product_code=batch.item_code,
                product_name=_or_na(batch.item_name),
            )
            group.product_codes.append(code_group)

        code_group.batches.append(_matched_batch(batch))
        code_group.batch_count += 1
        group.total_batches += 1
        total_batches += 1

    ordered = sorted(groups.values(), key=lambda group: natural_sort_key(group.master_card_no))
    return MatchedBatchesResponse(
        success=True,
        message=f"Matched {total_batches} batches to {len(ordered)} MFCs",
        data=ordered,
        total=len(ordered),
        total_batches=total_batches,
    )
