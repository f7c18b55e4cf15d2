"""
API Response Models for the Batch-Formula-Requisition reconciliation engine.

These Pydantic models define the data contracts returned to callers (the HTTP
layer, the CLI, dashboards). Every response serializes by alias to the
camelCase shape the dashboard consumes.

Hierarchy:
- SectionValidationResponse: per-section batch availability (Bulk/Finish/RM/PPM/PM)
- MaterialAvailabilityResponse: per-material requisition gaps
- ReconciliationResponse: batch <-> formula reconciliation report
- DashboardResponse: batch-volume tiers with deduplicated batch totals
- DuplicateBatchesResponse: repeated batch numbers per MFC
- MatchedBatchesResponse: batches grouped MFC -> product code
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# BASE MODELS
# =============================================================================

class ResponseBase(BaseModel):
    """Base class for all API responses."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )


class ServiceResponse(ResponseBase):
    """Envelope shared by every engine operation.

    ``status_code`` never appears in serialized output; the HTTP layer uses it
    as the transport status (400 for rejected input, 500 for failures).
    """
    success: bool = Field(default=True, description="False when input was rejected or the run failed")
    message: str = Field(default="", description="Human-readable outcome or error message")
    status_code: int = Field(default=200, exclude=True)

    def to_payload(self) -> dict:
        """Serialize for the wire (camelCase, JSON-safe)."""
        return self.model_dump(mode="json", by_alias=True)


# =============================================================================
# SECTION VALIDATION
# =============================================================================

class ValidationIssue(ResponseBase):
    """A batch with no data for the validated section."""
    batch_number: str
    mfc_no: str
    product_name: str
    section: str
    message: str
    details: Optional[str] = None


class BatchAvailability(ResponseBase):
    """Availability of one section's data for one batch."""
    batch_number: str
    mfc_no: str
    product_name: str
    has_data: bool


class SectionSummary(ResponseBase):
    """Counts for a per-section validation run."""
    total_mfcs: int = Field(default=0, alias="totalMFCs")
    total_batches: int = 0
    batches_with_data: int = 0
    batches_missing_data: int = 0


class SectionValidationResponse(ServiceResponse):
    """Result of validating one section across all qualifying MFCs."""
    section: str
    summary: SectionSummary = Field(default_factory=SectionSummary)
    issues: List[ValidationIssue] = Field(default_factory=list)
    batches: List[BatchAvailability] = Field(default_factory=list)


# =============================================================================
# MATERIAL AVAILABILITY
# =============================================================================

def _zero_by_type() -> Dict[str, int]:
    return {"RM": 0, "PPM": 0, "PM": 0}


class MissingMaterial(ResponseBase):
    """An MFC material with no requisition line for a batch."""
    material_code: str
    material_name: str
    material_type: str
    mfc_no: str
    product_name: str
    batch_number: str
    message: str


class MaterialCodeSummary(ResponseBase):
    """Missing occurrences of one material code, grouped across batches."""
    material_code: str
    material_name: str
    material_type: str
    missing_in_batches: int = Field(..., description="Distinct batches missing this material")
    batches: List[str] = Field(default_factory=list, description="First batches affected (preview)")


class MaterialAvailabilitySummary(ResponseBase):
    """Counts for an all-materials validation run."""
    total_mfcs: int = Field(default=0, alias="totalMFCs")
    total_batches: int = 0
    total_materials_in_mfc: int = Field(default=0, alias="totalMaterialsInMFC")
    total_missing_materials: int = 0
    batches_with_missing_materials: int = Field(default=0, description="Distinct batches with at least one missing material")
    missing_by_type: Dict[str, int] = Field(default_factory=_zero_by_type)


class MaterialAvailabilityResponse(ServiceResponse):
    """Result of checking every MFC material against requisitions."""
    summary: MaterialAvailabilitySummary = Field(default_factory=MaterialAvailabilitySummary)
    missing_materials: List[MissingMaterial] = Field(default_factory=list)
    material_code_summary: List[MaterialCodeSummary] = Field(default_factory=list)


# =============================================================================
# BATCH RECONCILIATION
# =============================================================================

class BatchReconciliationSummary(ResponseBase):
    """Global cross-check that every batch belongs to some MFC."""
    total_batches_in_system: int = 0
    batches_matched_to_formula: int = 0
    batches_not_matched_to_formula: int = 0
    all_batches_accounted_for: bool = False
    reconciled_batch_count: int = 0
    mismatched_batch_count: int = 0
    reconciliation_percentage: int = 0


class OrphanBatchGroup(ResponseBase):
    """Batches of one item code that no MFC claims."""
    item_code: str
    item_name: str
    batch_count: int
    batch_numbers: List[str] = Field(default_factory=list)
    compliance_risk: str = Field(..., description="high when more than 5 batches, else medium")
    reason: str = "Formula Master record not found for this product code"


class LicenseMismatch(ResponseBase):
    """A batch whose manufacturing licence differs from its MFC's."""
    batch_number: str
    item_code: str
    item_name: str
    master_card_no: str
    batch_license: str
    formula_license: str
    details: str


class FormulaReconciliation(ResponseBase):
    """Reconciliation outcome for one MFC."""
    master_card_no: str
    product_code: str
    product_name: str
    linked_product_codes: List[str] = Field(default_factory=list)
    total_batches: int = 0
    reconciled_batches: int = 0
    mismatched_batches: int = 0
    reconciliation_status: str
    compliance_notes: List[str] = Field(default_factory=list)


class DataSources(ResponseBase):
    """Sizes of the collections the report was built from."""
    formula_master_count: int = 0
    total_batch_records: int = 0
    unique_product_codes: int = 0


class OverallStats(ResponseBase):
    """Formula-level rollup of a reconciliation run."""
    fully_reconciled_formulas: int = 0
    partially_reconciled_formulas: int = 0
    not_reconciled_formulas: int = 0
    formulas_with_no_batches: int = 0
    total_orphan_batches: int = 0
    total_mismatches: int = 0
    compliance_score: int = 0


class Recommendation(ResponseBase):
    """Suggested follow-up for data owners."""
    type: str
    description: str
    priority: str
    master_card_no: Optional[str] = None


class ReconciliationReport(ResponseBase):
    """Full batch <-> formula reconciliation report."""
    generated_at: datetime = Field(default_factory=_utcnow)
    report_id: str
    data_sources: DataSources = Field(default_factory=DataSources)
    batch_reconciliation: BatchReconciliationSummary = Field(default_factory=BatchReconciliationSummary)
    formula_results: List[FormulaReconciliation] = Field(default_factory=list)
    unmatched_batches: List[OrphanBatchGroup] = Field(default_factory=list)
    license_mismatches: List[LicenseMismatch] = Field(default_factory=list)
    overall_stats: OverallStats = Field(default_factory=OverallStats)
    recommendations: List[Recommendation] = Field(default_factory=list)


class ReconciliationResponse(ServiceResponse):
    """Envelope for a reconciliation report."""
    data: Optional[ReconciliationReport] = None


# =============================================================================
# DASHBOARD TIERS
# =============================================================================

class TierFormula(ResponseBase):
    """An MFC as listed in a dashboard tier."""
    mfc_no: str
    product_name: str
    product_codes: List[str] = Field(default_factory=list)
    batch_count: int = 0


class TierBatchTotals(ResponseBase):
    """Deduplicated batch totals per tier."""
    main: int = 0
    low_batch: int = 0
    no_batch: int = 0
    placebo: int = 0

    @property
    def total(self) -> int:
        return self.main + self.low_batch + self.no_batch + self.placebo


class DashboardResponse(ServiceResponse):
    """MFCs partitioned by batch volume, with deduplicated totals."""
    tiers: Dict[str, List[TierFormula]] = Field(default_factory=dict)
    total_formulas: int = 0
    total_batches: int = 0
    section_batch_totals: TierBatchTotals = Field(default_factory=TierBatchTotals)
    unmatched_batches: List[OrphanBatchGroup] = Field(default_factory=list)
    batch_reconciliation: BatchReconciliationSummary = Field(default_factory=BatchReconciliationSummary)


# =============================================================================
# DUPLICATE BATCHES
# =============================================================================

class BatchOccurrence(ResponseBase):
    """One occurrence of a batch number in the batch registry."""
    item_code: str
    item_name: str
    mfg_date: str
    expiry_date: str
    batch_size: str
    mfg_lic_no: str
    pack: str
    file_name: str


class DuplicateBatch(ResponseBase):
    """A batch number recorded more than once under one MFC."""
    batch_number: str
    occurrences: int
    batches: List[BatchOccurrence] = Field(default_factory=list)


class MfcDuplicateReport(ResponseBase):
    """Duplicate batch numbers found under one MFC number."""
    mfc_number: str
    product_name: str
    product_codes: List[str] = Field(default_factory=list)
    total_batches: int = 0
    duplicate_batch_count: int = 0
    duplicates: List[DuplicateBatch] = Field(default_factory=list)


class DuplicateBatchesResponse(ServiceResponse):
    """Duplicate batch report across all MFCs."""
    generated_at: datetime = Field(default_factory=_utcnow)
    total_mfcs_with_duplicates: int = Field(default=0, alias="totalMFCsWithDuplicates")
    total_duplicate_batch_numbers: int = 0
    reports: List[MfcDuplicateReport] = Field(default_factory=list)


# =============================================================================
# MATCHED BATCHES
# =============================================================================

class MatchedBatch(ResponseBase):
    """A batch attributed to an MFC."""
    batch_number: str
    item_code: str
    item_name: str
    mfg_date: str
    expiry_date: str
    batch_size: str
    mfg_lic_no: str
    pack: str
    type: str
    file_name: str


class ProductCodeGroup(ResponseBase):
    """Batches of one product code within an MFC."""
    product_code: str
    product_name: str
    batch_count: int = 0
    batches: List[MatchedBatch] = Field(default_factory=list)


class MfcBatchGroup(ResponseBase):
    """All batches attributed to one MFC."""
    master_card_no: str
    product_name: str
    generic_name: str
    manufacturer: str
    revision_no: str
    product_codes: List[ProductCodeGroup] = Field(default_factory=list)
    total_batches: int = 0


class MatchedBatchesResponse(ServiceResponse):
    """Batches grouped by MFC and product code."""
    data: List[MfcBatchGroup] = Field(default_factory=list)
    total: int = 0
    total_batches: int = 0
