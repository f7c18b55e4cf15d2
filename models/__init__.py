"""Models Package.

Data models for the reconciliation engine including:
- Source record views (formulas, batch registries, requisitions, COA)
- API response models returned by every engine operation
"""

from models.records import (
    NOT_AVAILABLE,
    FormulaRecord,
    MasterFormulaDetails,
    MaterialItem,
    FillingDetail,
    FillingProduct,
    Process,
    BatchRecord,
    BatchEntry,
    RequisitionRecord,
    RequisitionBatch,
    RequisitionMaterial,
    COARecord,

    # Enums
    Section,
    MaterialType,
    COAStage,
    BatchTier,
)

from models.api_responses import (
    ServiceResponse,

    # Data validation
    SectionValidationResponse,
    SectionSummary,
    ValidationIssue,
    BatchAvailability,
    MaterialAvailabilityResponse,
    MaterialAvailabilitySummary,
    MissingMaterial,
    MaterialCodeSummary,

    # Reconciliation
    ReconciliationResponse,
    ReconciliationReport,
    BatchReconciliationSummary,
    FormulaReconciliation,
    OrphanBatchGroup,
    LicenseMismatch,
    Recommendation,

    # Dashboard and reports
    DashboardResponse,
    TierBatchTotals,
    TierFormula,
    DuplicateBatchesResponse,
    MfcDuplicateReport,
    MatchedBatchesResponse,
    MfcBatchGroup,
)

__all__ = [
    # Source records
    "NOT_AVAILABLE",
    "FormulaRecord",
    "MasterFormulaDetails",
    "MaterialItem",
    "FillingDetail",
    "FillingProduct",
    "Process",
    "BatchRecord",
    "BatchEntry",
    "RequisitionRecord",
    "RequisitionBatch",
    "RequisitionMaterial",
    "COARecord",

    # Enums
    "Section",
    "MaterialType",
    "COAStage",
    "BatchTier",

    # API Response models
    "ServiceResponse",
    "SectionValidationResponse",
    "SectionSummary",
    "ValidationIssue",
    "BatchAvailability",
    "MaterialAvailabilityResponse",
    "MaterialAvailabilitySummary",
    "MissingMaterial",
    "MaterialCodeSummary",
    "ReconciliationResponse",
    "ReconciliationReport",
    "BatchReconciliationSummary",
    "FormulaReconciliation",
    "OrphanBatchGroup",
    "LicenseMismatch",
    "Recommendation",
    "DashboardResponse",
    "TierBatchTotals",
    "TierFormula",
    "DuplicateBatchesResponse",
    "MfcDuplicateReport",
    "MatchedBatchesResponse",
    "MfcBatchGroup",
]
