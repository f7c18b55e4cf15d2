"""Async service layer over the reconciliation engine.

Each operation reads the collections it needs from a ``RecordStore`` (the
independent reads run concurrently), then hands them to the synchronous
engine. Nothing raises to the caller: rejected input comes back as a
``success=False`` response with status 400, any other failure as a zeroed
``success=False`` response with status 500.
"""

import asyncio
import time
import uuid
from typing import Awaitable, Callable, Dict, Optional, TypeVar, Union

from core.observability.logging import (
    get_logger,
    log_run_complete,
    log_run_rejected,
    log_run_start,
    with_correlation,
)
from core.observability.metrics import get_metrics
from models.api_responses import (
    DashboardResponse,
    DuplicateBatchesResponse,
    MatchedBatchesResponse,
    MaterialAvailabilityResponse,
    ReconciliationResponse,
    SectionValidationResponse,
    ServiceResponse,
)
from models.records import COAStage, Section
from storage.base import RecordStore

from reconciliation import engine
from reconciliation.eligibility import DEFAULT_MIN_BATCHES
from reconciliation.engine import InvalidInputError


logger = get_logger(__name__)

R = TypeVar("R", bound=ServiceResponse)


def _error_message(exc: Exception) -> str:
    return str(exc) or type(exc).__name__


async def _execute(
    operation: str,
    run: Callable[[], Awaitable[R]],
    on_failure: Callable[[str], R],
    counts: Callable[[R], Dict[str, int]],
) -> R:
    """Run one engine operation with timing, metrics and failure conversion."""
    metrics = get_metrics()
    metrics.record_run_started(operation)
    log_run_start(operation)
    started = time.perf_counter()

    try:
        response = await run()
    except Exception as e:
        duration_ms = (time.perf_counter() - started) * 1000
        metrics.record_run_failed(operation, duration_ms)
        logger.exception(
            f"Run failed: {operation} - {_error_message(e)}",
            extra_fields={"duration_ms": round(duration_ms, 2)},
        )
        return on_failure(_error_message(e))

    duration_ms = (time.perf_counter() - started) * 1000
    result_counts = counts(response)
    metrics.record_run_completed(operation, duration_ms, result_counts)
    log_run_complete(operation, duration_ms, **result_counts)
    return response


def _reject(operation: str, exc: InvalidInputError, response: R) -> R:
    get_metrics().record_run_rejected(operation)
    log_run_rejected(operation, str(exc))
    return response


def _request_id(request_id: Optional[str]) -> str:
    return request_id or uuid.uuid4().hex


# =============================================================================
# Data Validation
# =============================================================================

async def validate_section(
    store: RecordStore,
    section: Optional[str],
    min_batches: Union[int, str, None] = DEFAULT_MIN_BATCHES,
    request_id: Optional[str] = None,
) -> SectionValidationResponse:
    """Per-section batch availability for every qualifying MFC."""
    operation = "validate_section"
    with with_correlation(
        request_id=_request_id(request_id), operation=operation, section=section, store=store.name
    ):
        try:
            parsed = engine.parse_section(section)
            threshold = engine.parse_min_batches(min_batches)
        except InvalidInputError as e:
            return _reject(operation, e, SectionValidationResponse(
                success=False,
                message=str(e),
                section=section or Section.BULK.value,
                status_code=400,
            ))

        async def run() -> SectionValidationResponse:
            if parsed in (Section.BULK, Section.FINISH):
                stage = COAStage.BULK if parsed == Section.BULK else COAStage.FINISH
                formulas, batches, coa = await asyncio.gather(
                    store.fetch_formulas(), store.fetch_batches(), store.fetch_coa(stage)
                )
                requisitions = []
            else:
                formulas, batches, requisitions = await asyncio.gather(
                    store.fetch_formulas(), store.fetch_batches(), store.fetch_requisitions()
                )
                coa = []
            return engine.run_section_validation(
                parsed, formulas, batches, coa, requisitions, threshold
            )

        return await _execute(
            operation,
            run,
            lambda message: SectionValidationResponse(
                success=False, message=message, section=parsed.value, status_code=500
            ),
            lambda response: {
                "total_mfcs": response.summary.total_mfcs,
                "total_batches": response.summary.total_batches,
                "issues": len(response.issues),
            },
        )


async def validate_materials(
    store: RecordStore,
    min_batches: Union[int, str, None] = DEFAULT_MIN_BATCHES,
    material_type: Optional[str] = None,
    request_id: Optional[str] = None,
) -> MaterialAvailabilityResponse:
    """Per-material requisition gaps for every qualifying MFC."""
    operation = "validate_materials"
    with with_correlation(
        request_id=_request_id(request_id),
        operation=operation,
        material_type=material_type or None,
        store=store.name,
    ):
        try:
            parsed = engine.parse_material_type(material_type)
            threshold = engine.parse_min_batches(min_batches)
        except InvalidInputError as e:
            return _reject(operation, e, MaterialAvailabilityResponse(
                success=False, message=str(e), status_code=400
            ))

        async def run() -> MaterialAvailabilityResponse:
            formulas, batches, requisitions = await asyncio.gather(
                store.fetch_formulas(), store.fetch_batches(), store.fetch_requisitions()
            )
            return engine.run_material_validation(
                formulas, batches, requisitions, threshold, parsed
            )

        return await _execute(
            operation,
            run,
            lambda message: MaterialAvailabilityResponse(
                success=False, message=message, status_code=500
            ),
            lambda response: {
                "total_mfcs": response.summary.total_mfcs,
                "total_batches": response.summary.total_batches,
                "missing_materials": response.summary.total_missing_materials,
            },
        )


# =============================================================================
# Formula <-> Batch Reports
# =============================================================================

async def _formula_batch_report(
    store: RecordStore,
    operation: str,
    compute: Callable,
    on_failure: Callable[[str], R],
    counts: Callable[[R], Dict[str, int]],
    request_id: Optional[str],
) -> R:
    with with_correlation(
        request_id=_request_id(request_id), operation=operation, store=store.name
    ):
        async def run() -> R:
            formulas, batches = await asyncio.gather(
                store.fetch_formulas(), store.fetch_batches()
            )
            return compute(formulas, batches)

        return await _execute(operation, run, on_failure, counts)


async def reconcile_batches(
    store: RecordStore, request_id: Optional[str] = None
) -> ReconciliationResponse:
    """Batch <-> formula reconciliation report."""
    return await _formula_batch_report(
        store,
        "reconcile_batches",
        engine.run_batch_reconciliation,
        lambda message: ReconciliationResponse(
            success=False, message=message, status_code=500
        ),
        lambda response: {
            "total_batches": response.data.batch_reconciliation.total_batches_in_system,
            "orphan_batches": response.data.overall_stats.total_orphan_batches,
            "license_mismatches": response.data.overall_stats.total_mismatches,
        },
        request_id,
    )


async def build_dashboard(
    store: RecordStore, request_id: Optional[str] = None
) -> DashboardResponse:
    """MFC batch-volume tiers with deduplicated batch totals."""
    return await _formula_batch_report(
        store,
        "build_dashboard",
        engine.run_dashboard,
        lambda message: DashboardResponse(success=False, message=message, status_code=500),
        lambda response: {
            "total_formulas": response.total_formulas,
            "total_batches": response.total_batches,
            "tiered_batches": response.section_batch_totals.total,
        },
        request_id,
    )


async def find_duplicate_batches(
    store: RecordStore, request_id: Optional[str] = None
) -> DuplicateBatchesResponse:
    """Batch numbers recorded more than once under one MFC."""
    return await _formula_batch_report(
        store,
        "find_duplicate_batches",
        engine.run_duplicate_report,
        lambda message: DuplicateBatchesResponse(success=False, message=message, status_code=500),
        lambda response: {
            "mfcs_with_duplicates": response.total_mfcs_with_duplicates,
            "duplicate_batch_numbers": response.total_duplicate_batch_numbers,
        },
        request_id,
    )


async def list_matched_batches(
    store: RecordStore, request_id: Optional[str] = None
) -> MatchedBatchesResponse:
    """Claimed batches grouped by MFC and product code."""
    return await _formula_batch_report(
        store,
        "list_matched_batches",
        engine.run_matched_batches,
        lambda message: MatchedBatchesResponse(success=False, message=message, status_code=500),
        lambda response: {"mfcs": response.total, "total_batches": response.total_batches},
        request_id,
    )
