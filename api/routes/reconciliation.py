"""Batch reconciliation endpoints.

- GET /api/reconciliation: batch <-> formula reconciliation report
- GET /api/reconciliation/dashboard: MFC batch-volume tiers
"""

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from models.api_responses import DashboardResponse, ReconciliationResponse
from reconciliation import service
from storage.base import RecordStore

from api.dependencies import get_record_store, to_json_response


router = APIRouter()


@router.get("", response_model=ReconciliationResponse, response_model_by_alias=True)
async def reconcile_batches(store: RecordStore = Depends(get_record_store)) -> JSONResponse:
    response = await service.reconcile_batches(store)
    return to_json_response(response)


@router.get("/dashboard", response_model=DashboardResponse, response_model_by_alias=True)
async def dashboard(store: RecordStore = Depends(get_record_store)) -> JSONResponse:
    response = await service.build_dashboard(store)
    return to_json_response(response)
