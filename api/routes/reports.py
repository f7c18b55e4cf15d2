"""Report and batch listing endpoints.

- GET /api/reports/duplicate-batches: repeated batch numbers per MFC
- GET /api/batch/matched-batches: batches grouped by MFC and product code
"""

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from models.api_responses import DuplicateBatchesResponse, MatchedBatchesResponse
from reconciliation import service
from storage.base import RecordStore

from api.dependencies import get_record_store, to_json_response


router = APIRouter()


@router.get(
    "/reports/duplicate-batches",
    response_model=DuplicateBatchesResponse,
    response_model_by_alias=True,
)
async def duplicate_batches(store: RecordStore = Depends(get_record_store)) -> JSONResponse:
    response = await service.find_duplicate_batches(store)
    return to_json_response(response)


@router.get(
    "/batch/matched-batches",
    response_model=MatchedBatchesResponse,
    response_model_by_alias=True,
)
async def matched_batches(store: RecordStore = Depends(get_record_store)) -> JSONResponse:
    response = await service.list_matched_batches(store)
    return to_json_response(response)
