"""Data validation endpoints.

- GET /api/data-validation: batch availability for one section
- GET /api/data-validation/materials: MFC materials missing from requisitions
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse

from models.api_responses import MaterialAvailabilityResponse, SectionValidationResponse
from reconciliation import service
from storage.base import RecordStore

from api.dependencies import get_record_store, to_json_response


router = APIRouter()


@router.get("", response_model=SectionValidationResponse, response_model_by_alias=True)
async def validate_section(
    section: Optional[str] = Query(None, description="Bulk, Finish, RM, PPM or PM"),
    min_batches: Optional[str] = Query(None, alias="minBatches", description="Minimum batches per MFC"),
    store: RecordStore = Depends(get_record_store),
) -> JSONResponse:
    """Validate batch availability for a specific section."""
    response = await service.validate_section(store, section, min_batches)
    return to_json_response(response)


@router.get("/materials", response_model=MaterialAvailabilityResponse, response_model_by_alias=True)
async def validate_materials(
    min_batches: Optional[str] = Query(None, alias="minBatches", description="Minimum batches per MFC"),
    material_type: Optional[str] = Query(None, alias="type", description="Only check RM, PPM or PM"),
    store: RecordStore = Depends(get_record_store),
) -> JSONResponse:
    """Check every MFC material against the requisition of every batch."""
    response = await service.validate_materials(store, min_batches, material_type)
    return to_json_response(response)
