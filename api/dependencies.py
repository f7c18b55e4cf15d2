"""Shared route dependencies."""

from fastapi import Request
from fastapi.responses import JSONResponse

from models.api_responses import ServiceResponse
from storage.base import RecordStore


def get_record_store(request: Request) -> RecordStore:
    """The record store the app was created with."""
    return request.app.state.store


def to_json_response(response: ServiceResponse) -> JSONResponse:
    """Serialize by alias, with the transport status taken from the response."""
    return JSONResponse(status_code=response.status_code, content=response.to_payload())
