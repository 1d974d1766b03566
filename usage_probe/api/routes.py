"""Usage API endpoints used by the polling UI."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from usage_probe.errors import NoCredential
from usage_probe.models import FetchFailure
from usage_probe.service import UsageService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/claude")


class SaveKeyRequest(BaseModel):
    key: str | None = None


def _service(request: Request) -> UsageService:
    return request.app.state.usage_service


@router.get("/usage")
async def get_usage(request: Request) -> Any:
    """Fetch a fresh snapshot with the configured strategy."""
    result = await _service(request).fetch_usage_data()
    if isinstance(result, FetchFailure):
        # Missing or rejected credentials are the UI's cue to ask for a key
        status = 401 if result.requires_reauth or result.kind == NoCredential.kind else 500
        return JSONResponse(status_code=status, content=result.model_dump())
    return result.model_dump(mode="json", by_alias=True)


@router.post("/key")
def save_key(body: SaveKeyRequest, request: Request) -> dict[str, Any]:
    """Store a new session key, replacing any previous one."""
    if not body.key or not body.key.strip():
        raise HTTPException(status_code=400, detail="Key is required")
    result = _service(request).save_credential(body.key)
    if not result.success:
        raise HTTPException(status_code=500, detail=result.error or "Unknown error")
    return {"success": True}


@router.get("/key/check")
def check_key(request: Request) -> dict[str, bool]:
    """Lightweight credential check for UI state."""
    return {"exists": _service(request).check_credential()}
