from __future__ import annotations

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query

from ...services.gemini_client import GeminiClient
from ...services.telemetry_sink import list_recent_events
from ..deps import get_gateway

router = APIRouter(prefix="/diag", tags=["diagnostics"])


@router.get("/llm")
def diag_llm(gateway: GeminiClient = Depends(get_gateway)) -> Dict[str, Any]:
    """Model routing as currently configured; the key itself is never returned."""
    model_router = gateway.router
    return {
        "has_api_key": model_router.api_key_env() is not None,
        "base_url": model_router.base_url(),
        "routing": {purpose: model_router.metadata(purpose) for purpose in model_router.ROUTING_POLICY},
    }


@router.get("/events")
def diag_events(
    limit: int = Query(50, ge=1, le=200),
    kind: Optional[str] = Query(None, pattern="^(attachment_settled|gateway_call)$"),
) -> List[Dict[str, Any]]:
    return list_recent_events(limit=limit, kind=kind)
