from __future__ import annotations

from typing import NoReturn, Optional

from fastapi import HTTPException, status

from ..infrastructure.prompt_store import PromptStore, get_prompt_store
from ..services.errors import FilesTooLargeError, GatewayConfigError, GatewayError
from ..services.gemini_client import GeminiClient

_gateway: Optional[GeminiClient] = None


def get_gateway() -> GeminiClient:
    global _gateway
    if _gateway is None:
        _gateway = GeminiClient()
    return _gateway


def get_store() -> PromptStore:
    return get_prompt_store()


def raise_for_gateway_error(exc: GatewayError) -> NoReturn:
    """Translate a model gateway failure into the matching HTTP error."""
    if isinstance(exc, GatewayConfigError):
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)) from exc
    if isinstance(exc, FilesTooLargeError):
        raise HTTPException(status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE, detail=str(exc)) from exc
    raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)) from exc
