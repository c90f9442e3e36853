from __future__ import annotations

import asyncio
import json
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile, status
from fastapi.responses import StreamingResponse
from pydantic import Field

from ...domain.models import Attachment, CamelModel, GeneratedFramework, SFLTenor
from ...domain.uploads import UploadedFile
from ...infrastructure.prompt_store import PromptStore
from ...services.attachment_pipeline import AttachmentBoard
from ...services.errors import GatewayError
from ...services.gemini_client import GeminiClient
from ...services.persona_ai import infer_persona
from ...services.prompt_lab import execute_prompt, stream_execution
from ..deps import get_gateway, get_store, raise_for_gateway_error

router = APIRouter(prefix="/architect", tags=["architect"])
LOG = logging.getLogger("narrative.api")


class IgniteRequest(CamelModel):
    goal: str = Field(min_length=1)
    model: Optional[str] = None


class InvokeRequest(CamelModel):
    compiled_prompt: str = Field(min_length=1)
    model: Optional[str] = None


class InvokeResponse(CamelModel):
    text: str
    model: str


async def _read_uploads(files: List[UploadFile]) -> List[UploadedFile]:
    if not files:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No files provided")
    return [await UploadedFile.from_upload(f) for f in files]


@router.post("/ignite", response_model=Optional[GeneratedFramework])
async def ignite(payload: IgniteRequest, gateway: GeminiClient = Depends(get_gateway)) -> Optional[GeneratedFramework]:
    """Draft all three facets and a title from a free-text goal."""
    if not payload.goal.strip():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Goal is empty")
    try:
        return await asyncio.to_thread(gateway.generate_structured, payload.goal, payload.model)
    except GatewayError as exc:
        LOG.warning("ignite_failed", extra={"err": str(exc)})
        raise_for_gateway_error(exc)


@router.post("/attachments", response_model=List[Attachment], status_code=status.HTTP_201_CREATED)
async def upload_attachments(
    files: List[UploadFile] = File(...),
    gateway: GeminiClient = Depends(get_gateway),
) -> List[Attachment]:
    uploads = await _read_uploads(files)
    board = AttachmentBoard(gateway)
    return await board.ingest_all(uploads)


@router.post("/persona", response_model=Optional[SFLTenor])
async def analyze_persona(
    files: List[UploadFile] = File(...),
    model: Optional[str] = Form(None),
    gateway: GeminiClient = Depends(get_gateway),
    store: PromptStore = Depends(get_store),
) -> Optional[SFLTenor]:
    uploads = await _read_uploads(files)
    try:
        return await infer_persona(uploads, gateway, model or store.state().persona_model)
    except GatewayError as exc:
        LOG.warning("persona_failed", extra={"err": str(exc)})
        raise_for_gateway_error(exc)


@router.post("/invoke", response_model=InvokeResponse)
async def invoke(
    payload: InvokeRequest,
    gateway: GeminiClient = Depends(get_gateway),
    store: PromptStore = Depends(get_store),
) -> InvokeResponse:
    model = payload.model or store.state().primary_model
    text = await asyncio.to_thread(execute_prompt, gateway, payload.compiled_prompt, model)
    return InvokeResponse(text=text, model=model)


@router.post("/invoke/stream", response_class=StreamingResponse)
async def invoke_stream(
    payload: InvokeRequest,
    gateway: GeminiClient = Depends(get_gateway),
    store: PromptStore = Depends(get_store),
):
    model = payload.model or store.state().primary_model

    async def event_stream():
        updates = stream_execution(gateway, payload.compiled_prompt, model)
        try:
            async for update in updates:
                key = "error" if update.failed else "token"
                yield f"data: {json.dumps({key: update.chunk})}\n\n"
            yield "data: [DONE]\n\n"
        finally:
            # Releases the provider stream when the client disconnects early
            await updates.aclose()

    headers = {
        "Cache-Control": "no-cache, no-transform",
        "Connection": "keep-alive",
        "X-Accel-Buffering": "no",
    }
    return StreamingResponse(event_stream(), media_type="text/event-stream", headers=headers)
