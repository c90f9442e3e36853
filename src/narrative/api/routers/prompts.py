from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Response, status
from pydantic import Field

from ...domain.models import (
    Attachment,
    CamelModel,
    PromptDraft,
    PromptSFL,
    SettingsUpdate,
    SFLField,
    SFLMode,
    SFLTenor,
    Theme,
)
from ...infrastructure.prompt_store import PromptStore
from ...services.gemini_client import GeminiClient
from ...services.prompt_compiler import compile_sfl_prompt
from ...services.prompt_lab import refresh_available_models
from ...services.prompt_library import draft_from_prompt, open_prompt, save_draft, snapshot_version
from ..deps import get_gateway, get_store

router = APIRouter(tags=["library"])


class CompileRequest(CamelModel):
    field: SFLField = Field(default_factory=SFLField)
    tenor: SFLTenor = Field(default_factory=SFLTenor)
    mode: SFLMode = Field(default_factory=SFLMode)
    attachments: List[Attachment] = Field(default_factory=list)


class CompileResponse(CamelModel):
    compiled_prompt: str


class SettingsResponse(CamelModel):
    theme: Theme
    primary_model: str
    persona_model: str
    available_models: List[str] = Field(default_factory=list)
    active_prompt_id: Optional[str] = None


def _settings(store: PromptStore) -> SettingsResponse:
    state = store.state()
    return SettingsResponse(
        theme=state.theme,
        primary_model=state.primary_model,
        persona_model=state.persona_model,
        available_models=list(store.available_models),
        active_prompt_id=store.active_prompt_id,
    )


@router.get("/prompts", response_model=List[PromptSFL])
def list_prompts(store: PromptStore = Depends(get_store)) -> List[PromptSFL]:
    return store.list_prompts()


@router.post("/prompts/compile", response_model=CompileResponse)
def compile_preview(payload: CompileRequest) -> CompileResponse:
    return CompileResponse(
        compiled_prompt=compile_sfl_prompt(payload.field, payload.tenor, payload.mode, payload.attachments)
    )


@router.post("/prompts", response_model=PromptSFL, status_code=status.HTTP_201_CREATED)
def create_prompt(draft: PromptDraft, store: PromptStore = Depends(get_store)) -> PromptSFL:
    return save_draft(store, draft)


@router.get("/prompts/{prompt_id}", response_model=PromptSFL)
def get_prompt(prompt_id: str, store: PromptStore = Depends(get_store)) -> PromptSFL:
    prompt = open_prompt(store, prompt_id)
    if prompt is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Prompt not found")
    return prompt


@router.get("/prompts/{prompt_id}/draft", response_model=PromptDraft)
def load_draft(prompt_id: str, store: PromptStore = Depends(get_store)) -> PromptDraft:
    """Editor state for a saved prompt; the prompt becomes the active one."""
    prompt = open_prompt(store, prompt_id)
    if prompt is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Prompt not found")
    return draft_from_prompt(prompt)


@router.put("/prompts/{prompt_id}", response_model=PromptSFL)
def update_prompt(prompt_id: str, draft: PromptDraft, store: PromptStore = Depends(get_store)) -> PromptSFL:
    if not store.get_prompt(prompt_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Prompt not found")
    return save_draft(store, draft, prompt_id=prompt_id)


@router.delete("/prompts/{prompt_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_prompt(prompt_id: str, store: PromptStore = Depends(get_store)) -> Response:
    if not store.delete_prompt(prompt_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Prompt not found")
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/prompts/{prompt_id}/versions", response_model=PromptSFL, status_code=status.HTTP_201_CREATED)
def create_version(prompt_id: str, store: PromptStore = Depends(get_store)) -> PromptSFL:
    prompt = snapshot_version(store, prompt_id)
    if prompt is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Prompt not found")
    return prompt


@router.get("/settings", response_model=SettingsResponse)
def get_settings(store: PromptStore = Depends(get_store)) -> SettingsResponse:
    return _settings(store)


@router.put("/settings", response_model=SettingsResponse)
def update_settings(payload: SettingsUpdate, store: PromptStore = Depends(get_store)) -> SettingsResponse:
    if payload.theme:
        store.set_theme(payload.theme)
    if payload.primary_model:
        store.set_primary_model(payload.primary_model)
    if payload.persona_model:
        store.set_persona_model(payload.persona_model)
    return _settings(store)


@router.get("/models", response_model=List[str])
def list_models(
    gateway: GeminiClient = Depends(get_gateway),
    store: PromptStore = Depends(get_store),
) -> List[str]:
    return refresh_available_models(gateway, store)
