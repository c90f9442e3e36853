from __future__ import annotations

import logging
import uuid
from typing import Optional

from ..domain.models import PromptDraft, PromptSFL, now_ms
from ..infrastructure.prompt_store import PromptStore
from .prompt_compiler import compile_sfl_prompt

LOG = logging.getLogger("narrative.library")


def recompile(prompt: PromptSFL) -> str:
    return compile_sfl_prompt(prompt.sfl_field, prompt.sfl_tenor, prompt.sfl_mode, prompt.attachments)


def save_draft(store: PromptStore, draft: PromptDraft, prompt_id: Optional[str] = None) -> PromptSFL:
    """Persist the editor state: update ``prompt_id`` in place or add a new prompt."""
    compiled = compile_sfl_prompt(draft.field, draft.tenor, draft.mode, draft.attachments)
    description = draft.goal or draft.field.topic
    if prompt_id:
        updated = store.update_prompt(
            prompt_id,
            {
                "title": draft.title,
                "description": description,
                "sfl_field": draft.field,
                "sfl_tenor": draft.tenor,
                "sfl_mode": draft.mode,
                "attachments": draft.attachments,
                "compiled_prompt": compiled,
            },
        )
        if updated is not None:
            LOG.info("prompt_updated", extra={"prompt_id": prompt_id})
            return updated
    now = now_ms()
    prompt = PromptSFL(
        id=prompt_id or str(uuid.uuid4()),
        title=draft.title,
        description=description,
        created_at=now,
        updated_at=now,
        sfl_field=draft.field,
        sfl_tenor=draft.tenor,
        sfl_mode=draft.mode,
        attachments=draft.attachments,
        compiled_prompt=compiled,
    )
    LOG.info("prompt_created", extra={"prompt_id": prompt.id})
    return store.add_prompt(prompt)


def open_prompt(store: PromptStore, prompt_id: str) -> Optional[PromptSFL]:
    """Fetch a prompt for editing and mark it active.

    Records saved without a compiled prompt get one compiled on read.
    """
    prompt = store.get_prompt(prompt_id)
    if prompt is None:
        return None
    store.set_active_prompt(prompt_id)
    if not prompt.compiled_prompt:
        prompt = prompt.model_copy(update={"compiled_prompt": recompile(prompt)})
    return prompt


def snapshot_version(store: PromptStore, prompt_id: str) -> Optional[PromptSFL]:
    """Push the prompt's current content onto its version history."""
    current = store.get_prompt(prompt_id)
    if current is None:
        return None
    snapshot = current.model_copy(update={"versions": None}, deep=True)
    history = list(current.versions or [])
    history.append(snapshot)
    return store.update_prompt(prompt_id, {"versions": history})


def draft_from_prompt(prompt: PromptSFL) -> PromptDraft:
    """Load a saved prompt back into editor state."""
    return PromptDraft(
        title=prompt.title,
        goal=prompt.description,
        field=prompt.sfl_field,
        tenor=prompt.sfl_tenor,
        mode=prompt.sfl_mode,
        attachments=prompt.attachments,
    )
