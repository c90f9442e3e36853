from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from threading import RLock
from typing import Any, Dict, List, Optional, Protocol

from ..domain.models import PromptSFL, StoreState, Theme, now_ms

LOG = logging.getLogger("narrative.store")

STORE_NAMESPACE = "sfl-narrative-storage"
STORE_VERSION = 0


class PromptStore(Protocol):
    active_prompt_id: Optional[str]
    available_models: List[str]

    def state(self) -> StoreState: ...
    def list_prompts(self) -> List[PromptSFL]: ...
    def get_prompt(self, prompt_id: str) -> Optional[PromptSFL]: ...
    def add_prompt(self, prompt: PromptSFL) -> PromptSFL: ...
    def update_prompt(self, prompt_id: str, updates: Dict[str, Any]) -> Optional[PromptSFL]: ...
    def delete_prompt(self, prompt_id: str) -> bool: ...
    def set_active_prompt(self, prompt_id: Optional[str]) -> None: ...
    def set_theme(self, theme: Theme) -> None: ...
    def set_primary_model(self, model: str) -> None: ...
    def set_persona_model(self, model: str) -> None: ...
    def set_available_models(self, models: List[str]) -> None: ...


class InMemoryPromptStore:
    """Prompt library plus user preferences.

    ``active_prompt_id`` and ``available_models`` are session-only and never
    part of :meth:`state`, which is what persistence writes out.
    """

    def __init__(self, state: Optional[StoreState] = None) -> None:
        self._state = state or StoreState()
        self._lock = RLock()
        self.active_prompt_id: Optional[str] = None
        self.available_models: List[str] = []

    def _changed(self) -> None:
        """Hook for persistent subclasses."""

    def state(self) -> StoreState:
        with self._lock:
            return self._state.model_copy(deep=True)

    def list_prompts(self) -> List[PromptSFL]:
        with self._lock:
            return [p.model_copy(deep=True) for p in self._state.prompts]

    def get_prompt(self, prompt_id: str) -> Optional[PromptSFL]:
        with self._lock:
            for p in self._state.prompts:
                if p.id == prompt_id:
                    return p.model_copy(deep=True)
            return None

    def add_prompt(self, prompt: PromptSFL) -> PromptSFL:
        """Newest first."""
        with self._lock:
            stored = prompt.model_copy(deep=True)
            self._state.prompts.insert(0, stored)
            self._changed()
            return stored.model_copy(deep=True)

    def update_prompt(self, prompt_id: str, updates: Dict[str, Any]) -> Optional[PromptSFL]:
        """Merge ``updates`` (snake_case field names) into a prompt and refresh ``updated_at``."""
        with self._lock:
            for idx, p in enumerate(self._state.prompts):
                if p.id != prompt_id:
                    continue
                merged = p.model_dump()
                merged.update({k: v for k, v in updates.items() if k != "id"})
                merged["updated_at"] = now_ms()
                updated = PromptSFL.model_validate(merged)
                self._state.prompts[idx] = updated
                self._changed()
                return updated.model_copy(deep=True)
            return None

    def delete_prompt(self, prompt_id: str) -> bool:
        with self._lock:
            before = len(self._state.prompts)
            self._state.prompts = [p for p in self._state.prompts if p.id != prompt_id]
            removed = len(self._state.prompts) != before
            if self.active_prompt_id == prompt_id:
                self.active_prompt_id = None
            if removed:
                self._changed()
            return removed

    def set_active_prompt(self, prompt_id: Optional[str]) -> None:
        self.active_prompt_id = prompt_id

    def set_theme(self, theme: Theme) -> None:
        with self._lock:
            self._state.theme = theme
            self._changed()

    def set_primary_model(self, model: str) -> None:
        with self._lock:
            self._state.primary_model = model
            self._changed()

    def set_persona_model(self, model: str) -> None:
        with self._lock:
            self._state.persona_model = model
            self._changed()

    def set_available_models(self, models: List[str]) -> None:
        self.available_models = list(models)


class FilePromptStore(InMemoryPromptStore):
    """JSON file-backed store for development persistence.

    The file holds one object keyed by the store namespace, with the same
    ``{"state": ..., "version": 0}`` envelope the browser build used.
    """

    def __init__(self, file_path: Optional[str] = None) -> None:
        root = Path(__file__).resolve().parents[3]
        default_path = root / "run" / "narrative_store.json"
        self._path = Path(file_path or os.getenv("NARRATIVE_STORE_FILE", str(default_path)))
        self._path.parent.mkdir(parents=True, exist_ok=True)
        super().__init__(self._load())

    def _load(self) -> StoreState:
        if not self._path.exists():
            return StoreState()
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
            envelope = (data or {}).get(STORE_NAMESPACE) or {}
            return StoreState.model_validate(envelope.get("state") or {})
        except Exception:
            # Unreadable store: start clean rather than refusing to boot
            LOG.warning("store_load_failed", extra={"path": str(self._path)}, exc_info=True)
            return StoreState()

    def _changed(self) -> None:
        try:
            envelope = {
                STORE_NAMESPACE: {
                    "state": self._state.model_dump(mode="json", by_alias=True),
                    "version": STORE_VERSION,
                }
            }
            self._path.write_text(json.dumps(envelope, indent=2), encoding="utf-8")
        except OSError:
            LOG.warning("store_save_failed", extra={"path": str(self._path)}, exc_info=True)


_store: Optional[PromptStore] = None


def get_prompt_store() -> PromptStore:
    global _store
    if _store is None:
        impl = os.getenv("NARRATIVE_STORE_IMPL", "memory").lower()
        _store = FilePromptStore() if impl == "file" else InMemoryPromptStore()
    return _store


def reset_prompt_store() -> None:
    global _store
    _store = None
