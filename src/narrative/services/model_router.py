"""Routing helpers for selecting the model that serves each call site.

Model selection is explicit per call: callers either pass a model id or ask
the router for the id bound to a purpose. Media analysis deliberately mixes
tiers: video and image go to the larger model, audio and PDF to the faster
one. The router never talks to the provider; it only resolves configuration
so the policy stays unit-testable.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional


DEFAULT_MODEL = "gemini-2.5-flash"
CAPABLE_MODEL = "gemini-3-pro-preview"
DEFAULT_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"

# Served by list_models() when discovery fails.
FALLBACK_MODELS: List[str] = ["gemini-3-pro-preview", "gemini-2.5-pro", "gemini-2.5-flash"]


@dataclass(frozen=True)
class ModelSelection:
    """Resolved model plus the connection settings needed to call it."""

    purpose: str
    model: str
    base_url: str
    api_key_env: Optional[str]


class ModelRouter:
    """Policy table mapping call-site purposes to model ids."""

    ROUTING_POLICY: Dict[str, str] = {
        "default": DEFAULT_MODEL,
        "framework": DEFAULT_MODEL,
        "execute": DEFAULT_MODEL,
        "audio": DEFAULT_MODEL,
        "pdf": DEFAULT_MODEL,
        "video": CAPABLE_MODEL,
        "image": CAPABLE_MODEL,
        "persona": CAPABLE_MODEL,
    }

    API_KEY_ENVS = ("GEMINI_API_KEY", "API_KEY")

    def __init__(self, env: Optional[Mapping[str, str]] = None) -> None:
        self._env = env if env is not None else os.environ

    # ------------------------------------------------------------------
    # Resolution helpers
    # ------------------------------------------------------------------
    def _override_for(self, purpose: str) -> Optional[str]:
        value = (self._env.get(f"NARRATIVE_MODEL_{purpose.upper()}") or "").strip()
        return value or None

    def api_key_env(self) -> Optional[str]:
        for name in self.API_KEY_ENVS:
            if self._env.get(name):
                return name
        return None

    def api_key(self) -> Optional[str]:
        name = self.api_key_env()
        return self._env.get(name) if name else None

    def base_url(self) -> str:
        return (self._env.get("GEMINI_BASE_URL") or DEFAULT_BASE_URL).rstrip("/")

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def model_for(self, purpose: str, explicit: Optional[str] = None) -> str:
        """Return the model id for ``purpose``; an explicit id always wins."""

        if explicit:
            return explicit
        return self._override_for(purpose) or self.ROUTING_POLICY.get(purpose, DEFAULT_MODEL)

    def select(self, purpose: str, explicit: Optional[str] = None) -> ModelSelection:
        return ModelSelection(
            purpose=purpose,
            model=self.model_for(purpose, explicit),
            base_url=self.base_url(),
            api_key_env=self.api_key_env(),
        )

    def metadata(self, purpose: str) -> Dict[str, Optional[str]]:
        """Describe the selection for logs without exposing the key itself."""

        selection = self.select(purpose)
        return {
            "purpose": selection.purpose,
            "model": selection.model,
            "base_url": selection.base_url,
            "api_key_env": selection.api_key_env,
        }
