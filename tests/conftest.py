import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest

ROOT = Path(__file__).resolve().parents[1]
root_str = str(ROOT)
if root_str not in sys.path:
    sys.path.insert(0, root_str)

from src.narrative.services.gemini_client import InlinePart  # noqa: E402
from src.narrative.services.model_router import FALLBACK_MODELS, ModelRouter  # noqa: E402


class FakeGateway:
    """In-process stand-in for GeminiClient; records every call."""

    def __init__(self) -> None:
        self.router = ModelRouter(env={})
        self.calls: List[Dict[str, Any]] = []
        self.text = "analysis text"
        self.json_text = ""
        self.chunks: List[str] = []
        self.framework = None
        self.models = list(FALLBACK_MODELS)
        self.error: Optional[Exception] = None
        self.fail_mimes: Dict[str, Exception] = {}
        self.stream_closed = False

    def _inline_mime(self, contents) -> Optional[str]:
        if isinstance(contents, str):
            return None
        for part in contents:
            if isinstance(part, InlinePart):
                return part.mime_type
        return None

    def generate_once(self, contents, model=None):
        self.calls.append({"capability": "once", "contents": contents, "model": model})
        mime = self._inline_mime(contents)
        if mime in self.fail_mimes:
            raise self.fail_mimes[mime]
        if self.error:
            raise self.error
        return self.text

    def generate_json(self, contents, schema=None, model=None):
        self.calls.append({"capability": "json", "contents": contents, "schema": schema, "model": model})
        if self.error:
            raise self.error
        return self.json_text

    def generate_stream(self, contents, model=None):
        self.calls.append({"capability": "stream", "contents": contents, "model": model})
        try:
            for chunk in self.chunks:
                yield chunk
            if self.error:
                raise self.error
        finally:
            self.stream_closed = True

    def generate_structured(self, goal, model=None):
        self.calls.append({"capability": "structured", "goal": goal, "model": model})
        if self.error:
            raise self.error
        return self.framework

    def list_models(self):
        self.calls.append({"capability": "list_models"})
        return list(self.models)


@pytest.fixture
def fake_gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture(autouse=True)
def _isolated_store(monkeypatch, tmp_path):
    """Each test gets a fresh in-memory store and no real credentials."""
    from src.narrative.infrastructure import prompt_store
    from src.narrative.services import telemetry_sink

    monkeypatch.setenv("NARRATIVE_STORE_IMPL", "memory")
    monkeypatch.setenv("NARRATIVE_STORE_FILE", str(tmp_path / "store.json"))
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)
    monkeypatch.delenv("API_KEY", raising=False)
    prompt_store.reset_prompt_store()
    telemetry_sink.clear_events()
    yield
    prompt_store.reset_prompt_store()
