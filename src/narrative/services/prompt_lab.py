from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import AsyncIterator, List, Optional

from ..infrastructure.prompt_store import PromptStore
from .gemini_client import GeminiClient
from .streaming import iter_as_async

LOG = logging.getLogger("narrative.lab")

STREAM_ERROR_TEXT = "Error executing prompt. Please check settings."


@dataclass(frozen=True)
class StreamUpdate:
    """One step of a streamed trial run: the newest chunk and the text so far."""

    chunk: str
    text: str
    failed: bool = False


def execute_prompt(gateway: GeminiClient, compiled_prompt: str, model: Optional[str] = None) -> str:
    """Run a compiled prompt once. Failures come back as inline text, never raised."""
    try:
        text = gateway.generate_once(compiled_prompt, gateway.router.model_for("execute", model))
    except Exception as exc:
        LOG.warning("execute_prompt_failed", extra={"err": str(exc)})
        return f"Error: {exc}"
    return text or "No response generated."


async def stream_execution(
    gateway: GeminiClient,
    compiled_prompt: str,
    model: Optional[str] = None,
) -> AsyncIterator[StreamUpdate]:
    """Stream a trial response.

    A provider failure ends the stream with a single ``failed`` update whose
    text replaces whatever had arrived. Closing the iterator early closes the
    provider stream.
    """
    chunks = iter_as_async(gateway.generate_stream(compiled_prompt, gateway.router.model_for("execute", model)))
    text = ""
    try:
        async for chunk in chunks:
            text += chunk
            yield StreamUpdate(chunk=chunk, text=text)
    except Exception as exc:
        LOG.warning("stream_execution_failed", extra={"err": str(exc), "received": len(text)})
        yield StreamUpdate(chunk=STREAM_ERROR_TEXT, text=STREAM_ERROR_TEXT, failed=True)
    finally:
        await chunks.aclose()


def refresh_available_models(gateway: GeminiClient, store: PromptStore) -> List[str]:
    models = gateway.list_models()
    store.set_available_models(models)
    return models
