from __future__ import annotations

import asyncio
import base64
import logging
import os
from dataclasses import dataclass
from typing import Dict

from ..domain.uploads import UploadedFile, guess_mime_type
from .doc_ingest import (
    MediaKind,
    classify_route,
    decode_text,
    extract_docx_text,
    parse_json_text,
    parse_jsonl_text,
)
from .errors import FilesTooLargeError
from .gemini_client import GeminiClient, InlinePart, TextPart

LOG = logging.getLogger("narrative.ingest")

# Inline request payloads above ~20 MB are rejected by the provider.
ATTACHMENT_MAX_BYTES = int(os.getenv("NARRATIVE_ATTACHMENT_MAX_BYTES", str(20 * 1024 * 1024)))

MEDIA_INSTRUCTIONS: Dict[str, str] = {
    "audio": "Transcribe this audio verbatim.",
    "video": (
        "Analyze this video and provide a comprehensive description of the visual and audio content, "
        "including any captions or spoken words."
    ),
    "image": "Analyze this image in detail. Describe the scene, objects, text, and mood.",
    "pdf": "Analyze this document. Summarize the key points and extract the main content.",
}

EMPTY_ANALYSIS: Dict[str, str] = {
    "audio": "No transcription generated.",
}


@dataclass(frozen=True)
class IngestResult:
    analysis: str


def to_base64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


async def analyze_media(upload: UploadedFile, kind: MediaKind, gateway: GeminiClient) -> str:
    """Send one media file to the model with its kind-specific instruction.

    Provider failures propagate so the caller can mark the attachment as failed.
    """
    if upload.size > ATTACHMENT_MAX_BYTES:
        raise FilesTooLargeError(
            f"{upload.name} is {upload.size} bytes; inline media is limited to {ATTACHMENT_MAX_BYTES} bytes"
        )
    model = gateway.router.model_for(kind)
    parts = [
        InlinePart(mime_type=guess_mime_type(upload.name, upload.mime_type), data=to_base64(upload.data)),
        TextPart(text=MEDIA_INSTRUCTIONS[kind]),
    ]
    LOG.info("media_analysis_started", extra={"file": upload.name, "kind": kind, "model": model})
    text = await asyncio.to_thread(gateway.generate_once, parts, model)
    return text or EMPTY_ANALYSIS.get(kind, "No analysis generated.")


async def ingest_file(upload: UploadedFile, gateway: GeminiClient) -> IngestResult:
    route = classify_route(upload.name, upload.mime_type)
    if route.kind == "json":
        return IngestResult(parse_json_text(upload.data))
    if route.kind == "jsonl":
        return IngestResult(parse_jsonl_text(upload.data))
    if route.kind == "document":
        return IngestResult(await asyncio.to_thread(extract_docx_text, upload.data))
    if route.kind == "media" and route.media:
        return IngestResult(await analyze_media(upload, route.media, gateway))
    return IngestResult(decode_text(upload.data))
