"""Infer a voice/audience profile (Tenor) from sample files.

All files go out in a single request: media the model can read natively is
attached inline, everything else is extracted locally and sent as labelled
text. The model answers with exactly the four Tenor fields.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Optional, Sequence

from pydantic import ValidationError

from ..domain.models import SFLTenor
from ..domain.uploads import UploadedFile, guess_mime_type
from .attachment_ingest import to_base64
from .doc_ingest import PDF_MIME, extract_local_text
from .errors import FilesTooLargeError, GatewayError, StructuredOutputError
from .gemini_client import GeminiClient, InlinePart, Part, TextPart, is_token_limit_error

LOG = logging.getLogger("narrative.persona")

PERSONA_INSTRUCTION = (
    "You are an expert in Systemic Functional Linguistics. Study the writing, speech and imagery in the "
    "material above and infer the voice it is written in. Return a JSON object with: aiPersona (the role "
    "the author speaks as), targetAudience (list of audiences addressed), desiredTone (the prevailing tone) "
    "and interpersonalStance (the stance taken toward the audience)."
)

PERSONA_SCHEMA: Dict[str, Any] = {
    "type": "OBJECT",
    "properties": {
        "aiPersona": {"type": "STRING"},
        "targetAudience": {"type": "ARRAY", "items": {"type": "STRING"}},
        "desiredTone": {"type": "STRING"},
        "interpersonalStance": {"type": "STRING"},
    },
    "required": ["aiPersona", "targetAudience", "desiredTone", "interpersonalStance"],
}


def is_binary_capable(mime_type: str) -> bool:
    mime = (mime_type or "").lower()
    return mime.startswith("image/") or mime.startswith("audio/") or mime == PDF_MIME


def build_persona_parts(files: Sequence[UploadedFile]) -> List[Part]:
    parts: List[Part] = []
    for upload in files:
        mime = guess_mime_type(upload.name, upload.mime_type)
        if is_binary_capable(mime):
            parts.append(InlinePart(mime_type=mime, data=to_base64(upload.data)))
            continue
        text = extract_local_text(upload)
        if text.strip():
            parts.append(TextPart(text=f"Content from {upload.name}:\n{text}"))
    return parts


def decode_tenor(text: str) -> SFLTenor:
    try:
        return SFLTenor.model_validate_json(text)
    except ValidationError as exc:
        raise StructuredOutputError(f"Malformed persona response: {exc.errors()[0].get('msg')}") from exc


async def infer_persona(
    files: Sequence[UploadedFile],
    gateway: GeminiClient,
    model: Optional[str] = None,
) -> Optional[SFLTenor]:
    parts = await asyncio.to_thread(build_persona_parts, files)
    if not parts:
        return None
    parts.append(TextPart(text=PERSONA_INSTRUCTION))
    resolved = gateway.router.model_for("persona", model)
    try:
        text = await asyncio.to_thread(gateway.generate_json, parts, PERSONA_SCHEMA, resolved)
    except GatewayError as exc:
        if is_token_limit_error(exc):
            LOG.info("persona_files_too_large", extra={"files": len(files), "model": resolved})
            raise FilesTooLargeError(
                FilesTooLargeError.guidance,
                http_status=exc.http_status,
                provider_status=exc.provider_status,
            ) from exc
        raise
    if not text.strip():
        return None
    return decode_tenor(text)
