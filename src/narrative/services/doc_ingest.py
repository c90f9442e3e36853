from __future__ import annotations

import io
import json
import logging
from dataclasses import dataclass
from typing import List, Literal, Optional

from docx import Document

from ..domain.uploads import UploadedFile, guess_mime_type

LOG = logging.getLogger("narrative.ingest")

DOCX_MIME = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
PDF_MIME = "application/pdf"

RouteKind = Literal["json", "jsonl", "document", "media", "text"]
MediaKind = Literal["audio", "video", "image", "pdf"]


@dataclass(frozen=True)
class IngestRoute:
    kind: RouteKind
    media: Optional[MediaKind] = None


def media_kind(mime_type: str) -> Optional[MediaKind]:
    mime = (mime_type or "").lower()
    if mime.startswith("audio/"):
        return "audio"
    if mime.startswith("video/"):
        return "video"
    if mime.startswith("image/"):
        return "image"
    if mime == PDF_MIME:
        return "pdf"
    return None


def classify_route(name: str, mime_type: str) -> IngestRoute:
    """Pick the extraction strategy: file-name extension first, then the MIME type.

    A missing or generic declared type is replaced by the one guessed from the name.
    """
    lowered = (name or "").lower()
    mime = guess_mime_type(name, mime_type).lower()
    if lowered.endswith(".json"):
        return IngestRoute("json")
    if lowered.endswith(".jsonl"):
        return IngestRoute("jsonl")
    if mime == DOCX_MIME or lowered.endswith(".docx"):
        return IngestRoute("document")
    kind = media_kind(mime)
    if kind:
        return IngestRoute("media", kind)
    return IngestRoute("text")


def decode_text(data: bytes) -> str:
    return data.decode("utf-8-sig", errors="replace")


def parse_json_text(data: bytes) -> str:
    """Pretty-print a JSON document; malformed input yields a description instead of raising."""
    try:
        parsed = json.loads(decode_text(data))
    except json.JSONDecodeError as exc:
        return f"Invalid JSON file: {exc.msg} (line {exc.lineno}, column {exc.colno})"
    return json.dumps(parsed, indent=2, ensure_ascii=False)


def parse_jsonl_text(data: bytes) -> str:
    """Parse each non-empty line on its own; bad lines become markers so the rest survives."""
    out: List[str] = []
    for lineno, raw in enumerate(decode_text(data).splitlines(), start=1):
        line = raw.strip()
        if not line:
            continue
        try:
            parsed = json.loads(line)
        except json.JSONDecodeError:
            out.append(f"[Line {lineno}] Invalid JSON: {raw}")
            continue
        out.append(json.dumps(parsed, ensure_ascii=False))
    return "\n".join(out)


def extract_docx_text(data: bytes) -> str:
    try:
        doc = Document(io.BytesIO(data))
        paragraphs = [p.text for p in doc.paragraphs if p.text and p.text.strip()]
    except Exception:
        LOG.warning("docx_extraction_failed", exc_info=True)
        return "Failed to extract text from DOCX."
    return "\n".join(paragraphs) or "Empty document."


def extract_local_text(upload: UploadedFile) -> str:
    """Text for any upload that does not need the model: JSON, JSONL, DOCX or plain text."""
    route = classify_route(upload.name, upload.mime_type)
    if route.kind == "json":
        return parse_json_text(upload.data)
    if route.kind == "jsonl":
        return parse_jsonl_text(upload.data)
    if route.kind == "document":
        return extract_docx_text(upload.data)
    return decode_text(upload.data)
