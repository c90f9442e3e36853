from __future__ import annotations

import mimetypes
import os
from dataclasses import dataclass
from typing import Any

# Multipart clients (curl, requests) send these when they do not know the type.
GENERIC_MIME_TYPES = frozenset({"", "application/octet-stream", "binary/octet-stream"})


def guess_mime_type(name: str, declared: str | None = None) -> str:
    """Return ``declared`` unless it is missing or generic, then guess from the file name."""
    declared = (declared or "").strip()
    if declared.lower() not in GENERIC_MIME_TYPES:
        return declared
    guessed, _ = mimetypes.guess_type(name or "")
    return guessed or declared


@dataclass(frozen=True)
class UploadedFile:
    """A user-supplied file fully read into memory."""

    name: str
    mime_type: str
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)

    @classmethod
    def from_bytes(cls, name: str, data: bytes, mime_type: str | None = None) -> "UploadedFile":
        clean_name = os.path.basename(name or "") or "upload"
        return cls(name=clean_name, mime_type=guess_mime_type(clean_name, mime_type), data=bytes(data or b""))

    @classmethod
    async def from_upload(cls, upload: Any) -> "UploadedFile":
        """Read a FastAPI/Starlette ``UploadFile``; I/O errors propagate to the caller."""
        try:
            content = await upload.read()
        finally:
            await upload.close()
        return cls.from_bytes(upload.filename or "upload", content, upload.content_type)
