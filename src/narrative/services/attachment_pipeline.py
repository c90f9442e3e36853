from __future__ import annotations

import asyncio
import logging
import uuid
from typing import Callable, Dict, Iterable, List, Optional, Set

from ..core.state_machine import INITIAL_STATUS, is_terminal, is_valid_transition
from ..domain.models import Attachment, AttachmentStatus, AttachmentType
from ..domain.uploads import UploadedFile, guess_mime_type
from ..observability.metrics import ATTACHMENTS_SETTLED
from .attachment_ingest import ingest_file
from .doc_ingest import DOCX_MIME, PDF_MIME
from .gemini_client import GeminiClient
from .telemetry_sink import AttachmentSettled, record_event

LOG = logging.getLogger("narrative.attachments")

AttachmentListener = Callable[[Attachment], None]

TEXT_EXTENSIONS = (".md", ".txt", ".json", ".jsonl", ".csv")
DOCUMENT_EXTENSIONS = (".docx", ".doc")


def infer_attachment_type(name: str, mime_type: str) -> AttachmentType:
    mime = guess_mime_type(name, mime_type).lower()
    lowered = (name or "").lower()
    if mime.startswith("audio/"):
        return "audio"
    if mime.startswith("video/"):
        return "video"
    if mime.startswith("image/"):
        return "image"
    if mime == PDF_MIME or lowered.endswith(".pdf"):
        return "pdf"
    if mime in (DOCX_MIME, "application/msword") or lowered.endswith(DOCUMENT_EXTENSIONS):
        return "document"
    if mime.startswith("text/") or "json" in mime or lowered.endswith(TEXT_EXTENSIONS):
        return "text"
    return "other"


class AttachmentBoard:
    """Attachment records of one draft prompt and the ingestion work feeding them.

    Every attached file gets a record in ``processing`` right away and an
    independent ingestion task. Tasks settle their own record by id, in any
    order; a record removed while its task is in flight is simply skipped.
    """

    def __init__(
        self,
        gateway: GeminiClient,
        attachments: Optional[Iterable[Attachment]] = None,
        listener: Optional[AttachmentListener] = None,
    ) -> None:
        self._gateway = gateway
        self._records: Dict[str, Attachment] = {a.id: a.model_copy() for a in attachments or []}
        self._listener = listener
        self._tasks: Set[asyncio.Task] = set()

    @property
    def attachments(self) -> List[Attachment]:
        return [a.model_copy() for a in self._records.values()]

    @property
    def in_flight(self) -> int:
        return len(self._tasks)

    def get(self, attachment_id: str) -> Optional[Attachment]:
        record = self._records.get(attachment_id)
        return record.model_copy() if record else None

    def _notify(self, record: Attachment) -> None:
        if not self._listener:
            return
        try:
            self._listener(record.model_copy())
        except Exception:
            LOG.exception("attachment_listener_failed")

    async def attach(self, files: Iterable[UploadedFile]) -> List[Attachment]:
        """Create a ``processing`` record per file and start ingesting each one."""
        created: List[Attachment] = []
        for upload in files:
            record = Attachment(
                id=str(uuid.uuid4()),
                name=upload.name,
                type=infer_attachment_type(upload.name, upload.mime_type),
                mime_type=upload.mime_type,
                status=INITIAL_STATUS,
            )
            self._records[record.id] = record
            self._notify(record)
            task = asyncio.create_task(self._ingest(record.id, upload))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)
            created.append(record.model_copy())
        return created

    async def _ingest(self, attachment_id: str, upload: UploadedFile) -> None:
        try:
            result = await ingest_file(upload, self._gateway)
        except Exception as exc:
            LOG.warning("attachment_ingest_failed", extra={"attachment_id": attachment_id, "err": str(exc)})
            self.settle(attachment_id, "error", error_message=f"Analysis failed: {exc}")
            return
        self.settle(attachment_id, "done", analysis=result.analysis)

    def settle(
        self,
        attachment_id: str,
        status: AttachmentStatus,
        *,
        analysis: Optional[str] = None,
        error_message: Optional[str] = None,
    ) -> bool:
        """Move one record to a terminal status. Returns False if nothing was updated."""
        current = self._records.get(attachment_id)
        if current is None:
            LOG.debug("attachment_settle_skipped", extra={"attachment_id": attachment_id})
            return False
        if is_terminal(current.status):
            LOG.debug("attachment_already_settled", extra={"attachment_id": attachment_id, "status": current.status})
            return False
        if not is_valid_transition(current.status, status):
            LOG.warning(
                "attachment_invalid_transition",
                extra={"attachment_id": attachment_id, "from": current.status, "to": status},
            )
            return False
        updated = current.model_copy(
            update={"status": status, "analysis": analysis, "error_message": error_message}
        )
        self._records[attachment_id] = updated
        ATTACHMENTS_SETTLED.labels(type=updated.type, status=status).inc()
        record_event(
            AttachmentSettled(
                attachment_id=attachment_id,
                type=updated.type,
                status=status,
                error_message=error_message,
            )
        )
        self._notify(updated)
        return True

    def remove(self, attachment_id: str) -> bool:
        """Drop a record. In-flight ingestion keeps running; its result is discarded."""
        return self._records.pop(attachment_id, None) is not None

    async def wait(self) -> None:
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def ingest_all(self, files: Iterable[UploadedFile]) -> List[Attachment]:
        """Attach ``files`` and wait until every one of them has settled."""
        created = await self.attach(files)
        await self.wait()
        return [self._records[a.id].model_copy() for a in created if a.id in self._records]
