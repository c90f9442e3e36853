"""Recent attachment and gateway activity, served by the diagnostics routes.

Each event is logged once under ``narrative.telemetry`` and kept in a bounded
ring so an operator can see why an attachment failed or which model a call
went to without scraping logs.
"""

from __future__ import annotations

import logging
import os
from collections import deque
from dataclasses import asdict, dataclass, field
from threading import Lock
from typing import Any, ClassVar, Deque, Dict, List, Optional, Union

from ..domain.models import now_ms

LOG = logging.getLogger("narrative.telemetry")

BUFFER_SIZE = int(os.getenv("NARRATIVE_TELEMETRY_BUFFER", "200"))


@dataclass(frozen=True)
class AttachmentSettled:
    kind: ClassVar[str] = "attachment_settled"

    attachment_id: str
    type: str
    status: str
    error_message: Optional[str] = None
    at: int = field(default_factory=now_ms)


@dataclass(frozen=True)
class GatewayCall:
    kind: ClassVar[str] = "gateway_call"

    capability: str
    model: str
    outcome: str
    http_status: Optional[int] = None
    at: int = field(default_factory=now_ms)


TelemetryEvent = Union[AttachmentSettled, GatewayCall]

_events: Deque[TelemetryEvent] = deque(maxlen=BUFFER_SIZE)
_lock = Lock()


def record_event(event: TelemetryEvent) -> None:
    with _lock:
        _events.append(event)
    level = logging.WARNING if event.kind == "gateway_call" and event.outcome == "error" else logging.INFO
    LOG.log(level, event.kind, extra=asdict(event))


def list_recent_events(limit: int = 50, kind: Optional[str] = None) -> List[Dict[str, Any]]:
    """Newest last; ``kind`` narrows to one event type."""
    if limit <= 0:
        return []
    with _lock:
        selected = [e for e in _events if kind is None or e.kind == kind]
    return [{"kind": e.kind, **asdict(e)} for e in selected[-limit:]]


def clear_events() -> None:
    with _lock:
        _events.clear()
