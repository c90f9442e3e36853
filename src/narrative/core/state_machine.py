from __future__ import annotations

from typing import Dict, List

# Attachment lifecycle. Records start in "processing"; "pending" is reserved for deferred ingestion.
ATTACHMENT_TRANSITIONS: Dict[str, List[str]] = {
    "pending": ["processing"],
    "processing": ["done", "error"],
    "done": [],
    "error": [],
}

INITIAL_STATUS = "processing"


def is_valid_transition(current: str, target: str) -> bool:
    return target in ATTACHMENT_TRANSITIONS.get(current, [])


def is_terminal(status: str) -> bool:
    return status in ATTACHMENT_TRANSITIONS and not ATTACHMENT_TRANSITIONS[status]
