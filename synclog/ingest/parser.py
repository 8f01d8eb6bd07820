"""
Event log parser — read processing events from JSONL files.

Each line is one event object as the mining process writes it. Both the
stored snake_case shape (event_type, agent_state, duration_ms) and the
producer's camelCase shape (eventType, agentState, durationMs) are accepted.
"""

from __future__ import annotations

import json
import logging
import uuid
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Tuple

from ..core.models import ProcessingEvent
from ..core.timestamps import normalize_timestamp, utcnow

logger = logging.getLogger(__name__)

# camelCase (producer) -> snake_case (store)
_ALIASES = {
    "eventType": "event_type",
    "agentState": "agent_state",
    "durationMs": "duration_ms",
    "userId": "user_id",
    "createdAt": "created_at",
}

_DEFAULT_EVENT_TYPE = "info"
_DEFAULT_LEVEL = "info"


class ParseError(ValueError):
    """A record that cannot become a ProcessingEvent."""


def read_jsonl(path: Path) -> Iterator[Tuple[int, Optional[Dict[str, Any]]]]:
    """Yield (line_no, record) pairs; record is None for undecodable or non-object lines."""
    with open(path, "rb") as f:
        for line_no, raw_line in enumerate(f, 1):
            try:
                stripped = raw_line.decode("utf-8").strip()
            except UnicodeDecodeError:
                logger.warning(f"{path}:{line_no}: not valid UTF-8, skipped")
                yield line_no, None
                continue
            if not stripped:
                continue
            try:
                data = json.loads(stripped)
            except json.JSONDecodeError:
                logger.warning(f"{path}:{line_no}: not valid JSON, skipped")
                yield line_no, None
                continue
            if not isinstance(data, dict):
                logger.warning(f"{path}:{line_no}: not a JSON object, skipped")
                yield line_no, None
                continue
            yield line_no, data


def _normalize_keys(record: Dict[str, Any]) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    for key, value in record.items():
        out[_ALIASES.get(key, key)] = value
    return out


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _as_duration(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def to_event(record: Dict[str, Any], *, default_user_id: str) -> ProcessingEvent:
    """Build a ProcessingEvent from one JSON record, filling producer defaults."""
    data = _normalize_keys(record)

    agent_state = data.get("agent_state")
    message = data.get("message")
    if not isinstance(agent_state, str) or not agent_state:
        raise ParseError("missing agent_state")
    if not isinstance(message, str):
        raise ParseError("missing message")

    created_raw = data.get("created_at")
    if created_raw:
        created_at = normalize_timestamp(str(created_raw))
        if created_at is None:
            raise ParseError(f"invalid created_at: {created_raw!r}")
    else:
        created_at = utcnow()

    return ProcessingEvent(
        id=str(data.get("id") or uuid.uuid4()),
        user_id=str(data.get("user_id") or default_user_id),
        event_type=str(data.get("event_type") or _DEFAULT_EVENT_TYPE),
        agent_state=agent_state,
        message=message,
        created_at=created_at,
        level=str(data.get("level") or _DEFAULT_LEVEL),
        duration_ms=_as_duration(data.get("duration_ms")),
        details=_as_dict(data.get("details")),
        metadata=_as_dict(data.get("metadata")),
    )


def parse_event_log(
    path: Path, *, default_user_id: str
) -> Tuple[List[ProcessingEvent], int]:
    """Parse a JSONL event log. Returns (events, skipped_line_count)."""
    events: List[ProcessingEvent] = []
    skipped = 0
    for line_no, record in read_jsonl(path):
        if record is None:
            skipped += 1
            continue
        try:
            events.append(to_event(record, default_user_id=default_user_id))
        except ParseError as e:
            logger.warning(f"{path}:{line_no}: {e}, skipped")
            skipped += 1
    return events, skipped
