"""
Message templates emitted by the mining process, and capture helpers.

agent_state is an open set. Only the tags below carry meaning for
reconstruction; any other label is an opaque phase name and is ignored.
A template that does not match is a normal outcome, never an error: every
helper here returns a default instead of raising.
"""

from __future__ import annotations

import re
from typing import Any, Mapping, Optional, Tuple

# ── Agent states ──────────────────────────────────────────────────────────────

MINING = "Mining"
READING = "Reading"
SIGNAL = "Signal"
SKIPPED = "Skipped"
COMPLETED = "Completed"

KNOWN_STATES = frozenset({MINING, READING, SIGNAL, SKIPPED, COMPLETED})

ERROR_EVENT_TYPE = "error"

# ── Literal tokens ────────────────────────────────────────────────────────────

SOURCE_ANCHOR_TOKEN = "Mining source:"
SOURCE_FINISH_TOKEN = "Found"
SIGNAL_TOKEN = "Found signal"
SKIPPED_TOKEN = "Irrelevant content"

UNKNOWN_LABEL = "Unknown"
DEFAULT_SKIP_REASON = "Irrelevant"

# ── Templates ─────────────────────────────────────────────────────────────────

SOURCE_ANCHOR_RE = re.compile(r"Mining source: (.+) \((.+)\)")
URL_COUNT_RE = re.compile(r"Found (\d+) URLs")
READING_RE = re.compile(r"Reading content from: (.+)")
SCORE_RE = re.compile(r"\((\d+)%\)")
SCORE_REASON_RE = re.compile(r"\((\d+)%\): (.+)")


def is_known_state(agent_state: str) -> bool:
    return agent_state in KNOWN_STATES


def match_source_anchor(message: str) -> Optional[Tuple[str, str]]:
    """``Mining source: <label> (<browser>)`` -> (label, browser)."""
    if SOURCE_ANCHOR_TOKEN not in (message or ""):
        return None
    m = SOURCE_ANCHOR_RE.search(message)
    if not m:
        return None
    return m.group(1), m.group(2)


def match_reading_url(message: str) -> Optional[str]:
    m = READING_RE.search(message or "")
    return m.group(1) if m else None


def extract_url_count(message: Optional[str]) -> int:
    """``Found 17 URLs`` -> 17; anything else -> 0."""
    m = URL_COUNT_RE.search(message or "")
    return int(m.group(1)) if m else 0


def extract_score(message: Optional[str]) -> int:
    m = SCORE_RE.search(message or "")
    return int(m.group(1)) if m else 0


def extract_score_reason(message: Optional[str]) -> Tuple[int, str]:
    """``Irrelevant content (12%): Some title`` -> (12, "Some title")."""
    m = SCORE_REASON_RE.search(message or "")
    if not m:
        return 0, DEFAULT_SKIP_REASON
    return int(m.group(1)), m.group(2)


def read_category(details: Optional[Mapping[str, Any]]) -> str:
    if not details:
        return UNKNOWN_LABEL
    category = details.get("category")
    if not category:
        return UNKNOWN_LABEL
    return category if isinstance(category, str) else str(category)


def read_count(metadata: Optional[Mapping[str, Any]], *keys: str) -> int:
    """First usable non-negative integer under ``keys``; 0 if none."""
    if not metadata:
        return 0
    for key in keys:
        if key not in metadata:
            continue
        value = metadata[key]
        if isinstance(value, bool):
            continue
        try:
            return max(0, int(value))
        except (TypeError, ValueError):
            continue
    return 0
