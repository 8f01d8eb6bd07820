"""Data models for synclog."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass(frozen=True)
class ProcessingEvent:
    id: str
    user_id: str
    event_type: str   # info | analysis | action | warning | error | system
    agent_state: str  # open set: Mining, Reading, Signal, Skipped, Completed, ...
    message: str
    created_at: str   # UTC ISO-8601, e.g. 2025-01-01T10:00:00.000Z
    level: Optional[str] = None  # debug | info | warn | error
    duration_ms: Optional[int] = None
    details: Dict[str, Any] = field(default_factory=dict)
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class SyncRun:
    id: str  # id of the Completed event
    user_id: str
    started_at: str
    completed_at: str
    duration_ms: int
    signals_found: int = 0
    urls_processed: int = 0
    skipped: int = 0
    errors: int = 0
    status: str = "failed"  # success | failed | partial


@dataclass
class SourceDetail:
    label: str
    browser: str
    urls_found: int = 0
    duration_ms: int = 0
    status: str = "success"  # success | error


@dataclass
class UrlResult:
    url: str
    result: str  # signal | skipped | error
    source_label: str
    score: Optional[int] = None
    category: Optional[str] = None
    reason: Optional[str] = None
    duration_ms: Optional[int] = None


@dataclass
class RunDetail:
    run_id: str
    sources: List[SourceDetail] = field(default_factory=list)
    urls: List[UrlResult] = field(default_factory=list)
    available: bool = True
    error: Optional[str] = None
    event_count: int = 0

    def urls_for_source(self, label: str) -> List[UrlResult]:
        return [u for u in self.urls if u.source_label == label]
