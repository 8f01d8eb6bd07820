"""
Run aggregation — one SyncRun per Completed event.

Counters come straight from the completion event's metadata. They are the
mining engine's own totals and are never recomputed from the event stream.
"""

from __future__ import annotations

import logging
from typing import Iterable, List, Tuple

from ..core.models import ProcessingEvent, SyncRun
from ..core.timestamps import shift_ms
from .patterns import read_count

logger = logging.getLogger(__name__)


def classify_status(*, signals_found: int, errors: int) -> str:
    if errors > 0:
        return "partial"
    if signals_found > 0:
        return "success"
    return "failed"


def run_from_event(event: ProcessingEvent) -> SyncRun:
    metadata = event.metadata or {}
    duration_ms = max(0, event.duration_ms or 0)
    signals = read_count(metadata, "signals_found")
    errors = read_count(metadata, "errors")

    completed_at = event.created_at
    try:
        started_at = shift_ms(completed_at, -duration_ms)
    except ValueError:
        logger.warning(f"Run {event.id} has an unparseable timestamp: {completed_at!r}")
        started_at = completed_at

    return SyncRun(
        id=event.id,
        user_id=event.user_id,
        started_at=started_at,
        completed_at=completed_at,
        duration_ms=duration_ms,
        signals_found=signals,
        urls_processed=read_count(metadata, "total_urls", "urls_processed"),
        skipped=read_count(metadata, "skipped"),
        errors=errors,
        status=classify_status(signals_found=signals, errors=errors),
    )


def aggregate_runs(events: Iterable[ProcessingEvent]) -> List[SyncRun]:
    """Map Completed events to runs, preserving order (newest first from the store)."""
    return [run_from_event(e) for e in events]


def run_window(run: SyncRun) -> Tuple[str, str]:
    """Inclusive [started_at, completed_at] bounds of a run."""
    return run.started_at, run.completed_at
