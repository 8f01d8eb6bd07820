"""
Hierarchy reconstruction — run → sources → URL outcomes.

Fetches the run's window from the event store and runs both extractors over
the slice. A store failure yields an explicit unavailable RunDetail, never a
partial hierarchy.
"""

from __future__ import annotations

import logging
from typing import List, Optional, Sequence

from ..core.db import EventStore, StoreUnavailable
from ..core.models import ProcessingEvent, RunDetail, SyncRun
from .correlate import ensure_ordered, is_ordered
from .runs import run_window
from .sources import extract_sources
from .urls import SourceAttribution, extract_url_results

logger = logging.getLogger(__name__)


def fetch_window(run: SyncRun, store: EventStore) -> List[ProcessingEvent]:
    """Ordered events for a run. Raises StoreUnavailable on store errors."""
    start, end = run_window(run)
    events = store.list_events_in_window(run.user_id, start, end)
    logger.debug(f"Run {run.id}: {len(events)} events in [{start}, {end}]")
    return events


def build_detail(
    run_id: str,
    events: Sequence[ProcessingEvent],
    *,
    attribution: Optional[SourceAttribution] = None,
) -> RunDetail:
    """Pure projection of an event slice into sources and URL outcomes."""
    if not is_ordered(events):
        logger.warning(f"Run {run_id}: window was not ordered by created_at, sorting")
    ordered = ensure_ordered(events)
    sources = extract_sources(ordered)
    urls = extract_url_results(ordered, sources, attribution=attribution)
    return RunDetail(
        run_id=run_id,
        sources=sources,
        urls=urls,
        event_count=len(ordered),
    )


def reconstruct_run(
    run: SyncRun,
    store: EventStore,
    *,
    attribution: Optional[SourceAttribution] = None,
) -> RunDetail:
    try:
        events = fetch_window(run, store)
    except StoreUnavailable as e:
        logger.error(f"Run {run.id}: window fetch failed: {e}")
        return RunDetail(run_id=run.id, available=False, error=str(e))
    return build_detail(run.id, events, attribution=attribution)
