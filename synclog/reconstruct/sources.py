"""
Source extraction — pair each "Mining source" anchor with its "Found N URLs".

Pairing is a substring/ordering search, not a key join: the finish event is
the first later Mining event that mentions "Found" and the anchor's label.
Two sources whose labels overlap can therefore claim the same finish event.
"""

from __future__ import annotations

import logging
from typing import List, Optional, Sequence

from ..core.models import ProcessingEvent, SourceDetail
from .correlate import find_first_after, iter_anchors
from .patterns import (
    ERROR_EVENT_TYPE,
    MINING,
    SOURCE_FINISH_TOKEN,
    extract_url_count,
    match_source_anchor,
)

logger = logging.getLogger(__name__)


def _is_source_anchor(e: ProcessingEvent) -> bool:
    return e.agent_state == MINING and match_source_anchor(e.message) is not None


def _finish_for(label: str):
    def predicate(e: ProcessingEvent) -> bool:
        message = e.message or ""
        return (
            e.agent_state == MINING
            and SOURCE_FINISH_TOKEN in message
            and label in message
        )
    return predicate


def extract_sources(events: Sequence[ProcessingEvent]) -> List[SourceDetail]:
    sources: List[SourceDetail] = []

    for idx, anchor in iter_anchors(events, _is_source_anchor):
        label, browser = match_source_anchor(anchor.message)
        finish: Optional[ProcessingEvent] = find_first_after(events, idx, _finish_for(label))
        if finish is None:
            logger.debug(f"Source '{label}' has no finish event in window")

        sources.append(SourceDetail(
            label=label,
            browser=browser,
            urls_found=extract_url_count(finish.message) if finish else 0,
            duration_ms=(finish.duration_ms or 0) if finish else 0,
            status="error" if anchor.event_type == ERROR_EVENT_TYPE else "success",
        ))

    return sources
