"""
URL outcome extraction — classify every "Reading content from" anchor.

Each anchor gets three independent lookaheads (signal, skipped, error), each
taking the first strictly-later match. Priority is signal > skipped > error.
Anchors with no outcome before the window ends are dropped.

Source attribution sits behind SourceAttribution. The event stream carries
no URL-to-source link, so the default heuristic labels every URL in a run
with one source (the first that found URLs).
"""

from __future__ import annotations

import logging
from typing import List, Optional, Sequence

from ..core.models import ProcessingEvent, SourceDetail, UrlResult
from .correlate import find_first_after, iter_anchors
from .patterns import (
    ERROR_EVENT_TYPE,
    READING,
    SIGNAL,
    SIGNAL_TOKEN,
    SKIPPED,
    SKIPPED_TOKEN,
    UNKNOWN_LABEL,
    extract_score,
    extract_score_reason,
    match_reading_url,
    read_category,
)

logger = logging.getLogger(__name__)


# ── Attribution ───────────────────────────────────────────────────────────────


class SourceAttribution:
    """Run-level heuristic: one label for every URL in the run.

    - exactly one source found URLs: that source
    - several did: the first of them (they cannot be told apart)
    - none did: the first source, or "Unknown" when there are no sources
    """

    name = "heuristic"

    def run_label(self, sources: Sequence[SourceDetail]) -> str:
        with_urls = [s for s in sources if s.urls_found > 0]
        if with_urls:
            return with_urls[0].label
        if sources:
            return sources[0].label
        return UNKNOWN_LABEL

    def label_for(self, anchor: ProcessingEvent, run_label: str) -> str:
        return run_label


class TaggedSourceAttribution(SourceAttribution):
    """Prefer an explicit ``details.source_label`` on the Reading event."""

    name = "tagged"

    def label_for(self, anchor: ProcessingEvent, run_label: str) -> str:
        tag = (anchor.details or {}).get("source_label")
        if isinstance(tag, str) and tag:
            return tag
        return run_label


def attribution_for(mode: Optional[str]) -> SourceAttribution:
    if mode == TaggedSourceAttribution.name:
        return TaggedSourceAttribution()
    return SourceAttribution()


# ── Outcome lookahead ─────────────────────────────────────────────────────────


def _is_reading_anchor(e: ProcessingEvent) -> bool:
    return e.agent_state == READING and match_reading_url(e.message) is not None


def _is_signal(e: ProcessingEvent) -> bool:
    return e.agent_state == SIGNAL and SIGNAL_TOKEN in (e.message or "")


def _is_skipped(e: ProcessingEvent) -> bool:
    return e.agent_state == SKIPPED and SKIPPED_TOKEN in (e.message or "")


def _is_error(e: ProcessingEvent) -> bool:
    return e.event_type == ERROR_EVENT_TYPE


def classify_outcome(
    events: Sequence[ProcessingEvent], anchor_idx: int, url: str, source_label: str
) -> Optional[UrlResult]:
    signal = find_first_after(events, anchor_idx, _is_signal)
    if signal is not None:
        return UrlResult(
            url=url,
            result="signal",
            source_label=source_label,
            score=extract_score(signal.message),
            category=read_category(signal.details),
            duration_ms=signal.duration_ms,
        )

    skipped = find_first_after(events, anchor_idx, _is_skipped)
    if skipped is not None:
        score, reason = extract_score_reason(skipped.message)
        return UrlResult(
            url=url,
            result="skipped",
            source_label=source_label,
            score=score,
            reason=reason,
            duration_ms=skipped.duration_ms,
        )

    error = find_first_after(events, anchor_idx, _is_error)
    if error is not None:
        return UrlResult(
            url=url,
            result="error",
            source_label=source_label,
            reason=error.message,
            duration_ms=error.duration_ms,
        )

    return None


def extract_url_results(
    events: Sequence[ProcessingEvent],
    sources: Sequence[SourceDetail],
    *,
    attribution: Optional[SourceAttribution] = None,
) -> List[UrlResult]:
    attribution = attribution or SourceAttribution()
    run_label = attribution.run_label(sources)
    results: List[UrlResult] = []

    for idx, anchor in iter_anchors(events, _is_reading_anchor):
        url = match_reading_url(anchor.message)
        label = attribution.label_for(anchor, run_label)
        outcome = classify_outcome(events, idx, url, label)
        if outcome is None:
            logger.debug(f"No outcome for {url} in window, dropped")
            continue
        results.append(outcome)

    return results
