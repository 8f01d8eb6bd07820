"""
Forward correlation over an ordered event slice.

The slice is treated as an immutable arena: derived records refer to events
by index and nothing is ever removed or marked consumed. Pairing an anchor
with its outcome is a search for the first strictly-later event satisfying a
predicate. Because the slice is non-decreasing in created_at, every strictly
later event sits after the anchor's index, so the scan starts there.

Matches are non-exclusive: one outcome event can satisfy the lookahead of
several anchors.
"""

from __future__ import annotations

from typing import Callable, Iterator, List, Optional, Sequence, Tuple

from ..core.models import ProcessingEvent

Predicate = Callable[[ProcessingEvent], bool]


def iter_anchors(
    events: Sequence[ProcessingEvent], predicate: Predicate
) -> Iterator[Tuple[int, ProcessingEvent]]:
    for idx, event in enumerate(events):
        if predicate(event):
            yield idx, event


def find_first_after(
    events: Sequence[ProcessingEvent], anchor_idx: int, predicate: Predicate
) -> Optional[ProcessingEvent]:
    """First event strictly later than ``events[anchor_idx]`` matching ``predicate``."""
    anchor_ts = events[anchor_idx].created_at
    for event in events[anchor_idx + 1:]:
        if event.created_at > anchor_ts and predicate(event):
            return event
    return None


def is_ordered(events: Sequence[ProcessingEvent]) -> bool:
    return all(a.created_at <= b.created_at for a, b in zip(events, events[1:]))


def ensure_ordered(events: Sequence[ProcessingEvent]) -> List[ProcessingEvent]:
    """Return the slice as a list, stably sorted by created_at if out of order."""
    items = list(events)
    if is_ordered(items):
        return items
    return sorted(items, key=lambda e: e.created_at)
