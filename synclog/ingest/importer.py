"""
Event importer — parse event log files and append them to the store.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, Optional

from ..core.db import EventStore, StoreUnavailable, get_db
from .parser import parse_event_log

logger = logging.getLogger(__name__)


def import_events(
    event_file: str,
    *,
    user_id: Optional[str] = None,
    db: Optional[EventStore] = None,
) -> Dict[str, Any]:
    """
    Import a JSONL event log into the store.

    Args:
        event_file: Path to the JSONL file, one event per line
        user_id: Owner for events that carry no user_id (defaults to config)
        db: Optional store instance (defaults to get_db(rw))

    Returns:
        {path, events_imported, events_skipped, events_existing, status}
    """
    path = Path(event_file)
    if not path.exists():
        return {"error": f"File not found: {event_file}"}

    if user_id is None:
        from ..core.config import Config
        user_id = Config.load().user_id

    events, skipped = parse_event_log(path, default_user_id=user_id)
    db = db or get_db(read_only=False)

    imported = 0
    existing = 0
    try:
        for event in events:
            if db.append_event(event):
                imported += 1
            else:
                existing += 1
    except StoreUnavailable as e:
        logger.error(f"Import of {path} stopped after {imported} events: {e}")
        return {
            "path": str(path),
            "events_imported": imported,
            "error": str(e),
        }

    logger.info(f"Imported {imported} events from {path} ({skipped} skipped, {existing} existing)")
    return {
        "path": str(path),
        "events_imported": imported,
        "events_skipped": skipped,
        "events_existing": existing,
        "status": "imported" if imported else "up_to_date",
    }
