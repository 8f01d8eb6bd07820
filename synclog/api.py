"""
synclog API — importable functions for all operations.

Every function returns JSON-serializable dicts/lists.
Store failures are reported in the result, never raised.
"""

from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict, List, Optional


def init() -> Dict[str, Any]:
    """Initialize synclog: create config dir, default config, and database."""
    from .core.config import Config, config_path

    cfg_path = config_path()
    results: Dict[str, Any] = {"created": [], "existing": []}

    config_dir = cfg_path.parent
    if config_dir.exists():
        results["existing"].append(str(config_dir))
    else:
        config_dir.mkdir(parents=True)
        results["created"].append(str(config_dir))

    if cfg_path.exists():
        results["existing"].append(str(cfg_path))
    else:
        cfg_path.write_text(_DEFAULT_CONFIG_TEMPLATE)
        results["created"].append(str(cfg_path))

    db_path = Config.load().resolved_db_path
    if db_path.exists():
        results["existing"].append(str(db_path))
    else:
        _db(read_only=False)
        results["created"].append(str(db_path))

    return results


_DEFAULT_CONFIG_TEMPLATE = """\
# synclog configuration

# ── Event log ────────────────────────────────────────────
# Owner of imported events that carry no user_id, and the
# user whose runs are listed by default.
user_id: "local"

# Number of completed runs shown in the run list.
run_limit: 50

# ── Reconstruction ───────────────────────────────────────
# How URL outcomes are assigned to sources:
#   heuristic  every URL goes to the first source that found URLs
#   tagged     use details.source_label on the Reading event when present
attribution: "heuristic"

# ── Database ─────────────────────────────────────────────
# db_path: "~/.synclog/db/synclog.db"
"""


def _serialize(obj: Any) -> Any:
    """Convert dataclass to dict."""
    if hasattr(obj, "__dataclass_fields__"):
        return asdict(obj)
    return obj


def _db(read_only: bool = True):
    from .core.db import get_db
    return get_db(read_only=read_only)


def _user(user_id: Optional[str]) -> str:
    if user_id:
        return user_id
    from .core.config import Config
    return Config.load().user_id


def _find_run(run_id: str, user_id: Optional[str]):
    """Look up a run by id (or id prefix) among the user's completed runs."""
    from .core.db import COMPLETED_STATE
    from .reconstruct.runs import run_from_event

    db = _db()
    owner = _user(user_id)
    event = db.get_event(run_id)
    if event is None:
        from .core.config import Config
        for candidate in db.list_completed_runs(owner, Config.load().run_limit):
            if candidate.id.startswith(run_id):
                event = candidate
                break
    if event is None or event.agent_state != COMPLETED_STATE:
        return None
    if event.user_id != owner:
        return None
    return run_from_event(event)


# ── Status ────────────────────────────────────────────────────────────────────

def status() -> Dict[str, Any]:
    """Database stats and config diagnostics."""
    from .core.config import Config
    from .core.db import StoreUnavailable
    cfg = Config.load()

    result: Dict[str, Any] = {
        "user_id": cfg.user_id,
        "attribution": cfg.attribution,
        "run_limit": cfg.run_limit,
    }

    if not cfg.resolved_db_path.exists():
        result["db_path"] = str(cfg.resolved_db_path)
        result["db_error"] = "Database not initialized. Run: synclog init"
        return result

    try:
        result.update(_db().stats())
    except StoreUnavailable as e:
        result["db_path"] = str(cfg.resolved_db_path)
        result["db_error"] = str(e)

    return result


# ── Import ────────────────────────────────────────────────────────────────────

def import_events(event_file: str, *, user_id: Optional[str] = None) -> Dict[str, Any]:
    """Import a JSONL event log into the store."""
    from .ingest.importer import import_events as _import
    return _import(event_file, user_id=user_id)


# ── Runs ──────────────────────────────────────────────────────────────────────

def runs(*, limit: Optional[int] = None, user_id: Optional[str] = None) -> Dict[str, Any]:
    """List sync runs, newest first."""
    from .core.config import Config
    from .core.db import StoreUnavailable
    from .reconstruct.runs import aggregate_runs

    limit = limit or Config.load().run_limit
    try:
        items = aggregate_runs(_db().list_completed_runs(_user(user_id), limit))
    except StoreUnavailable as e:
        return {"error": f"Run list unavailable: {e}"}
    return {
        "runs": [_serialize(r) for r in items],
        "total": len(items),
    }


def run_detail(
    run_id: str,
    *,
    source: Optional[str] = None,
    user_id: Optional[str] = None,
) -> Dict[str, Any]:
    """Reconstruct one run's sources and URL outcomes.

    If source is given, urls are filtered to that source label.
    """
    from .core.config import Config
    from .core.db import StoreUnavailable
    from .reconstruct.hierarchy import reconstruct_run
    from .reconstruct.urls import attribution_for

    try:
        run = _find_run(run_id, user_id)
    except StoreUnavailable as e:
        return {"run_id": run_id, "status": "unavailable", "error": str(e)}
    if run is None:
        return {"error": f"Run not found: {run_id}"}

    cfg = Config.load()
    detail = reconstruct_run(run, _db(), attribution=attribution_for(cfg.attribution))
    if not detail.available:
        return {
            "run": _serialize(run),
            "status": "unavailable",
            "error": detail.error,
        }

    urls = detail.urls_for_source(source) if source else detail.urls
    return {
        "run": _serialize(run),
        "status": "ok",
        "event_count": detail.event_count,
        "sources": [_serialize(s) for s in detail.sources],
        "urls": [_serialize(u) for u in urls],
    }


def window(run_id: str, *, user_id: Optional[str] = None) -> Dict[str, Any]:
    """Raw events inside a run's window, ascending."""
    from .core.db import StoreUnavailable
    from .reconstruct.hierarchy import fetch_window
    from .reconstruct.runs import run_window

    try:
        run = _find_run(run_id, user_id)
        if run is None:
            return {"error": f"Run not found: {run_id}"}
        events: List[Any] = fetch_window(run, _db())
    except StoreUnavailable as e:
        return {"run_id": run_id, "status": "unavailable", "error": str(e)}

    start, end = run_window(run)
    return {
        "run_id": run.id,
        "start": start,
        "end": end,
        "events": [_serialize(e) for e in events],
    }
