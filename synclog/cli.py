#!/usr/bin/env python3
"""
synclog — sync-run log reconstruction CLI

Usage:
    synclog init                                Initialize config and database
    synclog status                              Config and database diagnostics
    synclog import <events.jsonl> [--user ID]   Append an event log to the store
    synclog runs [--limit N] [--json]           List sync runs, newest first
    synclog show <run_id> [--source LABEL]      Reconstruct sources and URL outcomes
                 [--json]
    synclog window <run_id>                     Dump the raw events of a run window

Global flags:
    -v, --verbose                               Debug logging to stderr
"""

from __future__ import annotations

import json
import logging
import sys

_STATUS_MARKS = {
    "success": "+",
    "partial": "~",
    "failed": "-",
    "error": "!",
    "signal": "+",
    "skipped": ">",
}


def _json_out(data):
    print(json.dumps(data, indent=2, ensure_ascii=False, default=str))


def format_duration(ms) -> str:
    """850 -> '850ms', 12000 -> '12s', 185000 -> '3m 5s'."""
    ms = int(ms or 0)
    if ms < 1000:
        return f"{ms}ms"
    seconds = ms // 1000
    if seconds < 60:
        return f"{seconds}s"
    minutes = seconds // 60
    return f"{minutes}m {seconds % 60}s"


def cmd_init(args):
    from synclog.api import init
    result = init()
    for item in result["created"]:
        print(f"  created: {item}")
    for item in result["existing"]:
        print(f"  exists:  {item}")
    print("\nsynclog initialized.")
    print("Next: synclog import <events.jsonl>")


def cmd_status(args):
    from synclog.api import status
    result = status()
    print(f"  user:        {result['user_id']}")
    print(f"  attribution: {result['attribution']}")
    if "db_error" in result:
        print(f"  db:          {result['db_error']}")
        return
    print(f"  db:          {result.get('db_path', '?')} ({result.get('db_size_mb', 0)} MB)")
    print(
        f"  data:        {result.get('events', 0)} events, "
        f"{result.get('runs', 0)} runs, {result.get('users', 0)} users"
    )
    if result.get("first_event_at"):
        print(f"  span:        {result['first_event_at']} .. {result['last_event_at']}")


def cmd_import(args):
    from synclog.api import import_events
    positional = [a for a in args if not a.startswith("-")]
    user = _get_opt(args, "--user")
    if user:
        positional.remove(user)
    if not positional:
        _err("Usage: synclog import <events.jsonl> [--user ID]")
    result = import_events(positional[0], user_id=user)
    if "error" in result:
        _err(result["error"])
    print(
        f"  imported {result['events_imported']} events "
        f"({result['events_skipped']} skipped, {result['events_existing']} existing)",
        file=sys.stderr,
    )
    _json_out(result)


def cmd_runs(args):
    from synclog.api import runs
    limit_str = _get_opt(args, "--limit")
    result = runs(limit=int(limit_str) if limit_str else None)
    if "error" in result:
        _err(result["error"])
    if "--json" in args:
        _json_out(result)
        return
    if not result["runs"]:
        print("No sync runs found. Run: synclog import <events.jsonl>")
        return
    for r in result["runs"]:
        mark = _STATUS_MARKS.get(r["status"], "?")
        print(
            f"  [{mark}] {r['id'][:12]:12s}  {r['completed_at']}  "
            f"{format_duration(r['duration_ms']):>8s}  "
            f"{r['signals_found']:3d} signals  {r['urls_processed']:3d} urls  "
            f"{r['skipped']:3d} skipped  {r['errors']:3d} errors"
        )
    print(f"\n  [{result['total']} runs, + = success, ~ = partial, - = failed]")


def cmd_show(args):
    from synclog.api import run_detail
    positional = [a for a in args if not a.startswith("-")]
    source = _get_opt(args, "--source")
    if source:
        positional.remove(source)
    if not positional:
        _err("Usage: synclog show <run_id> [--source LABEL] [--json]")

    result = run_detail(positional[0], source=source)
    if "--json" in args:
        _json_out(result)
        return
    if result.get("status") == "unavailable":
        _err(f"Run details unavailable: {result.get('error')}")
    if "error" in result:
        _err(result["error"])

    run = result["run"]
    print(
        f"Run {run['id']}  {run['started_at']} .. {run['completed_at']}  "
        f"[{run['status']}]  {result['event_count']} events"
    )
    if not result["sources"]:
        print("  (no sources in window)")
    for s in result["sources"]:
        if source and s["label"] != source:
            continue
        print(
            f"  [{_STATUS_MARKS.get(s['status'], '?')}] {s['label']} ({s['browser']})  "
            f"{s['urls_found']} urls  {format_duration(s['duration_ms'])}"
        )
        for u in [u for u in result["urls"] if u["source_label"] == s["label"]]:
            print(f"      {_STATUS_MARKS.get(u['result'], '?')} {u['url']}  {_describe_url(u)}")


def _describe_url(u) -> str:
    if u["result"] == "signal":
        return f"signal ({u['score']}%) {u['category']}"
    if u["result"] == "skipped":
        return f"skipped ({u['score']}%) - {u['reason']}"
    return f"error - {u['reason']}"


def cmd_window(args):
    from synclog.api import window
    if not args:
        _err("Usage: synclog window <run_id>")
    _json_out(window(args[0]))


COMMANDS = {
    "init": cmd_init,
    "status": cmd_status,
    "import": cmd_import,
    "runs": cmd_runs,
    "show": cmd_show,
    "window": cmd_window,
}


def _get_opt(args, flag):
    """Extract value after a flag from args list."""
    if flag in args:
        idx = args.index(flag)
        if idx + 1 < len(args):
            return args[idx + 1]
    return None


def _err(msg):
    print(msg, file=sys.stderr)
    sys.exit(1)


def main():
    argv = sys.argv[1:]
    verbose = any(a in ("-v", "--verbose") for a in argv)
    argv = [a for a in argv if a not in ("-v", "--verbose")]
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if not argv or argv[0] in ("-h", "--help", "help"):
        print(__doc__.strip())
        sys.exit(0)

    cmd = argv[0]
    handler = COMMANDS.get(cmd)
    if not handler:
        print(f"Unknown command: {cmd}", file=sys.stderr)
        print(f"Available: {', '.join(COMMANDS.keys())}", file=sys.stderr)
        sys.exit(1)

    handler(argv[1:])


if __name__ == "__main__":
    main()
