"""Tests for synclog.browser — selection, caching, last-request-wins."""

import threading

import pytest

from synclog.browser import RunBrowser
from synclog.core.config import Config
from synclog.core.db import EventStore, StoreUnavailable
from synclog.core.models import ProcessingEvent
from synclog.reconstruct.urls import TaggedSourceAttribution


def _ev(id, ts, agent_state, message, *, event_type="info", user_id="user-1", **kw):
    return ProcessingEvent(
        id=id, user_id=user_id, event_type=event_type, agent_state=agent_state,
        message=message, created_at=ts, **kw,
    )


def _run_events(prefix, minute, label, url):
    """Mining + one signal URL + completion, all inside minute ``minute``."""
    base = f"2025-01-01T10:{minute:02d}"
    return [
        _ev(f"{prefix}-m", f"{base}:00.000Z", "Mining", f"Mining source: {label} (chrome)"),
        _ev(f"{prefix}-f", f"{base}:01.000Z", "Mining", f"Found 2 URLs ({label})"),
        _ev(f"{prefix}-r", f"{base}:02.000Z", "Reading", f"Reading content from: {url}"),
        _ev(f"{prefix}-s", f"{base}:03.000Z", "Signal", "Found signal: X (75%)",
            details={"category": "Tech"}),
        _ev(f"{prefix}", f"{base}:04.000Z", "Completed", "Sync completed",
            duration_ms=4000, metadata={"signals_found": 1, "total_urls": 1}),
    ]


@pytest.fixture
def db(tmp_path):
    db = EventStore(tmp_path / "test.db")
    db.initialize()
    for e in _run_events("run-a", 0, "Alpha", "http://a") + _run_events("run-b", 5, "Beta", "http://b"):
        db.append_event(e)
    yield db
    db.close()


class GatedStore:
    """Wraps a store; window fetches for gated runs block until released."""

    def __init__(self, inner):
        self.inner = inner
        self.gates = {}
        self.calls = 0
        self.closed_by = []

    def close(self):
        self.closed_by.append(threading.current_thread().name)
        self.inner.close()

    def gate(self, start):
        g = threading.Event()
        self.gates[start] = g
        return g

    def list_completed_runs(self, user_id, limit=50):
        return self.inner.list_completed_runs(user_id, limit)

    def list_events_in_window(self, user_id, start, end):
        self.calls += 1
        gate = self.gates.get(start)
        if gate is not None:
            assert gate.wait(timeout=5)
        return self.inner.list_events_in_window(user_id, start, end)


class TestRunList:
    def test_refresh_runs_newest_first(self, db):
        with RunBrowser(db, "user-1") as browser:
            runs = browser.refresh_runs()
            assert [r.id for r in runs] == ["run-b", "run-a"]
            assert [r.id for r in browser.runs] == ["run-b", "run-a"]
            assert runs[0].status == "success"

    def test_refresh_propagates_store_failure(self, tmp_path):
        store = EventStore(tmp_path / "uninitialized.db")
        with RunBrowser(store, "user-1") as browser:
            with pytest.raises(StoreUnavailable):
                browser.refresh_runs()

    def test_from_config(self, db):
        cfg = Config(user_id="user-1", run_limit=1, attribution="tagged", max_workers=1)
        with RunBrowser.from_config(cfg, store=db) as browser:
            assert isinstance(browser.attribution, TaggedSourceAttribution)
            assert [r.id for r in browser.refresh_runs()] == ["run-b"]

    def test_unknown_run(self, db):
        with RunBrowser(db, "user-1") as browser:
            browser.refresh_runs()
            with pytest.raises(KeyError):
                browser.select_run("nope")


class TestSelection:
    def test_select_run_commits_detail(self, db):
        with RunBrowser(db, "user-1") as browser:
            browser.refresh_runs()
            detail = browser.select_run("run-a").result(timeout=5)
            assert [s.label for s in detail.sources] == ["Alpha"]
            assert browser.selected_run == "run-a"
            assert browser.selected_detail is detail
            assert [u.url for u in browser.selected_urls()] == ["http://a"]

    def test_reselect_uses_cache(self, db):
        store = GatedStore(db)
        with RunBrowser(store, "user-1") as browser:
            browser.refresh_runs()
            first = browser.select_run("run-a").result(timeout=5)
            browser.select_run("run-b").result(timeout=5)
            again = browser.select_run("run-a").result(timeout=5)
            assert again is first
            assert browser.selected_detail is first
            assert store.calls == 2

    def test_stale_response_discarded(self, db):
        store = GatedStore(db)
        with RunBrowser(store, "user-1") as browser:
            runs = {r.id: r for r in browser.refresh_runs()}
            gate = store.gate(runs["run-a"].started_at)

            slow = browser.select_run("run-a")
            fast = browser.select_run("run-b")
            fast.result(timeout=5)
            assert browser.selected_run == "run-b"

            gate.set()
            stale = slow.result(timeout=5)
            assert [s.label for s in stale.sources] == ["Alpha"]
            # last request wins: run-a's late answer must not replace run-b
            assert browser.selected_run == "run-b"
            assert [s.label for s in browser.selected_detail.sources] == ["Beta"]

    def test_stale_response_still_cached(self, db):
        store = GatedStore(db)
        with RunBrowser(store, "user-1") as browser:
            runs = {r.id: r for r in browser.refresh_runs()}
            gate = store.gate(runs["run-a"].started_at)
            slow = browser.select_run("run-a")
            browser.select_run("run-b").result(timeout=5)
            gate.set()
            slow.result(timeout=5)

            calls = store.calls
            browser.select_run("run-a").result(timeout=5)
            assert store.calls == calls
            assert browser.selected_run == "run-a"

    def test_close_run_discards_in_flight(self, db):
        store = GatedStore(db)
        with RunBrowser(store, "user-1") as browser:
            runs = {r.id: r for r in browser.refresh_runs()}
            gate = store.gate(runs["run-a"].started_at)
            pending = browser.select_run("run-a")
            browser.close_run()
            gate.set()
            pending.result(timeout=5)
            assert browser.selected_run is None
            assert browser.selected_detail is None

    def test_worker_connection_released_after_fetch(self, db):
        store = GatedStore(db)
        with RunBrowser(store, "user-1") as browser:
            browser.refresh_runs()
            browser.select_run("run-a").result(timeout=5)
            browser.select_run("run-b").result(timeout=5)
        assert len(store.closed_by) == 2
        assert all(name.startswith("synclog-window") for name in store.closed_by)

    def test_worker_connection_released_on_failure(self, db):
        class BrokenStore(GatedStore):
            def list_events_in_window(self, user_id, start, end):
                raise RuntimeError("boom")

        store = BrokenStore(db)
        with RunBrowser(store, "user-1") as browser:
            browser.refresh_runs()
            with pytest.raises(RuntimeError):
                browser.select_run("run-a").result(timeout=5)
        assert len(store.closed_by) == 1

    def test_unavailable_not_cached(self, db):
        class FlakyStore(GatedStore):
            fail = True

            def list_events_in_window(self, user_id, start, end):
                self.calls += 1
                if self.fail:
                    raise StoreUnavailable("down")
                return self.inner.list_events_in_window(user_id, start, end)

        store = FlakyStore(db)
        with RunBrowser(store, "user-1") as browser:
            browser.refresh_runs()
            detail = browser.select_run("run-a").result(timeout=5)
            assert not detail.available
            assert browser.selected_detail is detail

            store.fail = False
            detail = browser.select_run("run-a").result(timeout=5)
            assert detail.available
            assert store.calls == 2


class TestDrillDown:
    def test_select_source_filters_and_toggles(self, db):
        with RunBrowser(db, "user-1") as browser:
            browser.refresh_runs()
            browser.select_run("run-a").result(timeout=5)

            browser.select_source("Other")
            assert browser.selected_urls() == []

            browser.select_source("Alpha")
            assert [u.url for u in browser.selected_urls()] == ["http://a"]

            browser.select_source("Alpha")
            assert browser.selected_source is None
            assert len(browser.selected_urls()) == 1

    def test_selecting_run_clears_source(self, db):
        with RunBrowser(db, "user-1") as browser:
            browser.refresh_runs()
            browser.select_run("run-a").result(timeout=5)
            browser.select_source("Alpha")
            browser.select_run("run-b").result(timeout=5)
            assert browser.selected_source is None

    def test_no_selection_no_urls(self, db):
        with RunBrowser(db, "user-1") as browser:
            assert browser.selected_urls() == []
