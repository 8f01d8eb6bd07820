"""
Run browser — selection state for a run list and its drill-down.

Selecting a run fetches its window on a thread pool and reconstructs the
hierarchy. Only the most recent selection may commit its result; a response
that arrives after a newer selection is discarded. Available results are
cached per run id for the browser's lifetime.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Dict, List, Optional

from .core.config import Config
from .core.db import EventStore, get_db
from .core.models import RunDetail, SyncRun, UrlResult
from .reconstruct.hierarchy import reconstruct_run
from .reconstruct.runs import aggregate_runs
from .reconstruct.urls import SourceAttribution, attribution_for

logger = logging.getLogger(__name__)


class RunBrowser:
    def __init__(
        self,
        store: EventStore,
        user_id: str,
        *,
        limit: int = 50,
        attribution: Optional[SourceAttribution] = None,
        max_workers: int = 2,
    ):
        self.store = store
        self.user_id = user_id
        self.limit = limit
        self.attribution = attribution or SourceAttribution()
        self._pool = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="synclog-window")
        self._lock = threading.Lock()
        self._token = 0
        self._runs: Dict[str, SyncRun] = {}
        self._order: List[str] = []
        self._cache: Dict[str, RunDetail] = {}
        self.selected_run: Optional[str] = None
        self.selected_detail: Optional[RunDetail] = None
        self.selected_source: Optional[str] = None

    @classmethod
    def from_config(cls, cfg: Optional[Config] = None, store: Optional[EventStore] = None) -> "RunBrowser":
        """Browser for the configured user, limit, attribution and pool size."""
        cfg = cfg or Config.load()
        return cls(
            store or get_db(),
            cfg.user_id,
            limit=cfg.run_limit,
            attribution=attribution_for(cfg.attribution),
            max_workers=cfg.max_workers,
        )

    # ── Runs ──────────────────────────────────────────────────────────────

    def refresh_runs(self) -> List[SyncRun]:
        """Reload the run list. StoreUnavailable propagates to the caller."""
        runs = aggregate_runs(self.store.list_completed_runs(self.user_id, self.limit))
        with self._lock:
            self._runs = {r.id: r for r in runs}
            self._order = [r.id for r in runs]
        logger.info(f"Loaded {len(runs)} runs for {self.user_id}")
        return runs

    @property
    def runs(self) -> List[SyncRun]:
        return [self._runs[rid] for rid in self._order]

    # ── Selection ─────────────────────────────────────────────────────────

    def select_run(self, run_id: str) -> "Future[RunDetail]":
        """Select a run and start (or reuse) its reconstruction.

        The returned future always resolves to this request's RunDetail,
        but selected_detail only changes if no newer selection was made.
        """
        run = self._runs.get(run_id)
        if run is None:
            raise KeyError(f"Unknown run: {run_id}")

        with self._lock:
            self._token += 1
            token = self._token
            self.selected_run = run_id
            self.selected_source = None
            self.selected_detail = None
            cached = self._cache.get(run_id)
            if cached is not None:
                self.selected_detail = cached

        if cached is not None:
            logger.debug(f"Run {run_id}: cache hit")
            done: Future = Future()
            done.set_result(cached)
            return done

        return self._pool.submit(self._load, run, token)

    def _load(self, run: SyncRun, token: int) -> RunDetail:
        try:
            detail = reconstruct_run(run, self.store, attribution=self.attribution)
        finally:
            # the store keeps one connection per thread; release this worker's
            self.store.close()
        with self._lock:
            if detail.available:
                self._cache[run.id] = detail
            if token != self._token:
                logger.debug(f"Run {run.id}: stale response discarded")
                return detail
            self.selected_detail = detail
        return detail

    def close_run(self) -> None:
        with self._lock:
            self._token += 1
            self.selected_run = None
            self.selected_detail = None
            self.selected_source = None

    # ── Drill-down ────────────────────────────────────────────────────────

    def select_source(self, label: Optional[str]) -> None:
        """Toggle the source filter; selecting the current source clears it."""
        with self._lock:
            self.selected_source = None if label == self.selected_source else label

    def selected_urls(self) -> List[UrlResult]:
        detail = self.selected_detail
        if detail is None:
            return []
        if self.selected_source is None:
            return list(detail.urls)
        return detail.urls_for_source(self.selected_source)

    # ── Lifecycle ─────────────────────────────────────────────────────────

    def close(self) -> None:
        self.close_run()
        with self._lock:
            self._cache.clear()
        self._pool.shutdown(wait=True)

    def __enter__(self) -> "RunBrowser":
        return self

    def __exit__(self, *exc) -> None:
        self.close()
