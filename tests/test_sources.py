"""Tests for synclog.reconstruct.sources and the pattern helpers it relies on."""

import pytest

from synclog.core.models import ProcessingEvent, SourceDetail
from synclog.reconstruct.patterns import (
    extract_score,
    extract_score_reason,
    extract_url_count,
    is_known_state,
    match_reading_url,
    match_source_anchor,
    read_category,
)
from synclog.reconstruct.sources import extract_sources


def _ev(n, agent_state, message, *, event_type="info", duration_ms=None, details=None):
    """Event n seconds into the window."""
    return ProcessingEvent(
        id=f"e{n}",
        user_id="user-1",
        event_type=event_type,
        agent_state=agent_state,
        message=message,
        created_at=f"2025-01-01T10:00:{n:02d}.000Z",
        duration_ms=duration_ms,
        details=details or {},
    )


# ── Patterns ──────────────────────────────────────────────────────────────────


class TestPatterns:
    def test_source_anchor(self):
        assert match_source_anchor("Mining source: NewsSite (chrome)") == ("NewsSite", "chrome")

    def test_source_anchor_label_with_spaces(self):
        assert match_source_anchor("Mining source: Work Profile (edge)") == ("Work Profile", "edge")

    def test_source_anchor_requires_browser(self):
        assert match_source_anchor("Mining source: NewsSite") is None

    def test_source_anchor_requires_token(self):
        assert match_source_anchor("Found 3 URLs (NewsSite)") is None

    @pytest.mark.parametrize("message,expected", [
        ("Found 17 URLs", 17),
        ("Mining: Found 3 URLs (NewsSite)", 3),
        ("Found many URLs", 0),
        ("", 0),
        (None, 0),
    ])
    def test_url_count(self, message, expected):
        assert extract_url_count(message) == expected

    def test_reading_url(self):
        assert match_reading_url("Reading content from: https://a.example/x?y=1") == "https://a.example/x?y=1"
        assert match_reading_url("Reading something else") is None

    def test_score(self):
        assert extract_score("Found signal: New chip (92%)") == 92
        assert extract_score("Found signal: no score") == 0

    def test_score_reason(self):
        assert extract_score_reason("Irrelevant content (12%): Cat pictures") == (12, "Cat pictures")
        assert extract_score_reason("Irrelevant content") == (0, "Irrelevant")

    def test_category(self):
        assert read_category({"category": "Tech"}) == "Tech"
        assert read_category({"category": ""}) == "Unknown"
        assert read_category({}) == "Unknown"
        assert read_category(None) == "Unknown"

    def test_category_non_string_passed_through(self):
        assert read_category({"category": 42}) == "42"
        assert read_category({"category": 0}) == "Unknown"

    def test_known_states(self):
        assert is_known_state("Mining")
        assert not is_known_state("Thinking")


# ── Source extraction ─────────────────────────────────────────────────────────


class TestExtractSources:
    def test_empty_window(self):
        assert extract_sources([]) == []

    def test_anchor_paired_with_finish(self):
        events = [
            _ev(0, "Mining", "Mining source: NewsSite (chrome)"),
            _ev(5, "Mining", "Mining: Found 3 URLs (NewsSite)", duration_ms=4200),
        ]
        assert extract_sources(events) == [
            SourceDetail(label="NewsSite", browser="chrome", urls_found=3, duration_ms=4200, status="success"),
        ]

    def test_dangling_anchor(self):
        events = [_ev(0, "Mining", "Mining source: X (chrome)")]
        assert extract_sources(events) == [
            SourceDetail(label="X", browser="chrome", urls_found=0, duration_ms=0, status="success"),
        ]

    def test_finish_without_count(self):
        events = [
            _ev(0, "Mining", "Mining source: Blog (firefox)"),
            _ev(1, "Mining", "Found nothing new for Blog", duration_ms=10),
        ]
        [source] = extract_sources(events)
        assert source.urls_found == 0
        assert source.duration_ms == 10

    def test_finish_must_be_strictly_later(self):
        events = [
            _ev(0, "Mining", "Found 9 URLs (NewsSite)"),
            _ev(1, "Mining", "Mining source: NewsSite (chrome)"),
        ]
        [source] = extract_sources(events)
        assert source.urls_found == 0

    def test_same_timestamp_finish_not_matched(self):
        anchor = _ev(1, "Mining", "Mining source: NewsSite (chrome)")
        same_ts = ProcessingEvent(
            id="same", user_id="user-1", event_type="info", agent_state="Mining",
            message="Found 4 URLs (NewsSite)", created_at=anchor.created_at,
        )
        [source] = extract_sources([anchor, same_ts])
        assert source.urls_found == 0

    def test_finish_requires_mining_state(self):
        events = [
            _ev(0, "Mining", "Mining source: NewsSite (chrome)"),
            _ev(1, "Signal", "Found 5 URLs (NewsSite)"),
        ]
        [source] = extract_sources(events)
        assert source.urls_found == 0

    def test_finish_requires_label(self):
        events = [
            _ev(0, "Mining", "Mining source: NewsSite (chrome)"),
            _ev(1, "Mining", "Found 5 URLs (OtherSite)"),
        ]
        [source] = extract_sources(events)
        assert source.urls_found == 0

    def test_first_matching_finish_wins(self):
        events = [
            _ev(0, "Mining", "Mining source: NewsSite (chrome)"),
            _ev(1, "Mining", "Found 2 URLs (NewsSite)"),
            _ev(2, "Mining", "Found 8 URLs (NewsSite)"),
        ]
        [source] = extract_sources(events)
        assert source.urls_found == 2

    def test_error_status_reads_anchor(self):
        events = [
            _ev(0, "Mining", "Mining source: Broken (chrome)", event_type="error"),
            _ev(1, "Mining", "Found 1 URLs (Broken)"),
        ]
        [source] = extract_sources(events)
        assert source.status == "error"
        assert source.urls_found == 1

    def test_error_finish_does_not_mark_source(self):
        events = [
            _ev(0, "Mining", "Mining source: NewsSite (chrome)"),
            _ev(1, "Mining", "Found 0 URLs (NewsSite)", event_type="error"),
        ]
        [source] = extract_sources(events)
        assert source.status == "success"

    def test_overlapping_labels_share_finish(self):
        # "News" is a substring of "NewsSite": both anchors claim the same finish
        events = [
            _ev(0, "Mining", "Mining source: News (chrome)"),
            _ev(1, "Mining", "Mining source: NewsSite (edge)"),
            _ev(2, "Mining", "Found 6 URLs (NewsSite)"),
        ]
        sources = extract_sources(events)
        assert [(s.label, s.urls_found) for s in sources] == [("News", 6), ("NewsSite", 6)]

    def test_multiple_sources_in_order(self):
        events = [
            _ev(0, "Mining", "Mining source: A (chrome)"),
            _ev(1, "Mining", "Found 2 URLs (A)"),
            _ev(2, "Mining", "Mining source: B (firefox)"),
            _ev(3, "Mining", "Found 0 URLs (B)"),
        ]
        sources = extract_sources(events)
        assert [(s.label, s.browser, s.urls_found) for s in sources] == [
            ("A", "chrome", 2), ("B", "firefox", 0),
        ]

    def test_unknown_states_ignored(self):
        events = [
            _ev(0, "Warmup", "Mining source: Ghost (chrome)"),
            _ev(1, "Thinking", "Analyzing relevance of: something"),
        ]
        assert extract_sources(events) == []
