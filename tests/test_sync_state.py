"""Tests for sync state tracking.

Covers:
- get returns None for never-synced paths
- record/get round-trip and upsert
- content_hash normalises BOM, CRLF, trailing whitespace
- detect_drift is advisory and never raises
"""

from __future__ import annotations

import logging
from pathlib import Path
from unittest.mock import patch

from align_agents.sync.state import SyncStateTracker

# ---------------------------------------------------------------------------
# Persistence
# ---------------------------------------------------------------------------


class TestRecordAndGet:
    def test_get_unknown_path(self, db, tmp_path: Path):
        assert SyncStateTracker(db).get(tmp_path / "none.json") is None

    def test_record_round_trip(self, db, tmp_path: Path):
        tracker = SyncStateTracker(db)
        target = tmp_path / "settings.json"
        recorded = tracker.record(target, "{}\n")
        loaded = tracker.get(target)
        assert loaded == recorded
        assert loaded.path == str(target)
        assert loaded.last_sync_hash == SyncStateTracker.content_hash("{}\n")
        assert "T" in loaded.synced_at

    def test_record_upserts(self, db, tmp_path: Path):
        tracker = SyncStateTracker(db)
        target = tmp_path / "a.md"
        tracker.record(target, "one")
        tracker.record(target, "two")
        assert tracker.get(target).last_sync_hash == SyncStateTracker.content_hash("two")
        assert len(tracker.entries()) == 1

    def test_home_relative_and_absolute_share_a_key(self, db, home):
        tracker = SyncStateTracker(db)
        tracker.record("~/.jsoncli/settings.json", "x")
        assert tracker.get(home / ".jsoncli" / "settings.json") is not None

    def test_remove(self, db, tmp_path: Path):
        tracker = SyncStateTracker(db)
        tracker.record(tmp_path / "a", "x")
        tracker.remove(tmp_path / "a")
        tracker.remove(tmp_path / "never")
        assert tracker.entries() == []


# ---------------------------------------------------------------------------
# Content hashing
# ---------------------------------------------------------------------------


class TestContentHash:
    def test_consistent(self):
        assert SyncStateTracker.content_hash("abc") == SyncStateTracker.content_hash("abc")

    def test_bom_ignored(self):
        assert SyncStateTracker.content_hash("﻿abc") == SyncStateTracker.content_hash("abc")

    def test_crlf_ignored(self):
        assert SyncStateTracker.content_hash("a\r\nb\r\n") == SyncStateTracker.content_hash("a\nb\n")

    def test_trailing_whitespace_and_blank_lines_ignored(self):
        assert SyncStateTracker.content_hash("a  \nb\t\n\n\n") == SyncStateTracker.content_hash("a\nb")

    def test_different_content_differs(self):
        assert SyncStateTracker.content_hash("a") != SyncStateTracker.content_hash("b")

    def test_is_sha256_hex(self):
        digest = SyncStateTracker.content_hash("")
        assert len(digest) == 64
        int(digest, 16)


# ---------------------------------------------------------------------------
# Drift
# ---------------------------------------------------------------------------


class TestDetectDrift:
    def test_never_synced_has_no_drift(self, db, tmp_path):
        assert not SyncStateTracker(db).detect_drift(tmp_path / "a", "content")

    def test_missing_file_has_no_drift(self, db, tmp_path):
        tracker = SyncStateTracker(db)
        tracker.record(tmp_path / "a", "x")
        assert not tracker.detect_drift(tmp_path / "a", None)

    def test_unchanged_content(self, db, tmp_path):
        tracker = SyncStateTracker(db)
        tracker.record(tmp_path / "a", "x\n")
        assert not tracker.detect_drift(tmp_path / "a", "x\r\n")

    def test_external_edit_warns(self, db, tmp_path, caplog):
        tracker = SyncStateTracker(db)
        tracker.record(tmp_path / "a", "x")
        with caplog.at_level(logging.WARNING, logger="align_agents.sync.state"):
            assert tracker.detect_drift(tmp_path / "a", "edited by hand")
        assert "Drift detected" in caplog.text

    def test_lookup_failure_reports_no_drift(self, db, tmp_path, caplog):
        tracker = SyncStateTracker(db)
        with patch.object(tracker, "get", side_effect=RuntimeError("db gone")):
            assert not tracker.detect_drift(tmp_path / "a", "x")
        assert "db gone" in caplog.text
