"""Tests for the in-memory ranked result cache."""

from __future__ import annotations

from datetime import datetime

from freezegun import freeze_time

from tag_reconciler.cache import ResultCache
from tag_reconciler.ranking import CandidateRanker


def test_store_and_get(nirvana_track, nevermind_mb, nevermind_remaster_mb):
    ranked = CandidateRanker().rank(nirvana_track, [nevermind_mb, nevermind_remaster_mb], 12).ranked
    cache = ResultCache()
    cache.store(nirvana_track.path, ranked)

    assert nirvana_track.path in cache
    assert cache.get(nirvana_track.path) == tuple(ranked)
    assert cache.total_count() == 2
    assert cache.paths() == [nirvana_track.path]


def test_missing_path_returns_empty():
    cache = ResultCache()
    assert cache.get("/missing.mp3") == ()
    assert not cache.has("/missing.mp3")


def test_empty_results_are_not_counted_as_held():
    cache = ResultCache()
    cache.store("/a.mp3", [])
    assert not cache.has("/a.mp3")
    assert len(cache) == 1


def test_store_replaces_previous_results(nirvana_track, nevermind_mb):
    cache = ResultCache()
    ranked = CandidateRanker().rank(nirvana_track, [nevermind_mb], 12).ranked
    cache.store(nirvana_track.path, ranked)
    cache.store(nirvana_track.path, [])
    assert cache.get(nirvana_track.path) == ()


def test_clear_for_and_clear():
    cache = ResultCache()
    cache.store("/a.mp3", [])
    cache.store("/b.mp3", [])
    cache.clear_for("/a.mp3")
    assert cache.paths() == ["/b.mp3"]
    cache.clear()
    assert len(cache) == 0


@freeze_time("2025-01-01 12:00:00")
def test_store_records_update_time():
    cache = ResultCache()
    cache.store("/a.mp3", [])
    assert cache.updated_at("/a.mp3") == datetime(2025, 1, 1, 12, 0, 0)
    assert cache.updated_at("/b.mp3") is None
