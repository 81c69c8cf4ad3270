"""Tests for weighted match scoring."""

from __future__ import annotations

import pytest

from tag_reconciler.models import CandidateRelease, LocalTrack, SourceType
from tag_reconciler.scoring import MatchScorer, ScoringWeights, track_count_credit, year_credit

LOADED = 12


def test_exact_release_scores_point_ninety_five_without_track_title(nirvana_track, nevermind_mb):
    """Artist, album, track count and year all match; no track title to tie-break."""
    breakdown = MatchScorer().explain(nirvana_track, nevermind_mb, LOADED)

    assert breakdown.artist == pytest.approx(0.35)
    assert breakdown.album == pytest.approx(0.30)
    assert breakdown.track_count == pytest.approx(0.20)
    assert breakdown.year == pytest.approx(0.10)
    assert breakdown.title == 0.0
    assert breakdown.max_score == pytest.approx(1.0)
    assert breakdown.score == pytest.approx(0.95)


def test_exact_release_with_matching_title_scores_one(nirvana_track, nevermind_mb):
    nirvana_track.title = "Nevermind"
    assert MatchScorer().score(nirvana_track, nevermind_mb, LOADED) == pytest.approx(1.0)


def test_remaster_scores_below_original_release(nirvana_track, nevermind_mb, nevermind_remaster_mb):
    scorer = MatchScorer()
    breakdown = scorer.explain(nirvana_track, nevermind_remaster_mb, LOADED)

    assert breakdown.artist == pytest.approx(0.35)
    assert breakdown.album == pytest.approx(0.30 * 0.8)
    assert breakdown.track_count == pytest.approx(0.20 * (1 - 1 / 3))
    assert breakdown.year == 0.0
    assert breakdown.score == pytest.approx(0.35 + 0.24 + 0.2 * 2 / 3)
    assert breakdown.score < scorer.score(nirvana_track, nevermind_mb, LOADED)


def test_missing_signals_stay_in_denominator_by_default(nirvana_track, nevermind_remaster_mb):
    breakdown = MatchScorer().explain(nirvana_track, nevermind_remaster_mb, LOADED)
    # Title is absent on the track but its weight still counts
    assert breakdown.max_score == pytest.approx(1.0)


def test_missing_signals_can_be_excluded_from_denominator(nirvana_track, nevermind_remaster_mb):
    scorer = MatchScorer(exclude_missing_from_denominator=True)
    breakdown = scorer.explain(nirvana_track, nevermind_remaster_mb, LOADED)

    assert breakdown.max_score == pytest.approx(0.95)
    assert breakdown.score == pytest.approx((0.35 + 0.24 + 0.2 * 2 / 3) / 0.95)


def test_excluding_missing_signals_lifts_sparse_matches(nirvana_track, nevermind_mb):
    scorer = MatchScorer(exclude_missing_from_denominator=True)
    assert scorer.score(nirvana_track, nevermind_mb, LOADED) == pytest.approx(1.0)


def test_fingerprint_candidate_has_no_count_or_year(nirvana_track, lithium_fingerprint):
    breakdown = MatchScorer().explain(nirvana_track, lithium_fingerprint, LOADED)
    assert breakdown.track_count == 0.0
    assert breakdown.year == 0.0
    assert breakdown.score == pytest.approx(0.65)

    excluded = MatchScorer(exclude_missing_from_denominator=True)
    assert excluded.score(nirvana_track, lithium_fingerprint, LOADED) == pytest.approx(1.0)


def test_discogs_year_is_parsed_as_a_whole_number(nirvana_track, nevermind_discogs):
    assert MatchScorer().explain(nirvana_track, nevermind_discogs, LOADED).year == pytest.approx(0.10)

    odd = CandidateRelease(source=SourceType.DISCOGS, title="Nevermind", artist="Nirvana", date="1991?")
    assert MatchScorer().explain(nirvana_track, odd, LOADED).year == 0.0


def test_unparseable_musicbrainz_date_contributes_nothing(nirvana_track):
    candidate = CandidateRelease(
        source=SourceType.MUSICBRAINZ, title="Nevermind", artist="Nirvana", date="c. 1991"
    )
    assert MatchScorer().explain(nirvana_track, candidate, LOADED).year == 0.0


def test_no_loaded_tracks_skips_track_count(nirvana_track, nevermind_mb):
    assert MatchScorer().explain(nirvana_track, nevermind_mb, 0).track_count == 0.0


def test_missing_track_artist_scores_zero_for_artist(nevermind_mb):
    track = LocalTrack(path="x.mp3", album="Nevermind")
    breakdown = MatchScorer().explain(track, nevermind_mb, LOADED)
    assert breakdown.artist == 0.0
    assert breakdown.max_score == pytest.approx(1.0)


@pytest.mark.parametrize(
    ("candidate_count", "expected"),
    [(12, 0.20), (11, 0.20 * 2 / 3), (14, 0.20 / 3), (15, 0.06), (17, 0.06), (18, 0.0)],
)
def test_track_count_credit_steps(candidate_count, expected):
    assert track_count_credit(candidate_count, 12, 0.20) == pytest.approx(expected)


@pytest.mark.parametrize(
    ("release_year", "expected"),
    [(1991, 0.10), (1992, 0.10 * 2 / 3), (1989, 0.10 / 3), (1994, 0.0), (2011, 0.0)],
)
def test_year_credit_steps(release_year, expected):
    assert year_credit(release_year, 1991, 0.10) == pytest.approx(expected)


def test_custom_weights(nirvana_track, nevermind_remaster_mb):
    scorer = MatchScorer(ScoringWeights(artist=1.0, album=0.0, track_count=0.0, year=0.0, title=0.0))
    assert scorer.score(nirvana_track, nevermind_remaster_mb, LOADED) == pytest.approx(1.0)


def test_zero_weights_score_zero(nirvana_track, nevermind_mb):
    scorer = MatchScorer(ScoringWeights(artist=0, album=0, track_count=0, year=0, title=0))
    assert scorer.score(nirvana_track, nevermind_mb, LOADED) == 0.0


def test_scoring_does_not_mutate_inputs(nirvana_track, nevermind_mb):
    before = nirvana_track.to_dict()
    MatchScorer().score(nirvana_track, nevermind_mb, LOADED)
    assert nirvana_track.to_dict() == before
