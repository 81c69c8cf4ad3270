"""
Weighted match scoring between a local track and a candidate release.

Five signals contribute to the score: artist similarity, album/release title
similarity, track-count proximity, year proximity and a small title
tie-break. Each signal's weight is always added to the denominator unless the
scorer is built with exclude_missing_from_denominator=True, in which case only
signals that could actually be evaluated count.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass

from tag_reconciler.models import CandidateRelease, LocalTrack, SourceType
from tag_reconciler.safe_logging import safe_path
from tag_reconciler.similarity import similarity
from tag_reconciler.snapshot import candidate_year

logger = logging.getLogger(__name__)

# Proximity signals give linear partial credit up to this difference (exclusive).
PROXIMITY_SPAN = 3
PROXIMITY_PARTIAL_MAX_DIFF = 2
TRACK_COUNT_NEAR_MAX_DIFF = 5
TRACK_COUNT_NEAR_FACTOR = 0.3


@dataclass(frozen=True)
class ScoringWeights:
    """Per-signal weights. The defaults sum to 1.0."""

    artist: float = 0.35
    album: float = 0.30
    track_count: float = 0.20
    year: float = 0.10
    title: float = 0.05

    @property
    def total(self) -> float:
        return self.artist + self.album + self.track_count + self.year + self.title


@dataclass(frozen=True)
class ScoreBreakdown:
    """Per-signal contributions for one (track, candidate) pair."""

    artist: float = 0.0
    album: float = 0.0
    track_count: float = 0.0
    year: float = 0.0
    title: float = 0.0
    max_score: float = 0.0

    @property
    def raw(self) -> float:
        return self.artist + self.album + self.track_count + self.year + self.title

    @property
    def score(self) -> float:
        if self.max_score <= 0:
            return 0.0
        return self.raw / self.max_score

    def to_dict(self) -> dict[str, float]:
        data = asdict(self)
        data["score"] = self.score
        return data


def candidate_track_count(candidate: CandidateRelease) -> int:
    """Track count carried by a candidate, 0 when unknown."""
    if candidate.source == SourceType.FINGERPRINT:
        return 0
    return max(candidate.track_count, 0)


def track_count_credit(candidate_count: int, loaded_count: int, weight: float) -> float:
    diff = abs(candidate_count - loaded_count)
    if diff == 0:
        return weight
    if diff <= PROXIMITY_PARTIAL_MAX_DIFF:
        return weight * (1 - diff / PROXIMITY_SPAN)
    if diff <= TRACK_COUNT_NEAR_MAX_DIFF:
        return weight * TRACK_COUNT_NEAR_FACTOR
    return 0.0


def year_credit(candidate_year_value: int, track_year: int, weight: float) -> float:
    diff = abs(candidate_year_value - track_year)
    if diff == 0:
        return weight
    if diff <= PROXIMITY_PARTIAL_MAX_DIFF:
        return weight * (1 - diff / PROXIMITY_SPAN)
    return 0.0


class MatchScorer:
    """
    Combines per-field evidence into a single confidence in [0, 1].

    Scoring is pure: it reads the track and candidate and never mutates
    either.
    """

    def __init__(
        self,
        weights: ScoringWeights | None = None,
        exclude_missing_from_denominator: bool = False,
    ):
        self.weights = weights or ScoringWeights()
        self.exclude_missing_from_denominator = exclude_missing_from_denominator

    def score(self, track: LocalTrack, candidate: CandidateRelease, loaded_track_count: int) -> float:
        return self.explain(track, candidate, loaded_track_count).score

    def explain(
        self, track: LocalTrack, candidate: CandidateRelease, loaded_track_count: int
    ) -> ScoreBreakdown:
        """Score a pair and return every signal's contribution."""
        w = self.weights
        max_score = 0.0

        def counted(weight: float, evaluated: bool) -> None:
            nonlocal max_score
            if evaluated or not self.exclude_missing_from_denominator:
                max_score += weight

        artist = 0.0
        has_artist = bool(track.artist and candidate.artist)
        if has_artist:
            artist = w.artist * similarity(track.artist, candidate.artist)
        counted(w.artist, has_artist)

        album = 0.0
        has_album = bool(track.album and candidate.title)
        if has_album:
            album = w.album * similarity(track.album, candidate.title)
        counted(w.album, has_album)

        track_count = 0.0
        release_count = candidate_track_count(candidate)
        has_count = release_count > 0 and loaded_track_count > 0
        if has_count:
            track_count = track_count_credit(release_count, loaded_track_count, w.track_count)
        counted(w.track_count, has_count)

        year = 0.0
        release_year = candidate_year(candidate)
        has_year = track.year > 0 and release_year > 0
        if has_year:
            year = year_credit(release_year, track.year, w.year)
        counted(w.year, has_year)

        title = 0.0
        has_title = bool(track.title and candidate.title)
        if has_title:
            title = w.title * similarity(track.title, candidate.title)
        counted(w.title, has_title)

        breakdown = ScoreBreakdown(
            artist=artist,
            album=album,
            track_count=track_count,
            year=year,
            title=title,
            max_score=max_score,
        )
        logger.debug(
            f"Scored {candidate.display_name()} for {safe_path(track.path)}: {breakdown.score:.3f}"
        )
        return breakdown


## Tests


def test_track_count_credit():
    assert track_count_credit(12, 12, 0.20) == 0.20
    assert abs(track_count_credit(13, 12, 0.20) - 0.20 * (2 / 3)) < 1e-9
    assert abs(track_count_credit(15, 12, 0.20) - 0.20 * 0.3) < 1e-9
    assert track_count_credit(18, 12, 0.20) == 0.0


def test_year_credit():
    assert year_credit(1991, 1991, 0.10) == 0.10
    assert abs(year_credit(1992, 1991, 0.10) - 0.10 * (2 / 3)) < 1e-9
    assert year_credit(1994, 1991, 0.10) == 0.0


def test_fingerprint_candidates_carry_no_track_count():
    fp = CandidateRelease(source=SourceType.FINGERPRINT, track_count=12)
    mb = CandidateRelease(source=SourceType.MUSICBRAINZ, track_count=12)
    assert candidate_track_count(fp) == 0
    assert candidate_track_count(mb) == 12
