"""
Ranking of candidate releases and the auto-apply policy.

Only the first `max_candidates_considered` provider results are scored for a
track. Scored candidates are ordered by descending score (ties keep provider
order) and capped at `max_results_per_track`. Ranking is pure and may be
re-run as results stream in for each track of a batch.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field

from tag_reconciler.comparison import ComparisonItem
from tag_reconciler.models import CandidateRelease, LocalTrack
from tag_reconciler.safe_logging import safe_path
from tag_reconciler.scoring import MatchScorer, ScoreBreakdown

logger = logging.getLogger(__name__)

DEFAULT_AUTO_APPLY_THRESHOLD = 0.70
DEFAULT_MAX_RESULTS_PER_TRACK = 3
DEFAULT_MAX_CANDIDATES_CONSIDERED = 5


@dataclass(frozen=True)
class RankedCandidate:
    """A candidate with its score for one track."""

    track: LocalTrack
    candidate: CandidateRelease
    score: float
    provider_index: int
    breakdown: ScoreBreakdown = field(default_factory=ScoreBreakdown, compare=False)

    @property
    def percent(self) -> str:
        return f"{self.score * 100:.1f}%"

    def source_label(self) -> str:
        """History source label used when this candidate is applied automatically."""
        return f"Auto-selected: {self.candidate.source.label} [Match: {self.percent}]"

    def to_dict(self) -> dict[str, object]:
        return {
            "path": self.track.path,
            "source": self.candidate.source.value,
            "title": self.candidate.title,
            "artist": self.candidate.artist,
            "date": self.candidate.date,
            "track_count": self.candidate.track_count,
            "score": round(self.score, 4),
            "breakdown": {k: round(v, 4) for k, v in self.breakdown.to_dict().items()},
        }


@dataclass
class RankingResult:
    """
    Ranked candidates for one track.

    `meets_threshold` is the ranker's verdict on the best score; `comparison`
    is only set once a caller actually applied the best candidate.
    """

    track: LocalTrack
    ranked: list[RankedCandidate]
    meets_threshold: bool = False
    comparison: list[ComparisonItem] | None = None

    @property
    def best(self) -> RankedCandidate | None:
        return self.ranked[0] if self.ranked else None

    @property
    def applied(self) -> bool:
        return self.comparison is not None


class CandidateRanker:
    """
    Scores, orders and caps candidates, and decides on auto-apply.

    The auto-apply decision uses `score >= auto_apply_threshold`, so a score
    exactly at the threshold applies.
    """

    def __init__(
        self,
        scorer: MatchScorer | None = None,
        auto_apply_threshold: float = DEFAULT_AUTO_APPLY_THRESHOLD,
        max_results_per_track: int = DEFAULT_MAX_RESULTS_PER_TRACK,
        max_candidates_considered: int | None = DEFAULT_MAX_CANDIDATES_CONSIDERED,
    ):
        self.scorer = scorer or MatchScorer()
        self.auto_apply_threshold = auto_apply_threshold
        self.max_results_per_track = max_results_per_track
        self.max_candidates_considered = max_candidates_considered

    def should_auto_apply(self, score: float) -> bool:
        return score >= self.auto_apply_threshold

    def rank(
        self,
        track: LocalTrack,
        candidates: Sequence[CandidateRelease],
        loaded_track_count: int,
    ) -> RankingResult:
        """Rank one track's candidates."""
        considered = list(candidates)
        if self.max_candidates_considered is not None:
            considered = considered[: self.max_candidates_considered]

        scored = []
        for index, candidate in enumerate(considered):
            breakdown = self.scorer.explain(track, candidate, loaded_track_count)
            scored.append(
                RankedCandidate(
                    track=track,
                    candidate=candidate,
                    score=breakdown.score,
                    provider_index=index,
                    breakdown=breakdown,
                )
            )

        # sorted() is stable, so equal scores keep provider order
        scored = sorted(scored, key=lambda r: r.score, reverse=True)
        ranked = scored[: self.max_results_per_track]

        best = ranked[0] if ranked else None
        meets_threshold = best is not None and self.should_auto_apply(best.score)

        logger.debug(
            f"Ranked {len(considered)} of {len(candidates)} candidates for "
            f"{safe_path(track.path)}; best {best.score if best else 0.0:.3f}"
        )
        return RankingResult(track=track, ranked=ranked, meets_threshold=meets_threshold)

    def rank_many(
        self,
        searches: Iterable[tuple[LocalTrack, Sequence[CandidateRelease]]],
        loaded_track_count: int,
    ) -> list[RankingResult]:
        """Rank each (track, candidates) pair of a batch search."""
        return [self.rank(track, candidates, loaded_track_count) for track, candidates in searches]

    def best_overall(self, results: Iterable[RankingResult]) -> RankedCandidate | None:
        """
        Single best (track, candidate, score) across a whole batch.

        Requires a strictly positive score; on ties the earliest wins.
        """
        best: RankedCandidate | None = None
        for result in results:
            for ranked in result.ranked:
                if ranked.score > (best.score if best else 0.0):
                    best = ranked
        return best


## Tests


def test_rank_caps_and_orders():
    from tag_reconciler.models import SourceType

    track = LocalTrack(path="x.mp3", artist="Nirvana", album="Nevermind")
    candidates = [
        CandidateRelease(source=SourceType.MUSICBRAINZ, title="Bleach", artist="Nirvana"),
        CandidateRelease(source=SourceType.MUSICBRAINZ, title="Nevermind", artist="Nirvana"),
        CandidateRelease(source=SourceType.MUSICBRAINZ, title="In Utero", artist="Nirvana"),
        CandidateRelease(source=SourceType.MUSICBRAINZ, title="Nevermind", artist="Nirvana"),
    ]
    result = CandidateRanker(max_results_per_track=2).rank(track, candidates, loaded_track_count=0)
    assert [r.provider_index for r in result.ranked] == [1, 3]


def test_threshold_boundary():
    ranker = CandidateRanker()
    assert ranker.should_auto_apply(0.70)
    assert not ranker.should_auto_apply(0.699999)
