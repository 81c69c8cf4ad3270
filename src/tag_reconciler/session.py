"""
Reconciliation session: the working set of loaded tracks and their state.

The session is the facade a presentation layer talks to. It owns one
ComparisonEngine (with its ChangeHistory) per loaded track and guards each
track's state with its own re-entrant lock, so different tracks can be
reconciled from different threads while operations on the same track are
serialized.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import datetime

from tag_reconciler.cache import ResultCache
from tag_reconciler.comparison import ComparisonEngine, ComparisonItem, ComparisonMode
from tag_reconciler.errors import UnknownTrackError
from tag_reconciler.history import DEFAULT_MAX_ENTRIES, ChangeHistory, ChangeHistoryEntry
from tag_reconciler.models import CandidateRelease, CandidateTrack, LocalTrack, TagField
from tag_reconciler.ranking import CandidateRanker, RankedCandidate, RankingResult
from tag_reconciler.safe_logging import safe_path
from tag_reconciler.snapshot import TagEdit, TagSnapshot, project_from_candidate

logger = logging.getLogger(__name__)

TrackRef = LocalTrack | str


@dataclass
class TrackState:
    track: LocalTrack
    engine: ComparisonEngine
    lock: threading.RLock = field(default_factory=threading.RLock)


@dataclass
class BatchRanking:
    """Rankings for a batch of tracks and the auto-apply outcome across it."""

    results: list[RankingResult]
    best: RankedCandidate | None = None
    applied: list[ComparisonItem] | None = None


class ReconciliationSession:
    """Per-track reconciliation state for a working set of tracks."""

    def __init__(
        self,
        ranker: CandidateRanker | None = None,
        history_max_entries: int = DEFAULT_MAX_ENTRIES,
        cache: ResultCache | None = None,
    ):
        self.ranker = ranker or CandidateRanker()
        self.history_max_entries = history_max_entries
        self.cache = cache if cache is not None else ResultCache()
        self._states: dict[str, TrackState] = {}
        self._registry_lock = threading.Lock()

    # ------------------------------------------------------------------
    # Working set
    # ------------------------------------------------------------------

    def add_track(self, track: LocalTrack) -> LocalTrack:
        """Load a track into the working set; re-adding a path keeps the existing track."""
        with self._registry_lock:
            state = self._states.get(track.path)
            if state is None:
                engine = ComparisonEngine(track, ChangeHistory(self.history_max_entries))
                state = TrackState(track=track, engine=engine)
                self._states[track.path] = state
                logger.debug(f"Loaded {safe_path(track.path)}")
            return state.track

    def remove_track(self, track: TrackRef) -> None:
        """Drop a track with its snapshot, comparison, history and cached results."""
        path = self._path(track)
        with self._registry_lock:
            state = self._states.pop(path, None)
        if state is None:
            raise UnknownTrackError(path)

        with state.lock:
            state.engine.clear_comparison()
            state.engine.history.clear()
        self.cache.clear_for(path)
        logger.debug(f"Removed {safe_path(path)}")

    @property
    def tracks(self) -> list[LocalTrack]:
        with self._registry_lock:
            return [state.track for state in self._states.values()]

    @property
    def loaded_count(self) -> int:
        with self._registry_lock:
            return len(self._states)

    def __contains__(self, track: TrackRef) -> bool:
        with self._registry_lock:
            return self._path(track) in self._states

    # ------------------------------------------------------------------
    # Ranking and auto-apply
    # ------------------------------------------------------------------

    def rank(
        self,
        track: TrackRef,
        candidates: Sequence[CandidateRelease],
        auto_apply: bool = True,
    ) -> RankingResult:
        """
        Rank one track's candidates and auto-apply the best when it clears
        the threshold.
        """
        state = self._state(track)
        result = self.ranker.rank(state.track, candidates, self.loaded_count)
        self.cache.store(state.track.path, result.ranked)

        if auto_apply and result.meets_threshold and result.best is not None:
            result.comparison = self._apply_ranked(state, result.best)
        return result

    def rank_batch(
        self,
        searches: Iterable[tuple[TrackRef, Sequence[CandidateRelease]]],
        auto_apply: bool = True,
    ) -> BatchRanking:
        """
        Rank several tracks' results, then auto-apply the single best match
        across the batch when it clears the threshold.
        """
        results = []
        for track, candidates in searches:
            state = self._state(track)
            result = self.ranker.rank(state.track, candidates, self.loaded_count)
            self.cache.store(state.track.path, result.ranked)
            results.append(result)

        best = self.ranker.best_overall(results)
        batch = BatchRanking(results=results, best=best)
        if auto_apply and best is not None and self.ranker.should_auto_apply(best.score):
            batch.applied = self._apply_ranked(self._state(best.track), best)
            for result in results:
                if result.track is best.track:
                    result.comparison = batch.applied
        return batch

    def cached_results(self, track: TrackRef) -> tuple[RankedCandidate, ...]:
        return self.cache.get(self._path(track))

    def select_candidate(
        self,
        track: TrackRef,
        candidate: CandidateRelease | RankedCandidate,
        track_in_candidate: CandidateTrack | None = None,
    ) -> list[ComparisonItem]:
        """Manually propose a candidate for a track."""
        if isinstance(candidate, RankedCandidate):
            candidate = candidate.candidate
        state = self._state(track)
        with state.lock:
            proposed = project_from_candidate(candidate, track_in_candidate, state.track)
            return state.engine.build_comparison(proposed, candidate.source.label)

    def apply_fingerprint(
        self, track: TrackRef, candidates: Sequence[CandidateRelease]
    ) -> list[ComparisonItem] | None:
        """
        Propose the fingerprint result with the highest provider score.

        Fingerprint matches are applied regardless of the match threshold.
        Returns None when there are no results.
        """
        if not candidates:
            return None
        best = max(candidates, key=lambda c: c.provider_score)
        state = self._state(track)
        with state.lock:
            proposed = project_from_candidate(best, preserve_from=state.track)
            source = f"Fingerprint: {best.provider_score * 100:.1f}% match"
            return state.engine.build_comparison(proposed, source)

    def _apply_ranked(self, state: TrackState, ranked: RankedCandidate) -> list[ComparisonItem]:
        with state.lock:
            proposed = project_from_candidate(ranked.candidate, preserve_from=state.track)
            items = state.engine.build_comparison(proposed, ranked.source_label())
        logger.info(
            f"Auto-applied {ranked.candidate.display_name()} to "
            f"{safe_path(state.track.path)} ({ranked.percent})"
        )
        return items

    # ------------------------------------------------------------------
    # Comparison workflow
    # ------------------------------------------------------------------

    def build_comparison(
        self, track: TrackRef, proposed: TagSnapshot, source: str = "Manual"
    ) -> list[ComparisonItem]:
        state = self._state(track)
        with state.lock:
            return state.engine.build_comparison(proposed, source)

    def accept(self, track: TrackRef, item: ComparisonItem | TagField) -> bool:
        state = self._state(track)
        with state.lock:
            resolved = self._item(state, item)
            return resolved is not None and state.engine.accept(resolved)

    def reject(self, track: TrackRef, item: ComparisonItem | TagField) -> bool:
        state = self._state(track)
        with state.lock:
            resolved = self._item(state, item)
            return resolved is not None and state.engine.reject(resolved)

    def accept_all(self, track: TrackRef) -> int:
        state = self._state(track)
        with state.lock:
            return state.engine.accept_all()

    def revert_all(self, track: TrackRef) -> int:
        state = self._state(track)
        with state.lock:
            return state.engine.revert_all()

    def clear_comparison(self, track: TrackRef) -> None:
        state = self._state(track)
        with state.lock:
            state.engine.clear_comparison()

    def summary(self, track: TrackRef, generated_at: datetime | None = None) -> str:
        state = self._state(track)
        with state.lock:
            return state.engine.summary(generated_at)

    def comparison(
        self,
        track: TrackRef,
        mode: ComparisonMode = ComparisonMode.ALL_FIELDS,
        show_empty: bool = True,
    ) -> list[ComparisonItem]:
        state = self._state(track)
        with state.lock:
            return state.engine.filtered(mode, show_empty)

    def original(self, track: TrackRef) -> TagSnapshot | None:
        state = self._state(track)
        with state.lock:
            return state.engine.original

    def status(self, track: TrackRef) -> str:
        state = self._state(track)
        with state.lock:
            return state.engine.status_text

    def history(self, track: TrackRef) -> tuple[ChangeHistoryEntry, ...]:
        return self._state(track).engine.history.entries

    # ------------------------------------------------------------------
    # Batch edit
    # ------------------------------------------------------------------

    def apply_batch_edit(
        self, tracks: Sequence[TrackRef], edit: TagEdit
    ) -> dict[str, list[TagField]]:
        """
        Apply one edit to several tracks in order.

        Returns the changed fields per track path. Each track gets a
        "Batch Edit" history entry.
        """
        changes: dict[str, list[TagField]] = {}
        for position, ref in enumerate(tracks, start=1):
            state = self._state(ref)
            with state.lock:
                changed = edit.apply(state.track, position)
                if changed:
                    details = "Updated " + ", ".join(f.label for f in changed)
                else:
                    details = "No fields changed"
                state.engine.history.add("Batch Edit", details)
            changes[state.track.path] = changed

        logger.info(f"Batch edit applied to {len(changes)} tracks")
        return changes

    # ------------------------------------------------------------------

    @staticmethod
    def _path(track: TrackRef) -> str:
        return track if isinstance(track, str) else track.path

    def _state(self, track: TrackRef) -> TrackState:
        path = self._path(track)
        with self._registry_lock:
            state = self._states.get(path)
        if state is None:
            raise UnknownTrackError(path)
        return state

    @staticmethod
    def _item(state: TrackState, item: ComparisonItem | TagField) -> ComparisonItem | None:
        if isinstance(item, ComparisonItem):
            return item
        return state.engine.item_for(item)
