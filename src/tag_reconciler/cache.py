from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime

from tag_reconciler.ranking import RankedCandidate
from tag_reconciler.safe_logging import safe_path

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CachedResults:
    """Ranked results held for one track path."""

    ranked: tuple[RankedCandidate, ...]
    updated_at: datetime = field(default_factory=datetime.now)


class ResultCache:
    """
    In-memory ranked-result cache keyed by track path.

    Entries live for the lifetime of the process (or until cleared); nothing
    is written to disk.
    """

    def __init__(self):
        self._entries: dict[str, CachedResults] = {}
        self._lock = threading.Lock()

    def store(self, path: str, ranked: list[RankedCandidate] | tuple[RankedCandidate, ...]) -> None:
        with self._lock:
            self._entries[path] = CachedResults(ranked=tuple(ranked), updated_at=datetime.now())
        logger.debug(f"Cached {len(ranked)} results for {safe_path(path)}")

    def get(self, path: str) -> tuple[RankedCandidate, ...]:
        """Cached results for a path, empty when none are held."""
        with self._lock:
            entry = self._entries.get(path)
        return entry.ranked if entry else ()

    def updated_at(self, path: str) -> datetime | None:
        with self._lock:
            entry = self._entries.get(path)
        return entry.updated_at if entry else None

    def has(self, path: str) -> bool:
        with self._lock:
            entry = self._entries.get(path)
        return entry is not None and len(entry.ranked) > 0

    def clear_for(self, path: str) -> None:
        with self._lock:
            self._entries.pop(path, None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def paths(self) -> list[str]:
        with self._lock:
            return list(self._entries)

    def total_count(self) -> int:
        with self._lock:
            return sum(len(entry.ranked) for entry in self._entries.values())

    def __contains__(self, path: str) -> bool:
        return self.has(path)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
