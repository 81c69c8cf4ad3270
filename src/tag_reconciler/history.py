from __future__ import annotations

import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime

DEFAULT_MAX_ENTRIES = 50
DEFAULT_SOURCE = "Manual"


@dataclass(frozen=True)
class ChangeHistoryEntry:
    """One reconciliation action recorded against a track."""

    action: str
    details: str
    source: str = DEFAULT_SOURCE
    timestamp: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> dict[str, str]:
        return {
            "timestamp": self.timestamp.isoformat(timespec="seconds"),
            "action": self.action,
            "details": self.details,
            "source": self.source,
        }


class ChangeHistory:
    """
    Bounded, newest-first log of actions for a single track.

    Once more than `max_entries` have been recorded, the oldest entries are
    dropped. Readers get an immutable tuple view.
    """

    def __init__(
        self,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        clock: Callable[[], datetime] = datetime.now,
    ):
        if max_entries < 1:
            raise ValueError(f"max_entries must be positive, got {max_entries}")
        self.max_entries = max_entries
        self._clock = clock
        self._entries: list[ChangeHistoryEntry] = []
        self._lock = threading.Lock()

    def add(self, action: str, details: str, source: str = DEFAULT_SOURCE) -> ChangeHistoryEntry:
        entry = ChangeHistoryEntry(
            action=action, details=details, source=source, timestamp=self._clock()
        )
        with self._lock:
            self._entries.insert(0, entry)
            del self._entries[self.max_entries :]
        return entry

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    @property
    def entries(self) -> tuple[ChangeHistoryEntry, ...]:
        with self._lock:
            return tuple(self._entries)

    @property
    def latest(self) -> ChangeHistoryEntry | None:
        with self._lock:
            return self._entries[0] if self._entries else None

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self):
        return iter(self.entries)


## Tests


def test_history_newest_first():
    history = ChangeHistory()
    history.add("Change Accepted", "Title: 'a' → 'b'")
    history.add("Change Rejected", "Artist: Kept original value 'x'")
    assert [e.action for e in history] == ["Change Rejected", "Change Accepted"]
    assert history.latest is not None
    assert history.latest.source == "Manual"


def test_history_capped():
    history = ChangeHistory(max_entries=3)
    for i in range(5):
        history.add("Action", str(i))
    assert len(history) == 3
    assert [e.details for e in history] == ["4", "3", "2"]


def test_history_invalid_capacity():
    import pytest

    with pytest.raises(ValueError):
        ChangeHistory(max_entries=0)
