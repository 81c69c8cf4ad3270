"""
Field-by-field comparison between a track's original tags and a proposal.

Each ComparisonItem derives its status from its values and its two decision
flags; the engine owns the item list for one track, writes accepted values
back onto the track and records every decision in the track's history.

A ComparisonEngine is not thread-safe. Callers serialize access per track
(ReconciliationSession does so with a per-track lock).
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum

from tag_reconciler.history import ChangeHistory
from tag_reconciler.models import LocalTrack, TagField, parse_uint
from tag_reconciler.safe_logging import safe_path
from tag_reconciler.snapshot import TagSnapshot

logger = logging.getLogger(__name__)

SUMMARY_RULE_WIDTH = 80


class ComparisonStatus(StrEnum):
    """Derived display status of a comparison item."""

    ACCEPTED = "Accepted"
    REJECTED = "Rejected"
    SAME = "Same"
    NEW = "New"
    CHANGED = "Changed"
    REMOVED = "Removed"
    NO_CHANGE = "No change"

    @property
    def icon(self) -> str:
        return _STATUS_ICONS[self]


_STATUS_ICONS = {
    ComparisonStatus.ACCEPTED: "✅",
    ComparisonStatus.REJECTED: "❌",
    ComparisonStatus.SAME: "=",
    ComparisonStatus.NEW: "✨",
    ComparisonStatus.CHANGED: "🔄",
    ComparisonStatus.REMOVED: "🗑️",
    ComparisonStatus.NO_CHANGE: "—",
}


class ComparisonMode(StrEnum):
    """Which items a comparison view shows."""

    ALL_FIELDS = "all"
    CHANGED_ONLY = "changed"
    MISSING_ONLY = "missing"


@dataclass(eq=False)
class ComparisonItem:
    """
    One tag field in a comparison.

    `is_accepted` and `is_rejected` are mutually exclusive; use accept()/
    reject()/reset() rather than setting them directly. `new_value` may be
    edited before accepting.
    """

    tag_field: TagField
    original_value: str = ""
    new_value: str = ""
    is_accepted: bool = False
    is_rejected: bool = False

    @property
    def label(self) -> str:
        return self.tag_field.label

    @property
    def original_empty(self) -> bool:
        return not self.original_value.strip()

    @property
    def new_empty(self) -> bool:
        return not self.new_value.strip()

    @property
    def values_equal(self) -> bool:
        return self.original_value.strip().lower() == self.new_value.strip().lower()

    @property
    def is_changed(self) -> bool:
        return not self.original_empty and not self.new_empty and not self.values_equal

    @property
    def is_new(self) -> bool:
        return self.original_empty and not self.new_empty

    @property
    def status(self) -> ComparisonStatus:
        if self.is_accepted:
            return ComparisonStatus.ACCEPTED
        if self.is_rejected:
            return ComparisonStatus.REJECTED
        if self.values_equal:
            return ComparisonStatus.SAME
        if self.is_new:
            return ComparisonStatus.NEW
        if self.is_changed:
            return ComparisonStatus.CHANGED
        if self.new_empty and not self.original_empty:
            return ComparisonStatus.REMOVED
        return ComparisonStatus.NO_CHANGE

    @property
    def can_accept(self) -> bool:
        return self.status in (
            ComparisonStatus.REJECTED,
            ComparisonStatus.NEW,
            ComparisonStatus.CHANGED,
            ComparisonStatus.REMOVED,
        )

    @property
    def can_reject(self) -> bool:
        return self.status in (
            ComparisonStatus.ACCEPTED,
            ComparisonStatus.NEW,
            ComparisonStatus.CHANGED,
            ComparisonStatus.REMOVED,
        )

    def accept(self) -> None:
        self.is_accepted = True
        self.is_rejected = False

    def reject(self) -> None:
        self.is_accepted = False
        self.is_rejected = True

    def reset(self) -> None:
        self.is_accepted = False
        self.is_rejected = False

    def to_dict(self) -> dict[str, object]:
        return {
            "field": self.tag_field.value,
            "original": self.original_value,
            "new": self.new_value,
            "status": self.status.value,
            "can_accept": self.can_accept,
            "can_reject": self.can_reject,
        }


def filter_items(
    items: Iterable[ComparisonItem],
    mode: ComparisonMode = ComparisonMode.ALL_FIELDS,
    show_empty: bool = True,
) -> list[ComparisonItem]:
    """Select the items a comparison view displays."""
    selected = list(items)
    if mode == ComparisonMode.CHANGED_ONLY:
        selected = [i for i in selected if i.is_changed or i.is_new]
    elif mode == ComparisonMode.MISSING_ONLY:
        selected = [i for i in selected if i.original_empty and not i.new_empty]
    if not show_empty:
        selected = [i for i in selected if not i.original_empty or not i.new_empty]
    return selected


class ComparisonEngine:
    """
    Comparison and accept/reject workflow for a single track.

    The original snapshot is captured lazily on the first build_comparison()
    and kept until clear_comparison(), so repeated proposals are always
    diffed against the tags the track had before reconciliation started.
    """

    def __init__(self, track: LocalTrack, history: ChangeHistory | None = None):
        self.track = track
        self.history = history if history is not None else ChangeHistory()
        self.status_text = "Ready"
        self._original: TagSnapshot | None = None
        self._items: list[ComparisonItem] = []

    @property
    def original(self) -> TagSnapshot | None:
        return self._original

    @property
    def items(self) -> tuple[ComparisonItem, ...]:
        return tuple(self._items)

    def item_for(self, tag_field: TagField) -> ComparisonItem | None:
        for item in self._items:
            if item.tag_field == tag_field:
                return item
        return None

    def snapshot(self) -> TagSnapshot:
        """Original snapshot, captured from the track on first use."""
        if self._original is None:
            self._original = TagSnapshot.from_track(self.track)
            logger.debug(f"Captured original tags for {safe_path(self.track.path)}")
        return self._original

    def build_comparison(self, proposed: TagSnapshot, source: str = "Unknown") -> list[ComparisonItem]:
        """Replace the item list with a fresh diff of original against `proposed`."""
        original = self.snapshot()

        self._items = [
            ComparisonItem(
                tag_field=tag_field,
                original_value=original.text(tag_field),
                new_value=proposed.text(tag_field),
            )
            for tag_field in TagField
        ]

        changed = self.changed_count
        if changed > 0:
            self.status_text = f"{changed} changes detected"
            self.history.add("Changes Detected", f"Found {changed} potential changes from {source}", source)
        else:
            self.status_text = "No changes detected"
            self.history.add("No Changes", f"No differences found from {source}", source)

        logger.info(f"Comparison for {safe_path(self.track.path)} from {source}: {changed} differences")
        return list(self._items)

    def accept(self, item: ComparisonItem) -> bool:
        """
        Accept a proposed value and write it onto the track.

        Returns False (and changes nothing) when the item cannot be accepted.
        A non-numeric value for year or track leaves the field unchanged.
        """
        if not self._owns(item) or not item.can_accept:
            return False

        item.accept()
        self._write_field(item)
        self.history.add(
            "Change Accepted", f"{item.label}: '{item.original_value}' → '{item.new_value}'"
        )
        self._update_overall_status()
        return True

    def reject(self, item: ComparisonItem) -> bool:
        """Reject a proposed value, leaving the track untouched."""
        if not self._owns(item) or not item.can_reject:
            return False

        item.reject()
        self.history.add(
            "Change Rejected", f"{item.label}: Kept original value '{item.original_value}'"
        )
        self._update_overall_status()
        return True

    def accept_all(self) -> int:
        """Accept every item that is acceptable right now; returns how many."""
        pending = [item for item in self._items if item.can_accept]
        for item in pending:
            self.accept(item)

        if pending:
            self.history.add("Bulk Accept", f"Accepted {len(pending)} changes")
        return len(pending)

    def revert_all(self) -> int:
        """
        Restore every field from the original snapshot and clear all decisions.

        Returns the number of items that had been accepted beforehand.
        """
        accepted = sum(1 for item in self._items if item.is_accepted)

        if self._original is not None:
            self._original.apply_to(self.track)

        for item in self._items:
            item.reset()

        if accepted:
            self.history.add("Bulk Revert", f"Reverted {accepted} changes to original values")

        self._update_overall_status()
        return accepted

    def clear_comparison(self) -> None:
        """Drop the item list and the original snapshot."""
        self._items = []
        self._original = None
        self.status_text = "Ready"

    def filtered(
        self, mode: ComparisonMode = ComparisonMode.ALL_FIELDS, show_empty: bool = True
    ) -> list[ComparisonItem]:
        return filter_items(self._items, mode, show_empty)

    @property
    def changed_count(self) -> int:
        return sum(1 for item in self._items if item.is_changed or item.is_new)

    @property
    def accepted_count(self) -> int:
        return sum(1 for item in self._items if item.is_accepted)

    @property
    def rejected_count(self) -> int:
        return sum(1 for item in self._items if item.is_rejected)

    @property
    def pending_count(self) -> int:
        return sum(1 for item in self._items if item.can_accept)

    def summary(self, generated_at: datetime | None = None) -> str:
        """
        Tab-separated table of the current comparison.

        Output is deterministic; a "Generated:" line is included only when
        `generated_at` is passed.
        """
        if not self._items:
            return "No comparison data available"

        lines = [f"Tag Comparison for: {self.track.file_name}"]
        if generated_at is not None:
            lines.append(f"Generated: {generated_at:%Y-%m-%d %H:%M:%S}")
        lines.append("")
        lines.append("Field\t\tOriginal\t\tNew\t\tStatus")
        lines.append("-" * SUMMARY_RULE_WIDTH)

        for item in self._items:
            lines.append(
                f"{item.label:<15}\t{item.original_value:<20}\t{item.new_value:<20}\t{item.status}"
            )

        lines.append("")
        lines.append(
            f"Summary: {self.changed_count} changes detected, "
            f"{self.accepted_count} accepted, {self.rejected_count} rejected"
        )
        return "\n".join(lines) + "\n"

    def _owns(self, item: ComparisonItem) -> bool:
        return any(existing is item for existing in self._items)

    def _write_field(self, item: ComparisonItem) -> None:
        if item.tag_field.is_numeric:
            value = parse_uint(item.new_value)
            if value is None:
                logger.warning(
                    f"Ignoring non-numeric {item.label.lower()} {item.new_value!r} "
                    f"for {safe_path(self.track.path)}"
                )
                return
            self.track.set_field(item.tag_field, value)
        else:
            self.track.set_field(item.tag_field, item.new_value)

    def _update_overall_status(self) -> None:
        pending = self.pending_count
        accepted = self.accepted_count
        if pending > 0:
            self.status_text = f"{pending} changes pending"
        elif accepted > 0:
            self.status_text = f"{accepted} changes applied"
        else:
            self.status_text = "No changes"


## Tests


def test_item_status_transitions():
    item = ComparisonItem(TagField.ALBUM, original_value="Nevermind", new_value="Nevermind (Deluxe)")
    assert item.status == ComparisonStatus.CHANGED
    assert item.can_accept and item.can_reject

    item.accept()
    assert item.status == ComparisonStatus.ACCEPTED
    assert not item.can_accept and item.can_reject

    item.reject()
    assert item.status == ComparisonStatus.REJECTED
    assert item.can_accept and not item.can_reject
    assert not item.is_accepted


def test_item_same_ignores_case_and_whitespace():
    item = ComparisonItem(TagField.ARTIST, original_value=" nirvana", new_value="NIRVANA ")
    assert item.status == ComparisonStatus.SAME
    assert not item.can_accept and not item.can_reject
    assert not item.is_changed


def test_item_new_and_removed():
    new = ComparisonItem(TagField.GENRE, original_value="", new_value="Grunge")
    removed = ComparisonItem(TagField.GENRE, original_value="Grunge", new_value="  ")
    assert new.status == ComparisonStatus.NEW and new.is_new
    assert removed.status == ComparisonStatus.REMOVED
    assert removed.can_accept and removed.can_reject


def test_filter_items_modes():
    items = [
        ComparisonItem(TagField.TITLE, "Lithium", "Lithium"),
        ComparisonItem(TagField.GENRE, "", "Grunge"),
        ComparisonItem(TagField.ALBUM, "Nevermind", "Bleach"),
        ComparisonItem(TagField.COMMENT, "", ""),
    ]
    assert [i.tag_field for i in filter_items(items, ComparisonMode.CHANGED_ONLY)] == [
        TagField.GENRE,
        TagField.ALBUM,
    ]
    assert [i.tag_field for i in filter_items(items, ComparisonMode.MISSING_ONLY)] == [TagField.GENRE]
    assert len(filter_items(items, show_empty=False)) == 3
