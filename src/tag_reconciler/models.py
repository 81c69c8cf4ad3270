"""Core entities shared by the matching and reconciliation engine.

LocalTrack is the mutable, application-owned view of a loaded audio file.
CandidateRelease is the immutable per-result shape every provider adapter
produces, whatever source it came from.
"""

from __future__ import annotations

import re
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

UINT32_MAX = 4_294_967_295

# Shown in place of values a source did not supply; never written to tags
UNKNOWN_ARTIST = "Unknown Artist"
UNKNOWN_ALBUM = "Unknown Album"

_UINT_PATTERN = re.compile(r"\+?\d+", re.ASCII)


class SourceType(StrEnum):
    """Origin of a candidate release."""

    MUSICBRAINZ = "musicbrainz"
    DISCOGS = "discogs"
    FINGERPRINT = "fingerprint"

    @property
    def label(self) -> str:
        return _SOURCE_LABELS[self]

    @property
    def prefix(self) -> str:
        return _SOURCE_PREFIXES[self]


_SOURCE_LABELS = {
    SourceType.MUSICBRAINZ: "MusicBrainz",
    SourceType.DISCOGS: "Discogs",
    SourceType.FINGERPRINT: "Fingerprint",
}

_SOURCE_PREFIXES = {
    SourceType.MUSICBRAINZ: "MB",
    SourceType.DISCOGS: "DC",
    SourceType.FINGERPRINT: "FP",
}


class TagField(StrEnum):
    """The eight editable tag fields, in comparison order."""

    TITLE = "title"
    ARTIST = "artist"
    ALBUM = "album"
    ALBUM_ARTIST = "album_artist"
    GENRE = "genre"
    YEAR = "year"
    TRACK = "track"
    COMMENT = "comment"

    @property
    def label(self) -> str:
        """Human-readable field name used in history and summaries."""
        return self.value.replace("_", " ").title()

    @property
    def is_numeric(self) -> bool:
        return self in (TagField.YEAR, TagField.TRACK)


def parse_uint(text: str | None) -> int | None:
    """
    Parse an unsigned 32-bit integer from user or provider text.

    Returns None when the text is blank, signed negative, non-numeric or out
    of range. Surrounding whitespace and a leading '+' are accepted.
    """
    if text is None:
        return None
    stripped = text.strip()
    if not _UINT_PATTERN.fullmatch(stripped):
        return None
    value = int(stripped)
    if value > UINT32_MAX:
        return None
    return value


FieldListener = Callable[["LocalTrack", TagField, Any, Any], None]


@dataclass(eq=False)
class LocalTrack:
    """
    A loaded audio file's editable tag values.

    Writes made through set_field() notify subscribed listeners after the
    value has been applied. Direct attribute assignment bypasses listeners.
    """

    path: str = ""
    title: str = ""
    artist: str = ""
    album: str = ""
    album_artist: str = ""
    genre: str = ""
    year: int = 0
    track: int = 0
    comment: str = ""
    _listeners: list[FieldListener] = field(default_factory=list, init=False, repr=False)

    @property
    def file_name(self) -> str:
        return re.split(r"[\\/]", self.path)[-1] if self.path else ""

    def get_field(self, tag_field: TagField) -> str | int:
        return getattr(self, tag_field.value)

    def field_text(self, tag_field: TagField) -> str:
        """Field value rendered as text (numeric fields as decimal)."""
        return str(self.get_field(tag_field))

    def set_field(self, tag_field: TagField, value: str | int) -> None:
        """Apply a field update, then emit a change event if it changed."""
        if tag_field.is_numeric:
            value = int(value)
        else:
            value = str(value)

        old_value = getattr(self, tag_field.value)
        setattr(self, tag_field.value, value)

        if old_value != value:
            for listener in list(self._listeners):
                listener(self, tag_field, old_value, value)

    def subscribe(self, listener: FieldListener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def unsubscribe(self, listener: FieldListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def to_dict(self) -> dict[str, str | int]:
        return {"path": self.path, **{f.value: self.get_field(f) for f in TagField}}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> LocalTrack:
        """Build a track from a loosely-typed mapping (CLI/JSON input)."""
        return cls(
            path=str(data.get("path", "")),
            title=str(data.get("title") or ""),
            artist=str(data.get("artist") or ""),
            album=str(data.get("album") or ""),
            album_artist=str(data.get("album_artist") or ""),
            genre=str(data.get("genre") or ""),
            year=parse_uint(str(data.get("year") or "")) or 0,
            track=parse_uint(str(data.get("track") or "")) or 0,
            comment=str(data.get("comment") or ""),
        )


@dataclass(frozen=True)
class CandidateTrack:
    """One track inside a candidate release's track list."""

    title: str = ""
    artist: str = ""
    position: int = 0


@dataclass(frozen=True)
class CandidateRelease:
    """
    A single search result from a metadata provider.

    `date` holds whatever the source supplies: a free-text date for
    MusicBrainz ("1991-09-24"), a year string for Discogs ("1991") and
    nothing for fingerprint identification. `provider_score` is the
    source's own relevance value and is not used by the engine's scoring.
    """

    source: SourceType
    title: str = ""
    artist: str = ""
    date: str = ""
    track_count: int = 0
    tracks: tuple[CandidateTrack, ...] = ()
    provider_score: float = 0.0
    genre: str = ""
    release_id: str = ""
    identifiers: dict[str, str] = field(default_factory=dict, compare=False, hash=False)

    def display_name(self) -> str:
        """Short one-line description, e.g. 'MB: Nirvana - Nevermind (1991-09-24) [12T]'."""
        name = f"{self.source.prefix}: {self.artist or UNKNOWN_ARTIST} - {self.title or UNKNOWN_ALBUM}"
        if self.date:
            name += f" ({self.date})"
        if self.track_count > 0:
            name += f" [{self.track_count}T]"
        return name

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CandidateRelease:
        """Build a candidate from a loosely-typed mapping (CLI/JSON input)."""
        tracks = tuple(
            CandidateTrack(
                title=str(t.get("title") or ""),
                artist=str(t.get("artist") or ""),
                position=parse_uint(str(t.get("position") or "")) or 0,
            )
            for t in data.get("tracks") or []
        )
        date = data.get("date", data.get("year", ""))
        return cls(
            source=SourceType(data.get("source", SourceType.MUSICBRAINZ)),
            title=str(data.get("title") or ""),
            artist=str(data.get("artist") or ""),
            date="" if date is None else str(date),
            track_count=parse_uint(str(data.get("track_count") or "")) or len(tracks),
            tracks=tracks,
            provider_score=float(data.get("provider_score") or 0.0),
            genre=str(data.get("genre") or ""),
            release_id=str(data.get("release_id") or ""),
            identifiers={str(k): str(v) for k, v in (data.get("identifiers") or {}).items()},
        )


## Tests


def test_parse_uint():
    assert parse_uint("1991") == 1991
    assert parse_uint(" 7 ") == 7
    assert parse_uint("+3") == 3
    assert parse_uint("") is None
    assert parse_uint("-1") is None
    assert parse_uint("1991a") is None
    assert parse_uint("4294967296") is None
    assert parse_uint(None) is None


def test_tag_field_labels():
    assert TagField.ALBUM_ARTIST.label == "Album Artist"
    assert TagField.YEAR.is_numeric
    assert not TagField.COMMENT.is_numeric


def test_set_field_emits_change_event():
    track = LocalTrack(path="/music/a.mp3", artist="Nirvana")
    events: list[tuple[TagField, Any, Any]] = []
    track.subscribe(lambda t, f, old, new: events.append((f, old, new)))

    track.set_field(TagField.ARTIST, "Nirvana")
    track.set_field(TagField.YEAR, 1991)

    assert events == [(TagField.YEAR, 0, 1991)]
    assert track.year == 1991


def test_candidate_display_name():
    candidate = CandidateRelease(
        source=SourceType.MUSICBRAINZ,
        title="Nevermind",
        artist="Nirvana",
        date="1991-09-24",
        track_count=12,
    )
    assert candidate.display_name() == "MB: Nirvana - Nevermind (1991-09-24) [12T]"


def test_display_name_fills_missing_values():
    candidate = CandidateRelease(source=SourceType.FINGERPRINT)
    assert candidate.display_name() == "FP: Unknown Artist - Unknown Album"
    assert candidate.artist == ""
