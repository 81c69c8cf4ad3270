"""Tag snapshots, candidate projections and typed batch edits.

A TagSnapshot is an immutable copy of the eight editable fields. Projection
turns a candidate release into the snapshot it proposes for a track, falling
back to the track's current values for anything the source does not supply.
"""

from __future__ import annotations

from dataclasses import dataclass, fields

from tag_reconciler.models import (
    CandidateRelease,
    CandidateTrack,
    LocalTrack,
    SourceType,
    TagField,
    parse_uint,
)

YEAR_PREFIX_LENGTH = 4


def extract_year_from_date(date: str | None) -> int:
    """
    Year from the first four characters of a free-text date.

    "1991-09-24" -> 1991, "1991" -> 1991, "91" -> 0, "c. 1991" -> 0.
    """
    if not date or not date.strip() or len(date) < YEAR_PREFIX_LENGTH:
        return 0
    return parse_uint(date[:YEAR_PREFIX_LENGTH]) or 0


def parse_year(value: str | int | None) -> int:
    """Numeric year field, 0 when absent or unparseable."""
    if value is None:
        return 0
    if isinstance(value, int):
        return value if value > 0 else 0
    return parse_uint(value) or 0


def candidate_year(candidate: CandidateRelease) -> int:
    """Year carried by a candidate, 0 when absent or unparseable."""
    match candidate.source:
        case SourceType.MUSICBRAINZ:
            return extract_year_from_date(candidate.date)
        case SourceType.DISCOGS:
            return parse_year(candidate.date)
        case _:
            return 0


@dataclass(frozen=True)
class TagSnapshot:
    """Immutable capture of a track's eight editable fields."""

    title: str = ""
    artist: str = ""
    album: str = ""
    album_artist: str = ""
    genre: str = ""
    year: int = 0
    track: int = 0
    comment: str = ""

    @classmethod
    def from_track(cls, track: LocalTrack) -> TagSnapshot:
        return cls(**{f.value: track.get_field(f) for f in TagField})

    def get(self, tag_field: TagField) -> str | int:
        return getattr(self, tag_field.value)

    def text(self, tag_field: TagField) -> str:
        return str(self.get(tag_field))

    def apply_to(self, track: LocalTrack) -> None:
        """Write every field onto the track through its change-notifying setter."""
        for tag_field in TagField:
            track.set_field(tag_field, self.get(tag_field))

    def to_dict(self) -> dict[str, str | int]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


def _preserved(preserve_from: LocalTrack | TagSnapshot | None) -> TagSnapshot:
    if preserve_from is None:
        return TagSnapshot()
    if isinstance(preserve_from, LocalTrack):
        return TagSnapshot.from_track(preserve_from)
    return preserve_from


def project_from_candidate(
    candidate: CandidateRelease,
    track_in_candidate: CandidateTrack | None = None,
    preserve_from: LocalTrack | TagSnapshot | None = None,
) -> TagSnapshot:
    """
    Build the snapshot a candidate proposes for a track.

    Values intrinsic to the candidate (or to the chosen track within it) win;
    anything the source does not supply falls back to `preserve_from` rather
    than being blanked. Fingerprint results are single-recording, so their
    first track is used when no track is given.
    """
    keep = _preserved(preserve_from)

    if candidate.source == SourceType.FINGERPRINT:
        recording = track_in_candidate or (candidate.tracks[0] if candidate.tracks else None)
        title = recording.title if recording else ""
        return TagSnapshot(
            title=title or keep.title,
            artist=candidate.artist or keep.artist,
            album=candidate.title or keep.album,
            album_artist=candidate.artist or keep.album_artist,
            genre=keep.genre,
            year=keep.year,
            track=keep.track,
            comment=keep.comment,
        )

    track = track_in_candidate
    year = candidate_year(candidate) or keep.year

    if candidate.source == SourceType.DISCOGS:
        return TagSnapshot(
            title=(track.title if track else "") or keep.title,
            artist=candidate.artist or keep.artist,
            album=candidate.title or keep.album,
            album_artist=candidate.artist or keep.album_artist,
            genre=candidate.genre or keep.genre,
            year=year,
            track=keep.track,
            comment=keep.comment,
        )

    # MusicBrainz genres are folksonomy tags, not a release property
    return TagSnapshot(
        title=(track.title if track else "") or keep.title,
        artist=(track.artist if track else "") or candidate.artist or keep.artist,
        album=candidate.title or keep.album,
        album_artist=candidate.artist or keep.album_artist,
        genre=keep.genre,
        year=year,
        track=(track.position if track else 0) or keep.track,
        comment=keep.comment,
    )


@dataclass(frozen=True)
class TagEdit:
    """
    A batch edit applied to several tracks at once.

    Every field is optional; None means "leave alone". `auto_number` renumbers
    tracks 1..n in the given order, `cleanup` blanks whitespace-only text
    fields, and `find`/`replace` substitutes text in title, artist and album.
    """

    album: str | None = None
    album_artist: str | None = None
    genre: str | None = None
    year: int | None = None
    auto_number: bool = False
    cleanup: bool = False
    find: str | None = None
    replace: str = ""

    @classmethod
    def from_form(
        cls,
        album: str = "",
        album_artist: str = "",
        genre: str = "",
        year: str = "",
        auto_number: bool = False,
        cleanup: bool = False,
        find: str = "",
        replace: str = "",
    ) -> TagEdit:
        """Parse user-entered text; blank entries and non-numeric years are unset."""
        return cls(
            album=album.strip() or None,
            album_artist=album_artist.strip() or None,
            genre=genre.strip() or None,
            year=parse_uint(year),
            auto_number=auto_number,
            cleanup=cleanup,
            find=find or None,
            replace=replace,
        )

    @property
    def field_values(self) -> dict[TagField, str | int]:
        """Fields this edit sets to a fixed value on every track."""
        values: dict[TagField, str | int] = {}
        if self.album is not None:
            values[TagField.ALBUM] = self.album
        if self.album_artist is not None:
            values[TagField.ALBUM_ARTIST] = self.album_artist
        if self.genre is not None:
            values[TagField.GENRE] = self.genre
        if self.year is not None:
            values[TagField.YEAR] = self.year
        return values

    def is_empty(self) -> bool:
        return not (self.field_values or self.auto_number or self.cleanup or self.find)

    def describe(self, track_count: int) -> list[str]:
        """Preview lines for the edit, one per effect."""
        lines = [f"Preview of changes for {track_count} files:"]
        for tag_field, value in self.field_values.items():
            lines.append(f"- {tag_field.label} will be set to: {value}")
        if self.auto_number:
            lines.append("- Track numbers will be automatically assigned (1, 2, 3...)")
        if self.find:
            lines.append(f"- Text pattern '{self.find}' will be replaced with '{self.replace}'")
        if self.cleanup:
            lines.append("- Empty tags will be removed")
        return lines

    def apply(self, track: LocalTrack, position: int) -> list[TagField]:
        """
        Apply the edit to one track; `position` is its 1-based batch index.

        Returns the fields whose value actually changed.
        """
        before = TagSnapshot.from_track(track)

        for tag_field, value in self.field_values.items():
            track.set_field(tag_field, value)

        if self.auto_number:
            track.set_field(TagField.TRACK, position)

        if self.find:
            for tag_field in (TagField.TITLE, TagField.ARTIST, TagField.ALBUM):
                current = track.field_text(tag_field)
                if current:
                    track.set_field(tag_field, current.replace(self.find, self.replace))

        if self.cleanup:
            for tag_field in TagField:
                if not tag_field.is_numeric and not track.field_text(tag_field).strip():
                    track.set_field(tag_field, "")

        return [f for f in TagField if before.get(f) != track.get_field(f)]


## Tests


def test_extract_year_from_date():
    assert extract_year_from_date("1991-09-24") == 1991
    assert extract_year_from_date("2011") == 2011
    assert extract_year_from_date("91") == 0
    assert extract_year_from_date("") == 0
    assert extract_year_from_date(None) == 0
    assert extract_year_from_date("c. 1991") == 0


def test_parse_year():
    assert parse_year("1991") == 1991
    assert parse_year(1991) == 1991
    assert parse_year("1991-01-01") == 0
    assert parse_year("unknown") == 0
    assert parse_year(None) == 0


def test_snapshot_roundtrip_through_track():
    track = LocalTrack(path="a.mp3", title="Lithium", year=1991, track=5)
    snapshot = TagSnapshot.from_track(track)
    other = LocalTrack(path="b.mp3")
    snapshot.apply_to(other)
    assert TagSnapshot.from_track(other) == snapshot


def test_tag_edit_from_form():
    edit = TagEdit.from_form(album="  Nevermind ", year="19x1", genre="   ")
    assert edit.album == "Nevermind"
    assert edit.year is None
    assert edit.genre is None
    assert not edit.is_empty()
    assert TagEdit.from_form().is_empty()


def test_candidate_year_by_source():
    mb = CandidateRelease(source=SourceType.MUSICBRAINZ, date="1991-09-24")
    dc = CandidateRelease(source=SourceType.DISCOGS, date="1991")
    fp = CandidateRelease(source=SourceType.FINGERPRINT, date="1991")
    assert candidate_year(mb) == 1991
    assert candidate_year(dc) == 1991
    assert candidate_year(fp) == 0
