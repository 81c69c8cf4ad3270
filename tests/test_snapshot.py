"""Tests for snapshots, candidate projections and batch edits."""

from __future__ import annotations

from tag_reconciler.models import CandidateRelease, CandidateTrack, LocalTrack, SourceType, TagField
from tag_reconciler.snapshot import TagEdit, TagSnapshot, project_from_candidate


def _tagged_track() -> LocalTrack:
    return LocalTrack(
        path="/music/01.mp3",
        title="Smells Like Teen Spirit",
        artist="Nirvana",
        album="Nevermind",
        album_artist="",
        genre="Grunge",
        year=1991,
        track=1,
        comment="ripped 2004",
    )


# Snapshots


def test_snapshot_captures_all_fields():
    snapshot = TagSnapshot.from_track(_tagged_track())
    assert snapshot.title == "Smells Like Teen Spirit"
    assert snapshot.year == 1991
    assert snapshot.text(TagField.TRACK) == "1"
    assert snapshot.to_dict()["comment"] == "ripped 2004"


def test_snapshot_apply_restores_values_and_notifies():
    track = _tagged_track()
    snapshot = TagSnapshot.from_track(track)
    track.album = "Bleach"
    track.year = 1989

    events = []
    track.subscribe(lambda t, f, old, new: events.append((f, old, new)))
    snapshot.apply_to(track)

    assert TagSnapshot.from_track(track) == snapshot
    assert events == [(TagField.ALBUM, "Bleach", "Nevermind"), (TagField.YEAR, 1989, 1991)]


# Projections


def test_musicbrainz_projection_preserves_unsupplied_fields(nevermind_mb):
    proposed = project_from_candidate(nevermind_mb, preserve_from=_tagged_track())
    assert proposed.album == "Nevermind"
    assert proposed.artist == "Nirvana"
    assert proposed.album_artist == "Nirvana"
    assert proposed.year == 1991
    assert proposed.title == "Smells Like Teen Spirit"
    assert proposed.genre == "Grunge"
    assert proposed.track == 1
    assert proposed.comment == "ripped 2004"


def test_musicbrainz_projection_uses_selected_track():
    candidate = CandidateRelease(
        source=SourceType.MUSICBRAINZ,
        title="Nevermind",
        artist="Nirvana",
        date="1991-09-24",
        tracks=(CandidateTrack(title="In Bloom", artist="Nirvana", position=2),),
    )
    proposed = project_from_candidate(candidate, candidate.tracks[0], _tagged_track())
    assert proposed.title == "In Bloom"
    assert proposed.track == 2


def test_musicbrainz_projection_keeps_year_when_date_unparseable():
    candidate = CandidateRelease(source=SourceType.MUSICBRAINZ, title="Nevermind", date="199?")
    assert project_from_candidate(candidate, preserve_from=_tagged_track()).year == 1991


def test_musicbrainz_projection_never_takes_genre():
    candidate = CandidateRelease(
        source=SourceType.MUSICBRAINZ, title="Nevermind", artist="Nirvana", genre="Alternative"
    )
    assert project_from_candidate(candidate, preserve_from=_tagged_track()).genre == "Grunge"
    assert project_from_candidate(candidate).genre == ""


def test_projection_keeps_tags_a_source_leaves_empty():
    candidate = CandidateRelease(source=SourceType.MUSICBRAINZ, title="", artist="", date="1991")
    proposed = project_from_candidate(candidate, preserve_from=_tagged_track())
    assert proposed.artist == "Nirvana"
    assert proposed.album == "Nevermind"
    assert proposed.album_artist == ""

def test_discogs_projection(nevermind_discogs):
    proposed = project_from_candidate(nevermind_discogs, preserve_from=_tagged_track())
    assert proposed.genre == "Rock"
    assert proposed.year == 1991
    assert proposed.track == 1
    assert proposed.album_artist == "Nirvana"


def test_discogs_projection_keeps_genre_when_missing():
    candidate = CandidateRelease(source=SourceType.DISCOGS, title="Nevermind", artist="Nirvana")
    assert project_from_candidate(candidate, preserve_from=_tagged_track()).genre == "Grunge"


def test_fingerprint_projection(lithium_fingerprint):
    proposed = project_from_candidate(lithium_fingerprint, preserve_from=_tagged_track())
    assert proposed.title == "Lithium"
    assert proposed.artist == "Nirvana"
    assert proposed.album == "Nevermind"
    assert proposed.album_artist == "Nirvana"
    # Fingerprint results never carry these
    assert proposed.genre == "Grunge"
    assert proposed.year == 1991
    assert proposed.track == 1
    assert proposed.comment == "ripped 2004"


def test_projection_without_preserve_leaves_blanks(nevermind_discogs):
    proposed = project_from_candidate(nevermind_discogs)
    assert proposed.title == ""
    assert proposed.track == 0
    assert proposed.comment == ""


# Batch edits


def test_tag_edit_from_form_parses_text():
    edit = TagEdit.from_form(album=" Nevermind ", genre="", year="abc")
    assert edit.album == "Nevermind"
    assert edit.genre is None
    assert edit.year is None
    assert TagEdit.from_form(year=" 1991 ").year == 1991


def test_tag_edit_empty():
    assert TagEdit().is_empty()
    assert not TagEdit(cleanup=True).is_empty()


def test_tag_edit_apply_sets_numbers_and_cleans():
    tracks = [
        LocalTrack(path="a.mp3", title="Polly", comment="   ", track=7),
        LocalTrack(path="b.mp3", title="Breed", genre="  ", track=3),
    ]
    edit = TagEdit(album="Nevermind", year=1991, auto_number=True, cleanup=True)

    changed = [edit.apply(track, n) for n, track in enumerate(tracks, start=1)]

    assert [t.track for t in tracks] == [1, 2]
    assert all(t.album == "Nevermind" and t.year == 1991 for t in tracks)
    assert tracks[0].comment == ""
    assert tracks[1].genre == ""
    assert changed[0] == [TagField.ALBUM, TagField.YEAR, TagField.TRACK, TagField.COMMENT]
    assert changed[1] == [TagField.ALBUM, TagField.GENRE, TagField.YEAR, TagField.TRACK]


def test_tag_edit_find_replace():
    track = LocalTrack(path="a.mp3", title="Lithium (Live)", album="Live Album", artist="Nirvana")
    changed = TagEdit(find="Live", replace="Studio").apply(track, 1)
    assert track.title == "Lithium (Studio)"
    assert track.album == "Studio Album"
    assert changed == [TagField.TITLE, TagField.ALBUM]


def test_tag_edit_describe():
    lines = TagEdit(genre="Grunge", auto_number=True).describe(3)
    assert lines == [
        "Preview of changes for 3 files:",
        "- Genre will be set to: Grunge",
        "- Track numbers will be automatically assigned (1, 2, 3...)",
    ]
