"""Pytest configuration and shared fixtures for tag-reconciler tests."""

from __future__ import annotations

import pytest

from tag_reconciler.models import CandidateRelease, CandidateTrack, LocalTrack, SourceType
from tag_reconciler.session import ReconciliationSession

# =============================================================================
# Track Fixtures
# =============================================================================

ALBUM_SIZE = 12


def make_album(size: int = ALBUM_SIZE, **tags) -> list[LocalTrack]:
    """Tracks of one loaded album, numbered 1..size."""
    defaults = {"artist": "Nirvana", "album": "Nevermind", "year": 1991}
    defaults.update(tags)
    return [
        LocalTrack(path=f"/music/Nirvana/Nevermind/{n:02d}.mp3", track=n, **defaults)
        for n in range(1, size + 1)
    ]


@pytest.fixture
def nirvana_track() -> LocalTrack:
    return LocalTrack(
        path="/music/Nirvana/Nevermind/01.mp3",
        artist="Nirvana",
        album="Nevermind",
        year=1991,
    )


@pytest.fixture
def album_session() -> ReconciliationSession:
    """Session with a full 12-track album loaded."""
    session = ReconciliationSession()
    for track in make_album():
        session.add_track(track)
    return session


# =============================================================================
# Candidate Fixtures
# =============================================================================


@pytest.fixture
def nevermind_mb() -> CandidateRelease:
    return CandidateRelease(
        source=SourceType.MUSICBRAINZ,
        title="Nevermind",
        artist="Nirvana",
        date="1991-09-24",
        track_count=12,
        release_id="b52a8f31-b5ab-34e9-92f4-f5b7110220f0",
    )


@pytest.fixture
def nevermind_remaster_mb() -> CandidateRelease:
    return CandidateRelease(
        source=SourceType.MUSICBRAINZ,
        title="Nevermind (Remastered)",
        artist="Nirvana",
        date="2011",
        track_count=13,
    )


@pytest.fixture
def nevermind_discogs() -> CandidateRelease:
    return CandidateRelease(
        source=SourceType.DISCOGS,
        title="Nevermind",
        artist="Nirvana",
        date="1991",
        track_count=12,
        genre="Rock",
    )


@pytest.fixture
def lithium_fingerprint() -> CandidateRelease:
    return CandidateRelease(
        source=SourceType.FINGERPRINT,
        title="Nevermind",
        artist="Nirvana",
        tracks=(CandidateTrack(title="Lithium", artist="Nirvana"),),
        provider_score=0.97,
    )
