"""
MusicBrainz release search.

Search results carry the release title, first credited artist, free-text date
and a track count; `get_release` fetches the full track list when a caller
needs per-track titles (manual selection of a specific track).
"""

from __future__ import annotations

from typing import Any

import httpx

from tag_reconciler.models import CandidateRelease, CandidateTrack, SourceType
from tag_reconciler.providers.base import (
    DEFAULT_SEARCH_LIMIT,
    DEFAULT_TIMEOUT_S,
    USER_AGENT,
    SearchProvider,
)
from tag_reconciler.rate_limiter import TokenBucket


def artist_from_credit(entity: dict[str, Any]) -> str:
    """Name of the first artist credit, empty when there is none."""
    credits = entity.get("artist-credit")
    if isinstance(credits, list) and credits:
        first = credits[0]
        if isinstance(first, dict) and first.get("name"):
            return str(first["name"])
    return ""


def release_track_count(release: dict[str, Any]) -> int:
    """`track-count` when present, else the sum over media; 0 when unknown."""
    count = release.get("track-count")
    if isinstance(count, int):
        return count

    media = release.get("media")
    if not isinstance(media, list):
        return 0
    total = 0
    for medium in media:
        medium_count = medium.get("track-count")
        if isinstance(medium_count, int):
            total += medium_count
        elif isinstance(medium.get("tracks"), list):
            total += len(medium["tracks"])
    return total


def _int(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


class MusicBrainzProvider(SearchProvider):
    """MusicBrainz web service client (1 req/s by default, per its usage policy)."""

    source = SourceType.MUSICBRAINZ
    BASE_URL = "https://musicbrainz.org/ws/2"

    def __init__(
        self,
        rate_limit_per_sec: float = 1.0,
        search_limit: int = DEFAULT_SEARCH_LIMIT,
        client: httpx.Client | None = None,
        timeout_s: float = DEFAULT_TIMEOUT_S,
        user_agent: str = USER_AGENT,
        limiter: TokenBucket | None = None,
    ):
        super().__init__(
            limiter=limiter or TokenBucket.per_second(rate_limit_per_sec),
            client=client,
            timeout_s=timeout_s,
            user_agent=user_agent,
        )
        self.search_limit = search_limit

    def search(self, query: str) -> list[CandidateRelease]:
        data = self._request(
            "GET",
            f"{self.BASE_URL}/release/",
            params={"query": query, "fmt": "json", "limit": self.search_limit},
        )
        return [self._parse_release(release) for release in data.get("releases", [])]

    def get_release(self, release_id: str) -> CandidateRelease:
        """Fetch one release including its recordings."""
        data = self._request(
            "GET",
            f"{self.BASE_URL}/release/{release_id}",
            params={"inc": "recordings artist-credits", "fmt": "json"},
        )
        release_artist = artist_from_credit(data)

        tracks = []
        for medium in data.get("media") or []:
            for track in medium.get("tracks") or []:
                recording = track.get("recording")
                artist = artist_from_credit(recording) if recording else release_artist
                tracks.append(
                    CandidateTrack(
                        title=str(track.get("title") or ""),
                        artist=artist,
                        position=_int(track.get("position")),
                    )
                )

        return CandidateRelease(
            source=self.source,
            title=str(data.get("title") or ""),
            artist=release_artist,
            date=str(data.get("date") or ""),
            track_count=len(tracks),
            tracks=tuple(tracks),
            release_id=str(data.get("id") or ""),
            identifiers={"mb_release_id": str(data.get("id") or "")},
        )

    def album_for_recording(self, recording_id: str) -> str:
        """Title of the first release a recording appears on, empty when it has none."""
        data = self._request(
            "GET",
            f"{self.BASE_URL}/recording/{recording_id}",
            params={"inc": "releases", "fmt": "json"},
        )
        releases = data.get("releases") or []
        if releases and isinstance(releases[0], dict):
            return str(releases[0].get("title") or "")
        return ""

    def _parse_release(self, release: dict[str, Any]) -> CandidateRelease:
        release_id = str(release.get("id") or "")
        return CandidateRelease(
            source=self.source,
            title=str(release.get("title") or ""),
            artist=artist_from_credit(release),
            date=str(release.get("date") or ""),
            track_count=release_track_count(release),
            provider_score=_int(release.get("score")) / 100.0,
            release_id=release_id,
            identifiers={"mb_release_id": release_id} if release_id else {},
        )


## Tests


def test_artist_from_credit():
    assert artist_from_credit({"artist-credit": [{"name": "Nirvana"}, {"name": "X"}]}) == "Nirvana"
    assert artist_from_credit({"artist-credit": []}) == ""
    assert artist_from_credit({}) == ""


def test_release_track_count():
    assert release_track_count({"track-count": 12}) == 12
    assert release_track_count({"media": [{"track-count": 10}, {"tracks": [{}, {}]}]}) == 12
    assert release_track_count({}) == 0
