"""
Discogs database search.

Discogs search results title releases as "Artist - Album" and report the year
and genres but rarely a track list, so the track count is recovered from
format descriptions such as "CD, Album, 12 tracks" where possible.

Rate limits: 60 req/min authenticated, 25 req/min unauthenticated.
"""

from __future__ import annotations

import os
import re
from typing import Any

import httpx

from tag_reconciler.models import CandidateRelease, SourceType
from tag_reconciler.providers.base import (
    DEFAULT_TIMEOUT_S,
    USER_AGENT,
    SearchProvider,
)
from tag_reconciler.rate_limiter import TokenBucket

TITLE_SEPARATOR = " - "
TRACK_COUNT_PATTERN = re.compile(r"(\d+)\s*tracks?", re.IGNORECASE)


def album_from_title(title: str) -> str:
    if TITLE_SEPARATOR in title:
        return title.split(TITLE_SEPARATOR, 1)[1].strip()
    return title.strip()


def _names(values: Any, key: str | None = None) -> list[str]:
    if not isinstance(values, list):
        return []
    names = []
    for value in values:
        if key is not None:
            value = value.get(key) if isinstance(value, dict) else None
        if isinstance(value, str) and value:
            names.append(value)
    return names


def artist_from_result(result: dict[str, Any]) -> str:
    """
    Artist of a search result.

    Tries basic_information.artists, then the `artist` field (string or
    list), then the "Artist - " prefix of the title. Empty when none of
    them names an artist.
    """
    basic = result.get("basic_information")
    if isinstance(basic, dict):
        artists = _names(basic.get("artists"), key="name")
        if artists:
            return ", ".join(artists)

    artist = result.get("artist")
    if isinstance(artist, str) and artist:
        return artist
    artists = _names(artist)
    if artists:
        return ", ".join(artists)

    title = result.get("title") or ""
    if TITLE_SEPARATOR in title:
        prefix = title.split(TITLE_SEPARATOR, 1)[0].strip()
        if prefix:
            return prefix

    return ""


def year_from_result(result: dict[str, Any]) -> str:
    year = result.get("year")
    if isinstance(year, bool):
        return ""
    if isinstance(year, int):
        return str(year)
    if isinstance(year, str):
        return year
    return ""


def _count_in(texts: list[str]) -> int | None:
    for text in texts:
        match = TRACK_COUNT_PATTERN.search(text)
        if match:
            return int(match.group(1))
    return None


def track_count_from_result(result: dict[str, Any]) -> int:
    """Track count from the tracklist or a "N tracks" description; 0 when unknown."""
    basic = result.get("basic_information")
    if isinstance(basic, dict):
        if isinstance(basic.get("tracklist"), list):
            return len(basic["tracklist"])
        formats = basic.get("formats")
        if isinstance(formats, list):
            descriptions = [
                d for f in formats if isinstance(f, dict) for d in _names(f.get("descriptions"))
            ]
            count = _count_in(descriptions)
            if count is not None:
                return count

    if isinstance(result.get("tracklist"), list):
        return len(result["tracklist"])

    count = _count_in(_names(result.get("format")))
    if count is not None:
        return count

    count = _count_in([str(result.get("title") or "")])
    return count or 0


class DiscogsProvider(SearchProvider):
    """Discogs API client using personal access token authentication."""

    source = SourceType.DISCOGS
    BASE_URL = "https://api.discogs.com"

    def __init__(
        self,
        token: str | None = None,
        rate_limit_per_min: int = 25,
        client: httpx.Client | None = None,
        timeout_s: float = DEFAULT_TIMEOUT_S,
        user_agent: str = USER_AGENT,
        limiter: TokenBucket | None = None,
    ):
        """
        Args:
            token: Discogs personal access token (env: DISCOGS_TOKEN)
            rate_limit_per_min: Max requests per minute (60 auth, 25 unauth)
        """
        self.token = token or os.getenv("DISCOGS_TOKEN")
        headers = {"Authorization": f"Discogs token={self.token}"} if self.token else {}
        super().__init__(
            limiter=limiter or TokenBucket.per_minute(rate_limit_per_min),
            client=client,
            timeout_s=timeout_s,
            user_agent=user_agent,
            headers=headers,
        )

    def search(self, query: str) -> list[CandidateRelease]:
        data = self._request(
            "GET",
            f"{self.BASE_URL}/database/search",
            params={"q": query, "type": "release"},
        )
        return [self._parse_result(result) for result in data.get("results", [])]

    def _parse_result(self, result: dict[str, Any]) -> CandidateRelease:
        release_id = str(result.get("id") or "")
        return CandidateRelease(
            source=self.source,
            title=album_from_title(str(result.get("title") or "")),
            artist=artist_from_result(result),
            date=year_from_result(result),
            track_count=track_count_from_result(result),
            genre=", ".join(_names(result.get("genre"))),
            release_id=release_id,
            identifiers={"discogs_release_id": release_id} if release_id else {},
        )


## Tests


def test_album_from_title():
    assert album_from_title("Nirvana - Nevermind") == "Nevermind"
    assert album_from_title("Nevermind") == "Nevermind"


def test_artist_from_result_fallbacks():
    assert artist_from_result({"basic_information": {"artists": [{"name": "A"}, {"name": "B"}]}}) == "A, B"
    assert artist_from_result({"artist": ["A", "B"]}) == "A, B"
    assert artist_from_result({"title": "Nirvana - Nevermind"}) == "Nirvana"
    assert artist_from_result({"title": "Nevermind"}) == ""


def test_track_count_from_result():
    assert track_count_from_result({"format": ["CD", "Album", "12 tracks"]}) == 12
    assert track_count_from_result({"tracklist": [{}, {}, {}]}) == 3
    assert track_count_from_result({"title": "Nirvana - Nevermind"}) == 0
