"""
AcoustID fingerprint lookup.

Each recording of the top results becomes a fingerprint candidate whose
single track carries the recording title. AcoustID scores (0.0-1.0) are kept
as `provider_score`; the session applies the best one directly. Artist and
album stay empty when AcoustID does not know them; a MusicBrainz provider,
when given, fills in the album from the recording.
"""

from __future__ import annotations

import logging
import os
from dataclasses import replace
from typing import Any

import httpx

from tag_reconciler.errors import ProviderError
from tag_reconciler.models import CandidateRelease, CandidateTrack, SourceType
from tag_reconciler.providers.base import (
    DEFAULT_TIMEOUT_S,
    USER_AGENT,
    MetadataProvider,
)
from tag_reconciler.providers.musicbrainz import MusicBrainzProvider
from tag_reconciler.rate_limiter import TokenBucket

logger = logging.getLogger(__name__)

MAX_RESULTS = 5
MAX_RECORDINGS_PER_RESULT = 3


def parse_lookup_response(data: dict[str, Any]) -> list[CandidateRelease]:
    """Candidates from an AcoustID lookup response, best score first."""
    if data.get("status") != "ok":
        return []

    candidates = []
    for result in (data.get("results") or [])[:MAX_RESULTS]:
        score = float(result.get("score") or 0.0)
        for recording in (result.get("recordings") or [])[:MAX_RECORDINGS_PER_RESULT]:
            artists = recording.get("artists") or []
            releases = recording.get("releases") or []
            artist = str((artists[0].get("name") if artists else None) or "")
            album = str((releases[0].get("title") if releases else None) or "")
            title = str(recording.get("title") or "")
            recording_id = str(recording.get("id") or "")

            candidates.append(
                CandidateRelease(
                    source=SourceType.FINGERPRINT,
                    title=album,
                    artist=artist,
                    tracks=(CandidateTrack(title=title, artist=artist),),
                    provider_score=score,
                    release_id=str(result.get("id") or ""),
                    identifiers={"mb_recording_id": recording_id} if recording_id else {},
                )
            )

    return sorted(candidates, key=lambda c: c.provider_score, reverse=True)


class AcoustIDProvider(MetadataProvider):
    """AcoustID web service client (3 req/s). Lookup only; it has no text search."""

    source = SourceType.FINGERPRINT
    BASE_URL = "https://api.acoustid.org/v2"

    def __init__(
        self,
        api_key: str | None = None,
        rate_limit_per_sec: float = 3.0,
        client: httpx.Client | None = None,
        timeout_s: float = DEFAULT_TIMEOUT_S,
        user_agent: str = USER_AGENT,
        limiter: TokenBucket | None = None,
        musicbrainz: MusicBrainzProvider | None = None,
    ):
        self.api_key = api_key or os.getenv("ACOUSTID_API_KEY")
        self.musicbrainz = musicbrainz
        super().__init__(
            limiter=limiter or TokenBucket.per_second(rate_limit_per_sec),
            client=client,
            timeout_s=timeout_s,
            user_agent=user_agent,
        )

    def lookup(self, fingerprint: str, duration_sec: int) -> list[CandidateRelease]:
        """Identify a track from its Chromaprint fingerprint and duration."""
        if not self.api_key:
            logger.warning("AcoustID API key not configured; skipping fingerprint lookup")
            return []

        data = self._request(
            "POST",
            f"{self.BASE_URL}/lookup",
            data={
                "client": self.api_key,
                "meta": "recordings releases",
                "duration": str(duration_sec),
                "fingerprint": fingerprint,
            },
        )
        if data.get("status") != "ok":
            logger.warning(f"AcoustID lookup returned status {data.get('status')!r}")
        return [self._with_album(candidate) for candidate in parse_lookup_response(data)]

    def _with_album(self, candidate: CandidateRelease) -> CandidateRelease:
        recording_id = candidate.identifiers.get("mb_recording_id", "")
        if candidate.title or not recording_id or self.musicbrainz is None:
            return candidate
        try:
            album = self.musicbrainz.album_for_recording(recording_id)
        except ProviderError as e:
            logger.warning(f"No album for recording {recording_id}: {e}")
            return candidate
        return replace(candidate, title=album) if album else candidate


## Tests


def test_parse_lookup_response():
    data = {
        "status": "ok",
        "results": [
            {
                "id": "low",
                "score": 0.5,
                "recordings": [{"id": "r1", "title": "Polly", "artists": [{"name": "Nirvana"}]}],
            },
            {
                "id": "high",
                "score": 0.97,
                "recordings": [
                    {
                        "id": "r2",
                        "title": "Lithium",
                        "artists": [{"name": "Nirvana"}],
                        "releases": [{"title": "Nevermind"}],
                    }
                ],
            },
        ],
    }
    candidates = parse_lookup_response(data)
    assert [c.release_id for c in candidates] == ["high", "low"]
    assert candidates[0].title == "Nevermind"
    assert candidates[0].tracks[0].title == "Lithium"
    assert candidates[1].title == ""
    assert candidates[1].artist == "Nirvana"


def test_parse_lookup_response_error_status():
    assert parse_lookup_response({"status": "error", "error": {"message": "invalid"}}) == []
