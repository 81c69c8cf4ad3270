"""
Shared plumbing for metadata providers.

Search providers turn a free-text query into a list of CandidateRelease
values; lookup-only services (AcoustID) share the HTTP plumbing without
offering search. Requests go through one httpx.Client and are paced by a TokenBucket; any
transport or API failure surfaces as ProviderError.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any

import httpx

from tag_reconciler.errors import ProviderError
from tag_reconciler.models import CandidateRelease, LocalTrack, SourceType
from tag_reconciler.rate_limiter import TokenBucket
from tag_reconciler.safe_logging import redact_dict

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_S = 30.0
DEFAULT_SEARCH_LIMIT = 10
USER_AGENT = "tag-reconciler/0.1.0 (https://github.com/tag-reconciler)"


def build_query(track: LocalTrack) -> str:
    """Search query for a track: artist and album, space separated."""
    return f"{track.artist} {track.album}".strip()


class MetadataProvider:
    """
    Base class for HTTP metadata providers.

    Args:
        limiter: Request pacing; one token per request
        client: Preconfigured httpx client (tests pass one with a MockTransport)
        timeout_s: Request timeout when no client is given
        user_agent: User-Agent header when no client is given
    """

    source: SourceType
    BASE_URL: str = ""

    def __init__(
        self,
        limiter: TokenBucket,
        client: httpx.Client | None = None,
        timeout_s: float = DEFAULT_TIMEOUT_S,
        user_agent: str = USER_AGENT,
        headers: dict[str, str] | None = None,
    ):
        self.limiter = limiter
        if client is None:
            client = httpx.Client(
                timeout=timeout_s,
                headers={"User-Agent": user_agent, **(headers or {})},
            )
        elif headers:
            client.headers.update(headers)
        self._client = client

    def _request(self, method: str, url: str, **kwargs: Any) -> Any:
        """Make a rate-limited request and return the decoded JSON body."""
        self.limiter.acquire()

        params = kwargs.get("params") or kwargs.get("data") or {}
        logger.debug(f"{self.source.label} {method} {url} {redact_dict(params)}")

        try:
            response = self._client.request(method, url, **kwargs)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as e:
            raise ProviderError(
                self.source.label, f"HTTP {e.response.status_code} from {e.request.url.path}"
            ) from e
        except httpx.HTTPError as e:
            raise ProviderError(self.source.label, str(e) or type(e).__name__) from e
        except ValueError as e:
            raise ProviderError(self.source.label, f"invalid JSON response: {e}") from e

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> MetadataProvider:
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()


class SearchProvider(MetadataProvider, ABC):
    """A provider that answers free-text release searches."""

    @abstractmethod
    def search(self, query: str) -> list[CandidateRelease]:
        """Search releases matching a free-text query."""

    def search_track(self, track: LocalTrack) -> list[CandidateRelease]:
        query = build_query(track)
        if not query:
            return []
        return self.search(query)


## Tests


def test_build_query():
    assert build_query(LocalTrack(path="a.mp3", artist="Nirvana", album="Nevermind")) == (
        "Nirvana Nevermind"
    )
    assert build_query(LocalTrack(path="a.mp3", album="Nevermind")) == "Nevermind"
    assert build_query(LocalTrack(path="a.mp3")) == ""
