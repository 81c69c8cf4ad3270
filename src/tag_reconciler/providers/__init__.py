"""Metadata providers that produce candidate releases."""

from __future__ import annotations

from tag_reconciler.providers.acoustid import AcoustIDProvider
from tag_reconciler.providers.base import MetadataProvider, SearchProvider, build_query
from tag_reconciler.providers.discogs import DiscogsProvider
from tag_reconciler.providers.musicbrainz import MusicBrainzProvider

__all__ = (
    "AcoustIDProvider",
    "DiscogsProvider",
    "MetadataProvider",
    "MusicBrainzProvider",
    "SearchProvider",
    "build_query",
)
