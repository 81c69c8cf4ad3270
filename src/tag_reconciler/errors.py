"""Exception hierarchy for tag-reconciler.

Partial or malformed candidate metadata is never an error: the engine falls
back to empty/zero/preserved values instead. These exceptions cover the
surrounding plumbing (providers, configuration, session bookkeeping).
"""

from __future__ import annotations


class ReconcilerError(Exception):
    """Base class for all tag-reconciler errors."""

    pass


class ProviderError(ReconcilerError):
    """A metadata provider request failed or returned an API-level error."""

    def __init__(self, source: str, message: str):
        super().__init__(f"{source}: {message}")
        self.source = source


class UnknownTrackError(ReconcilerError, KeyError):
    """Operation addressed a track that is not in the working set."""

    def __init__(self, path: str):
        super().__init__(path)
        self.path = path

    def __str__(self) -> str:
        return f"Track not loaded: {self.path}"


class ConfigError(ReconcilerError):
    """Configuration file could not be parsed or validated."""

    pass
