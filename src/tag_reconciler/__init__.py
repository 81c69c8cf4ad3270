__all__ = (
    "Config",
    # Track and candidate model
    "LocalTrack",
    "CandidateRelease",
    "CandidateTrack",
    "SourceType",
    "TagField",
    # Matching
    "similarity",
    "normalize_for_match",
    "MatchScorer",
    "ScoringWeights",
    "ScoreBreakdown",
    "CandidateRanker",
    "RankedCandidate",
    "RankingResult",
    # Reconciliation
    "TagSnapshot",
    "TagEdit",
    "project_from_candidate",
    "ComparisonEngine",
    "ComparisonItem",
    "ComparisonMode",
    "ComparisonStatus",
    "ChangeHistory",
    "ChangeHistoryEntry",
    "ResultCache",
    "ReconciliationSession",
    # Providers
    "MusicBrainzProvider",
    "DiscogsProvider",
    "AcoustIDProvider",
    # Errors
    "ReconcilerError",
    "ProviderError",
    "UnknownTrackError",
    "ConfigError",
)

from tag_reconciler.cache import ResultCache
from tag_reconciler.comparison import (
    ComparisonEngine,
    ComparisonItem,
    ComparisonMode,
    ComparisonStatus,
)
from tag_reconciler.config import Config
from tag_reconciler.errors import ConfigError, ProviderError, ReconcilerError, UnknownTrackError
from tag_reconciler.history import ChangeHistory, ChangeHistoryEntry
from tag_reconciler.models import (
    CandidateRelease,
    CandidateTrack,
    LocalTrack,
    SourceType,
    TagField,
)
from tag_reconciler.providers import AcoustIDProvider, DiscogsProvider, MusicBrainzProvider
from tag_reconciler.ranking import CandidateRanker, RankedCandidate, RankingResult
from tag_reconciler.scoring import MatchScorer, ScoreBreakdown, ScoringWeights
from tag_reconciler.session import ReconciliationSession
from tag_reconciler.similarity import normalize_for_match, similarity
from tag_reconciler.snapshot import TagEdit, TagSnapshot, project_from_candidate
