from __future__ import annotations

import os
import tomllib
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError

from tag_reconciler.errors import ConfigError
from tag_reconciler.ranking import CandidateRanker
from tag_reconciler.scoring import MatchScorer, ScoringWeights


class WeightsConfig(BaseModel):
    """Per-signal scoring weights."""

    artist: float = Field(default=0.35, ge=0.0, le=1.0)
    album: float = Field(default=0.30, ge=0.0, le=1.0)
    track_count: float = Field(default=0.20, ge=0.0, le=1.0)
    year: float = Field(default=0.10, ge=0.0, le=1.0)
    title: float = Field(default=0.05, ge=0.0, le=1.0)

    def to_weights(self) -> ScoringWeights:
        return ScoringWeights(**self.model_dump())


class ScoringConfig(BaseModel):
    """Match scoring and auto-apply policy."""

    weights: WeightsConfig = Field(default_factory=WeightsConfig)
    auto_apply_threshold: float = Field(default=0.70, ge=0.0, le=1.0)
    max_results_per_track: int = Field(default=3, ge=1)
    # Provider results beyond this are never scored
    max_candidates_considered: int = Field(default=5, ge=1)
    exclude_missing_from_denominator: bool = Field(default=False)

    def to_scorer(self) -> MatchScorer:
        return MatchScorer(
            weights=self.weights.to_weights(),
            exclude_missing_from_denominator=self.exclude_missing_from_denominator,
        )

    def to_ranker(self) -> CandidateRanker:
        return CandidateRanker(
            scorer=self.to_scorer(),
            auto_apply_threshold=self.auto_apply_threshold,
            max_results_per_track=self.max_results_per_track,
            max_candidates_considered=self.max_candidates_considered,
        )


class HistoryConfig(BaseModel):
    """Per-track change history."""

    max_entries: int = Field(default=50, ge=1)


class LiveSourcesConfig(BaseModel):
    """Live sources API configuration."""

    # API credentials (read from env vars if not provided)
    acoustid_api_key: str | None = Field(default=None)
    discogs_token: str | None = Field(default=None)

    # Rate limits
    musicbrainz_rate_limit: float = Field(default=1.0, gt=0)  # req/sec
    acoustid_rate_limit: float = Field(default=3.0, gt=0)  # req/sec
    discogs_rate_limit: int = Field(default=25, gt=0)  # req/min

    search_limit: int = Field(default=10, ge=1, le=100)
    timeout_s: float = Field(default=30.0, gt=0)
    user_agent: str = Field(default="tag-reconciler/0.1.0 (https://github.com/tag-reconciler)")


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = Field(default="WARNING")  # DEBUG, INFO, WARNING, ERROR
    format: str = Field(default="%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    hash_paths: bool = Field(default=False)


class Config(BaseModel):
    """
    Main configuration for tag-reconciler.

    Loads from TOML file with optional environment variable overrides.
    """

    scoring: ScoringConfig = Field(default_factory=ScoringConfig)
    history: HistoryConfig = Field(default_factory=HistoryConfig)
    live_sources: LiveSourcesConfig = Field(default_factory=LiveSourcesConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @classmethod
    def load(cls, config_path: Path | None = None) -> Config:
        """
        Load configuration from TOML file with environment variable overrides.

        Environment variables take precedence and follow the pattern:
        TAG_RECONCILER_<SECTION>_<KEY> (e.g., TAG_RECONCILER_SCORING_AUTO_APPLY_THRESHOLD)

        All values are gathered into a single dictionary first, then validated
        by Pydantic in one pass.
        """
        config_dict: dict[str, object] = {}

        if config_path and config_path.exists():
            try:
                config_dict = tomllib.loads(config_path.read_text())
            except tomllib.TOMLDecodeError as e:
                raise ConfigError(f"Invalid TOML in {config_path}: {e}") from e

        config_dict = cls._merge_env_overrides(config_dict)
        try:
            return cls.model_validate(config_dict)
        except ValidationError as e:
            raise ConfigError(str(e)) from e

    @staticmethod
    def _section(config_dict: dict[str, object], name: str) -> dict[str, object]:
        section = config_dict.setdefault(name, {})
        if not isinstance(section, dict):
            section = {}
            config_dict[name] = section
        return section

    @classmethod
    def _merge_env_overrides(cls, config_dict: dict[str, object]) -> dict[str, object]:
        """
        Merge environment variable overrides into config dictionary.

        Returns the dictionary with env vars applied, ready for Pydantic validation.
        """
        env_prefix = "TAG_RECONCILER_"

        scoring = cls._section(config_dict, "scoring")
        if threshold := os.getenv(f"{env_prefix}SCORING_AUTO_APPLY_THRESHOLD"):
            scoring["auto_apply_threshold"] = threshold
        if max_results := os.getenv(f"{env_prefix}SCORING_MAX_RESULTS_PER_TRACK"):
            scoring["max_results_per_track"] = max_results
        if max_considered := os.getenv(f"{env_prefix}SCORING_MAX_CANDIDATES_CONSIDERED"):
            scoring["max_candidates_considered"] = max_considered
        if exclude := os.getenv(f"{env_prefix}SCORING_EXCLUDE_MISSING_FROM_DENOMINATOR"):
            scoring["exclude_missing_from_denominator"] = exclude.lower() in ("true", "1", "yes")

        weights = cls._section(scoring, "weights")
        for signal in ("artist", "album", "track_count", "year", "title"):
            if weight := os.getenv(f"{env_prefix}SCORING_WEIGHTS_{signal.upper()}"):
                weights[signal] = weight

        history = cls._section(config_dict, "history")
        if max_entries := os.getenv(f"{env_prefix}HISTORY_MAX_ENTRIES"):
            history["max_entries"] = max_entries

        live_sources = cls._section(config_dict, "live_sources")

        # API credentials from env
        if acoustid_key := os.getenv("ACOUSTID_API_KEY"):
            live_sources["acoustid_api_key"] = acoustid_key
        if discogs_token := os.getenv("DISCOGS_TOKEN"):
            live_sources["discogs_token"] = discogs_token

        if mb_rate := os.getenv(f"{env_prefix}LIVE_SOURCES_MUSICBRAINZ_RATE_LIMIT"):
            live_sources["musicbrainz_rate_limit"] = mb_rate
        if acoustid_rate := os.getenv(f"{env_prefix}LIVE_SOURCES_ACOUSTID_RATE_LIMIT"):
            live_sources["acoustid_rate_limit"] = acoustid_rate
        if discogs_rate := os.getenv(f"{env_prefix}LIVE_SOURCES_DISCOGS_RATE_LIMIT"):
            live_sources["discogs_rate_limit"] = discogs_rate
        if search_limit := os.getenv(f"{env_prefix}LIVE_SOURCES_SEARCH_LIMIT"):
            live_sources["search_limit"] = search_limit
        if timeout := os.getenv(f"{env_prefix}LIVE_SOURCES_TIMEOUT_S"):
            live_sources["timeout_s"] = timeout

        logging_config = cls._section(config_dict, "logging")
        if log_level := os.getenv(f"{env_prefix}LOGGING_LEVEL"):
            logging_config["level"] = log_level
        if log_format := os.getenv(f"{env_prefix}LOGGING_FORMAT"):
            logging_config["format"] = log_format
        if log_hash_paths := os.getenv(f"{env_prefix}LOGGING_HASH_PATHS"):
            logging_config["hash_paths"] = log_hash_paths.lower() in ("true", "1", "yes")

        return config_dict


## Tests


def test_config_defaults():
    config = Config()
    assert config.scoring.auto_apply_threshold == 0.70
    assert config.scoring.max_results_per_track == 3
    assert config.scoring.exclude_missing_from_denominator is False
    assert config.history.max_entries == 50
    assert config.live_sources.discogs_rate_limit == 25


def test_config_from_dict():
    config = Config.model_validate(
        {
            "scoring": {"auto_apply_threshold": 0.8, "weights": {"artist": 0.5}},
            "history": {"max_entries": 10},
        }
    )
    assert config.scoring.auto_apply_threshold == 0.8
    assert config.scoring.weights.artist == 0.5
    assert config.scoring.weights.album == 0.30
    assert config.history.max_entries == 10


def test_config_load_nonexistent_file():
    config = Config.load(Path("/nonexistent/config.toml"))
    assert config.scoring.auto_apply_threshold == 0.70
