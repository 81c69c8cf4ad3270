"""Test configuration precedence: Env > TOML > Defaults."""

from __future__ import annotations

import tempfile
from pathlib import Path

import pytest

from tag_reconciler.config import Config
from tag_reconciler.errors import ConfigError


def test_toml_loading():
    """Test that TOML configuration is loaded correctly."""
    toml_content = """
[scoring]
auto_apply_threshold = 0.8
max_results_per_track = 5
exclude_missing_from_denominator = true

[scoring.weights]
artist = 0.4
album = 0.25

[history]
max_entries = 20

[live_sources]
musicbrainz_rate_limit = 0.5
discogs_rate_limit = 60
search_limit = 25

[logging]
level = "DEBUG"
hash_paths = true
"""

    with tempfile.NamedTemporaryFile(mode="w", suffix=".toml", delete=False) as f:
        f.write(toml_content)
        config_path = Path(f.name)

    try:
        config = Config.load(config_path)

        assert config.scoring.auto_apply_threshold == 0.8
        assert config.scoring.max_results_per_track == 5
        assert config.scoring.exclude_missing_from_denominator is True
        assert config.scoring.weights.artist == 0.4
        assert config.scoring.weights.album == 0.25
        assert config.scoring.weights.year == 0.10

        assert config.history.max_entries == 20

        assert config.live_sources.musicbrainz_rate_limit == 0.5
        assert config.live_sources.discogs_rate_limit == 60
        assert config.live_sources.search_limit == 25

        assert config.logging.level == "DEBUG"
        assert config.logging.hash_paths is True

    finally:
        config_path.unlink()


def test_env_overrides_toml(monkeypatch, tmp_path):
    """Test that environment variables override TOML configuration."""
    config_path = tmp_path / "config.toml"
    config_path.write_text(
        """
[scoring]
auto_apply_threshold = 0.8

[scoring.weights]
artist = 0.4

[history]
max_entries = 20
"""
    )

    monkeypatch.setenv("TAG_RECONCILER_SCORING_AUTO_APPLY_THRESHOLD", "0.75")
    monkeypatch.setenv("TAG_RECONCILER_SCORING_WEIGHTS_ARTIST", "0.5")
    monkeypatch.setenv("TAG_RECONCILER_HISTORY_MAX_ENTRIES", "10")
    monkeypatch.setenv("TAG_RECONCILER_SCORING_EXCLUDE_MISSING_FROM_DENOMINATOR", "yes")

    config = Config.load(config_path)

    assert config.scoring.auto_apply_threshold == 0.75  # from env, not 0.8 from TOML
    assert config.scoring.weights.artist == 0.5
    assert config.history.max_entries == 10
    assert config.scoring.exclude_missing_from_denominator is True


def test_credentials_from_env(monkeypatch):
    monkeypatch.setenv("ACOUSTID_API_KEY", "acoustid-key")
    monkeypatch.setenv("DISCOGS_TOKEN", "discogs-token")
    monkeypatch.setenv("TAG_RECONCILER_LIVE_SOURCES_TIMEOUT_S", "5")

    config = Config.load()

    assert config.live_sources.acoustid_api_key == "acoustid-key"
    assert config.live_sources.discogs_token == "discogs-token"
    assert config.live_sources.timeout_s == 5.0


def test_logging_env_vars(monkeypatch):
    monkeypatch.setenv("TAG_RECONCILER_LOGGING_LEVEL", "INFO")
    monkeypatch.setenv("TAG_RECONCILER_LOGGING_HASH_PATHS", "true")

    config = Config.load()

    assert config.logging.level == "INFO"
    assert config.logging.hash_paths is True


def test_invalid_value_raises_config_error(monkeypatch):
    monkeypatch.setenv("TAG_RECONCILER_SCORING_AUTO_APPLY_THRESHOLD", "1.5")
    with pytest.raises(ConfigError):
        Config.load()


def test_invalid_toml_raises_config_error(tmp_path):
    config_path = tmp_path / "broken.toml"
    config_path.write_text("[scoring\nauto_apply_threshold = ")
    with pytest.raises(ConfigError, match="Invalid TOML"):
        Config.load(config_path)


def test_scoring_config_builds_engine_objects():
    config = Config.model_validate(
        {
            "scoring": {
                "auto_apply_threshold": 0.9,
                "max_results_per_track": 2,
                "exclude_missing_from_denominator": True,
                "weights": {"title": 0.0},
            }
        }
    )
    ranker = config.scoring.to_ranker()

    assert ranker.auto_apply_threshold == 0.9
    assert ranker.max_results_per_track == 2
    assert ranker.max_candidates_considered == 5
    assert ranker.scorer.exclude_missing_from_denominator is True
    assert ranker.scorer.weights.title == 0.0
    assert ranker.scorer.weights.artist == 0.35
