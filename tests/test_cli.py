"""Tests for the Typer CLI."""

from __future__ import annotations

import json

import httpx
import pytest
from conftest import make_album
from typer.testing import CliRunner

from tag_reconciler import cli
from tag_reconciler.cli import ExitCode, app
from tag_reconciler.errors import ProviderError
from tag_reconciler.providers import MusicBrainzProvider
from tag_reconciler.rate_limiter import TokenBucket

runner = CliRunner()

NEVERMIND = {
    "source": "musicbrainz",
    "title": "Nevermind",
    "artist": "Nirvana",
    "date": "1991-09-24",
    "track_count": 12,
}


@pytest.fixture
def working_set(tmp_path):
    tracks_json = tmp_path / "tracks.json"
    tracks_json.write_text(json.dumps([track.to_dict() for track in make_album()]))
    candidates_json = tmp_path / "candidates.json"
    candidates_json.write_text(json.dumps([NEVERMIND]))
    return tracks_json, candidates_json


def test_help():
    result = runner.invoke(app, ["--help"])
    assert result.exit_code == 0
    assert "rank" in result.stdout


def test_rank_json_output(working_set):
    tracks_json, candidates_json = working_set
    result = runner.invoke(app, ["--output", "json", "rank", str(tracks_json), str(candidates_json)])

    assert result.exit_code == ExitCode.SUCCESS
    output = json.loads(result.stdout)
    assert len(output) == 12
    assert output[0]["meets_threshold"] is True
    assert output[0]["applied"] is False
    assert output[0]["ranked"][0]["score"] == 0.95
    assert output[0]["ranked"][0]["breakdown"]["artist"] == 0.35
    assert "comparison" not in output[0]


def test_rank_apply_and_accept(working_set, tmp_path):
    tracks_json, candidates_json = working_set
    saved = tmp_path / "out.json"
    result = runner.invoke(
        app,
        [
            "-o",
            "json",
            "rank",
            str(tracks_json),
            str(candidates_json),
            "--accept-all",
            "--save",
            str(saved),
        ],
    )

    assert result.exit_code == ExitCode.SUCCESS
    first = json.loads(result.stdout)[0]
    assert first["status"] == "1 changes applied"
    assert first["tags"]["album_artist"] == "Nirvana"
    album_artist = next(item for item in first["comparison"] if item["field"] == "album_artist")
    assert album_artist["status"] == "Accepted"

    written = json.loads(saved.read_text())
    assert all(track["album_artist"] == "Nirvana" for track in written)


def test_rank_text_output(working_set):
    tracks_json, candidates_json = working_set
    result = runner.invoke(app, ["rank", str(tracks_json), str(candidates_json), "--apply"])

    assert result.exit_code == ExitCode.SUCCESS
    assert "95.0%" in result.stdout
    assert "Auto-applied" in result.stdout
    assert "Tag Comparison for: 01.mp3" in result.stdout


def test_rank_candidates_keyed_by_path(tmp_path):
    tracks = make_album(size=2)
    tracks_json = tmp_path / "tracks.json"
    tracks_json.write_text(json.dumps([track.to_dict() for track in tracks]))
    candidates_json = tmp_path / "candidates.json"
    candidates_json.write_text(json.dumps({tracks[1].path: [NEVERMIND]}))

    result = runner.invoke(app, ["-o", "json", "rank", str(tracks_json), str(candidates_json)])

    assert result.exit_code == ExitCode.SUCCESS
    first, second = json.loads(result.stdout)
    assert first["ranked"] == []
    assert second["ranked"][0]["title"] == "Nevermind"


def test_rank_without_any_candidates(tmp_path, working_set):
    tracks_json, _ = working_set
    candidates_json = tmp_path / "none.json"
    candidates_json.write_text("[]")

    result = runner.invoke(app, ["-o", "json", "rank", str(tracks_json), str(candidates_json)])
    assert result.exit_code == ExitCode.NO_RESULTS


def test_rank_invalid_json(tmp_path, working_set):
    _, candidates_json = working_set
    tracks_json = tmp_path / "bad.json"
    tracks_json.write_text("{not json")

    result = runner.invoke(app, ["rank", str(tracks_json), str(candidates_json)])
    assert result.exit_code == ExitCode.ERROR


@pytest.mark.parametrize(
    "entries",
    [
        [{"artist": "Nirvana", "album": "Nevermind", "track": n} for n in (1, 2, 3)],
        [{"path": "/music/01.mp3"}, {"path": "/music/02.mp3"}, {"path": "/music/01.mp3"}],
    ],
    ids=["missing-path", "duplicate-path"],
)
def test_rank_rejects_tracks_without_unique_paths(tmp_path, working_set, entries):
    _, candidates_json = working_set
    tracks_json = tmp_path / "tracks_without_paths.json"
    tracks_json.write_text(json.dumps(entries))
    saved = tmp_path / "out.json"

    result = runner.invoke(
        app, ["rank", str(tracks_json), str(candidates_json), "--save", str(saved)]
    )

    assert result.exit_code == ExitCode.ERROR
    assert not saved.exists()


def test_invalid_config_file(tmp_path, working_set):
    config_path = tmp_path / "config.toml"
    config_path.write_text("[scoring]\nauto_apply_threshold = 7\n")
    tracks_json, candidates_json = working_set

    result = runner.invoke(
        app, ["--config", str(config_path), "rank", str(tracks_json), str(candidates_json)]
    )
    assert result.exit_code == ExitCode.ERROR


def test_search_ranks_live_results(monkeypatch):
    payload = {
        "releases": [
            {
                "id": "b52a8f31",
                "score": 100,
                "title": "Nevermind",
                "date": "1991-09-24",
                "track-count": 12,
                "artist-credit": [{"name": "Nirvana"}],
            }
        ]
    }
    provider = MusicBrainzProvider(
        client=httpx.Client(transport=httpx.MockTransport(lambda r: httpx.Response(200, json=payload))),
        limiter=TokenBucket.per_second(100.0),
    )
    monkeypatch.setattr(cli, "_make_provider", lambda source: provider)

    result = runner.invoke(
        app, ["-o", "json", "search", "--artist", "Nirvana", "--album", "Nevermind", "-y", "1991"]
    )

    assert result.exit_code == ExitCode.SUCCESS
    output = json.loads(result.stdout)
    assert output["ranked"][0]["title"] == "Nevermind"
    # one loaded track, so the 12-track release gets no track-count credit
    assert output["ranked"][0]["score"] == 0.75


def test_search_provider_failure(monkeypatch):
    class FailingProvider(MusicBrainzProvider):
        def search(self, query):
            raise ProviderError("MusicBrainz", "HTTP 503 from /ws/2/release/")

    monkeypatch.setattr(
        cli, "_make_provider", lambda source: FailingProvider(limiter=TokenBucket.per_second(100.0))
    )
    result = runner.invoke(app, ["search", "--artist", "Nirvana"])
    assert result.exit_code == ExitCode.ERROR


def test_search_requires_artist_or_album():
    result = runner.invoke(app, ["search"])
    assert result.exit_code == ExitCode.ERROR


def test_identify_requires_api_key(monkeypatch):
    monkeypatch.delenv("ACOUSTID_API_KEY", raising=False)
    result = runner.invoke(app, ["identify", "AQAAz0mUaEkSRZEGAA", "254"])
    assert result.exit_code == ExitCode.ERROR
