"""CLI for tag-reconciler using Typer and Rich.

Ranks candidate releases against local tracks, either from JSON files or
from a live MusicBrainz/Discogs search, and previews the tag changes the
best match would make.
"""

from __future__ import annotations

import json
import logging
from enum import StrEnum
from pathlib import Path
from typing import Annotated, Any

import typer

from tag_reconciler.config import Config
from tag_reconciler.console import (
    fingerprint_table,
    print_error,
    print_json,
    print_success,
    print_summary,
    print_warning,
    ranking_table,
    set_console,
    status,
    track_progress,
)
from tag_reconciler.console import (
    print as cprint,
)
from tag_reconciler.errors import ConfigError, ProviderError
from tag_reconciler.models import CandidateRelease, LocalTrack
from tag_reconciler.providers import (
    AcoustIDProvider,
    DiscogsProvider,
    MusicBrainzProvider,
    SearchProvider,
)
from tag_reconciler.ranking import RankingResult
from tag_reconciler.safe_logging import configure_rich_logging
from tag_reconciler.session import ReconciliationSession

logger = logging.getLogger(__name__)


class OutputFormat(StrEnum):
    """Output format for CLI commands."""

    TEXT = "text"
    JSON = "json"


class SearchSource(StrEnum):
    MUSICBRAINZ = "musicbrainz"
    DISCOGS = "discogs"


class ExitCode:
    """Standard exit codes for CLI commands."""

    SUCCESS = 0
    ERROR = 1
    NO_RESULTS = 2


app = typer.Typer(
    name="tag-reconciler",
    help="Tag-Reconciler: rank metadata candidates against local audio tags",
    no_args_is_help=True,
    add_completion=False,
)


# Global state (set by callback)
class AppState:
    """Global application state passed between commands."""

    config: Config
    output_format: OutputFormat
    verbose: int


state = AppState()


@app.callback()
def main(
    config_path: Annotated[
        Path | None,
        typer.Option("--config", help="Path to configuration TOML file", exists=True),
    ] = None,
    output: Annotated[
        OutputFormat,
        typer.Option("--output", "-o", help="Output format"),
    ] = OutputFormat.TEXT,
    verbose: Annotated[
        int,
        typer.Option("--verbose", "-v", count=True, help="Increase verbosity"),
    ] = 0,
) -> None:
    """Tag-Reconciler: rank metadata candidates against local audio tags."""
    try:
        cfg = Config.load(config_path)
    except ConfigError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=ExitCode.ERROR) from e

    # CLI flag takes precedence over the config file
    if verbose >= 2:
        log_level = logging.DEBUG
    elif verbose == 1:
        log_level = logging.INFO
    else:
        log_level = getattr(logging, cfg.logging.level.upper(), logging.WARNING)

    console = configure_rich_logging(level=log_level, hash_paths=cfg.logging.hash_paths)
    set_console(console)

    # Suppress external library logging unless very verbose (-vvv)
    if verbose < 3:
        logging.getLogger("httpx").setLevel(logging.WARNING)
        logging.getLogger("httpcore").setLevel(logging.WARNING)

    if config_path:
        logger.info(f"Loaded config from {config_path}")

    state.config = cfg
    state.output_format = output
    state.verbose = verbose


# ====================================================================
# HELPERS
# ====================================================================


def _new_session() -> ReconciliationSession:
    cfg = state.config
    return ReconciliationSession(
        ranker=cfg.scoring.to_ranker(),
        history_max_entries=cfg.history.max_entries,
    )


def _load_json(path: Path) -> Any:
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        print_error(f"Cannot read {path}: {e}")
        raise typer.Exit(code=ExitCode.ERROR) from e


def _load_tracks(path: Path) -> list[LocalTrack]:
    data = _load_json(path)
    if isinstance(data, dict):
        data = data.get("tracks", [])
    if not isinstance(data, list):
        print_error(f"{path}: expected a list of tracks")
        raise typer.Exit(code=ExitCode.ERROR)

    # Tracks are keyed by path in the session, so every entry needs its own
    tracks: list[LocalTrack] = []
    seen: set[str] = set()
    for index, item in enumerate(data, start=1):
        if not isinstance(item, dict):
            print_error(f"{path}: track {index} is not an object")
            raise typer.Exit(code=ExitCode.ERROR)
        track = LocalTrack.from_dict(item)
        if not track.path:
            print_error(f"{path}: track {index} has no path")
            raise typer.Exit(code=ExitCode.ERROR)
        if track.path in seen:
            print_error(f"{path}: track {index} repeats path {track.path}")
            raise typer.Exit(code=ExitCode.ERROR)
        seen.add(track.path)
        tracks.append(track)
    return tracks


def _load_candidates(path: Path, tracks: list[LocalTrack]) -> dict[str, list[CandidateRelease]]:
    """
    Candidates per track path.

    The file holds either one list shared by every track or an object keyed
    by track path.
    """
    data = _load_json(path)
    try:
        if isinstance(data, list):
            shared = [CandidateRelease.from_dict(item) for item in data]
            return {track.path: shared for track in tracks}
        if isinstance(data, dict):
            return {
                str(key): [CandidateRelease.from_dict(item) for item in value]
                for key, value in data.items()
                if isinstance(value, list)
            }
    except (ValueError, TypeError, AttributeError) as e:
        print_error(f"{path}: invalid candidate data: {e}")
        raise typer.Exit(code=ExitCode.ERROR) from e
    print_error(f"{path}: expected a list or an object of candidate lists")
    raise typer.Exit(code=ExitCode.ERROR)


def _result_dict(session: ReconciliationSession, result: RankingResult) -> dict[str, Any]:
    output: dict[str, Any] = {
        "path": result.track.path,
        "meets_threshold": result.meets_threshold,
        "applied": result.applied,
        "ranked": [ranked.to_dict() for ranked in result.ranked],
    }
    if result.comparison is not None:
        output["comparison"] = [item.to_dict() for item in result.comparison]
        output["status"] = session.status(result.track)
        output["tags"] = result.track.to_dict()
    return output


# ====================================================================
# COMMANDS
# ====================================================================


@app.command()
def rank(
    tracks_json: Annotated[
        Path, typer.Argument(help="JSON list of local tracks", exists=True, dir_okay=False)
    ],
    candidates_json: Annotated[
        Path,
        typer.Argument(
            help="JSON list of candidates, or object of candidate lists keyed by track path",
            exists=True,
            dir_okay=False,
        ),
    ],
    apply: Annotated[
        bool, typer.Option("--apply", help="Propose the best match when it clears the threshold")
    ] = False,
    accept_all: Annotated[
        bool, typer.Option("--accept-all", help="Accept every proposed change (implies --apply)")
    ] = False,
    save: Annotated[
        Path | None, typer.Option("--save", help="Write the resulting tags as JSON", dir_okay=False)
    ] = None,
) -> None:
    """Score candidate releases for each track in a working set.

    Examples:
        tag-reconciler rank tracks.json candidates.json
        tag-reconciler rank tracks.json candidates.json --apply --accept-all --save out.json
    """
    tracks = _load_tracks(tracks_json)
    if not tracks:
        print_warning(f"No tracks in {tracks_json}")
        raise typer.Exit(code=ExitCode.NO_RESULTS)
    candidates = _load_candidates(candidates_json, tracks)

    session = _new_session()
    for track in tracks:
        session.add_track(track)
    tracks = session.tracks
    auto_apply = apply or accept_all

    results: list[RankingResult] = []
    json_output = state.output_format == OutputFormat.JSON

    def rank_one(track: LocalTrack) -> None:
        result = session.rank(track, candidates.get(track.path, []), auto_apply=auto_apply)
        if accept_all and result.comparison is not None:
            session.accept_all(track)
        results.append(result)

    if json_output:
        for track in tracks:
            rank_one(track)
    else:
        with track_progress(len(tracks)) as advance:
            for track in tracks:
                rank_one(track)
                advance()

    if json_output:
        print_json([_result_dict(session, result) for result in results])
    else:
        for result in results:
            if not result.ranked:
                print_warning(f"No candidates for {result.track.file_name}")
                continue
            cprint(ranking_table(result))
            if result.comparison is not None and result.best is not None:
                print_success(f"Auto-applied {result.best.candidate.display_name()}")
                print_summary(session.summary(result.track))

    if save:
        save.write_text(
            json.dumps([track.to_dict() for track in tracks], indent=2, ensure_ascii=False),
            encoding="utf-8",
        )
        logger.info(f"Wrote {len(tracks)} tracks to {save}")

    if not any(result.ranked for result in results):
        raise typer.Exit(code=ExitCode.NO_RESULTS)


def _make_provider(source: SearchSource) -> SearchProvider:
    live = state.config.live_sources
    if source == SearchSource.DISCOGS:
        return DiscogsProvider(
            token=live.discogs_token,
            rate_limit_per_min=live.discogs_rate_limit,
            timeout_s=live.timeout_s,
            user_agent=live.user_agent,
        )
    return MusicBrainzProvider(
        rate_limit_per_sec=live.musicbrainz_rate_limit,
        search_limit=live.search_limit,
        timeout_s=live.timeout_s,
        user_agent=live.user_agent,
    )


@app.command()
def search(
    artist: Annotated[str, typer.Option("--artist", "-a", help="Artist name")] = "",
    album: Annotated[str, typer.Option("--album", "-l", help="Album title")] = "",
    title: Annotated[str, typer.Option("--title", "-t", help="Track title")] = "",
    year: Annotated[int, typer.Option("--year", "-y", help="Release year", min=0)] = 0,
    source: Annotated[
        SearchSource, typer.Option("--source", "-s", help="Metadata source")
    ] = SearchSource.MUSICBRAINZ,
) -> None:
    """Search a live metadata source and rank the results for one track.

    Examples:
        tag-reconciler search -a Nirvana -l Nevermind
        tag-reconciler search -a Nirvana -l Nevermind --source discogs
    """
    track = LocalTrack(path="", title=title, artist=artist, album=album, year=year)
    if not (artist or album):
        print_error("Provide --artist and/or --album")
        raise typer.Exit(code=ExitCode.ERROR)

    try:
        with _make_provider(source) as provider:
            with status(f"Searching {provider.source.label}..."):
                candidates = provider.search_track(track)
    except ProviderError as e:
        print_error(str(e))
        raise typer.Exit(code=ExitCode.ERROR) from e

    session = _new_session()
    session.add_track(track)
    result = session.rank(track, candidates, auto_apply=False)

    if state.output_format == OutputFormat.JSON:
        print_json(_result_dict(session, result))
    elif result.ranked:
        cprint(ranking_table(result))
    else:
        print_warning("No results")

    if not result.ranked:
        raise typer.Exit(code=ExitCode.NO_RESULTS)


@app.command()
def identify(
    fingerprint: Annotated[str, typer.Argument(help="Chromaprint fingerprint")],
    duration: Annotated[int, typer.Argument(help="Track duration in seconds", min=1)],
) -> None:
    """Identify a track by its acoustic fingerprint via AcoustID."""
    live = state.config.live_sources
    if not live.acoustid_api_key:
        print_error("AcoustID API key not configured (set ACOUSTID_API_KEY)")
        raise typer.Exit(code=ExitCode.ERROR)

    # MusicBrainz fills in the album for recordings AcoustID lists without one
    try:
        with (
            _make_provider(SearchSource.MUSICBRAINZ) as musicbrainz,
            AcoustIDProvider(
                api_key=live.acoustid_api_key,
                rate_limit_per_sec=live.acoustid_rate_limit,
                timeout_s=live.timeout_s,
                user_agent=live.user_agent,
                musicbrainz=musicbrainz,
            ) as provider,
        ):
            with status("Looking up fingerprint..."):
                candidates = provider.lookup(fingerprint, duration)
    except ProviderError as e:
        print_error(str(e))
        raise typer.Exit(code=ExitCode.ERROR) from e

    if state.output_format == OutputFormat.JSON:
        print_json(
            [
                {
                    "artist": c.artist,
                    "album": c.title,
                    "title": c.tracks[0].title if c.tracks else "",
                    "score": c.provider_score,
                    "recording_id": c.identifiers.get("mb_recording_id", ""),
                }
                for c in candidates
            ]
        )
    elif candidates:
        cprint(fingerprint_table(candidates))
    else:
        print_warning("No fingerprint matches")

    if not candidates:
        raise typer.Exit(code=ExitCode.NO_RESULTS)


if __name__ == "__main__":
    app()
