"""Rich rendering for tag-reconciler's CLI.

One Console is installed by the CLI callback; ranking tables, comparison
summaries, JSON and status lines are all written through it, so stdout
carries results only while log records go to stderr.
"""

from __future__ import annotations

from collections.abc import Callable, Iterator, Sequence
from contextlib import contextmanager
from typing import Any

from rich.console import Console
from rich.markup import escape
from rich.progress import BarColumn, MofNCompleteColumn, Progress, SpinnerColumn, TextColumn
from rich.status import Status
from rich.table import Table

from tag_reconciler.models import UNKNOWN_ALBUM, UNKNOWN_ARTIST, CandidateRelease
from tag_reconciler.ranking import RankingResult

_console: Console | None = None

# Score colours for the ranking table, checked highest first
SCORE_STYLES = ((0.85, "green"), (0.70, "yellow"), (0.0, "red"))


def get_console() -> Console:
    if _console is None:
        raise RuntimeError("Console not initialized. Call set_console() first.")
    return _console


def set_console(console: Console) -> None:
    global _console
    _console = console


@contextmanager
def track_progress(
    total: int, description: str = "Ranking candidates..."
) -> Iterator[Callable[[], None]]:
    """Transient per-track progress bar; yields a function advancing it by one."""
    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        MofNCompleteColumn(),
        transient=True,
        console=get_console(),
    ) as progress:
        task = progress.add_task(description, total=total)
        yield lambda: progress.advance(task)


@contextmanager
def status(message: str) -> Iterator[Status]:
    """Spinner shown while a provider request is in flight."""
    with get_console().status(message, spinner="dots") as st:
        yield st


def score_style(score: float) -> str:
    for floor, style in SCORE_STYLES:
        if score >= floor:
            return style
    return "red"


def ranking_table(result: RankingResult) -> Table:
    """Ranked candidates for one track, best first."""
    table = Table(title=result.track.file_name or "Search")
    table.add_column("#", justify="right")
    table.add_column("Source")
    table.add_column("Artist")
    table.add_column("Album")
    table.add_column("Date")
    table.add_column("Tracks", justify="right")
    table.add_column("Score", justify="right")

    for position, ranked in enumerate(result.ranked, start=1):
        candidate = ranked.candidate
        table.add_row(
            str(position),
            candidate.source.prefix,
            escape(candidate.artist or UNKNOWN_ARTIST),
            escape(candidate.title or UNKNOWN_ALBUM),
            candidate.date,
            str(candidate.track_count) if candidate.track_count else "",
            f"[{score_style(ranked.score)}]{ranked.percent}[/]",
        )
    return table


def fingerprint_table(candidates: Sequence[CandidateRelease]) -> Table:
    table = Table(title="AcoustID matches")
    table.add_column("Title")
    table.add_column("Artist")
    table.add_column("Album")
    table.add_column("Score", justify="right")
    for candidate in candidates:
        table.add_row(
            escape(candidate.tracks[0].title if candidate.tracks else ""),
            escape(candidate.artist or UNKNOWN_ARTIST),
            escape(candidate.title or UNKNOWN_ALBUM),
            f"{candidate.provider_score * 100:.1f}%",
        )
    return table


def print(*args: Any, **kwargs: Any) -> None:
    get_console().print(*args, **kwargs)


def print_json(data: Any) -> None:
    """Unwrapped, uncoloured JSON so the output stays machine-readable."""
    get_console().print_json(data=data, highlight=False)


def print_summary(summary: str) -> None:
    """Tab-separated comparison summary, printed verbatim."""
    get_console().print(summary, markup=False, highlight=False)


def print_error(message: str) -> None:
    get_console().print(f"[red]Error: {escape(message)}[/red]")


def print_warning(message: str) -> None:
    get_console().print(f"[yellow]Warning: {escape(message)}[/yellow]")


def print_success(message: str) -> None:
    get_console().print(f"[green]{escape(message)}[/green]")
