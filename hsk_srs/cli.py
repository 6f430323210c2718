"""
Command-line interface for the offline vocabulary store.

Usage:
    hsk-srs import-feed vocabulary.json
    hsk-srs import-feed --url https://example.org/api/vocabulary
    hsk-srs due --count 10 --level 1
    hsk-srs record 42 --correct
    hsk-srs export-progress backup.json
    hsk-srs import-progress backup.json
"""

import asyncio
import json
import logging
from pathlib import Path
from typing import Awaitable, Callable, List, Optional, TypeVar

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from .core.config import get_settings
from .core.database import close_database, health_check
from .core.services import VocabularyServices, build_services
from .domain.errors import DomainError
from .domain.vocabulary import IDIOM_LEVEL, FilterType, VocabularyEntry
from .utils.logging import setup_logging
from .version import __version__

logger = logging.getLogger(__name__)

app = typer.Typer(help="Offline HSK vocabulary and spaced-repetition store")
console = Console()

T = TypeVar("T")


def _print_version(value: bool) -> None:
    if value:
        console.print(f"hsk-srs {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    env_file: Path = typer.Option(Path(".env"), help="Environment file to load"),
    log_level: Optional[str] = typer.Option(None, help="Override the configured log level"),
    version: bool = typer.Option(
        False, "--version", callback=_print_version, is_eager=True, help="Show version and exit"
    ),
):
    """Load the environment and configure logging."""
    if env_file.exists():
        load_dotenv(env_file, override=False)
    get_settings.cache_clear()
    settings = get_settings()
    setup_logging(log_level or settings.log_level, log_to_file=settings.log_to_file)


def _run(action: Callable[[VocabularyServices], Awaitable[T]]) -> T:
    """Build services, run *action* and always release the database."""

    async def runner() -> T:
        try:
            services = await build_services(get_settings())
            return await action(services)
        finally:
            await close_database()

    try:
        return asyncio.run(runner())
    except DomainError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)


def _level_label(level: int) -> str:
    return "Chengyu" if level == IDIOM_LEVEL else f"HSK {level}"


def _entries_table(title: str, entries: List[VocabularyEntry]) -> Table:
    table = Table(title=title, show_header=True)
    table.add_column("ID", style="dim")
    table.add_column("Word")
    table.add_column("Pinyin")
    table.add_column("Meaning")
    table.add_column("Level")
    table.add_column("SRS", justify="right")
    table.add_column("Next review")
    table.add_column("★")
    for entry in entries:
        table.add_row(
            entry.id,
            entry.simplified,
            entry.pinyin,
            entry.meanings,
            _level_label(entry.level),
            str(entry.srs_level),
            entry.next_review.isoformat(),
            "★" if entry.is_favorite else "",
        )
    return table


@app.command("import-feed")
def import_feed(
    feed_file: Optional[Path] = typer.Argument(
        None, exists=True, dir_okay=False, help="JSON file with a list of word records"
    ),
    url: Optional[str] = typer.Option(None, help="Feed URL (defaults to VOCABULARY_FEED_URL)"),
):
    """Replace the local vocabulary with a feed. Learning progress is discarded."""

    async def action(services: VocabularyServices) -> int:
        if feed_file is not None:
            try:
                records = json.loads(feed_file.read_text(encoding="utf-8"))
            except ValueError as e:
                console.print(f"[red]Feed file is not valid JSON: {escape(str(e))}[/red]")
                raise typer.Exit(1)
            if not isinstance(records, list):
                console.print("[red]Feed file must contain a JSON list[/red]")
                raise typer.Exit(1)
            return await services.import_export.import_from_remote(records)

        if url:
            services.sync.feed_url = url
        result = await services.sync.download_full_database()
        if not result.success:
            console.print(f"[red]{result.message}[/red]")
            raise typer.Exit(1)
        return result.count

    count = _run(action)
    console.print(f"[green]Imported {count} words[/green]")


@app.command("export-progress")
def export_progress(output: Path = typer.Argument(..., help="Snapshot file to write")):
    """Back up learning progress to a JSON snapshot."""

    async def action(services: VocabularyServices) -> Path:
        return await services.import_export.export_progress_to_file(output)

    path = _run(action)
    console.print(f"[green]Progress exported to {path}[/green]")


@app.command("import-progress")
def import_progress(
    snapshot: Path = typer.Argument(..., exists=True, dir_okay=False, help="Snapshot file"),
):
    """Restore learning progress from a JSON snapshot."""

    async def action(services: VocabularyServices) -> int:
        return await services.import_export.import_progress_from_file(snapshot)

    count = _run(action)
    console.print(f"[green]Restored progress for {count} words[/green]")


@app.command("reset-progress")
def reset_progress(
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation"),
):
    """Reset SRS level, review date and counters of every word. Favorites stay."""
    if not yes:
        typer.confirm("Reset all learning progress?", abort=True)

    async def action(services: VocabularyServices) -> int:
        return await services.repository.reset_all_progress()

    count = _run(action)
    console.print(f"[green]Reset progress for {count} words[/green]")


@app.command()
def due(
    count: int = typer.Option(20, min=1, help="Number of words to return"),
    level: Optional[int] = typer.Option(None, help="Restrict to one level (-1 for chengyu)"),
):
    """List words due for review, padded with random words."""

    async def action(services: VocabularyServices) -> List[VocabularyEntry]:
        return await services.repository.get_due_for_review(count, level)

    entries = _run(action)
    console.print(_entries_table("Due for review", entries))


@app.command("next")
def next_word(
    level: Optional[List[int]] = typer.Option(None, help="Levels to draw from (repeatable)"),
    never_correct: bool = typer.Option(False, help="Only words never answered correctly"),
):
    """Pick the next word to practice and show one example sentence."""

    async def action(services: VocabularyServices):
        entry = await services.repository.select_practice_word(level or None, never_correct)
        example = services.repository.random_example(entry) if entry else None
        return entry, example

    entry, example = _run(action)
    if entry is None:
        console.print("[yellow]No words available for practice[/yellow]")
        raise typer.Exit(0)
    console.print(_entries_table("Next word", [entry]))
    if example:
        console.print(f"{example.simplified}\n[dim]{example.pinyin}[/dim]\n{example.english}")


@app.command()
def record(
    word_id: str = typer.Argument(..., help="Vocabulary id"),
    correct: bool = typer.Option(..., "--correct/--incorrect", help="Practice outcome"),
):
    """Record a practice outcome for one word."""

    async def action(services: VocabularyServices) -> VocabularyEntry:
        return await services.repository.record_practice_outcome(word_id, correct)

    entry = _run(action)
    console.print(
        f"{entry.simplified}: SRS level {entry.srs_level}, "
        f"next review {entry.next_review.isoformat()}"
    )


@app.command()
def favorite(word_id: str = typer.Argument(..., help="Vocabulary id")):
    """Toggle the favorite flag of one word."""

    async def action(services: VocabularyServices) -> VocabularyEntry:
        return await services.repository.toggle_favorite(word_id)

    entry = _run(action)
    state = "added to" if entry.is_favorite else "removed from"
    console.print(f"{entry.simplified} {state} favorites")


@app.command()
def search(
    term: str = typer.Argument("", help="Substring of the word, pinyin or meaning"),
    level: Optional[int] = typer.Option(None, help="Restrict to one level"),
    filter_type: FilterType = typer.Option(FilterType.ALL, "--filter", help="Progress filter"),
):
    """Search and filter the vocabulary."""

    async def action(services: VocabularyServices) -> List[VocabularyEntry]:
        return await services.repository.search_and_filter(term, level, filter_type)

    entries = _run(action)
    console.print(_entries_table(f"{len(entries)} words", entries))


@app.command()
def stats():
    """Show learning progress per level."""

    async def action(services: VocabularyServices):
        return await services.repository.get_progress_stats()

    progress = _run(action)
    table = Table(title="Progress", show_header=True)
    table.add_column("Level")
    table.add_column("Mastered", justify="right")
    table.add_column("Total", justify="right")
    table.add_column("%", justify="right")
    for row in progress.by_level:
        table.add_row(_level_label(row.level), str(row.mastered), str(row.total), str(row.percentage))
    console.print(table)
    console.print(
        f"Total {progress.total_words} words, {progress.mastered_words} mastered, "
        f"{progress.due_today} due today, {progress.favorites} favorites"
    )


@app.command()
def check():
    """Check that the database is reachable and report whether it holds vocabulary."""

    async def action(services: VocabularyServices):
        healthy = await health_check()
        needs_setup = await services.sync.needs_initial_setup() if healthy else True
        return healthy, needs_setup

    healthy, needs_setup = _run(action)
    if not healthy:
        console.print("  [red]FAIL[/red] Database not reachable")
        raise typer.Exit(1)
    console.print("  [green]OK[/green] Database reachable")
    if needs_setup:
        console.print("  [yellow]WARN[/yellow] No vocabulary yet, run import-feed")
    else:
        console.print("  [green]OK[/green] Vocabulary present")


@app.command("settings")
def settings_command(
    key: Optional[str] = typer.Argument(None, help="Setting key to write"),
    value: Optional[str] = typer.Argument(None, help="JSON value to store"),
):
    """Show all settings, or store one (value parsed as JSON)."""

    async def action(services: VocabularyServices):
        if key is not None and value is not None:
            try:
                decoded = json.loads(value)
            except ValueError:
                decoded = value
            await services.settings_store.save_setting(key, decoded)
        return await services.settings_store.get_all_settings()

    current = _run(action)
    for name, stored in sorted(current.items()):
        console.print(f"{name} = {json.dumps(stored, ensure_ascii=False)}")


if __name__ == "__main__":
    app()
