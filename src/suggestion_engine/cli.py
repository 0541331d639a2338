"""CLI interface using typer + rich."""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from suggestion_engine.cache.suggestion_cache import SuggestionCache
from suggestion_engine.clients.api_client import SuggestionApiClient
from suggestion_engine.config import load_config
from suggestion_engine.engine.highlight import HighlightEngine
from suggestion_engine.engine.session import SuggestionSession
from suggestion_engine.errors import SuggestionEngineError
from suggestion_engine.store import SuggestionStore, load_snapshot
from suggestion_engine.utils.validation import auto_correct_positions, validate_positions

app = typer.Typer(
    name="suggestion-engine",
    help="Review editorial suggestions against a blog post draft.",
    no_args_is_help=True,
)
console = Console()


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


def _load(doc: Path) -> SuggestionStore:
    try:
        return load_snapshot(doc)
    except FileNotFoundError:
        console.print(f"[red]Document not found: {doc}[/red]")
        raise typer.Exit(1)
    except ValueError as exc:
        console.print(f"[red]Could not read {doc}: {exc}[/red]")
        raise typer.Exit(1)


def _preview(text: str, width: int = 40) -> str:
    text = text.replace("\n", "\\n")
    return text if len(text) <= width else text[: width - 1] + "…"


@app.command()
def highlight(
    doc: Path = typer.Argument(help="JSON document with content and suggestions"),
    active: str = typer.Option(None, "--active", "-a", help="Suggestion id to mark active"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
) -> None:
    """Print the highlight segments computed for a document."""
    _setup_logging(verbose)
    store = _load(doc)
    config = load_config()
    cache = SuggestionCache(max_entries=config.cache.max_entries, ttl_seconds=config.cache.ttl_seconds)
    result = HighlightEngine(cache, config.highlight).render(store.suggestions, store.content, active_id=active)

    table = Table(title=f"{doc.name}: {len(result.highlights)} highlights")
    table.add_column("Range", justify="right")
    table.add_column("Kind")
    table.add_column("Suggestion")
    table.add_column("Text")
    for segment in result.segments:
        kind = segment.kind
        if segment.is_active:
            kind = "[bold green]active[/bold green]"
        elif segment.is_highlight:
            kind = "[yellow]highlight[/yellow]"
        label = ""
        if segment.suggestion is not None:
            label = f"{segment.suggestion.id} ({segment.suggestion.type.value})"
        table.add_row(f"{segment.start_offset}-{segment.end_offset}", kind, label, _preview(segment.text))
    console.print(table)

    if result.shadowed_ids:
        console.print(f"[dim]Hidden by overlap: {', '.join(result.shadowed_ids)}[/dim]")
    if result.virtualized:
        console.print(f"[dim]Virtualized: rendered {len(result.rendered_ids)} of {result.total_count}[/dim]")


@app.command()
def validate(
    doc: Path = typer.Argument(help="JSON document with content and suggestions"),
    repair: bool = typer.Option(False, "--repair", help="Relocate drifted suggestions"),
    output: Path = typer.Option(None, "--output", "-o", help="Where to write the repaired document"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
) -> None:
    """Check suggestion ranges against the document text."""
    _setup_logging(verbose)
    store = _load(doc)
    result = validate_positions(store.suggestions, store.content)

    console.print(
        f"[bold]{len(store)}[/bold] suggestions: "
        f"[green]{len(result.valid)} valid[/green], "
        f"[red]{len(result.invalid)} invalid[/red], "
        f"[yellow]{len(result.drifted)} drifted[/yellow]"
    )
    for item in result.invalid:
        s = item.suggestion
        console.print(f"  [red]-[/red] {s.id} [{s.start_offset}, {s.end_offset}): {item.reason}")
    for suggestion_id in result.drifted:
        console.print(f"  [yellow]~[/yellow] {suggestion_id}: text no longer matches")

    if not repair:
        return

    corrected, lost = auto_correct_positions(store.suggestions, store.content)
    repaired = store.with_suggestions(corrected)
    output = output or doc.with_name(f"{doc.stem}.repaired.json")
    output.write_text(json.dumps(repaired.to_dict(), ensure_ascii=False, indent=2), encoding="utf-8")
    console.print(f"\n[green]Repaired document saved: {output}[/green]")
    if lost:
        console.print(f"[yellow]Could not relocate: {', '.join(s.id for s in lost)}[/yellow]")


async def _review(
    store: SuggestionStore,
    post_id: str,
    accept_ids: list[str],
    reject_ids: list[str],
) -> dict:
    config = load_config()
    terminal: list[str] = []
    async with SuggestionApiClient(post_id, config.api) as client:
        session = SuggestionSession(
            client,
            config,
            on_terminal_failure=lambda action: terminal.append(action.suggestion_id),
        )
        async with session:
            session.load_store(store)
            for suggestion_id in accept_ids:
                session.accept(suggestion_id)
            for suggestion_id in reject_ids:
                session.reject(suggestion_id)
            await session.flush()
            await session.wait_idle()
            stats = session.stats
    stats["terminal_failures"] = terminal
    return stats


@app.command()
def review(
    doc: Path = typer.Argument(help="JSON document with content and suggestions"),
    post_id: str = typer.Option(..., "--post-id", help="Backend post id"),
    accept: list[str] = typer.Option([], "--accept", help="Suggestion id to accept (repeatable)"),
    reject: list[str] = typer.Option([], "--reject", help="Suggestion id to reject (repeatable)"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
) -> None:
    """Accept or reject suggestions through the backend API."""
    _setup_logging(verbose)
    if not accept and not reject:
        console.print("[yellow]Nothing to do: pass --accept or --reject.[/yellow]")
        raise typer.Exit(1)
    store = _load(doc)

    try:
        with console.status("Resolving suggestions..."):
            stats = asyncio.run(_review(store, post_id, accept, reject))
    except (ValueError, SuggestionEngineError) as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(1)

    res = stats["resolution"]
    console.print(Panel(
        f"Resolved: {res['successful_resolutions']} | Failed attempts: {res['failed_resolutions']} | "
        f"Retries: {res['retry_count']} | Batches: {res['batches_processed']}\n"
        f"Remaining suggestions: {stats['available']} | "
        f"Average call time: {res['average_resolution_time']:.2f}s",
        title="Review",
    ))
    if stats["terminal_failures"]:
        console.print(f"[red]Gave up on: {', '.join(stats['terminal_failures'])}[/red]")
        raise typer.Exit(1)


if __name__ == "__main__":
    app()
