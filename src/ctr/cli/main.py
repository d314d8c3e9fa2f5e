"""CLI application using Typer for the clinical-trials report pipeline."""

from pathlib import Path
from typing import List, Optional
import typer
from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn, BarColumn
from rich.table import Table

from ..config.settings import settings
from ..core.errors import RemoteServiceError
from ..core.models import CleanedDataset, TopicQuery
from ..io.cache import DatasetCache
from ..io.export import SUPPORTED_FORMATS, export_dataset
from ..io.validation import validate_dataset
from ..pipeline import clean_records, resolve_topics, run_pipeline
from ..search.client import ClinicalTrialsClient
from ..search.orchestrator import AcquisitionOrchestrator
from ..search.query_builder import build_search_expression
from ..utils.logging import get_logger

app = typer.Typer(
    name="ctr",
    help="Clinical Trials Report - registry acquisition and cleaning",
    add_completion=False,
)

console = Console()
logger = get_logger(__name__)


def _cache(cache_dir: Optional[Path]) -> DatasetCache:
    return DatasetCache(cache_dir or settings.cache_dir)


def _print_topic_counts(dataset: CleanedDataset) -> None:
    table = Table(title="Studies per Topic")
    table.add_column("Topic", style="cyan")
    table.add_column("Studies", style="green", justify="right")
    for topic, count in dataset.topic_counts().items():
        table.add_row(topic, str(count))
    table.add_row("[bold]Unique studies[/bold]", f"[bold]{len(dataset)}[/bold]")
    console.print(table)


@app.command()
def version() -> None:
    """Show version information."""
    from .. import __version__
    console.print(f"Clinical Trials Report v{__version__}")


@app.command()
def topics() -> None:
    """List the configured topics and their search expressions."""
    table = Table(title="Topics")
    table.add_column("Topic", style="cyan")
    table.add_column("Search expression")
    for topic in resolve_topics(settings):
        table.add_row(topic.name, build_search_expression(topic))
    console.print(table)


@app.command()
def fetch(
    cache_dir: Optional[Path] = typer.Option(None, "--cache-dir", help="Cache directory"),
    delay: float = typer.Option(settings.request_delay, "--delay", help="Seconds between requests"),
    refresh: bool = typer.Option(False, "--refresh", help="Ignore an existing raw cache"),
):
    """Query the registry for every topic and cache the raw matches."""
    cache = _cache(cache_dir)
    if not refresh and cache.load_raw(settings.window_start, settings.window_end) is not None:
        console.print(f"[yellow]Raw cache already present at {cache.raw_path}; use --refresh to refetch[/yellow]")
        raise typer.Exit(0)
    topic_list: List[TopicQuery] = resolve_topics(settings)
    console.print(f"[bold blue]Fetching {len(topic_list)} topics[/bold blue]")
    console.print(f"Window: {settings.window_start} to {settings.window_end}")
    try:
        with ClinicalTrialsClient(
            base_url=settings.api_base_url, timeout=settings.request_timeout, delay=delay
        ) as client, Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            TextColumn("[progress.percentage]{task.completed}/{task.total}"),
            console=console,
        ) as progress:
            task = progress.add_task("Searching topics...", total=len(topic_list))
            orchestrator = AcquisitionOrchestrator(client, page_size=settings.page_size)

            def _done(topic: TopicQuery, n: int) -> None:
                progress.console.print(f"  [{topic.name}] {n} studies")
                progress.advance(task)

            raw = orchestrator.acquire(topic_list, on_topic_done=_done)
    except RemoteServiceError as e:
        console.print(f"[red]Registry error: {e}[/red]")
        raise typer.Exit(1)
    cache.save_raw(raw, settings.window_start, settings.window_end)
    console.print(f"\n[bold green]✓ Cached {len(raw)} raw rows[/bold green] to {cache.raw_path}")


@app.command()
def clean(
    cache_dir: Optional[Path] = typer.Option(None, "--cache-dir", help="Cache directory"),
):
    """Normalize and deduplicate the cached raw matches."""
    cache = _cache(cache_dir)
    raw = cache.load_raw(settings.window_start, settings.window_end)
    if raw is None:
        console.print("[red]Error: no usable raw cache; run `ctr fetch` first[/red]")
        raise typer.Exit(1)
    dataset, duplicates = clean_records(raw, settings)
    cache.save_clean(dataset)
    conflicting = sum(1 for d in duplicates if d.conflicting_fields)
    console.print(f"[green]✓ Cleaned: {len(raw)} -> {len(dataset)} studies[/green]")
    console.print(f"  {len(duplicates)} studies matched several topics, {conflicting} with conflicting rows")
    _print_topic_counts(dataset)


@app.command()
def run(
    cache_dir: Optional[Path] = typer.Option(None, "--cache-dir", help="Cache directory"),
    output_dir: Optional[Path] = typer.Option(None, "--output", "-o", help="Export directory"),
    formats: str = typer.Option(",".join(SUPPORTED_FORMATS), "--formats", help="Comma-separated export formats"),
    refresh: bool = typer.Option(False, "--refresh", help="Discard both caches first"),
):
    """Run the whole pipeline and export the cleaned dataset."""
    console.print("[bold blue]Running clinical-trials pipeline[/bold blue]")
    try:
        dataset = run_pipeline(settings, cache=_cache(cache_dir), refresh=refresh)
    except RemoteServiceError as e:
        console.print(f"[red]Registry error: {e}[/red]")
        raise typer.Exit(1)
    _print_topic_counts(dataset)
    paths = export_dataset(
        dataset,
        output_dir or settings.output_dir,
        formats=[f.strip() for f in formats.split(",") if f.strip()],
    )
    for path in paths:
        console.print(f"Saved: {path}")
    console.print("\n[bold green]✓ Pipeline complete![/bold green]")


@app.command()
def validate(
    cache_dir: Optional[Path] = typer.Option(None, "--cache-dir", help="Cache directory"),
    strict: bool = typer.Option(False, "--strict", help="Treat warnings as errors"),
) -> None:
    """Validate the cached clean dataset."""
    dataset = _cache(cache_dir).load_clean()
    if dataset is None:
        console.print("[red]Error: no usable clean cache; run `ctr clean` first[/red]")
        raise typer.Exit(1)
    if validate_dataset(dataset, strict=strict, output=console):
        console.print("\n[bold green]✓ Validation passed![/bold green]")
        raise typer.Exit(0)
    console.print("\n[bold red]✗ Validation failed![/bold red]")
    raise typer.Exit(1)


if __name__ == "__main__":
    app()
