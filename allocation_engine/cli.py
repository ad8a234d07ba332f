"""CLI entry point for the expense allocation engine.

Usage:
    expense-allocation suggest PROJECT_ID
    expense-allocation auto PROJECT_ID --threshold 80
    expense-allocation assign PROJECT_ID LINE_ITEM_ID EXP-1 EXP-2 EXP-3
"""

import asyncio
import logging
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape

from .core.config import EngineConfig, get_config
from .core.exceptions import AllocationEngineError, ConfigurationError
from .core.models import CommitResult
from .core.types import WorkflowState
from .matching import CandidateGenerator, CategoryCompatibilityMap, ScoringEngine
from .output.formatters import JSONFormatter, TableFormatter
from .storage import AllocationStore, JsonFileRepository, SupabaseRepository
from .storage.memory import InMemoryRepository
from .workflows import AutoAllocationWorkflow, ManualAllocationWorkflow

# Initialize app
app = typer.Typer(
    name="expense-allocation",
    help="Match project expenses to estimate line items",
    add_completion=False,
)

console = Console()
err_console = Console(stderr=True)


def setup_logging(verbose: bool = False) -> None:
    """Configure logging."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(console=err_console, show_time=False, show_path=False)],
    )


def _load_config() -> EngineConfig:
    try:
        return get_config()
    except ConfigurationError as e:
        console.print(f"[red]{escape(str(e))}[/]")
        raise typer.Exit(1)


def _build_repository(
    config: EngineConfig,
    data_dir: Optional[Path],
    use_supabase: bool,
) -> InMemoryRepository | SupabaseRepository:
    if use_supabase:
        if not config.has_supabase():
            console.print("[red]SUPABASE_URL and SUPABASE_KEY must be set for --supabase[/]")
            raise typer.Exit(1)
        return SupabaseRepository(config.supabase_url, config.supabase_key)
    return JsonFileRepository(data_dir or config.data_dir)


def _build_generator(config: EngineConfig) -> CandidateGenerator:
    if config.category_config:
        compatibility = CategoryCompatibilityMap.from_yaml(config.category_config)
    else:
        compatibility = CategoryCompatibilityMap.default()
    return CandidateGenerator(ScoringEngine(compatibility))


async def _close(repo: InMemoryRepository | SupabaseRepository) -> None:
    if isinstance(repo, SupabaseRepository):
        await repo.aclose()


def _print_results(results: list[CommitResult], output: str) -> None:
    if output.lower() == "json":
        print(JSONFormatter().format_results(results))
    else:
        console.print(TableFormatter().results_table(results))


def _resolve_threshold(threshold: Optional[int], config: EngineConfig) -> int:
    value = config.confidence_threshold if threshold is None else threshold
    if value < 0 or value > 100:
        console.print(f"[red]Threshold must be between 0 and 100, got {value}[/]")
        raise typer.Exit(1)
    return value


@app.command()
def suggest(
    project_id: str = typer.Argument(..., help="Project to compute candidates for"),
    data_dir: Optional[Path] = typer.Option(
        None, "--data-dir", "-d", help="JSON data directory"
    ),
    supabase: bool = typer.Option(False, "--supabase", help="Read from Supabase"),
    output: str = typer.Option("table", "--output", "-o", help="Output format: table, json"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
) -> None:
    """
    Show the best line item for every unallocated expense.

    Nothing is written.
    """
    setup_logging(verbose)
    config = _load_config()

    async def run() -> None:
        repo = _build_repository(config, data_dir, supabase)
        try:
            store = AllocationStore(repo, repo)
            workflow = AutoAllocationWorkflow(
                store, repo, generator=_build_generator(config), threshold=0
            )
            await workflow.compute(project_id)
            candidates = list(workflow.candidates)
        finally:
            await _close(repo)

        if output.lower() == "json":
            print(JSONFormatter().format_candidates(candidates))
        elif candidates:
            console.print(TableFormatter().candidates_table(candidates))
        else:
            console.print("[yellow]No unallocated expenses[/]")

    try:
        asyncio.run(run())
    except AllocationEngineError as e:
        console.print(f"[red]Error: {escape(str(e))}[/]")
        raise typer.Exit(1)


@app.command()
def auto(
    project_id: str = typer.Argument(..., help="Project to auto-allocate"),
    threshold: Optional[int] = typer.Option(
        None, "--threshold", "-t", help="Minimum confidence (default from config, 75)"
    ),
    yes: bool = typer.Option(False, "--yes", "-y", help="Commit without asking"),
    data_dir: Optional[Path] = typer.Option(
        None, "--data-dir", "-d", help="JSON data directory"
    ),
    supabase: bool = typer.Option(False, "--supabase", help="Use Supabase"),
    output: str = typer.Option("table", "--output", "-o", help="Output format: table, json"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
) -> None:
    """
    Allocate high-confidence candidates after review.

    Examples:
        expense-allocation auto proj-1
        expense-allocation auto proj-1 --threshold 60 --yes
    """
    setup_logging(verbose)
    config = _load_config()
    min_confidence = _resolve_threshold(threshold, config)

    async def run() -> None:
        repo = _build_repository(config, data_dir, supabase)
        try:
            workflow = AutoAllocationWorkflow(
                AllocationStore(repo, repo),
                repo,
                generator=_build_generator(config),
                threshold=min_confidence,
            )
            state = await workflow.compute(project_id)
            if state == WorkflowState.NO_HIGH_CONFIDENCE_MATCHES:
                console.print(
                    f"[yellow]No candidates at or above {min_confidence}% confidence[/]"
                )
                return

            console.print(
                TableFormatter().candidates_table(workflow.preview, title="Ready to Allocate")
            )
            if not yes and not typer.confirm(
                f"Allocate {len(workflow.preview)} expense(s)?", default=False
            ):
                workflow.cancel()
                console.print("Cancelled, nothing allocated")
                return

            results = await workflow.confirm()
        finally:
            await _close(repo)

        _print_results(results, output)

    try:
        asyncio.run(run())
    except AllocationEngineError as e:
        console.print(f"[red]Error: {escape(str(e))}[/]")
        raise typer.Exit(1)


@app.command()
def assign(
    project_id: str = typer.Argument(..., help="Project the expenses belong to"),
    line_item_id: str = typer.Argument(..., help="Target line item"),
    expense_ids: List[str] = typer.Argument(..., help="Expenses to assign"),
    data_dir: Optional[Path] = typer.Option(
        None, "--data-dir", "-d", help="JSON data directory"
    ),
    supabase: bool = typer.Option(False, "--supabase", help="Use Supabase"),
    output: str = typer.Option("table", "--output", "-o", help="Output format: table, json"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
) -> None:
    """Assign selected expenses to one line item of the current estimate."""
    setup_logging(verbose)
    config = _load_config()

    async def run() -> None:
        repo = _build_repository(config, data_dir, supabase)
        try:
            estimate_id = await repo.current_estimate_id(project_id)
            line_items = await repo.list_line_items(estimate_id) if estimate_id else []
            workflow = ManualAllocationWorkflow(AllocationStore(repo, repo))
            results = await workflow.assign(expense_ids, line_item_id, line_items)
        finally:
            await _close(repo)

        _print_results(results, output)

    try:
        asyncio.run(run())
    except AllocationEngineError as e:
        console.print(f"[red]Error: {escape(str(e))}[/]")
        raise typer.Exit(1)


@app.command()
def version() -> None:
    """Show version information."""
    from . import __version__
    console.print(f"Expense Allocation Engine v{__version__}")


def main() -> None:
    """Main entry point."""
    app()


if __name__ == "__main__":
    main()
