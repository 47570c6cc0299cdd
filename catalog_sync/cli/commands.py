"""
CLI commands for running and inspecting the catalog pipeline
"""

import asyncio
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, Optional, TypeVar

import typer
from alembic import command
from alembic.config import Config
from rich.console import Console
from rich.table import Table

from catalog_sync.core.clock import utcnow
from catalog_sync.core.config import Settings, get_settings
from catalog_sync.core.database import create_engine_for, create_session_factory, init_db
from catalog_sync.core.exceptions import CatalogSyncError
from catalog_sync.core.logging import log, setup_logging
from catalog_sync.repositories import CatalogItemRepository, DiscoveryRepository, ItemImageRepository, RefreshQueueRepository
from catalog_sync.services import CatalogPipeline

app = typer.Typer(help="Marketplace catalog discovery and enrichment")
console = Console()

T = TypeVar("T")

ALEMBIC_INI = Path(__file__).resolve().parents[2] / "alembic.ini"


def _settings(**overrides: Any) -> Settings:
    """Environment settings with CLI overrides applied"""
    settings = get_settings()
    update = {key: value for key, value in overrides.items() if value is not None}
    if update:
        settings = Settings(**{**settings.model_dump(), **update})
    setup_logging(settings.log_level)
    return settings


def _run(settings: Settings, job: Callable[[CatalogPipeline], Awaitable[T]]) -> T:
    """Run a pipeline job with its own engine; pipeline errors exit with code 1"""

    async def runner() -> T:
        engine = create_engine_for(settings)
        try:
            async with CatalogPipeline(settings, create_session_factory(engine)) as pipeline:
                return await job(pipeline)
        finally:
            await engine.dispose()

    try:
        return asyncio.run(runner())
    except CatalogSyncError as e:
        log.error("Command failed", error=e.detail)
        console.print(f"❌ {e.detail}", style="red")
        raise typer.Exit(code=1)


def _summary_table(title: str, values: Dict[str, Any]) -> Table:
    table = Table(title=title)
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green")
    for key, value in values.items():
        table.add_row(key, str(value))
    return table


@app.command()
def discover(
    category: Optional[str] = typer.Option(None, help="Comma separated categories to crawl"),
    subcategory: Optional[str] = typer.Option(None, help="Comma separated subcategories (skips taxonomy lookup)"),
    max_items: Optional[int] = typer.Option(None, help="Stop after this many items (0 = unlimited)"),
    max_pages: Optional[int] = typer.Option(None, help="Pages per query (0 = unlimited)"),
    dry_run: Optional[bool] = typer.Option(None, "--dry-run/--no-dry-run", help="Fetch without writing"),
):
    """Crawl the search endpoint and queue every item found"""
    settings = _settings(
        categories=category,
        subcategories=subcategory,
        max_items=max_items,
        max_pages=max_pages,
        dry_run=dry_run,
    )
    summary = _run(settings, lambda pipeline: pipeline.discover())
    console.print(_summary_table("Discovery run", summary.model_dump(mode="json")))


@app.command()
def enrich(
    limit: Optional[int] = typer.Option(None, help="Maximum queue entries to process"),
    concurrency: Optional[int] = typer.Option(None, help="Items in flight per batch"),
    dry_run: Optional[bool] = typer.Option(None, "--dry-run/--no-dry-run", help="Process one batch without writing"),
):
    """Resolve due queue entries against the detail endpoint"""
    settings = _settings(enrich_limit=limit, concurrency=concurrency, dry_run=dry_run)
    summary = _run(settings, lambda pipeline: pipeline.enrich())
    console.print(_summary_table("Enrichment", summary.model_dump(mode="json")))


@app.command("sync-taxonomy")
def sync_taxonomy(
    dry_run: Optional[bool] = typer.Option(None, "--dry-run/--no-dry-run", help="Fetch without writing"),
):
    """Refresh the category and subcategory tables"""
    settings = _settings(dry_run=dry_run)
    categories, subcategories = _run(settings, lambda pipeline: pipeline.taxonomy.refresh())
    console.print(f"✅ Synced {categories} categories and {subcategories} subcategories", style="green")


@app.command()
def status(runs: int = typer.Option(5, help="Number of recent discovery runs to show")):
    """Show table counters and recent discovery runs"""
    settings = _settings()

    async def collect(pipeline: CatalogPipeline):
        items: CatalogItemRepository = pipeline.items
        images: ItemImageRepository = pipeline.images
        queue: RefreshQueueRepository = pipeline.queue
        discovery: DiscoveryRepository = pipeline.runs
        total, enriched, deleted = await items.stats()
        queue_stats = await queue.stats(utcnow())
        return {
            "items": total,
            "enriched": enriched,
            "deleted": deleted,
            "images": await images.count(),
            "queue total": queue_stats.total,
            "queue due": queue_stats.due,
            "queue failing": queue_stats.failing,
        }, await discovery.recent_runs(runs)

    counters, recent = _run(settings, collect)
    console.print(_summary_table("Catalog", counters))

    table = Table(title="Recent discovery runs")
    table.add_column("Run", style="cyan")
    table.add_column("Status")
    table.add_column("Started")
    table.add_column("Queries", justify="right")
    table.add_column("Items", justify="right")
    table.add_column("Notes", style="red")
    for run in recent:
        table.add_row(
            str(run.run_id),
            run.status,
            run.started_at.isoformat(timespec="seconds"),
            str(run.queries_issued),
            str(run.items_seen),
            run.notes or "",
        )
    console.print(table)


@app.command("init-db")
def init_database():
    """Create all tables"""
    settings = _settings()

    async def create():
        engine = create_engine_for(settings)
        try:
            await init_db(engine)
        finally:
            await engine.dispose()

    asyncio.run(create())
    console.print("✅ Database tables created", style="green")


@app.command()
def migrate(
    revision: str = typer.Argument("head", help="Target revision"),
    downgrade: bool = typer.Option(False, "--downgrade", help="Downgrade to the revision instead"),
):
    """Apply Alembic migrations"""
    settings = _settings()
    config = Config(str(ALEMBIC_INI))
    config.attributes["database_url"] = settings.database_url

    if downgrade:
        command.downgrade(config, revision)
    else:
        command.upgrade(config, revision)
    console.print(f"✅ Database at revision {revision}", style="green")


if __name__ == "__main__":
    app()
