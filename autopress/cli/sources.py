"""Sources management commands."""

import asyncio
from typing import Dict, List, Optional

import typer
from rich.console import Console
from rich.table import Table

from ..config import SourceConfig, load_sources, save_sources
from ..models import Source
from .runtime import load_app_config, pipeline_context

console = Console()
sources_app = typer.Typer(help="Manage news sources")


async def _list_sources() -> List[Source]:
    async with pipeline_context(load_app_config()) as ctx:
        return await ctx.sources.list_sources()


async def _set_enabled(name: str, enabled: bool) -> bool:
    async with pipeline_context(load_app_config()) as ctx:
        return await ctx.sources.set_enabled(name, enabled)


async def _sync(sources: List[SourceConfig]) -> Dict[str, int]:
    async with pipeline_context(load_app_config()) as ctx:
        return await ctx.sources.sync_sources(sources)


@sources_app.command("list")
def sources_list() -> None:
    """List the sources stored in the database."""
    try:
        sources = asyncio.run(_list_sources())
    except typer.Exit:
        raise
    except Exception as e:
        console.print(f"[red]Failed to list sources: {e}[/red]")
        raise typer.Exit(1)

    if not sources:
        console.print("[yellow]No sources configured.[/yellow]")
        return

    table = Table(title="Configured Sources")
    table.add_column("Name", style="cyan")
    table.add_column("Enabled", style="yellow")
    table.add_column("Max", justify="right")
    table.add_column("Interval", justify="right")
    table.add_column("Last crawl", style="dim")
    table.add_column("URL", style="blue")

    for source in sources:
        table.add_row(
            source.name,
            "✓" if source.enabled else "✗",
            str(source.max_articles_per_crawl),
            f"{source.crawl_interval} min",
            source.last_crawl.strftime("%Y-%m-%d %H:%M") if source.last_crawl else "never",
            source.feed_url or source.url,
        )

    console.print(table)


@sources_app.command("add")
def sources_add(
    name: str = typer.Option(..., "--name", "-n", help="Source name"),
    url: str = typer.Option(..., "--url", "-u", help="Index page URL"),
    feed_url: Optional[str] = typer.Option(None, "--feed", help="RSS feed URL"),
    max_articles: int = typer.Option(5, "--max-articles", help="Articles per crawl", min=1, max=50),
    interval: int = typer.Option(60, "--interval", help="Minutes between crawls", min=5, max=1440),
    link_selector: Optional[str] = typer.Option(None, "--link-selector", help="CSS selector for article links"),
    content_selector: Optional[str] = typer.Option(None, "--content-selector", help="CSS selector for the body"),
) -> None:
    """Add a source to the seed file and sync it."""
    config = load_app_config()
    sources_path = config.sources_path

    try:
        sources = load_sources(sources_path)
    except FileNotFoundError:
        sources = []

    if any(s.name == name or s.url == url for s in sources):
        console.print(f"[red]Source '{name}' or URL already exists.[/red]")
        raise typer.Exit(1)

    selectors = {}
    if link_selector:
        selectors["link"] = link_selector
    if content_selector:
        selectors["content"] = content_selector

    new_source = SourceConfig(
        name=name,
        url=url,
        feed_url=feed_url,
        max_articles_per_crawl=max_articles,
        crawl_interval=interval,
        selectors=selectors,
    )
    sources.append(new_source)
    save_sources(sources, sources_path)

    try:
        asyncio.run(_sync([new_source]))
    except typer.Exit:
        raise
    except Exception as e:
        console.print(f"[yellow]Saved to {sources_path} but database sync failed: {e}[/yellow]")
        raise typer.Exit(1)
    console.print(f"[green]✅ Added source: {name}[/green]")


def _toggle(name: str, enabled: bool) -> None:
    try:
        found = asyncio.run(_set_enabled(name, enabled))
    except typer.Exit:
        raise
    except Exception as e:
        console.print(f"[red]Failed to update source: {e}[/red]")
        raise typer.Exit(1)
    if not found:
        console.print(f"[red]Source '{name}' not found.[/red]")
        raise typer.Exit(1)
    console.print(f"[green]✅ {'Enabled' if enabled else 'Disabled'} source: {name}[/green]")


@sources_app.command("enable")
def sources_enable(name: str = typer.Argument(..., help="Source name")) -> None:
    """Enable a source."""
    _toggle(name, True)


@sources_app.command("disable")
def sources_disable(name: str = typer.Argument(..., help="Source name")) -> None:
    """Disable a source."""
    _toggle(name, False)


@sources_app.command("sync")
def sources_sync() -> None:
    """Sync the seed file into the database."""
    config = load_app_config()
    try:
        sources = load_sources(config.sources_path)
    except FileNotFoundError:
        console.print("[red]Sources file not found. Run 'autopress init' first.[/red]")
        raise typer.Exit(1)

    try:
        synced = asyncio.run(_sync(sources))
    except typer.Exit:
        raise
    except Exception as e:
        console.print(f"[red]Sync failed: {e}[/red]")
        raise typer.Exit(1)
    console.print(f"[green]✅ Synced {len(synced)} sources[/green]")
