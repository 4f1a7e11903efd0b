"""Crawl command implementation."""

import asyncio
from typing import List, Optional

import typer
from rich.console import Console

from ..models import CrawlResult
from ..pipeline.orchestrator import print_crawl_summary
from .runtime import load_app_config, pipeline_context

console = Console()


async def _crawl(parallel: Optional[bool], concurrency: Optional[int]) -> List[CrawlResult]:
    config = load_app_config()
    async with pipeline_context(config) as ctx:
        return await ctx.orchestrator.perform_crawl(
            parallel=parallel,
            concurrency_limit=concurrency,
            force=True,
        )


def crawl_command(
    parallel: Optional[bool] = typer.Option(
        None,
        "--parallel/--sequential",
        help="Crawl sources in concurrent batches. Default: the parallel_crawling setting",
    ),
    concurrency: Optional[int] = typer.Option(
        None,
        "--concurrency",
        "-n",
        help="Sources per batch",
        min=1,
        max=10,
    ),
) -> None:
    """Run one crawl pass over every enabled source."""
    try:
        results = asyncio.run(_crawl(parallel, concurrency))
    except typer.Exit:
        raise
    except KeyboardInterrupt:
        console.print("\n[yellow]Crawl interrupted by user[/yellow]")
        raise typer.Exit(1)
    except Exception as e:
        console.print(f"[red]Crawl failed: {e}[/red]")
        raise typer.Exit(1)

    if not results:
        console.print("[yellow]No sources crawled.[/yellow]")
        return
    print_crawl_summary(results, console)
    if not any(r.success for r in results):
        raise typer.Exit(1)
