"""Manual publish, eviction and SEO commands."""

import asyncio
from typing import Optional

import typer
from rich.console import Console

from ..publishing import EvictionOutcome, PublishOutcome
from ..publishing.publisher import MANUAL_BATCH
from ..resilience import PipelineError
from .runtime import load_app_config, pipeline_context

console = Console()


async def _publish(limit: int) -> PublishOutcome:
    async with pipeline_context(load_app_config()) as ctx:
        return await ctx.publisher.publish_manual(limit)


async def _evict(max_count: Optional[int]) -> EvictionOutcome:
    async with pipeline_context(load_app_config()) as ctx:
        return await ctx.publisher.evict(max_count)


async def _seo(count: Optional[int]):
    async with pipeline_context(load_app_config()) as ctx:
        return await ctx.seo.generate_batch(count)


def publish_command(
    limit: int = typer.Option(MANUAL_BATCH, "--limit", "-l", help="Drafts to publish", min=1, max=50),
) -> None:
    """Publish the oldest unflagged drafts now."""
    try:
        outcome = asyncio.run(_publish(limit))
    except typer.Exit:
        raise
    except Exception as e:
        console.print(f"[red]Publish failed: {e}[/red]")
        raise typer.Exit(1)

    if outcome.published:
        console.print(f"[green]✅ Published {outcome.published} articles[/green]")
    else:
        console.print("[yellow]No drafts waiting to be published.[/yellow]")


def evict_command(
    max_count: Optional[int] = typer.Option(
        None,
        "--max",
        "-m",
        help="Published articles to keep. Default: the max_article_count setting",
    ),
) -> None:
    """Run one eviction pass over the published articles."""
    try:
        outcome = asyncio.run(_evict(max_count))
    except typer.Exit:
        raise
    except PipelineError as e:
        console.print(f"[red]{e.message}[/red]")
        raise typer.Exit(1)
    except Exception as e:
        console.print(f"[red]Eviction failed: {e}[/red]")
        raise typer.Exit(1)

    console.print(
        f"Published before: {outcome.before}  "
        f"[red]deleted: {outcome.deleted}[/red]  "
        f"[green]kept: {outcome.kept}[/green]"
    )


def seo_command(
    count: Optional[int] = typer.Option(
        None,
        "--count",
        "-n",
        help="Articles to generate. Default: the seo_daily_count setting",
        min=1,
        max=10,
    ),
) -> None:
    """Generate one batch of SEO articles."""
    try:
        articles = asyncio.run(_seo(count))
    except typer.Exit:
        raise
    except Exception as e:
        console.print(f"[red]SEO generation failed: {e}[/red]")
        raise typer.Exit(1)

    if not articles:
        console.print("[yellow]No SEO articles generated (disabled, no provider, or every topic used).[/yellow]")
        return
    for article in articles:
        console.print(f"[green]✅ {article.title}[/green] [dim]/{article.slug}[/dim]")
