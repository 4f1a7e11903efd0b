"""Schedule command: run every timer until interrupted."""

import asyncio
import logging

import typer
from rich.console import Console
from rich.panel import Panel

from .runtime import load_app_config, pipeline_context

logger = logging.getLogger(__name__)
console = Console()


async def _serve() -> None:
    config = load_app_config()
    async with pipeline_context(config) as ctx:
        await ctx.start()
        status = ctx.status()
        console.print(
            Panel(
                f"Scheduler running with {status.trigger_count} jobs\n"
                + "\n".join(f"• {job}" for job in status.jobs)
                + "\n\nPress Ctrl-C to stop",
                title="autopress",
                style="green",
            )
        )
        try:
            await asyncio.Event().wait()
        finally:
            await ctx.stop()


def schedule_command() -> None:
    """Start the crawl, publish, SEO, cleanup and health timers."""
    try:
        asyncio.run(_serve())
    except typer.Exit:
        raise
    except KeyboardInterrupt:
        console.print("\n[yellow]Scheduler stopped[/yellow]")
    except Exception as e:
        logger.exception("Scheduler crashed")
        console.print(f"[red]Scheduler failed: {e}[/red]")
        raise typer.Exit(1)
