"""Stats, health and schedule-plan commands."""

import asyncio
from typing import List, Tuple

import typer
from rich.console import Console
from rich.table import Table

from ..dispatch import ProviderUsageReport
from ..models import ScheduleConfig
from ..publishing import PublishStats, print_stats
from ..resilience import HealthReport, print_health_report
from .runtime import load_app_config, pipeline_context

console = Console()


def print_usage_report(reports: List[ProviderUsageReport], console: Console = console) -> None:
    table = Table(title="Provider Usage (today)")
    table.add_column("Provider", style="cyan")
    table.add_column("Priority", justify="right")
    table.add_column("Key", justify="center")
    table.add_column("Requests", justify="right")
    table.add_column("Success", justify="right", style="green")
    table.add_column("Left d/h/m", justify="right")
    table.add_column("Status")

    for report in reports:
        if not report.has_key:
            status = "[dim]no key[/dim]"
        elif report.exhausted:
            status = "[red]exhausted[/red]"
        else:
            status = "[green]available[/green]"
        remaining = report.remaining
        table.add_row(
            report.provider,
            str(report.priority),
            "✓" if report.has_key else "✗",
            str(report.requests),
            f"{report.success_rate:.0%}",
            f"{remaining.day}/{remaining.hour}/{remaining.minute}",
            status,
        )
    console.print(table)


def print_schedule(schedule: ScheduleConfig, console: Console = console) -> None:
    table = Table(title="Computed Schedule")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="bold")
    table.add_row("Crawl interval", f"{schedule.crawl_interval} min")
    table.add_row("SEO interval", f"{schedule.seo_interval} min")
    table.add_row("SEO articles per run", str(schedule.seo_count))
    table.add_row("Articles retained", str(schedule.max_article_count))
    table.add_row("Cleanup interval", f"{schedule.cleanup_interval} min")
    table.add_row("Best provider", schedule.best_provider or "[red]none[/red]")
    table.add_row("Backups", ", ".join(schedule.backup_providers) or "-")
    console.print(table)


async def _stats() -> Tuple[PublishStats, List[ProviderUsageReport]]:
    async with pipeline_context(load_app_config()) as ctx:
        return await ctx.stats(), await ctx.dispatch.usage_report()


async def _health() -> HealthReport:
    async with pipeline_context(load_app_config()) as ctx:
        return await ctx.health.perform_health_check()


async def _plan() -> ScheduleConfig:
    async with pipeline_context(load_app_config()) as ctx:
        return await ctx.dispatch.compute_schedule()


def stats_command() -> None:
    """Show publishing counters and provider usage."""
    try:
        stats, usage = asyncio.run(_stats())
    except typer.Exit:
        raise
    except Exception as e:
        console.print(f"[red]Failed to load stats: {e}[/red]")
        raise typer.Exit(1)
    print_stats(stats, console)
    print_usage_report(usage, console)


def health_command() -> None:
    """Run a full health check."""
    try:
        report = asyncio.run(_health())
    except typer.Exit:
        raise
    except Exception as e:
        console.print(f"[red]Health check failed to run: {e}[/red]")
        raise typer.Exit(1)
    print_health_report(report, console)
    if not report.healthy:
        raise typer.Exit(1)


def schedule_plan_command() -> None:
    """Compute and store the dispatch schedule from the remaining quota."""
    try:
        schedule = asyncio.run(_plan())
    except typer.Exit:
        raise
    except Exception as e:
        console.print(f"[red]Failed to compute schedule: {e}[/red]")
        raise typer.Exit(1)
    print_schedule(schedule, console)
