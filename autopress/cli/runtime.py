"""Shared plumbing for commands that talk to the database."""

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import typer
from rich.console import Console

from ..config import Config
from ..context import SchedulerContext
from ..db import open_pool, validate_connection
from ..logging_utils import configure_logging

console = Console()


def load_app_config(config: Optional[Config] = None) -> Config:
    """Load the config file and install logging, or exit with a hint."""
    config = config or Config()
    try:
        model = config.config
    except FileNotFoundError:
        console.print("[red]Config file not found. Run 'autopress init' first.[/red]")
        raise typer.Exit(1)
    except ValueError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)
    configure_logging(model.logging.level, model.logging.json_output, console=console)
    return config


@asynccontextmanager
async def pipeline_context(config: Config) -> AsyncIterator[SchedulerContext]:
    """Open a pool, build the scheduler context and close the pool on exit."""
    pool = await open_pool(config.get_db_config())
    try:
        if not await validate_connection(pool):
            console.print("[red]❌ Database connection failed![/red]")
            console.print("Please check your database configuration and ensure Postgres is running.")
            raise typer.Exit(1)
        yield SchedulerContext.from_pool(config.config, pool)
    finally:
        await pool.close()
