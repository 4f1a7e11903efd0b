"""Main CLI application."""

import typer
from dotenv import load_dotenv

# Load .env file if it exists
load_dotenv()

from .crawl import crawl_command
from .init import init_command
from .publish import evict_command, publish_command, seo_command
from .schedule import schedule_command
from .sources import sources_app
from .stats import health_command, schedule_plan_command, stats_command

app = typer.Typer(
    name="autopress",
    help="autopress - automated news crawling, rewriting and publishing",
    no_args_is_help=True,
)

# Register commands
app.command("init")(init_command)
app.command("crawl")(crawl_command)
app.command("schedule")(schedule_command)
app.command("publish")(publish_command)
app.command("evict")(evict_command)
app.command("seo")(seo_command)
app.command("stats")(stats_command)
app.command("health")(health_command)
app.command("schedule-plan")(schedule_plan_command)
app.add_typer(sources_app, name="sources", help="Manage news sources")


if __name__ == "__main__":
    app()
