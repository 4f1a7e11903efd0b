"""Init command implementation."""

import asyncio
from pathlib import Path
from typing import List

import typer
from rich.console import Console
from rich.panel import Panel

from ..config import Config, ConfigModel, SourceConfig, auto_repair_settings, save_config, save_sources
from ..config.loader import DEFAULT_CONFIG_DIR
from ..db import SettingsManager, SourceManager, init_database, open_pool, validate_connection

console = Console()


def create_default_sources() -> List[SourceConfig]:
    """Create default Taiwanese automotive news sources."""
    return [
        SourceConfig(
            name="聯合新聞網 - 汽車",
            url="https://autos.udn.com/autos/index",
            feed_url="https://udn.com/rssfeed/news/2/7/1010",
            max_articles_per_crawl=5,
            crawl_interval=120,
            selectors={
                "link": ".story-list__item a",
                "title": "h1",
                "content": ".article-content__paragraph",
            },
        ),
        SourceConfig(
            name="中時新聞網 - 汽車",
            url="https://www.chinatimes.com/auto",
            max_articles_per_crawl=5,
            crawl_interval=120,
            selectors={"link": ".col a", "title": "h1", "content": ".article-body"},
        ),
        SourceConfig(
            name="自由時報 - 汽車",
            url="https://auto.ltn.com.tw/",
            max_articles_per_crawl=5,
            crawl_interval=120,
            selectors={"link": ".whitecon a", "title": "h1", "content": ".text"},
        ),
        SourceConfig(
            name="CarStuff 人車事",
            url="https://www.carstuff.com.tw/",
            max_articles_per_crawl=8,
            crawl_interval=90,
            selectors={"link": ".post-title a", "title": "h1, .post-title", "content": ".post-content"},
        ),
        SourceConfig(
            name="AutoNet 汽車日報",
            url="https://www.autonet.com.tw/",
            max_articles_per_crawl=6,
            crawl_interval=100,
            selectors={"link": ".news-item a", "title": ".news-title", "content": ".news-content"},
        ),
    ]


async def _prepare_database(config: Config, sources: List[SourceConfig]) -> List[str]:
    pool = await open_pool(config.get_db_config())
    try:
        if not await validate_connection(pool):
            console.print(
                "[red]❌ Database connection failed![/red]\n"
                "Please ensure Postgres is running and credentials are correct.\n"
                "Set the password via environment variable: "
                "[bold]export AUTOPRESS_DB_PASSWORD=your_password[/bold]"
            )
            raise typer.Exit(1)
        console.print("✅ Database connection successful")

        await init_database(pool)
        console.print("✅ Database schema initialized")

        if sources:
            synced = await SourceManager(pool).sync_sources(sources)
            console.print(f"✅ Synced {len(synced)} sources to database")

        return await auto_repair_settings(SettingsManager(pool))
    finally:
        await pool.close()


def init_command(
    config_dir: Path = typer.Option(
        DEFAULT_CONFIG_DIR,
        "--config-dir",
        "-c",
        help="Configuration directory",
    ),
    db_host: str = typer.Option("localhost", "--db-host", help="Postgres host"),
    db_port: int = typer.Option(5432, "--db-port", help="Postgres port"),
    db_name: str = typer.Option("autopress", "--db-name", help="Database name"),
    db_user: str = typer.Option("autopress_user", "--db-user", help="Database user"),
    timezone: str = typer.Option("Asia/Taipei", "--timezone", help="Timezone of publish times"),
    seed_sources: bool = typer.Option(
        True,
        "--seed-sources/--no-seed-sources",
        help="Seed default automotive news sources",
    ),
) -> None:
    """Initialize autopress configuration, schema and default settings."""
    console.print(Panel.fit("📰 autopress - Initialization", style="bold blue"))

    config_dir.mkdir(parents=True, exist_ok=True)
    config_path = config_dir / "config.yaml"
    sources_path = config_dir / "sources.yaml"

    model = ConfigModel(
        timezone=timezone,
        postgres={
            "host": db_host,
            "port": db_port,
            "database": db_name,
            "user": db_user,
            "password_env": "AUTOPRESS_DB_PASSWORD",
        },
    )
    save_config(model, config_path)
    console.print(f"✅ Created config: {config_path}")

    sources = create_default_sources() if seed_sources else []
    save_sources(sources, sources_path)
    console.print(f"✅ Created sources: {sources_path} ({len(sources)} sources)")

    console.print("\n[bold]Preparing database...[/bold]")
    config = Config.from_model(model, config_path)
    try:
        repaired = asyncio.run(_prepare_database(config, sources))
    except typer.Exit:
        raise
    except Exception as e:
        console.print(f"[red]❌ Failed to initialize database: {e}[/red]")
        raise typer.Exit(1)
    console.print(f"✅ Seeded {len(repaired)} default settings")

    console.print(
        Panel(
            f"[green]✅ autopress initialized successfully![/green]\n\n"
            f"Configuration: {config_path}\n"
            f"Sources: {sources_path}\n\n"
            f"Next steps:\n"
            f"1. Set database password: [bold]export AUTOPRESS_DB_PASSWORD=your_password[/bold]\n"
            f"2. Set a provider key: [bold]export AUTOPRESS_GROQ_API_KEY=your_key[/bold]\n"
            f"3. Run: [bold]autopress schedule[/bold]",
            style="green",
        )
    )
