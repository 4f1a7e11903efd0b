"""Crawl orchestrator that turns enabled sources into new articles."""

import asyncio
import logging
from datetime import datetime, timedelta
from typing import Awaitable, Callable, List, Optional, Tuple

import pendulum
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from ..config.models import ConfigModel
from ..config.settings import PipelineSettings, load_settings
from ..db.store import ArticleStore, RunStore, SettingsStore, SourceStore
from ..dispatch.scheduler import DispatchScheduler
from ..ingestion import (
    ArticleExtractor,
    ArticleFetcher,
    CandidateLink,
    DuplicateChecker,
    LinkExtractor,
    PageFetcher,
    QualityScorer,
    RSSFetcher,
)
from ..ingestion.text import content_fingerprint, make_excerpt, slugify
from ..logging_utils import log_event
from ..models import Article, CrawlResult, CrawlSummary, Source
from .notifier import CrawlNotifier

logger = logging.getLogger(__name__)
console = Console()

# Per-link outcomes of process_link
DUPLICATE = "duplicate"
STORED = "stored"
PUBLISHED = "published"
FLAGGED = "flagged"


class CrawlOrchestrator:
    """Runs crawl passes over the enabled sources in bounded concurrent batches."""

    def __init__(
        self,
        config: ConfigModel,
        sources: SourceStore,
        articles: ArticleStore,
        runs: RunStore,
        settings_store: SettingsStore,
        dispatch: DispatchScheduler,
        fetcher: Optional[PageFetcher] = None,
        notifier: Optional[CrawlNotifier] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        now: Optional[Callable[[], datetime]] = None,
    ) -> None:
        """Initialize crawl orchestrator."""
        self.config = config
        self.sources = sources
        self.articles = articles
        self.runs = runs
        self.settings_store = settings_store
        self.dispatch = dispatch
        self.sleep = sleep
        self._now = now or (lambda: pendulum.now("UTC"))

        self.page_fetcher = fetcher or PageFetcher(
            timeout=config.crawl.request_timeout,
            user_agent=config.crawl.user_agent,
        )
        self.article_fetcher = ArticleFetcher(self.page_fetcher, ArticleExtractor(config.crawl.max_body_chars))
        self.rss_fetcher = RSSFetcher(self.page_fetcher)
        self.link_extractor = LinkExtractor()
        self.duplicates = DuplicateChecker(articles, now=self._now)
        self.notifier = notifier or CrawlNotifier()

        self.last_summary: Optional[CrawlSummary] = None
        self._pass_lock = asyncio.Lock()

    @property
    def is_crawling(self) -> bool:
        return self._pass_lock.locked()

    def _is_due(self, source: Source) -> bool:
        if source.last_crawl is None:
            return True
        return self._now() - source.last_crawl >= timedelta(minutes=source.crawl_interval)

    async def perform_crawl(
        self,
        parallel: Optional[bool] = None,
        concurrency_limit: Optional[int] = None,
        force: bool = False,
    ) -> List[CrawlResult]:
        """
        Crawl every enabled source once.

        Args:
            parallel: Process sources in concurrent batches (defaults to the setting)
            concurrency_limit: Sources per batch (defaults to the setting)
            force: Ignore per-source crawl intervals

        Returns:
            One CrawlResult per attempted source
        """
        if self._pass_lock.locked():
            logger.warning("Crawl pass already running; skipping")
            return []

        async with self._pass_lock:
            settings = await load_settings(self.settings_store)
            if parallel is None:
                parallel = settings.parallel_crawling
            limit = max(1, concurrency_limit or settings.concurrency_limit)

            sources = await self.sources.list_sources(enabled_only=True)
            if not force:
                sources = [s for s in sources if self._is_due(s)]
            if not sources:
                logger.info("No sources due for crawling")
                self.last_summary = CrawlSummary()
                return []

            started_at = self._now()
            run_id = await self.runs.create_run(started_at)
            logger.info(
                "Crawling %d sources (%s, limit %d)",
                len(sources), "parallel" if parallel else "sequential", limit,
            )

            results: List[CrawlResult] = []
            if not parallel or len(sources) == 1:
                for source in sources:
                    results.append(await self._crawl_guarded(source, settings))
            else:
                batches = [sources[i:i + limit] for i in range(0, len(sources), limit)]
                for index, batch in enumerate(batches):
                    if index:
                        await self.sleep(self.config.crawl.batch_delay)
                    results.extend(
                        await asyncio.gather(*(self._crawl_guarded(s, settings) for s in batch))
                    )

            summary = CrawlSummary.from_results(results)
            self.last_summary = summary
            status = "success" if summary.successful_sources else "failed"
            await self.runs.finish_run(run_id, status, summary.stats(), self._now())

            for result in results:
                await self.notifier.notify(result, settings)

            log_event(
                logger, logging.INFO, "crawl_finished",
                run_id=run_id,
                sources=summary.total_sources,
                succeeded=summary.successful_sources,
                processed=summary.total_articles_processed,
                published=summary.total_articles_published,
                errors=summary.total_errors,
            )
            return results

    async def _crawl_guarded(self, source: Source, settings: PipelineSettings) -> CrawlResult:
        try:
            return await self.crawl_source(source, settings)
        except Exception as e:
            logger.exception("Crawl of %s failed", source.name)
            return CrawlResult(
                source_id=source.id,
                source_name=source.name,
                errors=[str(e) or type(e).__name__],
                started_at=self._now(),
                finished_at=self._now(),
            )

    async def discover_links(self, source: Source) -> Tuple[List[CandidateLink], Optional[str]]:
        """Candidate article links from the source's feed or index page."""
        if source.feed_url:
            feed = await self.rss_fetcher.fetch_feed(source)
            if feed.success:
                links = self.rss_fetcher.candidate_links(feed, source)
                if links:
                    return links, None
            else:
                logger.warning("Feed of %s failed (%s); falling back to index page", source.name, feed.error)

        page = await self.page_fetcher.fetch(source.url)
        if not page.success:
            return [], f"Index fetch failed: {page.error}"
        return self.link_extractor.extract(page.text, source, page.final_url), None

    async def crawl_source(self, source: Source, settings: Optional[PipelineSettings] = None) -> CrawlResult:
        """Crawl one source; articles are processed one at a time."""
        if settings is None:
            settings = await load_settings(self.settings_store)
        result = CrawlResult(source_id=source.id, source_name=source.name, started_at=self._now())
        scorer = QualityScorer(settings.seo_keywords, expect_cjk=settings.cjk_content)

        links, error = await self.discover_links(source)
        if error:
            result.errors.append(error)
        result.articles_found = len(links)
        logger.info("%s: %d candidate links", source.name, len(links))

        fetched = 0
        for link in links:
            try:
                if (await self.duplicates.check_url(link.url)).is_duplicate:
                    result.duplicates += 1
                    continue
                if fetched:
                    await self.sleep(self.config.crawl.article_delay)
                fetched += 1
                outcome = await self.process_link(source, link, settings, scorer)
            except Exception as e:
                logger.exception("Processing %s failed", link.url)
                result.errors.append(f"{link.url}: {e}")
                continue

            if outcome == DUPLICATE:
                result.duplicates += 1
            elif outcome in (STORED, PUBLISHED, FLAGGED):
                result.articles_processed += 1
                if outcome == PUBLISHED:
                    result.articles_published += 1
                elif outcome == FLAGGED:
                    result.articles_flagged += 1
            else:
                result.errors.append(f"{link.url}: {outcome}")

        if source.id is not None:
            await self.sources.touch_last_crawl(source.id, self._now())

        result.success = error is None and result.articles_processed > 0
        result.finished_at = self._now()
        logger.info(
            "%s: %d processed, %d duplicates, %d errors",
            source.name, result.articles_processed, result.duplicates, len(result.errors),
        )
        return result

    async def process_link(
        self,
        source: Source,
        link: CandidateLink,
        settings: PipelineSettings,
        scorer: QualityScorer,
    ) -> str:
        """Fetch, deduplicate, rewrite, score and persist one article.

        Returns one of the outcome constants, or an error message.
        """
        content = await self.article_fetcher.fetch_article(link.url, source.selectors)
        if not content.fetch_success:
            return content.error or "Article extraction failed"

        verdict = await self.duplicates.check_content(content.title, content.text, source_id=source.id)
        if verdict.is_duplicate:
            logger.debug("Skipping %s: %s duplicate of %s", link.url, verdict.reason, verdict.existing_id)
            return DUPLICATE

        fingerprint = content_fingerprint(content.text)
        title, text, provider = content.title, content.text, None
        if settings.ai_rewrite_enabled:
            rewritten = await self.dispatch.rewrite_article(
                title, text, settings.seo_keywords, language=settings.content_language
            )
            title, text, provider = rewritten.title, rewritten.content, rewritten.provider

        def score(body: str):
            return scorer.score(
                title,
                body,
                author=content.author,
                has_date=content.published_at is not None,
                image_count=content.image_count,
                tags=content.tags,
            )

        threshold = self.config.crawl.quality_threshold
        report = score(text)
        excerpt = make_excerpt(text)
        if report.is_low(threshold):
            text, excerpt = scorer.auto_fix(text)
            report = score(text)
        flagged = report.is_low(threshold)
        if flagged:
            logger.info("Low quality (%.1f) %s: %s", report.score, link.url, "; ".join(report.issues))

        publish = settings.crawl_publish_immediately and not flagged
        now = self._now()
        stored = await self.articles.insert_article(
            Article(
                source_id=source.id,
                source_name=source.name,
                source_url=link.url,
                title=title,
                slug=slugify(title),
                content=text,
                excerpt=excerpt,
                author=content.author,
                fingerprint=fingerprint,
                is_published=publish,
                published_at=now if publish else None,
                tags=content.tags,
                ai_provider=provider,
                quality_score=report.score,
                quality_flagged=flagged,
            )
        )
        if stored is None:
            return DUPLICATE
        if flagged:
            return FLAGGED
        return PUBLISHED if publish else STORED


def print_crawl_summary(results: List[CrawlResult], console: Console = console) -> None:
    """Print a crawl pass summary table."""
    summary = CrawlSummary.from_results(results)

    table = Table(title="Crawl Summary")
    table.add_column("Source", style="cyan")
    table.add_column("Status", style="bold")
    table.add_column("Found", justify="right")
    table.add_column("Processed", justify="right")
    table.add_column("Published", justify="right")
    table.add_column("Duplicates", justify="right")
    table.add_column("Duration", style="yellow")
    table.add_column("Details", style="dim")

    for result in results:
        status = {
            "success": "[green]✓[/green]",
            "partial": "[yellow]~[/yellow]",
            "failure": "[red]✗[/red]",
        }[result.outcome]
        duration = f"{result.duration:.1f}s" if result.duration > 0 else "-"
        details = "; ".join(result.errors[:2]) if result.errors else ""
        table.add_row(
            result.source_name,
            status,
            str(result.articles_found),
            str(result.articles_processed),
            str(result.articles_published),
            str(result.duplicates),
            duration,
            details,
        )

    console.print(table)
    style = "green" if summary.successful_sources == summary.total_sources else "yellow"
    if summary.total_sources and not summary.successful_sources:
        style = "red"
    console.print(Panel(
        f"Sources: {summary.successful_sources}/{summary.total_sources} succeeded\n"
        f"Articles: {summary.total_articles_found} found, "
        f"{summary.total_articles_processed} processed, "
        f"{summary.total_articles_published} published\n"
        f"Duplicates: {summary.total_duplicates}  Errors: {summary.total_errors}",
        style=style,
    ))
