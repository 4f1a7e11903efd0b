"""Telegram notifications for crawl results."""

import html
import logging
from typing import Optional

import httpx

from ..config.settings import PipelineSettings
from ..models import CrawlResult

logger = logging.getLogger(__name__)

TELEGRAM_API = "https://api.telegram.org"

ICONS = {"success": "✅", "partial": "⚠️", "failure": "❌"}


def format_result(result: CrawlResult) -> str:
    """HTML message body for one source result."""
    lines = [
        f"{ICONS[result.outcome]} <b>Crawl {result.outcome}</b>: {html.escape(result.source_name)}",
        f"Found: {result.articles_found}",
        f"Processed: {result.articles_processed}",
        f"Published: {result.articles_published}",
        f"Duplicates: {result.duplicates}",
    ]
    if result.duration:
        lines.append(f"Duration: {result.duration:.1f}s")
    if result.errors:
        lines.append("Errors:")
        lines.extend(f"- {html.escape(error)}" for error in result.errors[:5])
    return "\n".join(lines)


class CrawlNotifier:
    """Posts a Telegram message per crawl result when its outcome is enabled."""

    def __init__(self, timeout: float = 10.0, transport: Optional[httpx.AsyncBaseTransport] = None) -> None:
        self.timeout = timeout
        self.transport = transport

    @staticmethod
    def should_notify(result: CrawlResult, settings: PipelineSettings) -> bool:
        if not settings.telegram_bot_token or not settings.telegram_chat_id:
            return False
        return {
            "success": settings.notify_on_success,
            "partial": settings.notify_on_partial,
            "failure": settings.notify_on_failure,
        }[result.outcome]

    async def notify(self, result: CrawlResult, settings: PipelineSettings) -> bool:
        """Send one notification. Failures are logged and reported as False."""
        if not self.should_notify(result, settings):
            return False

        url = f"{TELEGRAM_API}/bot{settings.telegram_bot_token}/sendMessage"
        payload = {
            "chat_id": settings.telegram_chat_id,
            "text": format_result(result),
            "parse_mode": "HTML",
            "disable_web_page_preview": True,
        }
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(url, json=payload)
                response.raise_for_status()
        except httpx.HTTPError as e:
            logger.warning("Telegram notification for %s failed: %s", result.source_name, e)
            return False
        return True
