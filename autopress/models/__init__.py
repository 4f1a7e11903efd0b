"""Data models for the content pipeline."""

from .article import Article
from .crawl import CrawlResult, CrawlRun, CrawlSummary
from .schedule import SCHEDULE_CONFIG_KEY, ScheduleConfig
from .source import Source, SourceSelectors
from .usage import ProviderUsageRecord, usage_key

__all__ = [
    "Article",
    "CrawlResult",
    "CrawlRun",
    "CrawlSummary",
    "ProviderUsageRecord",
    "SCHEDULE_CONFIG_KEY",
    "ScheduleConfig",
    "Source",
    "SourceSelectors",
    "usage_key",
]
