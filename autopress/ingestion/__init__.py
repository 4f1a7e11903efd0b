"""Link discovery, article fetching, deduplication and quality scoring."""

from .article_fetcher import ArticleExtractor, ArticleFetcher, PageFetcher
from .duplicates import DuplicateChecker
from .links import LinkExtractor
from .models import ArticleContent, CandidateLink, DuplicateVerdict, FeedItem, FeedResult, QualityReport
from .quality import LOW_QUALITY_THRESHOLD, QualityScorer
from .rss_fetcher import RSSFetcher

__all__ = [
    "PageFetcher",
    "ArticleExtractor",
    "ArticleFetcher",
    "LinkExtractor",
    "RSSFetcher",
    "DuplicateChecker",
    "QualityScorer",
    "LOW_QUALITY_THRESHOLD",
    "ArticleContent",
    "CandidateLink",
    "DuplicateVerdict",
    "FeedItem",
    "FeedResult",
    "QualityReport",
]
