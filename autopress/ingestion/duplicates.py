"""Duplicate detection against previously stored articles."""

import logging
import re
from collections import Counter
from datetime import datetime, timedelta
from typing import Callable, List, Optional

import pendulum

from ..db.store import ArticleStore
from .models import DuplicateVerdict
from .text import clean_text, content_fingerprint, normalize_url

logger = logging.getLogger(__name__)

TITLE_THRESHOLD = 0.85
SAME_SOURCE_DISCOUNT = 0.1
TITLE_WINDOW_DAYS = 7
CONTENT_THRESHOLD = 0.8
CONTENT_WINDOW_DAYS = 3
CONTENT_WINDOW_LIMIT = 100
FEATURE_COUNT = 20

WORD_PATTERN = re.compile(r"[\u4e00-\u9fa5]+|[a-z]+")


def char_similarity(a: str, b: str) -> float:
    """Jaccard similarity over the character sets of two cleaned strings."""
    if not a or not b:
        return 0.0
    if a == b:
        return 1.0
    set_a, set_b = set(a), set(b)
    return len(set_a & set_b) / len(set_a | set_b)


def content_features(text: str) -> List[str]:
    """The most frequent words longer than two characters."""
    words = [w for w in WORD_PATTERN.findall((text or "").lower()) if len(w) > 2]
    return [word for word, _ in Counter(words).most_common(FEATURE_COUNT)]


def feature_similarity(a: List[str], b: List[str]) -> float:
    if not a or not b:
        return 0.0
    set_a, set_b = set(a), set(b)
    return len(set_a & set_b) / len(set_a | set_b)


class DuplicateChecker:
    """Checks URL, title, fingerprint and content similarity, first hit wins."""

    def __init__(self, store: ArticleStore, now: Optional[Callable[[], datetime]] = None) -> None:
        self.store = store
        self._now = now or (lambda: pendulum.now("UTC"))

    async def check_url(self, url: str) -> DuplicateVerdict:
        existing = await self.store.find_by_url(url, normalize_url(url))
        if existing is not None:
            return DuplicateVerdict(is_duplicate=True, reason="url", similarity=1.0, existing_id=existing)
        return DuplicateVerdict()

    async def check_title(self, title: str, source_id: Optional[int] = None) -> DuplicateVerdict:
        cleaned = clean_text(title)
        if not cleaned:
            return DuplicateVerdict()
        since = self._now() - timedelta(days=TITLE_WINDOW_DAYS)
        for article in await self.store.recent_articles(since):
            threshold = TITLE_THRESHOLD
            if source_id is not None and article.source_id == source_id:
                threshold -= SAME_SOURCE_DISCOUNT
            similarity = char_similarity(cleaned, clean_text(article.title))
            if similarity >= threshold:
                return DuplicateVerdict(
                    is_duplicate=True, reason="title", similarity=similarity, existing_id=article.id
                )
        return DuplicateVerdict()

    async def check_fingerprint(self, content: str) -> DuplicateVerdict:
        existing = await self.store.find_by_fingerprint(content_fingerprint(content))
        if existing is not None:
            return DuplicateVerdict(is_duplicate=True, reason="fingerprint", similarity=1.0, existing_id=existing)
        return DuplicateVerdict()

    async def check_features(self, content: str) -> DuplicateVerdict:
        features = content_features(content)
        if not features:
            return DuplicateVerdict()
        since = self._now() - timedelta(days=CONTENT_WINDOW_DAYS)
        for article in await self.store.recent_articles(since, limit=CONTENT_WINDOW_LIMIT):
            similarity = feature_similarity(features, content_features(article.content))
            if similarity >= CONTENT_THRESHOLD:
                return DuplicateVerdict(
                    is_duplicate=True, reason="content", similarity=similarity, existing_id=article.id
                )
        return DuplicateVerdict()

    async def check_content(
        self,
        title: str,
        content: str,
        url: Optional[str] = None,
        source_id: Optional[int] = None,
    ) -> DuplicateVerdict:
        """Run every check in order and return the first duplicate verdict."""
        if url:
            verdict = await self.check_url(url)
            if verdict.is_duplicate:
                return verdict
        verdict = await self.check_title(title, source_id)
        if verdict.is_duplicate:
            return verdict
        verdict = await self.check_fingerprint(content)
        if verdict.is_duplicate:
            return verdict
        verdict = await self.check_features(content)
        if verdict.is_duplicate:
            logger.debug("Content near-duplicate of article %s (%.2f)", verdict.existing_id, verdict.similarity)
        return verdict
