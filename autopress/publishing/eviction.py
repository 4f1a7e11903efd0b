"""Scored eviction of published articles."""

import math
from datetime import datetime, timezone
from typing import List, Optional, Tuple

from ..config.models import EvictionWeights
from ..models import Article

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def age_in_days(article: Article, now: datetime) -> int:
    """Whole days since the article was published."""
    published = article.published_at or article.created_at
    if published is None:
        return 0
    return max(0, math.floor((now - published).total_seconds() / 86400))


def eviction_score(
    article: Article,
    now: datetime,
    weights: Optional[EvictionWeights] = None,
    min_views: Optional[int] = None,
) -> float:
    """Weighted traffic, freshness and quality score; higher is kept longer.

    Args:
        article: A published article
        now: Reference time for the article's age
        weights: Score weights and caps
        min_views: Views needed for the quality bonus, overriding the weights
    """
    weights = weights or EvictionWeights()
    threshold = weights.quality_min_views if min_views is None else min_views
    traffic = min(article.view_count * weights.traffic_multiplier, weights.traffic_cap)
    freshness = max(weights.freshness_days - age_in_days(article, now), 0)
    bonus = weights.quality_bonus if article.view_count >= threshold else 0
    score = (
        traffic * weights.traffic_weight
        + freshness * weights.freshness_weight
        + bonus * weights.quality_weight
    )
    return round(score, 2)


def select_evictions(
    articles: List[Article],
    max_count: int,
    now: datetime,
    weights: Optional[EvictionWeights] = None,
    min_views: Optional[int] = None,
) -> Tuple[List[Article], List[Article]]:
    """Split ``articles`` into (kept, evicted).

    The kept set is the top ``max_count`` by score. Equal scores favour the
    more recently published article, then the higher id.
    """
    ranked = sorted(
        articles,
        key=lambda a: (
            eviction_score(a, now, weights, min_views),
            a.published_at or _EPOCH,
            a.id or 0,
        ),
        reverse=True,
    )
    return ranked[:max_count], ranked[max_count:]
