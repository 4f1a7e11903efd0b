"""Publishing, eviction, SEO generation and timetables."""

from .eviction import eviction_score, select_evictions
from .publisher import EvictionOutcome, PublishOutcome, Publisher, PublishStats, print_stats
from .seo import SEO_TOPICS, SEOGenerator, SEOTopic
from .timetable import TimetableRegistry

__all__ = [
    "eviction_score",
    "select_evictions",
    "Publisher",
    "PublishOutcome",
    "EvictionOutcome",
    "PublishStats",
    "print_stats",
    "SEOGenerator",
    "SEOTopic",
    "SEO_TOPICS",
    "TimetableRegistry",
]
