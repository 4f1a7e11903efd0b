"""
tests/test_publisher.py

Scheduled and manual publishing, scored eviction and publishing stats.
"""

from __future__ import annotations

from datetime import timedelta

import pytest

from autopress.config import ConfigModel, EvictionWeights
from autopress.publishing import Publisher, eviction_score, select_evictions
from autopress.publishing.eviction import age_in_days
from autopress.resilience import ConfigError

from fakes import T0, Clock, MemoryArticleStore, MemorySettingsStore


@pytest.fixture()
def publisher(
    config: ConfigModel, articles: MemoryArticleStore, settings_store: MemorySettingsStore, clock: Clock
) -> Publisher:
    return Publisher(config, articles, settings_store, now=clock)


def add_published(articles: MemoryArticleStore, views: int = 0, age: timedelta = timedelta(0), **fields):
    return articles.add(
        title=fields.pop("title", f"published {len(articles.articles) + 1}"),
        is_published=True,
        published_at=T0 - age,
        view_count=views,
        **fields,
    )


# ---------------------------------------------------------------------------
# Scoring
# ---------------------------------------------------------------------------


class TestEvictionScore:
    def test_weighted_components(self, articles: MemoryArticleStore) -> None:
        article = add_published(articles, views=60, age=timedelta(days=10))
        # traffic capped at 100, freshness 40, quality bonus 20
        assert eviction_score(article, T0) == pytest.approx(100 * 0.6 + 40 * 0.3 + 20 * 0.1)

    def test_freshness_bottoms_out(self, articles: MemoryArticleStore) -> None:
        article = add_published(articles, views=0, age=timedelta(days=90))
        assert eviction_score(article, T0) == 0.0

    def test_age_counts_whole_days(self, articles: MemoryArticleStore) -> None:
        article = add_published(articles, age=timedelta(days=2, hours=23))
        assert age_in_days(article, T0) == 2

    def test_min_views_override_the_bonus_threshold(self, articles: MemoryArticleStore) -> None:
        article = add_published(articles, views=5)
        assert eviction_score(article, T0) == pytest.approx(5 * 2 * 0.6 + 50 * 0.3)
        assert eviction_score(article, T0, min_views=5) == pytest.approx(5 * 2 * 0.6 + 50 * 0.3 + 2)

    def test_custom_weights(self, articles: MemoryArticleStore) -> None:
        weights = EvictionWeights(traffic_weight=1.0, freshness_weight=0.0, quality_weight=0.0)
        article = add_published(articles, views=7)
        assert eviction_score(article, T0, weights) == 14.0

    def test_weights_must_sum_to_one(self) -> None:
        with pytest.raises(ValueError):
            EvictionWeights(traffic_weight=0.5, freshness_weight=0.5, quality_weight=0.5)


class TestSelectEvictions:
    def test_lowest_scores_are_evicted(self, articles: MemoryArticleStore) -> None:
        published = [add_published(articles, views=v) for v in range(25)]
        kept, evicted = select_evictions(published, 20, T0)
        assert len(kept) == 20
        assert sorted(a.view_count for a in evicted) == [0, 1, 2, 3, 4]

    def test_ties_keep_the_newer_article(self, articles: MemoryArticleStore) -> None:
        older = add_published(articles, age=timedelta(hours=2))
        newer = add_published(articles, age=timedelta(hours=1))
        kept, evicted = select_evictions([older, newer], 1, T0)
        assert kept == [newer]
        assert evicted == [older]

    def test_full_ties_keep_the_higher_id(self, articles: MemoryArticleStore) -> None:
        first = add_published(articles)
        second = add_published(articles)
        kept, _ = select_evictions([first, second], 1, T0)
        assert kept == [second]


# ---------------------------------------------------------------------------
# Publishing
# ---------------------------------------------------------------------------


class TestPublishing:
    async def test_scheduled_publish_takes_three_oldest_unflagged_drafts(
        self, publisher: Publisher, articles: MemoryArticleStore
    ) -> None:
        drafts = [
            articles.add(title=f"draft {i}", created_at=T0 - timedelta(hours=10 - i))
            for i in range(5)
        ]
        flagged = articles.add(title="flagged", created_at=T0 - timedelta(days=1), quality_flagged=True)

        outcome = await publisher.publish_due()
        assert outcome.status == "published"
        assert outcome.article_ids == [d.id for d in drafts[:3]]
        assert not articles.articles[flagged.id].is_published
        assert articles.articles[drafts[0].id].published_at == T0

    async def test_nothing_to_publish(self, publisher: Publisher) -> None:
        outcome = await publisher.publish_due()
        assert outcome.published == 0
        assert outcome.status == "nothing_to_publish"

    async def test_disabled_auto_publish_is_a_no_op(
        self, publisher: Publisher, articles: MemoryArticleStore, settings_store: MemorySettingsStore
    ) -> None:
        settings_store.data["auto_publish_enabled"] = "false"
        articles.add(title="draft")
        assert (await publisher.publish_due()).published == 0

    async def test_scheduled_publish_evicts_over_the_limit(
        self, publisher: Publisher, articles: MemoryArticleStore, settings_store: MemorySettingsStore
    ) -> None:
        settings_store.data["max_article_count"] = "10"
        for views in range(10):
            add_published(articles, views=views + 1)
        articles.add(title="draft a")
        articles.add(title="draft b")

        await publisher.publish_due()
        assert await articles.count_published() == 10

    async def test_manual_publish_limit(self, publisher: Publisher, articles: MemoryArticleStore) -> None:
        for i in range(7):
            articles.add(title=f"draft {i}")
        assert (await publisher.publish_manual(limit=5)).published == 5
        assert await articles.count_drafts() == 2

    async def test_daily_publish_stats_are_counted(
        self, publisher: Publisher, articles: MemoryArticleStore, settings_store: MemorySettingsStore
    ) -> None:
        articles.add(title="draft")
        await publisher.publish_manual()
        assert await settings_store.get_json("publish_stats:2024-03-01") == {"published": 1}


# ---------------------------------------------------------------------------
# Eviction pass
# ---------------------------------------------------------------------------


class TestEvict:
    async def test_evicts_down_to_the_maximum(
        self, publisher: Publisher, articles: MemoryArticleStore, settings_store: MemorySettingsStore
    ) -> None:
        for views in range(25):
            add_published(articles, views=views)
        outcome = await publisher.evict(20)
        assert (outcome.before, outcome.deleted, outcome.kept) == (25, 5, 20)
        assert sorted(a.view_count for a in await articles.list_published())[0] == 5
        assert await settings_store.get_json("cleanup_stats:2024-03-01") == {"runs": 1, "deleted": 5}

    async def test_stale_unread_article_is_among_the_evicted(
        self, publisher: Publisher, articles: MemoryArticleStore
    ) -> None:
        for n in range(24):
            add_published(articles, views=10 + n, age=timedelta(days=n % 7))
        stale = add_published(articles, views=0, age=timedelta(days=90))
        assert await articles.count_published() == 25

        outcome = await publisher.evict(20)
        assert (outcome.before, outcome.deleted, outcome.kept) == (25, 5, 20)
        assert len(outcome.deleted_ids) == 5
        assert stale.id in outcome.deleted_ids
        assert stale.id not in articles.articles
        assert await articles.count_published() == 20

    async def test_under_the_limit_deletes_nothing(self, publisher: Publisher, articles: MemoryArticleStore) -> None:
        add_published(articles)
        outcome = await publisher.evict()
        assert outcome.deleted == 0
        assert outcome.kept == 1

    async def test_invalid_maximum_is_rejected(self, publisher: Publisher) -> None:
        with pytest.raises(ConfigError):
            await publisher.evict(0)

    async def test_drafts_are_never_evicted(self, publisher: Publisher, articles: MemoryArticleStore) -> None:
        for _ in range(3):
            add_published(articles)
        draft = articles.add(title="draft")
        await publisher.evict(1)
        assert draft.id in articles.articles


# ---------------------------------------------------------------------------
# Stats
# ---------------------------------------------------------------------------


class TestStats:
    async def test_today_and_yesterday(self, publisher: Publisher, articles: MemoryArticleStore) -> None:
        add_published(articles)
        add_published(articles, age=timedelta(hours=1))
        add_published(articles, age=timedelta(days=1))
        articles.add(title="draft")

        stats = await publisher.get_stats(is_running=True, schedule_count=4)
        assert (stats.today, stats.yesterday, stats.total_published, stats.drafts) == (2, 1, 3, 1)
        assert stats.is_running
        assert stats.schedule_count == 4

    async def test_days_follow_the_configured_timezone(
        self, articles: MemoryArticleStore, settings_store: MemorySettingsStore, clock: Clock
    ) -> None:
        # 17:00 UTC on 29 February is already 1 March in Taipei
        publisher = Publisher(ConfigModel(timezone="Asia/Taipei"), articles, settings_store, now=clock)
        add_published(articles, age=timedelta(hours=19))
        stats = await publisher.get_stats()
        assert (stats.today, stats.yesterday) == (1, 0)
