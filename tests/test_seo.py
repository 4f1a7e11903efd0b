"""
tests/test_seo.py

SEO topic rotation, generation and the bounded topic search.
"""

from __future__ import annotations

import asyncio
import random
from typing import List

import pytest

from autopress.config import ConfigModel, PipelineSettings, SEOConfig
from autopress.dispatch import DispatchScheduler, MockProvider, ProviderRegistry, RateLedger
from autopress.ingestion.quality import cjk_ratio
from autopress.publishing import SEOGenerator, SEOTopic
from autopress.publishing.seo import SEO_TAGS, SEO_TOPICS, seo_description, seo_slug

from fakes import Clock, MemoryArticleStore, MemorySettingsStore, RecordingSleep, make_spec

TOPICS: List[SEOTopic] = [
    SEOTopic(title="Alpha topic guide", keywords=["alpha"], outline=["one", "two"]),
    SEOTopic(title="Beta topic guide", keywords=["beta"], outline=["three"]),
]


@pytest.fixture()
def generator(
    config: ConfigModel,
    articles: MemoryArticleStore,
    settings_store: MemorySettingsStore,
    dispatch: DispatchScheduler,
    sleep: RecordingSleep,
    clock: Clock,
) -> SEOGenerator:
    return SEOGenerator(
        config, articles, settings_store, dispatch,
        topics=TOPICS, sleep=sleep, now=clock, rng=random.Random(7),
    )


class SlowProvider(MockProvider):
    async def dispatch(self, prompt, api_key, max_tokens=2000, temperature=0.7, timeout=30.0) -> str:
        await asyncio.sleep(5)
        return "too late"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


class TestHelpers:
    def test_slug_keeps_words_and_dashes(self) -> None:
        assert seo_slug("R134a vs R1234yf: Comparing Car Refrigerants") == "r134a-vs-r1234yf-comparing-car-refrigerants"

    def test_slug_keeps_cjk(self) -> None:
        assert seo_slug("汽車冷氣 保養指南") == "汽車冷氣-保養指南"

    def test_description_skips_headings_and_short_lines(self) -> None:
        content = "# Title\nShort intro\n**" + "A substantial opening paragraph about cooling. " * 2 + "**"
        description = seo_description(content)
        assert description.startswith("A substantial opening paragraph")
        assert "*" not in description

    def test_description_is_truncated(self) -> None:
        description = seo_description("word " * 100)
        assert len(description) == 160
        assert description.endswith("...")


# ---------------------------------------------------------------------------
# Generation
# ---------------------------------------------------------------------------


class TestGenerate:
    async def test_batch_publishes_one_article_per_topic(
        self, generator: SEOGenerator, articles: MemoryArticleStore, sleep: RecordingSleep, clock: Clock
    ) -> None:
        generated = await generator.generate_batch(count=2)
        assert sorted(a.title for a in generated) == ["Alpha topic guide", "Beta topic guide"]
        for article in generated:
            assert article.is_published
            assert article.published_at == clock()
            assert article.source_name == "AI Generated - SEO"
            assert article.tags == SEO_TAGS
            assert article.ai_provider == "alpha"
        assert sleep.calls == [generator.config.seo.article_delay]

    async def test_existing_topic_is_skipped(self, generator: SEOGenerator, articles: MemoryArticleStore) -> None:
        articles.add(title="Alpha topic guide")
        article = await generator.generate_article()
        assert article.title == "Beta topic guide"
        assert "Beta topic guide" in generator.used_topics

    async def test_search_is_bounded_when_every_topic_exists(
        self, generator: SEOGenerator, articles: MemoryArticleStore, providers: List[MockProvider]
    ) -> None:
        for topic in TOPICS:
            articles.add(title=topic.title)
        assert await generator.generate_article() is None
        assert providers[0].calls == []

    async def test_used_topics_reset_once(self, generator: SEOGenerator) -> None:
        generator.used_topics = {t.title for t in TOPICS}
        article = await generator.generate_article()
        assert article is not None
        assert generator.used_topics == {article.title}

    async def test_used_topics_are_loaded_from_stored_articles(
        self, generator: SEOGenerator, articles: MemoryArticleStore
    ) -> None:
        articles.add(title="Beta topic guide", source_name="AI Generated - SEO")
        articles.add(title="Alpha topic guide", source_name="Someone else")
        await generator.load_used_topics()
        assert generator.used_topics == {"Beta topic guide"}
        assert generator.topic_stats() == {"total_topics": 2, "used_topics": 1, "available_topics": 1}

    async def test_disabled_generation_is_a_no_op(
        self, generator: SEOGenerator, settings_store: MemorySettingsStore, providers: List[MockProvider]
    ) -> None:
        settings_store.data["auto_seo_enabled"] = "false"
        assert await generator.generate_batch() == []
        assert providers[0].calls == []

    async def test_no_usable_provider_is_a_no_op(
        self, generator: SEOGenerator, settings_store: MemorySettingsStore
    ) -> None:
        settings_store.data.clear()
        assert await generator.generate_batch() == []

    async def test_slow_generation_times_out(
        self, articles: MemoryArticleStore, settings_store: MemorySettingsStore, clock: Clock
    ) -> None:
        settings_store.data["slow_api_key"] = "key"
        dispatch = DispatchScheduler(
            ProviderRegistry([SlowProvider(make_spec("slow", 1))]),
            RateLedger(settings_store, "UTC", now=clock),
            settings_store,
            now=clock,
        )
        config = ConfigModel(timezone="UTC", seo=SEOConfig(generation_timeout=0.05))
        generator = SEOGenerator(config, articles, settings_store, dispatch, topics=TOPICS, now=clock)
        assert await generator.generate_article() is None
        assert articles.articles == {}
        assert (await dispatch.ledger.get("slow")).errors == 1

    async def test_generation_uses_the_seo_token_budget(
        self, generator: SEOGenerator, providers: List[MockProvider]
    ) -> None:
        await generator.generate_article()
        assert providers[0].calls[-1]["max_tokens"] == 2000


# ---------------------------------------------------------------------------
# Output language
# ---------------------------------------------------------------------------


class TestLanguage:
    def test_built_in_topics_are_traditional_chinese(self) -> None:
        for topic in SEO_TOPICS:
            assert cjk_ratio(topic.title + "".join(topic.outline)) > 0.5, topic.title

    def test_built_in_topics_cover_the_default_keywords(self) -> None:
        keywords = PipelineSettings.from_raw({})[0].seo_keywords
        text = " ".join(t.title + " ".join(t.keywords) for t in SEO_TOPICS)
        assert all(keyword in text for keyword in keywords)

    async def test_prompt_asks_for_traditional_chinese_by_default(
        self, generator: SEOGenerator, providers: List[MockProvider]
    ) -> None:
        await generator.generate_batch(count=1)
        assert "繁體中文" in providers[0].calls[-1]["prompt"]

    async def test_prompt_follows_the_language_setting(
        self, generator: SEOGenerator, settings_store: MemorySettingsStore, providers: List[MockProvider]
    ) -> None:
        settings_store.data["content_language"] = "en"
        await generator.generate_batch(count=1)
        prompt = providers[0].calls[-1]["prompt"]
        assert "Write the entire response in English." in prompt
        assert "繁體中文" not in prompt
