"""SEO article generation from a rotating topic list."""

import asyncio
import logging
import random
import re
from datetime import datetime
from typing import Awaitable, Callable, Dict, List, Optional, Set

import pendulum
from pydantic import BaseModel, Field

from ..config.models import ConfigModel
from ..config.settings import DEFAULT_LANGUAGE, load_settings
from ..db.store import ArticleStore, SettingsStore
from ..dispatch.prompts import seo_article_prompt
from ..dispatch.scheduler import DispatchScheduler
from ..ingestion.text import content_fingerprint
from ..logging_utils import log_event
from ..models import Article

logger = logging.getLogger(__name__)

SEO_TAGS = ["educational", "seo"]
DESCRIPTION_LENGTH = 160
SEO_MAX_TOKENS = 2000


class SEOTopic(BaseModel):
    """One predefined article topic."""

    title: str
    keywords: List[str] = Field(default_factory=list)
    outline: List[str] = Field(default_factory=list)


SEO_TOPICS: List[SEOTopic] = [
    SEOTopic(
        title="汽車冷氣系統維修保養完整指南",
        keywords=["汽車冷氣維修", "冷氣保養", "冷媒添加", "R134a", "R1234yf"],
        outline=["汽車冷氣系統的基本組成", "常見的冷氣故障症狀", "定期保養的重要性", "專業維修與 DIY 的取捨", "選擇合適的維修廠"],
    ),
    SEOTopic(
        title="R134a 與 R1234yf 冷媒比較分析",
        keywords=["R134a", "R1234yf", "冷媒種類", "環保冷媒", "冷媒更換"],
        outline=["冷媒的演進歷史", "R134a 的特性與應用", "R1234yf 的環保優勢", "兩種冷媒的成本比較", "更換冷媒的注意事項"],
    ),
    SEOTopic(
        title="夏季汽車冷氣效能提升秘訣",
        keywords=["冷氣效能", "冷氣不冷", "冷氣保養", "夏季保養", "冷氣濾網"],
        outline=["影響冷氣效能的因素", "日常使用的正確方法", "提升冷氣效能的技巧", "冷氣濾網的重要性", "專業檢測的時機"],
    ),
    SEOTopic(
        title="電動車冷氣系統特點與保養",
        keywords=["電動車冷氣", "熱泵系統", "電動車保養", "節能冷氣", "電池溫控"],
        outline=["電動車冷氣系統原理", "與傳統汽車的差異", "電動車冷氣保養要點", "節能使用技巧", "未來發展趨勢"],
    ),
    SEOTopic(
        title="汽車冷氣異味問題解決方案",
        keywords=["冷氣異味", "冷氣清潔", "濾網更換", "除霉", "冷氣消毒"],
        outline=["冷氣異味的常見原因", "預防異味的方法", "清潔冷氣系統的步驟", "專業除臭服務", "定期保養的重要性"],
    ),
    SEOTopic(
        title="冷媒洩漏檢測與修復指南",
        keywords=["冷媒洩漏", "洩漏檢測", "冷媒補充", "密封件更換", "冷氣維修"],
        outline=["冷媒洩漏的症狀", "洩漏檢測的方法", "常見洩漏位置", "修復冷媒洩漏", "預防洩漏的措施"],
    ),
    SEOTopic(
        title="汽車冷氣壓縮機保養維修詳解",
        keywords=["冷氣壓縮機", "壓縮機維修", "壓縮機更換", "冷氣核心", "壓縮機保養"],
        outline=["壓縮機的工作原理", "壓縮機故障的症狀", "延長壓縮機壽命的方法", "壓縮機維修與更換", "選擇優質壓縮機的標準"],
    ),
    SEOTopic(
        title="車輛冷氣系統升級改造指南",
        keywords=["冷氣升級", "冷氣改裝", "冷氣效能提升", "後座冷氣", "獨立冷氣"],
        outline=["冷氣系統升級的必要性", "常見的升級方案", "後座獨立冷氣安裝", "升級後的保養重點", "成本效益分析"],
    ),
]


def seo_slug(title: str) -> str:
    """Deterministic slug keeping word characters (CJK included) and dashes."""
    slug = re.sub(r"[^\w\s-]", "", title.lower())
    slug = re.sub(r"\s+", "-", slug)
    return re.sub(r"-+", "-", slug).strip("-")


def seo_description(content: str) -> str:
    """First substantial paragraph without Markdown markers, at most 160 characters."""
    first = next((line for line in content.split("\n") if len(line.strip()) > 50), "")
    description = re.sub(r"[#*]", "", first).strip()
    if len(description) > DESCRIPTION_LENGTH:
        description = description[: DESCRIPTION_LENGTH - 3] + "..."
    return description


class SEOGenerator:
    """Generates and publishes articles for topics not yet covered."""

    def __init__(
        self,
        config: ConfigModel,
        articles: ArticleStore,
        settings_store: SettingsStore,
        dispatch: DispatchScheduler,
        topics: Optional[List[SEOTopic]] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        now: Optional[Callable[[], datetime]] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.config = config
        self.articles = articles
        self.settings_store = settings_store
        self.dispatch = dispatch
        self.topics = topics if topics is not None else SEO_TOPICS
        self.sleep = sleep
        self._now = now or (lambda: pendulum.now("UTC"))
        self.rng = rng or random.Random()
        self.used_topics: Set[str] = set()
        self.language = DEFAULT_LANGUAGE

    async def load_used_topics(self) -> None:
        """Seed the used set from stored SEO article titles."""
        self.used_topics = set(await self.articles.titles_for_source_name(self.config.seo.source_name))

    async def generate_article(self) -> Optional[Article]:
        """
        Generate and publish one article.

        Tries at most one pick per topic. Topics whose title or slug already
        exists are marked used. Once every topic is used the cycle resets a
        single time.

        Returns:
            The stored article, or None when no topic or provider produced one
        """
        picks = 0
        reset = False
        while picks < len(self.topics):
            available = [t for t in self.topics if t.title not in self.used_topics]
            if not available:
                if reset:
                    break
                logger.info("All SEO topics used; starting a new cycle")
                self.used_topics.clear()
                reset = True
                continue
            topic = self.rng.choice(available)
            picks += 1

            slug = seo_slug(topic.title)
            if await self.articles.title_or_slug_exists(topic.title, slug):
                logger.info("SEO article already exists, skipping: %s", topic.title)
                self.used_topics.add(topic.title)
                continue

            return await self._generate(topic, slug)

        logger.warning("No SEO topic available after %d picks", picks)
        return None

    async def _generate(self, topic: SEOTopic, slug: str) -> Optional[Article]:
        logger.info("Generating SEO article: %s", topic.title)
        prompt = seo_article_prompt(topic.title, topic.outline, topic.keywords, self.language)
        try:
            result = await asyncio.wait_for(
                self.dispatch.generate(prompt, max_tokens=SEO_MAX_TOKENS),
                timeout=self.config.seo.generation_timeout,
            )
        except asyncio.TimeoutError:
            logger.warning(
                "SEO generation for %s exceeded %.0fs", topic.title, self.config.seo.generation_timeout
            )
            return None
        if result is None or not result.text.strip():
            logger.warning("No provider produced an SEO article for %s", topic.title)
            return None

        now = self._now()
        stored = await self.articles.insert_article(
            Article(
                source_name=self.config.seo.source_name,
                title=topic.title,
                slug=slug,
                content=result.text,
                excerpt=seo_description(result.text),
                author=self.config.seo.author,
                fingerprint=content_fingerprint(result.text),
                is_published=True,
                published_at=now,
                tags=list(SEO_TAGS),
                ai_provider=result.provider,
            )
        )
        self.used_topics.add(topic.title)
        if stored is None:
            logger.warning("Generated SEO article duplicates existing content: %s", topic.title)
            return None
        log_event(logger, logging.INFO, "seo_article_published", title=topic.title, provider=result.provider)
        return stored

    async def generate_batch(self, count: Optional[int] = None) -> List[Article]:
        """Generate up to ``count`` articles; a no-op when disabled or no provider is usable."""
        settings = await load_settings(self.settings_store)
        if not settings.seo_enabled:
            logger.info("SEO generation disabled")
            return []
        if await self.dispatch.select_provider() is None:
            logger.warning("SEO generation skipped: no provider with a key and free quota")
            return []

        count = count or settings.seo_daily_count
        self.language = settings.content_language
        await self.load_used_topics()
        generated: List[Article] = []
        for index in range(count):
            if index:
                await self.sleep(self.config.seo.article_delay)
            article = await self.generate_article()
            if article is not None:
                generated.append(article)
        logger.info("Generated %d/%d SEO articles", len(generated), count)
        return generated

    def topic_stats(self) -> Dict[str, int]:
        used = len([t for t in self.topics if t.title in self.used_topics])
        return {"total_topics": len(self.topics), "used_topics": used, "available_topics": len(self.topics) - used}
