"""
tests/test_duplicates_quality.py

Duplicate detection against stored articles and content quality scoring.
"""

from __future__ import annotations

import pytest

from autopress.config import PipelineSettings
from autopress.ingestion import DuplicateChecker, QualityScorer
from autopress.ingestion.duplicates import char_similarity, content_features
from autopress.ingestion.text import content_fingerprint

from fakes import Clock, MemoryArticleStore

SENTENCE = "冷氣系統需要定期檢查冷媒壓力與管路狀態以確保效能。"
GOOD_TEXT = "\n\n".join(SENTENCE * 12 for _ in range(3))
GOOD_TITLE = "冷氣冷媒定期保養完整指南"

WORDS = "refrigerant compressor condenser evaporator workshop pressure summer vehicles service leaks"


@pytest.fixture()
def checker(articles: MemoryArticleStore, clock: Clock) -> DuplicateChecker:
    return DuplicateChecker(articles, now=clock)


# ---------------------------------------------------------------------------
# Duplicates
# ---------------------------------------------------------------------------


class TestDuplicateChecker:
    async def test_normalised_url_match(self, checker: DuplicateChecker, articles: MemoryArticleStore) -> None:
        stored = articles.add(title="Stored", source_url="https://news.example.com/news/1")
        verdict = await checker.check_url("https://NEWS.example.com/news/1/?from=rss")
        assert verdict.is_duplicate
        assert verdict.reason == "url"
        assert verdict.existing_id == stored.id

    async def test_identical_title_after_cleaning(self, checker: DuplicateChecker, articles: MemoryArticleStore) -> None:
        articles.add(title="Refrigerant prices climb again")
        verdict = await checker.check_title("Refrigerant prices climb, again!")
        assert verdict.is_duplicate
        assert verdict.similarity == 1.0

    async def test_same_source_lowers_the_title_threshold(
        self, checker: DuplicateChecker, articles: MemoryArticleStore
    ) -> None:
        articles.add(title="abcdefghij", source_id=1)
        assert char_similarity("abcdefghij", "abcdefghik") == pytest.approx(9 / 11)
        assert (await checker.check_title("abcdefghik", source_id=1)).is_duplicate
        assert not (await checker.check_title("abcdefghik", source_id=2)).is_duplicate

    async def test_titles_outside_the_window_are_ignored(
        self, checker: DuplicateChecker, articles: MemoryArticleStore, clock: Clock
    ) -> None:
        articles.add(title="Old news", created_at=clock.current.replace(day=1).replace(month=2))
        assert not (await checker.check_title("Old news")).is_duplicate

    async def test_fingerprint_match(self, checker: DuplicateChecker, articles: MemoryArticleStore) -> None:
        articles.add(title="Other", content="Hello, World", fingerprint=content_fingerprint("Hello, World"))
        verdict = await checker.check_fingerprint("hello world")
        assert verdict.is_duplicate
        assert verdict.reason == "fingerprint"

    async def test_content_near_duplicate(self, checker: DuplicateChecker, articles: MemoryArticleStore) -> None:
        articles.add(title="zzz", content=WORDS)
        verdict = await checker.check_content("Brand new headline", WORDS + " additional")
        assert verdict.is_duplicate
        assert verdict.reason == "content"
        assert verdict.similarity == pytest.approx(10 / 11)

    async def test_url_check_runs_first(self, checker: DuplicateChecker, articles: MemoryArticleStore) -> None:
        articles.add(title="Same title", source_url="https://news.example.com/news/7")
        verdict = await checker.check_content("Same title", "body", url="https://news.example.com/news/7")
        assert verdict.reason == "url"

    async def test_unique_article(self, checker: DuplicateChecker, articles: MemoryArticleStore) -> None:
        articles.add(title="Something else entirely", content="unrelated words here")
        verdict = await checker.check_content("Refrigerant guide", WORDS, url="https://news.example.com/news/8")
        assert not verdict.is_duplicate
        assert verdict.reason is None

    def test_features_split_on_word_boundaries(self) -> None:
        features = content_features("Pressure, pressure and more pressure in the compressor")
        assert features[0] == "pressure"
        assert "compressor" in features
        assert "in" not in features


# ---------------------------------------------------------------------------
# Quality
# ---------------------------------------------------------------------------


class TestQualityScorer:
    def test_complete_article_scores_high(self) -> None:
        report = QualityScorer().score(
            GOOD_TITLE,
            GOOD_TEXT,
            author="Reporter",
            has_date=True,
            image_count=1,
            tags=["冷氣", "冷媒", "保養"],
        )
        assert report.issues == []
        assert report.score == pytest.approx(94.0)
        assert report.breakdown["structure"] == 40.0

    def test_empty_article_scores_zero(self) -> None:
        report = QualityScorer().score("", "")
        assert report.score == 0.0
        assert report.is_low(40)
        assert "missing title" in report.issues
        assert "missing tags" in report.issues

    def test_every_issue_costs_points(self) -> None:
        full = QualityScorer().score(GOOD_TITLE, GOOD_TEXT, "Reporter", True, 1, ["a", "b", "c"])
        fewer_tags = QualityScorer().score(GOOD_TITLE, GOOD_TEXT, "Reporter", True, 1, ["a"])
        assert "fewer than 3 tags" in fewer_tags.issues
        assert full.score - fewer_tags.score == pytest.approx(5.0)

    def test_non_chinese_text_is_penalised(self) -> None:
        report = QualityScorer().score("An English headline", "Plain english words only. " * 40)
        assert "less than half of the text is Chinese" in report.issues
        assert report.breakdown["language"] == 50.0

    def test_language_check_can_be_disabled(self) -> None:
        report = QualityScorer(expect_cjk=False).score("An English headline", "Plain english words only. " * 40)
        assert "less than half of the text is Chinese" not in report.issues

    def test_keyword_stuffing_is_flagged(self) -> None:
        report = QualityScorer(keywords=["冷媒"]).score(GOOD_TITLE, GOOD_TEXT)
        assert "keyword density too high" in report.issues
        assert report.breakdown["keywords"] == 40.0

    def test_missing_keywords_are_flagged(self) -> None:
        report = QualityScorer(keywords=["引擎"]).score(GOOD_TITLE, GOOD_TEXT)
        assert "no keyword found" in report.issues
        assert "title contains no keyword" in report.issues

    def test_default_keywords_match_chinese_articles(self) -> None:
        keywords = PipelineSettings.from_raw({})[0].seo_keywords
        report = QualityScorer(keywords).score("汽車冷氣冷媒檢查指南", GOOD_TEXT)
        assert "no keyword found" not in report.issues
        assert "title contains no keyword" not in report.issues
        assert report.breakdown["keywords"] > 0

    def test_garbled_text_is_flagged(self) -> None:
        report = QualityScorer().score(GOOD_TITLE, GOOD_TEXT + "\ufffd")
        assert "garbled characters" in report.issues

    def test_auto_fix_strips_markup(self) -> None:
        text, excerpt = QualityScorer().auto_fix("<p>Hello</p><p>World</p>")
        assert text == "Hello\n\nWorld"
        assert excerpt == "Hello World"
