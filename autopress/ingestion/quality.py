"""Content quality scoring for crawled articles."""

import re
from typing import List, Optional, Tuple

from .models import QualityReport
from .text import make_excerpt, strip_html

MIN_CONTENT_LENGTH = 200
IDEAL_CONTENT_LENGTH = 800
KEYWORD_DENSITY_MIN = 0.01
KEYWORD_DENSITY_MAX = 0.03
LOW_QUALITY_THRESHOLD = 40.0
ISSUE_PENALTY = 5

SENTENCE_SPLIT = re.compile(r"[\u3002\uff01\uff1f.!?]")
TAG_PATTERN = re.compile(r"<[^>]+>")
CJK_PATTERN = re.compile(r"[\u4e00-\u9fa5]")
GARBLED_PATTERNS = [
    re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f-\x9f]"),
    re.compile("\ufffd"),
]


def readability(text: str) -> float:
    """Score average sentence length: 20-40 characters is ideal."""
    plain = TAG_PATTERN.sub("", text)
    sentences = [s for s in SENTENCE_SPLIT.split(plain) if s.strip()]
    average = len(plain) / max(1, len(sentences))
    if 20 <= average <= 40:
        return 90.0
    if average > 60:
        return 50.0
    return 70.0


def paragraph_count(text: str) -> int:
    plain = TAG_PATTERN.sub("", text)
    return sum(1 for p in re.split(r"\n\s*\n+", plain) if len(p.strip()) > 50)


def cjk_ratio(text: str) -> float:
    total = len(re.sub(r"\s", "", text))
    return len(CJK_PATTERN.findall(text)) / total if total else 0.0


def too_much_html(text: str) -> bool:
    tags = TAG_PATTERN.findall(text)
    text_length = len(TAG_PATTERN.sub("", text))
    return len(tags) / max(1.0, text_length / 100) > 5


class QualityScorer:
    """Composite 0-100 score from structure, length, readability, language and keywords.

    Args:
        keywords: SEO keywords whose density is scored
        expect_cjk: Penalise text that is less than half CJK
    """

    def __init__(self, keywords: Optional[List[str]] = None, expect_cjk: bool = True) -> None:
        self.keywords = [k for k in (keywords or []) if k.strip()]
        self.expect_cjk = expect_cjk

    def _keyword_score(self, title: str, text: str, issues: List[str]) -> float:
        if not self.keywords:
            return 50.0
        haystack = f"{title} {text}".lower()
        occurrences = 0
        found = 0
        for keyword in self.keywords:
            hits = haystack.count(keyword.lower())
            if hits:
                occurrences += hits
                found += 1

        if not any(k.lower() in title.lower() for k in self.keywords):
            issues.append("title contains no keyword")

        if found == 0:
            issues.append("no keyword found")
            return 0.0
        average_length = sum(len(k) for k in self.keywords) / len(self.keywords)
        density = occurrences / (len(haystack) / average_length)
        if density < KEYWORD_DENSITY_MIN:
            issues.append("keyword density too low")
            return 30.0
        if density > KEYWORD_DENSITY_MAX:
            issues.append("keyword density too high")
            return 40.0
        return 80.0 + found / len(self.keywords) * 20

    def score(
        self,
        title: str,
        text: str,
        author: Optional[str] = None,
        has_date: bool = False,
        image_count: int = 0,
        tags: Optional[List[str]] = None,
    ) -> QualityReport:
        issues: List[str] = []
        tags = tags or []

        title = (title or "").strip()
        if not title:
            issues.append("missing title")
        elif len(title) < 10:
            issues.append("title shorter than 10 characters")
        elif len(title) > 60:
            issues.append("title longer than 60 characters")

        has_images = image_count > 0 or "<img" in text or "![" in text
        if not tags:
            issues.append("missing tags")
        elif len(tags) < 3:
            issues.append("fewer than 3 tags")

        if len(text) < MIN_CONTENT_LENGTH:
            issues.append(f"content shorter than {MIN_CONTENT_LENGTH} characters")
        elif len(text) < IDEAL_CONTENT_LENGTH:
            issues.append(f"content shorter than {IDEAL_CONTENT_LENGTH} characters")
        if paragraph_count(text) < 3:
            issues.append("fewer than 3 paragraphs")

        readable = readability(text)
        if readable < 60:
            issues.append("poor readability")
        if any(p.search(text) for p in GARBLED_PATTERNS):
            issues.append("garbled characters")
        if too_much_html(text):
            issues.append("too much HTML markup")

        language = 100.0
        if self.expect_cjk and cjk_ratio(f"{title} {text}") < 0.5:
            issues.append("less than half of the text is Chinese")
            language = 50.0

        keyword = self._keyword_score(title, text, issues)

        structure = (
            (10 if title else 0)
            + (5 if author and author.strip() else 0)
            + (5 if has_date else 0)
            + (10 if has_images else 0)
            + (10 if tags else 0)
        )
        length = min(100.0, len(text) / IDEAL_CONTENT_LENGTH * 100)
        total = structure + length * 0.3 + readable * 0.1 + language * 0.1 + keyword * 0.1
        overall = max(0.0, min(100.0, total - ISSUE_PENALTY * len(issues)))

        return QualityReport(
            score=round(overall, 2),
            breakdown={
                "structure": float(structure),
                "length": round(length, 2),
                "readability": readable,
                "language": language,
                "keywords": round(keyword, 2),
            },
            issues=issues,
        )

    def auto_fix(self, text: str) -> Tuple[str, str]:
        """Strip markup and boilerplate; return (text, excerpt)."""
        cleaned = strip_html(text)
        return cleaned, make_excerpt(cleaned, 150)
