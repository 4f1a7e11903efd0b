"""Prompt templates for rewriting and SEO generation.

Every prompt names the output language explicitly; the default is
Traditional Chinese, matching the seeded sources and the quality scorer.
"""

from typing import List

from ..config.settings import DEFAULT_LANGUAGE

LANGUAGE_NAMES = {
    "zh-TW": "Traditional Chinese (繁體中文)",
    "zh-HK": "Traditional Chinese (繁體中文)",
    "zh-CN": "Simplified Chinese (简体中文)",
    "en": "English",
    "ja": "Japanese (日本語)",
    "ko": "Korean (한국어)",
}


def language_name(language: str) -> str:
    return LANGUAGE_NAMES.get(language, language)


def language_requirement(language: str) -> str:
    """Output-language rule appended to every prompt."""
    rule = f"Write the entire response in {language_name(language)}."
    if language in ("zh-TW", "zh-HK"):
        rule += " Do not use Simplified Chinese characters. 請確認回應完全使用繁體中文。"
    return rule


def rewrite_prompt(content: str, keywords: List[str], language: str = DEFAULT_LANGUAGE) -> str:
    keyword_line = "、".join(keywords) if keywords else "none"
    return f"""You are a professional content editor for a car air-conditioning and refrigerant service website.
Rewrite the following news article in your own words.

Requirements:
- {language_requirement(language)}
- Keep every fact, figure and name from the original
- Write in clear paragraphs, 500-1000 words
- Work these SEO keywords in naturally where they fit: {keyword_line}
- Do not add a title, notes or any commentary about the rewrite

Original article:
{content}"""


def title_prompt(title: str, keywords: List[str], language: str = DEFAULT_LANGUAGE) -> str:
    keyword_line = "、".join(keywords) if keywords else "none"
    return f"""Rewrite this news headline so it is engaging and search-friendly.
Keep it under 50 characters and keep its meaning. Keywords to consider: {keyword_line}
{language_requirement(language)}
Reply with the headline only.

Headline: {title}"""


def seo_article_prompt(
    title: str, outline: List[str], keywords: List[str], language: str = DEFAULT_LANGUAGE
) -> str:
    sections = "\n".join(f"{i}. {item}" for i, item in enumerate(outline, 1))
    return f"""Write a professional article titled "{title}" for the Taiwanese car air-conditioning repair market.

Outline:
{sections}

SEO keywords (use them naturally): {"、".join(keywords)}

Requirements:
1. {language_requirement(language)}
2. 1000-1500 characters of body text
3. Practical information and advice with concrete examples
4. Professional but friendly tone
5. Use Markdown headings for the outline sections
6. End with a call to action to contact a professional service

Output the article body only."""
