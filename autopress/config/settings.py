"""Typed view over the key/value settings store.

Every scheduler reads its settings through :func:`load_settings` at the start of
a run, so edits made in the store take effect within one scheduling cycle.
Values are stored as strings; :meth:`PipelineSettings.from_raw` parses them,
validates them and clamps numbers into their allowed ranges.
"""

import logging
import re
from typing import TYPE_CHECKING, Dict, List, Optional, Tuple

from pydantic import BaseModel, Field

from .loader import env_api_key

if TYPE_CHECKING:
    from ..db.store import SettingsStore

logger = logging.getLogger(__name__)

TIME_PATTERN = re.compile(r"^([01]?\d|2[0-3]):[0-5]\d$")

CRAWL_ENABLED = "auto_crawl_enabled"
CRAWL_INTERVAL = "auto_crawl_interval"
AUTO_PUBLISH = "auto_publish_enabled"
CRAWL_PUBLISH_IMMEDIATELY = "crawl_publish_immediately"
PUBLISH_SCHEDULE = "publish_schedule"
SEO_ENABLED = "auto_seo_enabled"
SEO_SCHEDULE = "seo_generation_schedule"
SEO_DAILY_COUNT = "seo_daily_count"
SEO_INTERVAL = "seo_interval_hours"
MAX_ARTICLE_COUNT = "max_article_count"
CLEANUP_INTERVAL = "cleanup_interval_hours"
AI_REWRITE = "ai_rewrite_enabled"
SEO_KEYWORDS = "seo_keywords"
PARALLEL_CRAWLING = "parallel_crawling"
CONCURRENCY_LIMIT = "crawl_concurrency_limit"
MIN_VIEWS_TO_KEEP = "min_view_count_to_keep"
TELEGRAM_TOKEN = "telegram_bot_token"
TELEGRAM_CHAT = "telegram_chat_id"
NOTIFY_SUCCESS = "notify_on_success"
NOTIFY_FAILURE = "notify_on_failure"
NOTIFY_PARTIAL = "notify_on_partial"
CONTENT_LANGUAGE = "content_language"

API_KEY_SUFFIX = "_api_key"

DEFAULT_LANGUAGE = "zh-TW"
# language tags whose text is scored as CJK
CJK_LANGUAGES = ("zh", "ja", "ko")

PROVIDER_NAMES = ("deepseek", "groq", "gemini", "cohere", "zhipu", "moonshot", "openai")

DEFAULT_SETTINGS: Dict[str, str] = {
    CRAWL_ENABLED: "true",
    CRAWL_INTERVAL: "60",
    AUTO_PUBLISH: "true",
    CRAWL_PUBLISH_IMMEDIATELY: "false",
    PUBLISH_SCHEDULE: "09:00,15:00,21:00",
    SEO_ENABLED: "true",
    SEO_SCHEDULE: "10:00",
    SEO_DAILY_COUNT: "1",
    SEO_INTERVAL: "6",
    MAX_ARTICLE_COUNT: "20",
    CLEANUP_INTERVAL: "1",
    AI_REWRITE: "true",
    SEO_KEYWORDS: "汽車冷氣,冷媒,冷氣維修",
    CONTENT_LANGUAGE: DEFAULT_LANGUAGE,
    PARALLEL_CRAWLING: "true",
    CONCURRENCY_LIMIT: "3",
    MIN_VIEWS_TO_KEEP: "0",
    NOTIFY_SUCCESS: "false",
    NOTIFY_FAILURE: "true",
    NOTIFY_PARTIAL: "false",
}
for _name in PROVIDER_NAMES:
    DEFAULT_SETTINGS[f"{_name}{API_KEY_SUFFIX}"] = ""

# key -> (min, max)
INT_RANGES: Dict[str, Tuple[int, int]] = {
    CRAWL_INTERVAL: (5, 1440),
    SEO_INTERVAL: (1, 168),
    SEO_DAILY_COUNT: (1, 10),
    MAX_ARTICLE_COUNT: (10, 100),
    CLEANUP_INTERVAL: (1, 24),
    CONCURRENCY_LIMIT: (1, 10),
    MIN_VIEWS_TO_KEEP: (0, 1_000_000),
}


class SettingsReport(BaseModel):
    """Problems found while loading settings."""

    errors: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)

    @property
    def valid(self) -> bool:
        return not self.errors


def parse_times(raw: Optional[str]) -> Tuple[List[str], List[str]]:
    """Split a comma-separated ``HH:MM`` list into (valid, invalid).

    Valid entries are normalised to zero-padded ``HH:MM``, de-duplicated and
    sorted.
    """
    valid = set()
    invalid = []
    for part in (raw or "").split(","):
        part = part.strip()
        if not part:
            continue
        if TIME_PATTERN.match(part):
            hour, minute = part.split(":")
            valid.add(f"{int(hour):02d}:{minute}")
        else:
            invalid.append(part)
    return sorted(valid), invalid


def parse_bool(raw: Optional[str], default: bool) -> bool:
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in ("true", "1", "yes", "on")


def parse_csv(raw: Optional[str]) -> List[str]:
    return [part.strip() for part in (raw or "").split(",") if part.strip()]


class PipelineSettings(BaseModel):
    """Parsed, validated and clamped dynamic settings."""

    crawl_enabled: bool = True
    crawl_interval: int = Field(60, description="Minutes between crawl passes")
    auto_publish: bool = True
    crawl_publish_immediately: bool = False
    publish_times: List[str] = Field(default_factory=lambda: ["09:00", "15:00", "21:00"])
    seo_enabled: bool = True
    seo_times: List[str] = Field(default_factory=lambda: ["10:00"])
    seo_daily_count: int = 1
    seo_interval_hours: int = 6
    max_article_count: int = 20
    cleanup_interval_hours: int = 1
    ai_rewrite_enabled: bool = True
    seo_keywords: List[str] = Field(default_factory=list)
    content_language: str = Field(DEFAULT_LANGUAGE, description="Language tag every prompt asks for")
    parallel_crawling: bool = True
    concurrency_limit: int = 3
    min_view_count_to_keep: int = 0
    api_keys: Dict[str, str] = Field(default_factory=dict)
    telegram_bot_token: Optional[str] = None
    telegram_chat_id: Optional[str] = None
    notify_on_success: bool = False
    notify_on_failure: bool = True
    notify_on_partial: bool = False

    def api_key(self, provider: str) -> Optional[str]:
        """Key from the store, falling back to the environment."""
        return self.api_keys.get(provider) or env_api_key(provider)

    @property
    def cjk_content(self) -> bool:
        """True when generated text is expected to be mostly CJK."""
        return self.content_language.split("-")[0].lower() in CJK_LANGUAGES

    @classmethod
    def from_raw(cls, raw: Dict[str, str]) -> Tuple["PipelineSettings", SettingsReport]:
        report = SettingsReport()
        merged = dict(DEFAULT_SETTINGS)
        merged.update({k: v for k, v in raw.items() if v is not None})

        def number(key: str) -> int:
            lo, hi = INT_RANGES[key]
            value = merged.get(key, "")
            try:
                parsed = int(str(value).strip())
            except ValueError:
                report.errors.append(f"{key}: '{value}' is not a number, using {DEFAULT_SETTINGS[key]}")
                parsed = int(DEFAULT_SETTINGS[key])
            if parsed < lo or parsed > hi:
                clamped = min(max(parsed, lo), hi)
                report.warnings.append(f"{key}: {parsed} outside [{lo}, {hi}], clamped to {clamped}")
                parsed = clamped
            return parsed

        def times(key: str) -> List[str]:
            valid, invalid = parse_times(merged.get(key))
            for entry in invalid:
                report.warnings.append(f"{key}: dropped invalid time '{entry}'")
            return valid

        api_keys = {}
        for key, value in merged.items():
            if key.endswith(API_KEY_SUFFIX) and value and value.strip():
                api_keys[key[: -len(API_KEY_SUFFIX)]] = value.strip()

        settings = cls(
            crawl_enabled=parse_bool(merged.get(CRAWL_ENABLED), True),
            crawl_interval=number(CRAWL_INTERVAL),
            auto_publish=parse_bool(merged.get(AUTO_PUBLISH), True),
            crawl_publish_immediately=parse_bool(merged.get(CRAWL_PUBLISH_IMMEDIATELY), False),
            publish_times=times(PUBLISH_SCHEDULE),
            seo_enabled=parse_bool(merged.get(SEO_ENABLED), True),
            seo_times=times(SEO_SCHEDULE),
            seo_daily_count=number(SEO_DAILY_COUNT),
            seo_interval_hours=number(SEO_INTERVAL),
            max_article_count=number(MAX_ARTICLE_COUNT),
            cleanup_interval_hours=number(CLEANUP_INTERVAL),
            ai_rewrite_enabled=parse_bool(merged.get(AI_REWRITE), True),
            seo_keywords=parse_csv(merged.get(SEO_KEYWORDS)),
            content_language=(merged.get(CONTENT_LANGUAGE) or "").strip() or DEFAULT_LANGUAGE,
            parallel_crawling=parse_bool(merged.get(PARALLEL_CRAWLING), True),
            concurrency_limit=number(CONCURRENCY_LIMIT),
            min_view_count_to_keep=number(MIN_VIEWS_TO_KEEP),
            api_keys=api_keys,
            telegram_bot_token=(merged.get(TELEGRAM_TOKEN) or "").strip() or None,
            telegram_chat_id=(merged.get(TELEGRAM_CHAT) or "").strip() or None,
            notify_on_success=parse_bool(merged.get(NOTIFY_SUCCESS), False),
            notify_on_failure=parse_bool(merged.get(NOTIFY_FAILURE), True),
            notify_on_partial=parse_bool(merged.get(NOTIFY_PARTIAL), False),
        )

        if settings.seo_enabled and not any(settings.api_key(p) for p in PROVIDER_NAMES):
            report.warnings.append("SEO generation is enabled but no provider API key is configured")

        return settings, report


async def load_settings(store: "SettingsStore") -> PipelineSettings:
    """Read, validate and clamp the current settings."""
    raw = await store.get_all()
    settings, report = PipelineSettings.from_raw(raw)
    for warning in report.warnings:
        logger.warning("Settings: %s", warning)
    for error in report.errors:
        logger.error("Settings: %s", error)
    return settings


async def validate_settings(store: "SettingsStore") -> SettingsReport:
    """Validate the stored settings without applying them."""
    raw = await store.get_all()
    report = PipelineSettings.from_raw(raw)[1]
    for key in (CRAWL_INTERVAL, SEO_INTERVAL, MAX_ARTICLE_COUNT):
        if not (raw.get(key) or "").strip():
            report.errors.append(f"Required setting {key} is not set")
    return report


async def auto_repair_settings(store: "SettingsStore") -> List[str]:
    """Insert defaults for missing keys; present values are never overwritten."""
    repaired = []
    for key, value in DEFAULT_SETTINGS.items():
        if await store.set_default(key, value):
            repaired.append(key)
    if repaired:
        logger.info("Repaired %d missing settings: %s", len(repaired), ", ".join(repaired))
    return repaired
