"""Text helpers shared by crawling, deduplication and publishing."""

import hashlib
import html
import re
import time
from typing import Optional
from urllib.parse import urlparse

CLEAN_PATTERN = re.compile(r"[^\u4e00-\u9fffa-z0-9]")
SCRIPT_PATTERN = re.compile(r"<(script|style|iframe)[^>]*>.*?</\1>", re.IGNORECASE | re.DOTALL)
BREAK_PATTERN = re.compile(r"<br\s*/?>|</p>", re.IGNORECASE)
TAG_PATTERN = re.compile(r"<[^>]+>")


def clean_text(text: str) -> str:
    """Lower-case and keep only CJK ideographs, a-z and 0-9."""
    return CLEAN_PATTERN.sub("", (text or "").lower())


def content_fingerprint(text: str) -> str:
    """md5 of the cleaned text."""
    return hashlib.md5(clean_text(text).encode("utf-8")).hexdigest()


def normalize_url(url: str) -> str:
    """Lower-case, drop query and fragment, drop the trailing slash."""
    url = (url or "").strip().lower()
    url = url.split("#", 1)[0].split("?", 1)[0]
    return url.rstrip("/")


def host_of(url: str) -> str:
    """Host name without a leading ``www.``."""
    host = (urlparse(url).hostname or "").lower()
    if host.startswith("www."):
        host = host[4:]
    return host


def slugify(title: str, timestamp_ms: Optional[int] = None) -> str:
    """ASCII slug: first 30 characters of the title plus a timestamp suffix."""
    if timestamp_ms is None:
        timestamp_ms = int(time.time() * 1000)
    slug = re.sub(r"[^a-z0-9\s]", "", (title or "").lower())
    slug = re.sub(r"\s+", "-", slug.strip())
    slug = re.sub(r"-+", "-", slug).strip("-")
    if len(slug) < 3:
        return f"news-{timestamp_ms}"
    return f"{slug[:30].rstrip('-')}-{timestamp_ms}"


def strip_html(text: str) -> str:
    """Drop script/style/iframe blocks and tags; decode entities; keep paragraphs."""
    text = SCRIPT_PATTERN.sub("", text or "")
    text = BREAK_PATTERN.sub("\n", text)
    text = TAG_PATTERN.sub("", text)
    text = html.unescape(text)
    return normalize_paragraphs(text)


def normalize_paragraphs(text: str) -> str:
    lines = [re.sub(r"[ \t\u3000]+", " ", line).strip() for line in (text or "").splitlines()]
    return "\n\n".join(line for line in lines if line)


def make_excerpt(text: str, length: int = 150) -> str:
    flat = re.sub(r"\s+", " ", strip_html(text)).strip()
    if len(flat) <= length:
        return flat
    return flat[: length - 3].rstrip() + "..."
