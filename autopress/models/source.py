"""Source model for crawled news sites."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from .base import DBModel


class SourceSelectors(BaseModel):
    """Optional CSS selector hints for one site."""

    link: Optional[str] = Field(None, description="Selector for article links on the index page")
    title: Optional[str] = Field(None, description="Selector for the article title")
    content: Optional[str] = Field(None, description="Selector for the article body")
    author: Optional[str] = Field(None, description="Selector for the article author")


class Source(DBModel):
    """News site source model."""

    name: str = Field(..., description="Source display name")
    url: str = Field(..., description="Index page URL")
    feed_url: Optional[str] = Field(None, description="Optional RSS feed URL")
    enabled: bool = Field(True, description="Whether the source is crawled")
    max_articles_per_crawl: int = Field(5, description="Article cap per crawl", ge=1, le=50)
    crawl_interval: int = Field(60, description="Minutes between crawls of this source", ge=5, le=1440)
    last_crawl: Optional[datetime] = Field(None, description="When the source was last crawled")
    selectors: SourceSelectors = Field(default_factory=SourceSelectors)
