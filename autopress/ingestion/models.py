"""Data models for ingestion."""

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, Field


class FetchResult(BaseModel):
    """Result of fetching one page."""

    url: str = Field(..., description="Requested URL")
    final_url: str = Field(..., description="URL after redirects")
    success: bool = Field(..., description="Whether fetch was successful")
    text: str = Field("", description="Response body")
    status_code: Optional[int] = Field(None, description="HTTP status code")
    error: Optional[str] = Field(None, description="Error message if failed")


class CandidateLink(BaseModel):
    """Article link discovered on an index page or feed."""

    url: str = Field(..., description="Absolute article URL")
    text: str = Field("", description="Anchor text or feed title")


class FeedItem(BaseModel):
    """Parsed RSS feed item."""

    title: str = Field(..., description="Article title")
    link: str = Field(..., description="Article URL")
    published: Optional[datetime] = Field(None, description="Publication date")
    description: Optional[str] = Field(None, description="Article description/summary")
    source_name: str = Field(..., description="Source name")


class FeedResult(BaseModel):
    """Result of fetching an RSS feed."""

    source_name: str = Field(..., description="Source name")
    source_url: str = Field(..., description="RSS feed URL")
    success: bool = Field(..., description="Whether fetch was successful")
    items: List[FeedItem] = Field(default_factory=list, description="Parsed feed items")
    error: Optional[str] = Field(None, description="Error message if failed")

    @property
    def item_count(self) -> int:
        return len(self.items)


class ArticleContent(BaseModel):
    """Extracted article content."""

    url: str = Field(..., description="Article URL")
    title: str = Field("", description="Article title")
    text: str = Field("", description="Extracted main text")
    author: Optional[str] = Field(None, description="Author if found")
    published_at: Optional[datetime] = Field(None, description="Publication date")
    tags: List[str] = Field(default_factory=list, description="Keyword and tag metadata")
    image_count: int = Field(0, description="Images inside the article body")
    fetch_success: bool = Field(True, description="Whether fetch and extraction succeeded")
    error: Optional[str] = Field(None, description="Error message if failed")


class DuplicateVerdict(BaseModel):
    """Outcome of a duplicate check."""

    is_duplicate: bool = False
    reason: Optional[str] = Field(None, description="url, title, fingerprint or content")
    similarity: float = 0.0
    existing_id: Optional[int] = None


class QualityReport(BaseModel):
    """Composite quality score of one article."""

    score: float = Field(..., ge=0, le=100)
    breakdown: Dict[str, float] = Field(default_factory=dict)
    issues: List[str] = Field(default_factory=list)

    def is_low(self, threshold: float) -> bool:
        return self.score < threshold
