"""Article model for crawled, generated and published content."""

from datetime import datetime
from typing import List, Optional

from pydantic import Field, model_validator

from .base import DBModel


class Article(DBModel):
    """Article model."""

    source_id: Optional[int] = Field(None, description="Foreign key to sources table")
    source_name: Optional[str] = Field(None, description="Display name of the origin")
    source_url: str = Field("", description="URL the article was crawled from")
    title: str = Field(..., description="Article title")
    slug: str = Field(..., description="URL slug")
    content: str = Field(..., description="Article body")
    excerpt: str = Field("", description="Short summary")
    author: Optional[str] = Field(None, description="Article author")
    fingerprint: str = Field(..., description="Hash of the cleaned body")
    is_published: bool = Field(False, description="Published or draft")
    published_at: Optional[datetime] = Field(None, description="Publication timestamp")
    view_count: int = Field(0, description="Traffic counter", ge=0)
    tags: List[str] = Field(default_factory=list, description="Tag list")
    ai_provider: Optional[str] = Field(None, description="Provider that rewrote or wrote the text")
    quality_score: Optional[float] = Field(None, description="Composite quality score 0-100")
    quality_flagged: bool = Field(False, description="Scored below the quality threshold")

    @model_validator(mode="after")
    def check_publish_state(self) -> "Article":
        """A published article always carries its publish timestamp."""
        if self.is_published and self.published_at is None:
            raise ValueError("published article requires published_at")
        return self
