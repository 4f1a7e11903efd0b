"""Crawl run results."""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from .base import DBModel


class CrawlResult(BaseModel):
    """Outcome of crawling one source."""

    source_id: Optional[int] = None
    source_name: str
    success: bool = False
    articles_found: int = 0
    articles_processed: int = 0
    articles_published: int = 0
    articles_flagged: int = 0
    duplicates: int = 0
    errors: List[str] = Field(default_factory=list)
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None

    @property
    def duration(self) -> float:
        if self.started_at and self.finished_at:
            return (self.finished_at - self.started_at).total_seconds()
        return 0.0

    @property
    def outcome(self) -> str:
        """success, partial or failure."""
        if self.articles_processed > 0 and not self.errors:
            return "success"
        if self.articles_processed > 0:
            return "partial"
        return "failure"


class CrawlSummary(BaseModel):
    """Aggregate of one crawl pass over all sources."""

    total_sources: int = 0
    successful_sources: int = 0
    total_articles_found: int = 0
    total_articles_processed: int = 0
    total_articles_published: int = 0
    total_duplicates: int = 0
    total_errors: int = 0
    results: List[CrawlResult] = Field(default_factory=list)

    @classmethod
    def from_results(cls, results: List[CrawlResult]) -> "CrawlSummary":
        return cls(
            total_sources=len(results),
            successful_sources=sum(1 for r in results if r.success),
            total_articles_found=sum(r.articles_found for r in results),
            total_articles_processed=sum(r.articles_processed for r in results),
            total_articles_published=sum(r.articles_published for r in results),
            total_duplicates=sum(r.duplicates for r in results),
            total_errors=sum(len(r.errors) for r in results),
            results=results,
        )

    def stats(self) -> Dict[str, Any]:
        """Statistics retained after the run."""
        return self.model_dump(exclude={"results"})


class CrawlRun(DBModel):
    """Stored statistics of one crawl pass."""

    started_at: datetime = Field(..., description="When the pass started")
    finished_at: Optional[datetime] = Field(None, description="When the pass finished")
    status: str = Field("running", description="Run status (running, success, failed)")
    stats_json: Optional[Dict[str, Any]] = Field(None, description="Aggregate crawl statistics")
