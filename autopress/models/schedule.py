"""Computed operating parameters of the pipeline."""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

SCHEDULE_CONFIG_KEY = "schedule_config"


class ScheduleConfig(BaseModel):
    """Live schedule derived from provider headroom."""

    crawl_interval: int = Field(240, description="Minutes between crawl passes", ge=1)
    seo_interval: int = Field(360, description="Minutes between SEO runs", ge=1)
    seo_count: int = Field(1, description="SEO articles per run", ge=1, le=3)
    max_article_count: int = Field(10, description="Published articles to retain", ge=1)
    cleanup_interval: int = Field(1440, description="Minutes between eviction passes", ge=1)
    best_provider: Optional[str] = Field(None, description="Currently favoured provider")
    backup_providers: List[str] = Field(default_factory=list, description="Fallback providers")
    last_optimized: Optional[datetime] = Field(None, description="When the schedule was computed")
