"""Configuration models."""

from typing import Dict, Optional

from pydantic import BaseModel, Field, model_validator


class PostgresConfig(BaseModel):
    """Postgres configuration."""

    host: str = Field("localhost", description="Database host")
    port: int = Field(5432, description="Database port")
    database: str = Field("autopress", description="Database name")
    user: str = Field("autopress_user", description="Database user")
    password: Optional[str] = Field(None, description="Database password")
    password_env: Optional[str] = Field(None, description="Environment variable for password")
    min_pool_size: int = Field(1, ge=1, le=20)
    max_pool_size: int = Field(10, ge=1, le=50)


class CrawlConfig(BaseModel):
    """Crawler tuning."""

    request_timeout: float = Field(30.0, description="Page fetch timeout in seconds", gt=0)
    batch_delay: float = Field(2.0, description="Pause between source batches", ge=0)
    article_delay: float = Field(3.0, description="Pause between articles of one source", ge=0)
    concurrency_limit: int = Field(3, description="Default sources per batch", ge=1, le=10)
    max_body_chars: int = Field(2000, description="Body text kept from selector extraction", ge=200)
    quality_threshold: float = Field(40.0, description="Scores below this are flagged", ge=0, le=100)
    user_agent: str = Field(
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0 Safari/537.36",
        description="User agent sent to source sites",
    )


class DispatchConfig(BaseModel):
    """AI dispatch and schedule-computation tuning."""

    safety_margin: float = Field(0.8, description="Share of remaining quota treated as usable", gt=0, le=1)
    low_quota_threshold: int = Field(50, description="Daily calls left across providers that triggers degrade", ge=0)
    calls_per_crawl: int = Field(2, description="Provider calls spent per crawled article", ge=1)
    calls_per_seo: int = Field(1, description="Provider calls spent per SEO article", ge=1)
    backup_speedup: float = Field(0.7, description="Interval factor when more than two fallbacks exist", gt=0, le=1)
    max_retries: int = Field(3, ge=1, le=10)
    base_delay: float = Field(1.0, ge=0)
    max_delay: float = Field(5.0, ge=0)
    rewrite_timeout: float = Field(30.0, description="Body rewrite timeout in seconds", gt=0)
    title_timeout: float = Field(15.0, description="Title rewrite timeout in seconds", gt=0)
    provider_gap: float = Field(1.0, description="Pause before falling back to the next provider", ge=0)
    error_rate_threshold: float = Field(0.3, ge=0, le=1)
    min_calls_for_error_rate: int = Field(5, ge=1)
    crawl_floor: int = Field(30, description="Shortest crawl interval in minutes", ge=1)
    crawl_ceiling: int = Field(1440, description="Longest crawl interval in minutes", ge=1)
    seo_floor: int = Field(60, description="Shortest SEO interval in minutes", ge=1)
    seo_ceiling: int = Field(10080, description="Longest SEO interval in minutes", ge=1)
    low_quota_crawl_interval: int = Field(180, ge=1)
    low_quota_seo_interval: int = Field(360, ge=1)
    default_crawl_interval: int = Field(240, description="Crawl interval without usable quota", ge=1)
    default_seo_interval: int = Field(360, description="SEO interval without usable quota", ge=1)


class EvictionWeights(BaseModel):
    """Score function of the eviction pass."""

    traffic_weight: float = Field(0.6, ge=0.0, le=1.0)
    freshness_weight: float = Field(0.3, ge=0.0, le=1.0)
    quality_weight: float = Field(0.1, ge=0.0, le=1.0)
    traffic_multiplier: float = Field(2.0, description="Points per view", ge=0)
    traffic_cap: float = Field(100.0, description="Maximum traffic score", gt=0)
    freshness_days: float = Field(50.0, description="Age at which freshness reaches zero", gt=0)
    quality_bonus: float = Field(20.0, description="Bonus for articles with enough views", ge=0)
    quality_min_views: int = Field(10, description="Views needed for the bonus", ge=0)

    @model_validator(mode="after")
    def validate_weights(self) -> "EvictionWeights":
        """Validate that weights sum to 1.0."""
        total = self.traffic_weight + self.freshness_weight + self.quality_weight
        if abs(total - 1.0) > 0.001:
            raise ValueError(f"Weights must sum to 1.0, got {total}")
        return self


class SEOConfig(BaseModel):
    """SEO article generation."""

    generation_timeout: float = Field(120.0, description="Wall-clock limit per article", gt=0)
    article_delay: float = Field(2.0, description="Pause between generated articles", ge=0)
    source_name: str = Field("AI Generated - SEO", description="Source name stamped on SEO articles")
    author: str = Field("Editorial Team", description="Author stamped on SEO articles")


class ResilienceConfig(BaseModel):
    """Health checks and recovery."""

    health_interval_minutes: int = Field(30, ge=1, le=1440)
    reconnect_attempts: int = Field(3, ge=1, le=10)
    reconnect_delay: float = Field(5.0, ge=0)
    max_errors_per_hour: int = Field(10, ge=1)
    max_errors_per_day: int = Field(100, ge=1)
    max_db_errors_per_hour: int = Field(3, ge=1)
    max_config_errors_per_hour: int = Field(2, ge=1)
    queue_size: int = Field(1000, ge=10)


class LoggingConfig(BaseModel):
    """Logging output."""

    level: str = Field("INFO", description="Root log level")
    json_output: bool = Field(False, description="Emit JSON lines instead of rich console output")


class ConfigModel(BaseModel):
    """Main configuration model."""

    timezone: str = Field("Asia/Taipei", description="Timezone of publish times and day rollover")
    postgres: PostgresConfig = Field(default_factory=PostgresConfig)
    crawl: CrawlConfig = Field(default_factory=CrawlConfig)
    dispatch: DispatchConfig = Field(default_factory=DispatchConfig)
    eviction: EvictionWeights = Field(default_factory=EvictionWeights)
    seo: SEOConfig = Field(default_factory=SEOConfig)
    resilience: ResilienceConfig = Field(default_factory=ResilienceConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


class SourceConfig(BaseModel):
    """Source configuration from sources.yaml."""

    name: str = Field(..., description="Source name")
    url: str = Field(..., description="Index page URL")
    feed_url: Optional[str] = Field(None, description="Optional RSS feed URL")
    enabled: bool = Field(True, description="Whether source is enabled")
    max_articles_per_crawl: int = Field(5, ge=1, le=50)
    crawl_interval: int = Field(60, description="Minutes between crawls", ge=5, le=1440)
    selectors: Dict[str, str] = Field(default_factory=dict, description="link/title/content/author selector hints")
