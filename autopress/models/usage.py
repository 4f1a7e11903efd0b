"""Per-provider, per-day usage counters."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


def usage_key(provider: str, day: str) -> str:
    """Settings-store key of one usage record."""
    return f"usage:{provider}:{day}"


class ProviderUsageRecord(BaseModel):
    """Call counters of one provider for one calendar day.

    The hour and minute counters only count calls made inside the bucket named
    by ``hour_bucket`` / ``minute_bucket``; a call in a new bucket restarts the
    count at one.
    """

    provider: str = Field(..., description="Provider name")
    day: str = Field(..., description="Calendar day, YYYY-MM-DD")
    requests: int = Field(0, ge=0)
    successes: int = Field(0, ge=0)
    errors: int = Field(0, ge=0)
    hour_bucket: Optional[str] = Field(None, description="YYYY-MM-DDTHH of hour_count")
    hour_count: int = Field(0, ge=0)
    minute_bucket: Optional[str] = Field(None, description="YYYY-MM-DDTHH:mm of minute_count")
    minute_count: int = Field(0, ge=0)
    exhausted: bool = Field(False, description="Provider reported its quota as spent")
    updated_at: Optional[datetime] = None

    @property
    def key(self) -> str:
        return usage_key(self.provider, self.day)

    @property
    def error_rate(self) -> float:
        if self.requests == 0:
            return 0.0
        return self.errors / self.requests

    def used_in_hour(self, bucket: str) -> int:
        return self.hour_count if self.hour_bucket == bucket else 0

    def used_in_minute(self, bucket: str) -> int:
        return self.minute_count if self.minute_bucket == bucket else 0
