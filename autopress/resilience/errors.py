"""Error taxonomy for the pipeline."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional


class ErrorType(str, Enum):
    """Classification used by the error handler."""

    CONFIG = "config"
    DATABASE = "database"
    API = "api"
    SERVICE = "service"
    VALIDATION = "validation"


class PipelineError(Exception):
    """Base class for classified pipeline errors."""

    error_type = ErrorType.SERVICE

    def __init__(
        self,
        message: str,
        component: str = "pipeline",
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.component = component
        self.details = details or {}
        self.timestamp = datetime.now(timezone.utc)


class ConfigError(PipelineError):
    error_type = ErrorType.CONFIG


class StoreError(PipelineError):
    error_type = ErrorType.DATABASE


class ServiceError(PipelineError):
    error_type = ErrorType.SERVICE


class ValidationError(PipelineError):
    error_type = ErrorType.VALIDATION


QUOTA_MARKERS = ("quota", "rate limit", "exceeded")


class ProviderError(PipelineError):
    """A provider call failed.

    ``quota_exceeded`` is set for HTTP 429 responses and for messages that
    mention the quota or rate limit.
    """

    error_type = ErrorType.API

    def __init__(
        self,
        message: str,
        provider: str,
        status_code: Optional[int] = None,
        quota_exceeded: Optional[bool] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, component=f"provider:{provider}", details=details)
        self.provider = provider
        self.status_code = status_code
        if quota_exceeded is None:
            lowered = message.lower()
            quota_exceeded = status_code == 429 or any(m in lowered for m in QUOTA_MARKERS)
        self.quota_exceeded = quota_exceeded

    @property
    def retryable(self) -> bool:
        """Quota errors and client errors other than 408 are not worth retrying."""
        if self.quota_exceeded:
            return False
        if self.status_code is not None and 400 <= self.status_code < 500:
            return self.status_code == 408
        return True


def classify(exc: BaseException) -> ErrorType:
    """Map any exception onto an ErrorType."""
    if isinstance(exc, PipelineError):
        return exc.error_type
    return ErrorType.SERVICE
