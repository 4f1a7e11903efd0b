"""Error taxonomy, retries, recovery and health checks."""

from .errors import (
    ConfigError,
    ErrorType,
    PipelineError,
    ProviderError,
    ServiceError,
    StoreError,
    ValidationError,
    classify,
)
from .handler import ErrorEvent, ErrorHandler, HandlerHealth
from .health import HealthChecker, HealthReport, print_health_report
from .retry import backoff_delay, retry_async

__all__ = [
    "ConfigError",
    "ErrorType",
    "PipelineError",
    "ProviderError",
    "ServiceError",
    "StoreError",
    "ValidationError",
    "classify",
    "ErrorEvent",
    "ErrorHandler",
    "HandlerHealth",
    "HealthChecker",
    "HealthReport",
    "print_health_report",
    "backoff_delay",
    "retry_async",
]
