"""Rate-limited AI provider dispatch."""

from .ledger import QuotaRemaining, RateLedger
from .providers import (
    AIProvider,
    CohereProvider,
    GeminiProvider,
    MockProvider,
    OpenAICompatibleProvider,
    ProviderSpec,
)
from .registry import DEFAULT_SPECS, ProviderRegistry, build_provider, default_registry
from .scheduler import DispatchScheduler, GenerationResult, ProviderUsageReport, RewriteResult

__all__ = [
    "AIProvider",
    "CohereProvider",
    "DEFAULT_SPECS",
    "DispatchScheduler",
    "GeminiProvider",
    "GenerationResult",
    "MockProvider",
    "OpenAICompatibleProvider",
    "ProviderRegistry",
    "ProviderSpec",
    "ProviderUsageReport",
    "QuotaRemaining",
    "RateLedger",
    "RewriteResult",
    "build_provider",
    "default_registry",
]
