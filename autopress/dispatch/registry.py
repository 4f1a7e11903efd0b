"""Priority-ordered table of providers."""

from typing import Dict, Iterable, List, Optional

from .providers import (
    AIProvider,
    CohereProvider,
    GeminiProvider,
    OpenAICompatibleProvider,
    ProviderSpec,
)

DEFAULT_SPECS: List[ProviderSpec] = [
    ProviderSpec(name="deepseek", daily_limit=10000, hourly_limit=500, minute_limit=10,
                 priority=1, est_tokens=2000, model="deepseek-chat"),
    ProviderSpec(name="groq", daily_limit=14400, hourly_limit=600, minute_limit=30,
                 priority=2, est_tokens=1500, model="llama-3.1-70b-versatile"),
    ProviderSpec(name="gemini", daily_limit=1500, hourly_limit=60, minute_limit=15,
                 priority=3, est_tokens=2000, model="gemini-1.5-flash-latest"),
    ProviderSpec(name="cohere", daily_limit=100, hourly_limit=10, minute_limit=1,
                 priority=4, est_tokens=1000, model="command-r-plus"),
    ProviderSpec(name="zhipu", daily_limit=1000, hourly_limit=50, minute_limit=5,
                 priority=5, est_tokens=1500, model="glm-4-flash"),
    ProviderSpec(name="moonshot", daily_limit=500, hourly_limit=25, minute_limit=3,
                 priority=6, est_tokens=2000, model="moonshot-v1-8k"),
    ProviderSpec(name="openai", daily_limit=10000, hourly_limit=500, minute_limit=60,
                 priority=10, est_tokens=2000, is_free=False, model="gpt-3.5-turbo"),
]

BASE_URLS: Dict[str, Optional[str]] = {
    "deepseek": "https://api.deepseek.com/v1",
    "groq": "https://api.groq.com/openai/v1",
    "zhipu": "https://open.bigmodel.cn/api/paas/v4",
    "moonshot": "https://api.moonshot.cn/v1",
    "openai": None,
}


class ProviderRegistry:
    """Providers keyed by name, iterated in ascending priority."""

    def __init__(self, providers: Optional[Iterable[AIProvider]] = None) -> None:
        self._providers: Dict[str, AIProvider] = {}
        for provider in providers or []:
            self.register(provider)

    def register(self, provider: AIProvider) -> None:
        self._providers[provider.name] = provider

    def get(self, name: str) -> Optional[AIProvider]:
        return self._providers.get(name)

    def ordered(self, names: Optional[Iterable[str]] = None) -> List[AIProvider]:
        """Providers sorted by priority, optionally restricted to ``names``."""
        if names is None:
            providers = list(self._providers.values())
        else:
            providers = [self._providers[n] for n in names if n in self._providers]
        return sorted(providers, key=lambda p: (p.spec.priority, p.name))

    @property
    def names(self) -> List[str]:
        return [p.name for p in self.ordered()]

    def __len__(self) -> int:
        return len(self._providers)


def build_provider(spec: ProviderSpec) -> AIProvider:
    if spec.name == "gemini":
        return GeminiProvider(spec)
    if spec.name == "cohere":
        return CohereProvider(spec)
    return OpenAICompatibleProvider(spec, base_url=BASE_URLS.get(spec.name))


def default_registry() -> ProviderRegistry:
    """Registry with every supported provider."""
    return ProviderRegistry(build_provider(spec) for spec in DEFAULT_SPECS)
