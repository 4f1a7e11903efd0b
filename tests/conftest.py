"""Shared fixtures: in-memory stores, a controllable clock and mock providers."""

from __future__ import annotations

from typing import Dict, List

import pytest

from autopress.config import ConfigModel
from autopress.config.settings import PROVIDER_NAMES
from autopress.dispatch import DispatchScheduler, MockProvider, ProviderRegistry, RateLedger

from fakes import (
    Clock,
    MemoryArticleStore,
    MemoryRunStore,
    MemorySettingsStore,
    MemorySourceStore,
    RecordingSleep,
    make_provider,
)


@pytest.fixture(autouse=True)
def _no_env_keys(monkeypatch) -> None:
    """Provider keys only ever come from the settings store in tests."""
    for name in PROVIDER_NAMES + ("alpha", "beta", "gamma", "delta"):
        monkeypatch.delenv(f"AUTOPRESS_{name.upper()}_API_KEY", raising=False)


@pytest.fixture()
def clock() -> Clock:
    return Clock()


@pytest.fixture()
def sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture()
def config() -> ConfigModel:
    return ConfigModel(timezone="UTC")


@pytest.fixture()
def settings_store() -> MemorySettingsStore:
    return MemorySettingsStore()


@pytest.fixture()
def articles(clock: Clock) -> MemoryArticleStore:
    return MemoryArticleStore(now=clock)


@pytest.fixture()
def sources() -> MemorySourceStore:
    return MemorySourceStore()


@pytest.fixture()
def runs() -> MemoryRunStore:
    return MemoryRunStore()


@pytest.fixture()
def providers() -> List[MockProvider]:
    return [make_provider("alpha", 1), make_provider("beta", 2)]


@pytest.fixture()
def registry(providers: List[MockProvider]) -> ProviderRegistry:
    return ProviderRegistry(providers)


@pytest.fixture()
def keys() -> Dict[str, str]:
    return {"alpha_api_key": "key-a", "beta_api_key": "key-b"}


@pytest.fixture()
def ledger(settings_store: MemorySettingsStore, clock: Clock) -> RateLedger:
    return RateLedger(settings_store, "UTC", now=clock)


@pytest.fixture()
def dispatch(
    registry: ProviderRegistry,
    ledger: RateLedger,
    settings_store: MemorySettingsStore,
    config: ConfigModel,
    keys: Dict[str, str],
    sleep: RecordingSleep,
    clock: Clock,
) -> DispatchScheduler:
    settings_store.data.update(keys)
    return DispatchScheduler(registry, ledger, settings_store, config.dispatch, sleep=sleep, now=clock)
