"""
tests/test_dispatch.py

Provider selection, fallback, rewrite helpers and schedule computation.
"""

from __future__ import annotations

import asyncio
from typing import List

import httpx
import pytest

from autopress.config import DispatchConfig
from autopress.dispatch import (
    CohereProvider,
    DispatchScheduler,
    GeminiProvider,
    MockProvider,
    ProviderRegistry,
    RateLedger,
)
from autopress.models import SCHEDULE_CONFIG_KEY
from autopress.resilience import ProviderError

from fakes import Clock, MemorySettingsStore, RecordingSleep, make_provider, make_spec


def build_dispatch(
    providers: List[MockProvider],
    clock: Clock,
    config: DispatchConfig = None,
    with_keys: bool = True,
) -> DispatchScheduler:
    store = MemorySettingsStore()
    if with_keys:
        store.data.update({f"{p.name}_api_key": f"key-{p.name}" for p in providers})
    return DispatchScheduler(
        ProviderRegistry(providers),
        RateLedger(store, "UTC", now=clock),
        store,
        config or DispatchConfig(),
        sleep=RecordingSleep(),
        now=clock,
    )


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------


class TestRegistry:
    def test_orders_by_priority_regardless_of_registration(self) -> None:
        registry = ProviderRegistry([make_provider("late", 9), make_provider("early", 1)])
        assert registry.names == ["early", "late"]

    def test_ordered_restricts_to_known_candidates(self) -> None:
        registry = ProviderRegistry([make_provider("a", 1), make_provider("b", 2)])
        assert [p.name for p in registry.ordered(["b", "missing"])] == ["b"]


# ---------------------------------------------------------------------------
# Selection and fallback
# ---------------------------------------------------------------------------


class TestSelection:
    async def test_highest_priority_provider_with_key_wins(self, dispatch: DispatchScheduler) -> None:
        provider = await dispatch.select_provider()
        assert provider is not None and provider.name == "alpha"

    async def test_provider_without_key_is_skipped(
        self, dispatch: DispatchScheduler, settings_store: MemorySettingsStore
    ) -> None:
        settings_store.data["alpha_api_key"] = "  "
        provider = await dispatch.select_provider()
        assert provider.name == "beta"

    async def test_none_when_no_provider_has_a_key(
        self, dispatch: DispatchScheduler, settings_store: MemorySettingsStore
    ) -> None:
        settings_store.data.clear()
        assert await dispatch.select_provider() is None
        assert await dispatch.generate("prompt") is None

    async def test_can_dispatch_unknown_provider_is_false(self, dispatch: DispatchScheduler) -> None:
        assert not await dispatch.can_dispatch("nobody")

    async def test_spent_window_moves_to_the_next_provider(self, clock: Clock) -> None:
        alpha = make_provider("alpha", 1, minute=1)
        beta = make_provider("beta", 2)
        dispatch = build_dispatch([alpha, beta], clock)

        first = await dispatch.generate("one")
        second = await dispatch.generate("two")
        assert first.provider == "alpha"
        assert second.provider == "beta"
        assert len(alpha.calls) == 1


class TestGenerate:
    async def test_retryable_failure_retries_then_falls_back(self, clock: Clock) -> None:
        alpha = make_provider("alpha", 1, error=ProviderError("upstream down", provider="alpha", status_code=503))
        beta = make_provider("beta", 2, reply=lambda prompt: "beta text")
        dispatch = build_dispatch([alpha, beta], clock)

        result = await dispatch.generate("prompt")
        assert result.text == "beta text"
        assert result.provider == "beta"
        assert len(alpha.calls) == dispatch.config.max_retries
        usage = await dispatch.ledger.get("alpha")
        assert usage.errors == dispatch.config.max_retries

    async def test_quota_error_is_not_retried_and_marks_exhausted(self, clock: Clock) -> None:
        alpha = make_provider("alpha", 1, error=ProviderError("too many", provider="alpha", status_code=429))
        beta = make_provider("beta", 2)
        dispatch = build_dispatch([alpha, beta], clock)

        result = await dispatch.generate("prompt")
        assert result.provider == "beta"
        assert len(alpha.calls) == 1
        assert (await dispatch.ledger.get("alpha")).exhausted
        assert not await dispatch.can_dispatch("alpha")

    async def test_every_provider_failing_returns_none(self, clock: Clock) -> None:
        providers = [
            make_provider("alpha", 1, error=ProviderError("bad request", provider="alpha", status_code=400)),
            make_provider("beta", 2, error=ProviderError("bad request", provider="beta", status_code=400)),
        ]
        dispatch = build_dispatch(providers, clock)
        assert await dispatch.generate("prompt") is None
        assert all(len(p.calls) == 1 for p in providers)

    async def test_success_is_recorded(self, dispatch: DispatchScheduler) -> None:
        await dispatch.generate("prompt")
        usage = await dispatch.ledger.get("alpha")
        assert (usage.requests, usage.successes, usage.errors) == (1, 1, 0)

    async def test_cancelled_call_is_recorded_as_a_failure(self, clock: Clock) -> None:
        class StalledProvider(MockProvider):
            async def dispatch(self, prompt, api_key, max_tokens=2000, temperature=0.7, timeout=30.0) -> str:
                self.calls.append({"prompt": prompt})
                await asyncio.sleep(60)
                return "too late"

        dispatch = build_dispatch([StalledProvider(make_spec("alpha", 1))], clock)

        with pytest.raises(asyncio.TimeoutError):
            await asyncio.wait_for(dispatch.generate("prompt", timeout=30), timeout=0.05)
        usage = await dispatch.ledger.get("alpha")
        assert (usage.requests, usage.successes, usage.errors) == (1, 0, 1)
        assert usage.error_rate == 1.0

    async def test_pause_between_providers(self, clock: Clock) -> None:
        alpha = make_provider("alpha", 1, error=ProviderError("quota exceeded", provider="alpha"))
        dispatch = build_dispatch([alpha, make_provider("beta", 2)], clock)
        await dispatch.generate("prompt")
        assert dispatch.sleep.calls == [dispatch.config.provider_gap]

    async def test_error_rate_triggers_a_schedule_recompute(self, dispatch: DispatchScheduler) -> None:
        spec = dispatch.registry.get("alpha").spec
        for _ in range(5):
            await dispatch.ledger.reserve(spec)
        assert dispatch.schedule is None
        await dispatch.record_outcome("alpha", False)
        await dispatch.record_outcome("alpha", False)
        assert dispatch.schedule is not None


# ---------------------------------------------------------------------------
# Rewrite helpers
# ---------------------------------------------------------------------------


class TestRewrite:
    async def test_rewrite_keeps_original_when_nothing_works(self, clock: Clock) -> None:
        dispatch = build_dispatch([make_provider("alpha", 1)], clock, with_keys=False)
        assert await dispatch.rewrite("original body") == "original body"
        assert await dispatch.rewrite_title("Original") == "Original"

    async def test_title_is_first_line_without_quotes(self, clock: Clock) -> None:
        provider = make_provider("alpha", 1, reply=lambda prompt: '"Shiny New Title"\nWhy it works')
        dispatch = build_dispatch([provider], clock)
        assert await dispatch.rewrite_title("Old title") == "Shiny New Title"

    async def test_rewrite_article_reports_provider(self, clock: Clock) -> None:
        provider = make_provider("alpha", 1, reply=lambda prompt: "rewritten")
        dispatch = build_dispatch([provider], clock)
        result = await dispatch.rewrite_article("Old title", "Old body", ["refrigerant"])
        assert result.rewritten
        assert result.content == "rewritten"
        assert result.provider == "alpha"
        assert "refrigerant" in provider.calls[-1]["prompt"]

    async def test_prompts_require_traditional_chinese_by_default(self, clock: Clock) -> None:
        provider = make_provider("alpha", 1, reply=lambda prompt: "改寫後的內容")
        dispatch = build_dispatch([provider], clock)
        await dispatch.rewrite_article("舊標題", "舊內文", ["冷媒"])
        title_call, body_call = provider.calls
        for call in (title_call, body_call):
            assert "Traditional Chinese (繁體中文)" in call["prompt"]
            assert "Simplified" in call["prompt"]
        assert "冷媒" in body_call["prompt"]

    async def test_prompts_follow_the_requested_language(self, clock: Clock) -> None:
        provider = make_provider("alpha", 1, reply=lambda prompt: "rewritten")
        dispatch = build_dispatch([provider], clock)
        await dispatch.rewrite("Old body", ["refrigerant"], language="en")
        prompt = provider.calls[-1]["prompt"]
        assert "Write the entire response in English." in prompt
        assert "Chinese" not in prompt

    async def test_empty_body_is_not_sent(self, clock: Clock) -> None:
        provider = make_provider("alpha", 1)
        dispatch = build_dispatch([provider], clock)
        assert await dispatch.rewrite("   ") == "   "
        assert provider.calls == []


# ---------------------------------------------------------------------------
# compute_schedule
# ---------------------------------------------------------------------------


class TestComputeSchedule:
    async def test_defaults_without_usable_provider(self, clock: Clock) -> None:
        dispatch = build_dispatch([make_provider("alpha", 1)], clock, with_keys=False)
        schedule = await dispatch.compute_schedule()
        assert schedule.crawl_interval == 240
        assert schedule.seo_interval == 360
        assert schedule.best_provider is None

    async def test_floors_apply_to_generous_quota(self, clock: Clock) -> None:
        dispatch = build_dispatch([make_provider("alpha", 1), make_provider("beta", 2)], clock)
        schedule = await dispatch.compute_schedule()
        # 50/h * 0.8 = 40 safe calls: 3 min crawl and 2 min SEO before the floors
        assert schedule.crawl_interval == 30
        assert schedule.seo_interval == 60
        assert schedule.best_provider == "alpha"
        assert schedule.backup_providers == ["beta"]
        assert schedule.seo_count == 3
        assert schedule.max_article_count == 16

    async def test_best_provider_weighs_headroom_against_priority(self, clock: Clock) -> None:
        dispatch = build_dispatch(
            [make_provider("alpha", 1, daily=100), make_provider("beta", 2, daily=1000)], clock
        )
        schedule = await dispatch.compute_schedule()
        assert schedule.best_provider == "beta"

    async def test_low_total_quota_forces_slow_intervals(self, clock: Clock) -> None:
        dispatch = build_dispatch(
            [make_provider("alpha", 1, daily=20), make_provider("beta", 2, daily=20)], clock
        )
        schedule = await dispatch.compute_schedule()
        assert schedule.crawl_interval == 180
        assert schedule.seo_interval == 360

    async def test_many_backups_speed_up_intervals(self, clock: Clock) -> None:
        names = ["alpha", "beta", "gamma", "delta"]
        few = build_dispatch([make_provider(n, i + 1, hourly=4) for i, n in enumerate(names[:2])], clock)
        many = build_dispatch([make_provider(n, i + 1, hourly=4) for i, n in enumerate(names)], clock)
        # 4/h * 0.8 = 3 safe calls, one crawl per hour
        assert (await few.compute_schedule()).crawl_interval == 60
        assert (await many.compute_schedule()).crawl_interval == 42

    async def test_ceiling_caps_the_interval(self, clock: Clock) -> None:
        config = DispatchConfig(crawl_ceiling=100)
        dispatch = build_dispatch([make_provider("alpha", 1, hourly=1)], clock, config=config)
        schedule = await dispatch.compute_schedule()
        assert schedule.crawl_interval == 100

    async def test_schedule_is_persisted_and_reloaded(self, clock: Clock) -> None:
        dispatch = build_dispatch([make_provider("alpha", 1)], clock)
        computed = await dispatch.compute_schedule()
        assert await dispatch.settings_store.get_json(SCHEDULE_CONFIG_KEY) is not None

        reloaded = DispatchScheduler(
            dispatch.registry, dispatch.ledger, dispatch.settings_store, now=clock
        )
        loaded = await reloaded.load_schedule()
        assert loaded.crawl_interval == computed.crawl_interval
        assert loaded.best_provider == "alpha"

    async def test_usage_report_covers_every_provider(self, dispatch: DispatchScheduler) -> None:
        await dispatch.generate("prompt")
        reports = await dispatch.usage_report()
        assert [r.provider for r in reports] == ["alpha", "beta"]
        assert reports[0].requests == 1
        assert reports[0].success_rate == 1.0
        assert reports[1].has_key


# ---------------------------------------------------------------------------
# HTTP providers
# ---------------------------------------------------------------------------


class TestHTTPProviders:
    async def test_gemini_extracts_candidate_text(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.params["key"] == "secret"
            return httpx.Response(200, json={"candidates": [{"content": {"parts": [{"text": " hello "}]}}]})

        provider = GeminiProvider(make_spec("gemini", 3), transport=httpx.MockTransport(handler))
        assert await provider.dispatch("prompt", "secret") == "hello"

    async def test_cohere_rate_limit_is_a_quota_error(self) -> None:
        provider = CohereProvider(
            make_spec("cohere", 4),
            transport=httpx.MockTransport(lambda request: httpx.Response(429, text="slow down")),
        )
        with pytest.raises(ProviderError) as excinfo:
            await provider.dispatch("prompt", "secret")
        assert excinfo.value.quota_exceeded
        assert not excinfo.value.retryable

    async def test_empty_completion_is_an_error(self) -> None:
        provider = CohereProvider(
            make_spec("cohere", 4),
            transport=httpx.MockTransport(lambda request: httpx.Response(200, json={"generations": []})),
        )
        with pytest.raises(ProviderError, match="Empty completion"):
            await provider.dispatch("prompt", "secret")
