import asyncio

import pytest

from fetchgate.core.services.fetch_orchestrator import FetchOrchestrator
from fetchgate.domain.events.fetch_events import CacheHit
from fetchgate.domain.models.common import ResourceKey, UpstreamTemplate, make_cache_key
from fetchgate.domain.models.errors import ErrorKind
from fetchgate.domain.models.fetch import FetchedPayload, FetchFailure, Resolution
from fetchgate.infrastructure.cache.caching_service import ExpiringCache
from fetchgate.infrastructure.resilience.admission_gate import AdmissionGate
from fetchgate.infrastructure.resilience.api_retry import RetryingFetcher, RetryPolicy
from fetchgate.infrastructure.resilience.fallback import FallbackEscalator

from conftest import BlockingStrategy, ScriptedStrategy

TEMPLATE = UpstreamTemplate("https://upstream.test/results?roll={key}")
KEY = ResourceKey("KTE20CS001")

@pytest.fixture
def build(recording_sleep, event_sink):
    def _build(strategy, max_concurrent=4, max_retries=2, cache=None, secondary=None, fallback_enabled=False):
        cache = cache if cache is not None else ExpiringCache(default_ttl=300)
        fetcher = RetryingFetcher(strategy, event_sink=event_sink, sleep=recording_sleep)
        strategies = [strategy] + ([secondary] if secondary else [])
        return FetchOrchestrator(
            cache=cache,
            gate=AdmissionGate(max_concurrent=max_concurrent),
            escalator=FallbackEscalator(fetcher, secondary=secondary, event_sink=event_sink),
            upstream=TEMPLATE,
            retry_policy=RetryPolicy(max_retries=max_retries, backoff_base=0.01, timeout=1.0),
            cache_ttl=60,
            fallback_enabled=fallback_enabled,
            event_sink=event_sink,
            strategies=strategies,
        )
    return _build

@pytest.mark.asyncio
async def test_cache_hit_skips_upstream(build, events):
    strategy = ScriptedStrategy([200])
    cache = ExpiringCache(default_ttl=300)
    cached = FetchedPayload(body=b"<html>cached</html>", headers={})
    cache.set(make_cache_key(KEY), cached)
    orchestrator = build(strategy, cache=cache)

    result = await orchestrator.resolve(KEY)

    assert isinstance(result, Resolution)
    assert result.from_cache is True
    assert result.payload is cached
    assert strategy.calls == []
    assert any(isinstance(e, CacheHit) for e in events)

@pytest.mark.asyncio
async def test_miss_fetches_once_and_caches_the_returned_value(build, mocker):
    strategy = ScriptedStrategy([b"<html>fresh</html>"])
    cache = ExpiringCache(default_ttl=300)
    set_spy = mocker.spy(cache, "set")
    orchestrator = build(strategy, cache=cache)

    result = await orchestrator.resolve(KEY)

    assert result.from_cache is False
    assert result.payload.body == b"<html>fresh</html>"
    assert set_spy.call_count == 1
    args, kwargs = set_spy.call_args
    assert args[0] == make_cache_key(KEY)
    assert args[1] == result.payload
    assert kwargs["ttl"] == 60
    assert strategy.calls[0].url == "https://upstream.test/results?roll=KTE20CS001"

@pytest.mark.asyncio
async def test_second_resolve_is_served_from_cache(build):
    strategy = ScriptedStrategy([200])
    orchestrator = build(strategy)

    first = await orchestrator.resolve(KEY)
    second = await orchestrator.resolve(KEY)

    assert first.from_cache is False
    assert second.from_cache is True
    assert second.payload == first.payload
    assert len(strategy.calls) == 1

@pytest.mark.asyncio
async def test_failures_are_not_cached(build):
    strategy = ScriptedStrategy([404, 200])
    cache = ExpiringCache(default_ttl=300)
    orchestrator = build(strategy, cache=cache)

    first = await orchestrator.resolve(KEY)
    assert isinstance(first, FetchFailure)
    assert first.kind is ErrorKind.TERMINAL_UPSTREAM
    assert len(cache) == 0

    second = await orchestrator.resolve(KEY)
    assert isinstance(second, Resolution)
    assert len(strategy.calls) == 2

@pytest.mark.asyncio
async def test_fallback_payload_is_marked(build):
    primary = ScriptedStrategy([503])
    secondary = ScriptedStrategy([b"<html>rendered</html>"], name="playwright")
    orchestrator = build(primary, secondary=secondary, fallback_enabled=True, max_retries=1)

    result = await orchestrator.resolve(KEY)

    assert result.payload.served_by_fallback is True
    cached = await orchestrator.resolve(KEY)
    assert cached.from_cache is True
    assert cached.payload.served_by_fallback is True

@pytest.mark.asyncio
async def test_concurrency_never_exceeds_capacity(build):
    strategy = BlockingStrategy()
    orchestrator = build(strategy, max_concurrent=2)

    tasks = [asyncio.create_task(orchestrator.resolve(ResourceKey(f"K{i}"))) for i in range(3)]
    for _ in range(10):
        await asyncio.sleep(0)

    assert strategy.started == 2
    assert orchestrator.gate.waiting == 1

    strategy.release.set()
    results = await asyncio.wait_for(asyncio.gather(*tasks), timeout=1)

    assert strategy.started == 3
    assert strategy.max_in_flight == 2
    assert [r.payload.body for r in results] == [b"body:K0", b"body:K1", b"body:K2"]
    assert orchestrator.gate.in_use == 0

@pytest.mark.asyncio
async def test_permit_released_when_caller_cancels(build):
    strategy = BlockingStrategy()
    orchestrator = build(strategy, max_concurrent=1)

    task = asyncio.create_task(orchestrator.resolve(KEY))
    for _ in range(5):
        await asyncio.sleep(0)
    assert orchestrator.gate.in_use == 1

    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task
    assert orchestrator.gate.in_use == 0

@pytest.mark.asyncio
async def test_permit_released_after_failure(build):
    orchestrator = build(ScriptedStrategy([500]), max_concurrent=1)
    await orchestrator.resolve(KEY)
    assert orchestrator.gate.in_use == 0

@pytest.mark.asyncio
async def test_close_closes_every_strategy(build):
    primary = ScriptedStrategy([200])
    secondary = ScriptedStrategy([200], name="playwright")
    orchestrator = build(primary, secondary=secondary)

    await orchestrator.close()

    assert primary.closed and secondary.closed

@pytest.mark.asyncio
async def test_close_keeps_going_when_a_strategy_fails(build, mocker):
    primary = ScriptedStrategy([200])
    secondary = ScriptedStrategy([200], name="playwright")
    mocker.patch.object(primary, "close", side_effect=RuntimeError("already closed"))
    orchestrator = build(primary, secondary=secondary)

    await orchestrator.close()

    assert secondary.closed

@pytest.mark.asyncio
async def test_concurrent_misses_for_same_key_leave_one_entry(build):
    """Both callers fetch independently; the last writer's payload stays cached."""
    strategy = BlockingStrategy()
    cache = ExpiringCache(default_ttl=300)
    orchestrator = build(strategy, cache=cache, max_concurrent=2)

    tasks = [asyncio.create_task(orchestrator.resolve(KEY)) for _ in range(2)]
    for _ in range(10):
        await asyncio.sleep(0)
    assert strategy.started == 2

    strategy.release.set()
    results = await asyncio.wait_for(asyncio.gather(*tasks), timeout=1)

    assert all(isinstance(r, Resolution) and r.from_cache is False for r in results)
    assert len(cache) == 1
    assert cache.get(make_cache_key(KEY)) == results[-1].payload
    assert orchestrator.gate.in_use == 0
