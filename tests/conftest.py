import asyncio
from typing import Any, Dict, List, Optional, Sequence, Union

import pytest

from fetchgate.domain.events.fetch_events import DomainEvent
from fetchgate.domain.interfaces.fetch_strategy import FetchStrategy
from fetchgate.domain.models.common import FetchTarget, ResourceKey, UpstreamTemplate
from fetchgate.domain.models.errors import UpstreamStatusError
from fetchgate.domain.models.fetch import FetchResponse
from fetchgate.infrastructure.config import settings as settings_module

ScriptItem = Union[int, bytes, Exception, FetchResponse]

class ScriptedStrategy(FetchStrategy):
    """Fake strategy replaying a fixed sequence of upstream behaviours.

    Each item is an HTTP status (2xx → success body, otherwise
    UpstreamStatusError), raw bytes (200 with that body), an exception to
    raise, or a ready FetchResponse. The last item repeats once exhausted.
    """

    def __init__(self, script: Sequence[ScriptItem], name: str = "scripted", body: bytes = b"<html>ok</html>"):
        self.script = list(script)
        self.name = name
        self.body = body
        self.calls: List[FetchTarget] = []
        self.timeouts: List[float] = []
        self.closed = False

    async def fetch(self, target: FetchTarget, timeout: float) -> FetchResponse:
        index = min(len(self.calls), len(self.script) - 1)
        self.calls.append(target)
        self.timeouts.append(timeout)
        item = self.script[index]
        if isinstance(item, Exception):
            raise item
        if isinstance(item, FetchResponse):
            return item
        if isinstance(item, bytes):
            return FetchResponse(status_code=200, body=item, headers={"content-type": "text/html"})
        if 200 <= item < 300:
            return FetchResponse(status_code=item, body=self.body, headers={"content-type": "text/html"})
        raise UpstreamStatusError(item)

    async def close(self) -> None:
        self.closed = True

class BlockingStrategy(FetchStrategy):
    """Fake strategy whose calls park until the test releases them."""

    name = "blocking"

    def __init__(self):
        self.release = asyncio.Event()
        self.started = 0
        self.in_flight = 0
        self.max_in_flight = 0

    async def fetch(self, target: FetchTarget, timeout: float) -> FetchResponse:
        self.started += 1
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await self.release.wait()
        finally:
            self.in_flight -= 1
        return FetchResponse(status_code=200, body=f"body:{target.key}".encode(), headers={})

class RecordingSleep:
    """Drop-in for asyncio.sleep that records delays and returns immediately."""

    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)
        await asyncio.sleep(0)

@pytest.fixture
def target() -> FetchTarget:
    return UpstreamTemplate("https://upstream.test/results?roll={key}").build(ResourceKey("KTE20CS001"))

@pytest.fixture
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()

@pytest.fixture
def events() -> List[DomainEvent]:
    return []

@pytest.fixture
def event_sink(events):
    return events.append

@pytest.fixture(autouse=True)
def isolated_configuration(monkeypatch):
    """Keep tests independent from any real ~/.fetchgate/config.yaml or .env file."""
    monkeypatch.setattr(settings_module, "_loaded", True)
    monkeypatch.setattr(settings_module, "_config", {})
    for name in (
        "PORT", "HOST", "MAX_CONCURRENT", "REQUEST_TIMEOUT", "MAX_RETRIES", "BACKOFF_BASE",
        "BACKOFF_MAX", "CACHE_TTL", "CACHE_CHECK_PERIOD", "CACHE_MAX_ITEMS", "PLAYWRIGHT_FALLBACK",
        "UPSTREAM_URL_TEMPLATE", "USER_AGENT", "LOG_LEVEL", "LOG_FILE", "LOG_FORMAT",
    ):
        monkeypatch.delenv(name, raising=False)
    yield
    settings_module.clear_test_config()
