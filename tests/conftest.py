import json
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from unittest.mock import MagicMock

import pytest
import requests
from fastapi.testclient import TestClient

from devstats.cache import MemoryBackend, StatsCache
from devstats.config import Settings
from devstats.fetchers import PLATFORMS
from devstats.main import create_app
from devstats.upstream import UpstreamClient

NOW = datetime(2024, 6, 15, 12, 0, tzinfo=timezone.utc)

RECORD = {"handle": "tourist", "rating": 3757}


def make_response(
    status: int = 200,
    json_body: Any = None,
    text: Optional[str] = None,
    headers: Optional[Dict[str, str]] = None,
    url: str = "https://upstream.test/",
) -> requests.Response:
    r = requests.Response()
    r.status_code = status
    if json_body is not None:
        r._content = json.dumps(json_body).encode("utf-8")
        r.headers["Content-Type"] = "application/json"
    else:
        r._content = (text or "").encode("utf-8")
    r.encoding = "utf-8"
    r.headers.update(headers or {})
    r.url = url
    return r


def routed_session(routes: Dict[str, Any]) -> MagicMock:
    """A mocked requests.Session answering from ``{url: response | exception | callable}``."""
    session = MagicMock(spec=requests.Session)

    def dispatch(method, url, **kwargs):
        if url not in routes:
            raise AssertionError(f"unexpected upstream call: {method} {url}")
        answer = routes[url]
        if callable(answer):
            answer = answer(method, url, **kwargs)
        if isinstance(answer, Exception):
            raise answer
        return answer

    session.request.side_effect = dispatch
    return session


def mocked_fetchers(**overrides):
    fetchers = {p: MagicMock(name=f"fetch_{p}", return_value=dict(RECORD)) for p in PLATFORMS}
    fetchers.update(overrides)
    return fetchers


class FakeClock:
    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def now():
    return lambda: NOW


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def settings() -> Settings:
    return Settings(
        DEVSTATS_CACHE_BACKEND="memory",
        DEVSTATS_CACHE_TTL=300,
        DEVSTATS_RATE_LIMIT=1000,
        DEVSTATS_RATE_PERIOD=60,
    )


@pytest.fixture
def make_client(settings, clock):
    """Build a TestClient around an app with an in-memory cache on a fake clock."""

    def build(routes=None, fetchers=None, app_settings=None, **kwargs):
        cache = StatsCache(MemoryBackend(clock=clock), ttl=(app_settings or settings).cache_ttl)
        upstream = UpstreamClient(routed_session(routes or {}), timeout=5)
        app = create_app(app_settings or settings, cache=cache, client=upstream, fetchers=fetchers)
        return TestClient(app, **kwargs)

    return build
