"""Shared pytest fixtures for genproxy tests.

The upstream prediction API is never contacted: every test talks to a
:class:`FakeUpstream` through ``httpx.MockTransport``, and polling delays are
recorded by a fake sleep instead of being waited out.
"""

from __future__ import annotations

import random
from collections.abc import Generator
from typing import Any

import httpx
import pytest
from fastapi.testclient import TestClient

from genproxy.core.config import GenProxyConfig
from genproxy.core.proxy import GenerationProxy

API_KEY = "r8_test_0123456789abcdef"
PREDICTION_ID = "pred-123"


def prediction_response(
    status: str,
    output: Any = None,
    error: Any = None,
    prediction_id: str = PREDICTION_ID,
    status_code: int = 200,
) -> httpx.Response:
    """Build an upstream prediction response.

    Args:
        status: Upstream status string (``starting``, ``succeeded`` ...).
        output: Value for the ``output`` field.
        error: Value for the ``error`` field.
        prediction_id: Prediction identifier.
        status_code: HTTP status of the response.

    Returns:
        An ``httpx.Response`` suitable for :class:`FakeUpstream`.
    """
    return httpx.Response(
        status_code,
        json={"id": prediction_id, "status": status, "output": output, "error": error},
    )


class FakeUpstream:
    """Scripted stand-in for the upstream prediction API.

    ``submit`` answers every ``POST``.  ``polls`` answers ``GET`` calls in
    order; an entry may be an ``httpx.Response`` or an exception to raise.
    Once ``polls`` is exhausted every further poll reports ``processing``.
    """

    def __init__(
        self,
        submit: httpx.Response | Exception | None = None,
        polls: list[httpx.Response | Exception] | None = None,
    ):
        self.submit = submit if submit is not None else prediction_response("starting", status_code=201)
        self.polls = list(polls or [])
        self.requests: list[httpx.Request] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.method == "POST":
            item = self.submit
        elif self.polls:
            item = self.polls.pop(0)
        else:
            item = prediction_response("processing")
        if isinstance(item, Exception):
            raise item
        # Fresh copy so a scripted response can be served more than once.
        return httpx.Response(item.status_code, headers=item.headers, content=item.content)

    @property
    def submissions(self) -> list[httpx.Request]:
        return [r for r in self.requests if r.method == "POST"]

    @property
    def status_checks(self) -> list[httpx.Request]:
        return [r for r in self.requests if r.method == "GET"]

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))


class SleepRecorder:
    """Async replacement for ``asyncio.sleep`` that only records delays."""

    def __init__(self):
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)

    @property
    def total(self) -> float:
        return sum(self.calls)


@pytest.fixture
def test_config(monkeypatch) -> GenProxyConfig:
    """Create a configuration isolated from the developer's environment.

    Returns:
        GenProxyConfig with default polling (1s x 30) and no .env file.
    """
    for name in (
        "GENPROXY_POLL_INTERVAL_SECONDS",
        "GENPROXY_MAX_POLL_ATTEMPTS",
        "GENPROXY_UPSTREAM_BASE_URL",
        "GENPROXY_DEFAULT_MODEL_VERSION",
    ):
        monkeypatch.delenv(name, raising=False)
    return GenProxyConfig(
        upstream_base_url="https://upstream.test",
        _env_file=None,
    )


@pytest.fixture
def sleep_recorder() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def make_proxy(test_config: GenProxyConfig, sleep_recorder: SleepRecorder):
    """Factory that wires a :class:`GenerationProxy` to a :class:`FakeUpstream`."""

    def _make(upstream: FakeUpstream, seed: int = 7) -> GenerationProxy:
        return GenerationProxy.from_config(
            test_config,
            upstream.client(),
            sleep=sleep_recorder,
            rng=random.Random(seed),
        )

    return _make


@pytest.fixture
def upstream() -> FakeUpstream:
    """An upstream whose job goes starting -> processing -> succeeded."""
    return FakeUpstream(
        polls=[
            prediction_response("processing"),
            prediction_response("succeeded", output="https://cdn.test/out-0.webp"),
        ]
    )


@pytest.fixture
def test_client(make_proxy, upstream: FakeUpstream) -> Generator[TestClient, None, None]:
    """FastAPI TestClient whose proxy talks to the ``upstream`` fixture.

    The lifespan is not entered, so no real HTTP client is created.
    """
    from genproxy.api.main import app, get_proxy

    proxy = make_proxy(upstream)
    app.dependency_overrides[get_proxy] = lambda: proxy
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def valid_payload() -> dict:
    """Minimal valid request body for the generation endpoint."""
    return {
        "prompt": "A lighthouse at dusk",
        "apiKey": API_KEY,
        "model": "flux-dev-lora",
    }
