"""Pytest configuration and fixtures."""
import pytest
import httpx
from datetime import datetime, timezone
from typing import List

from chaoscope.api.routes import create_proxy_app
from chaoscope.services.chaos.forwarder import ReverseForwarder
from chaoscope.services.chaos.interceptor import ChaosInterceptor
from chaoscope.services.chaos.rules import ChaosRule, RuleSet
from chaoscope.services.metrics.models import ChaosType, RequestMetric
from chaoscope.services.metrics.store import MetricsStore


BACKEND_URL = "http://backend.local"
PROXY_URL = "http://proxy.local"


class RecordingBackend:
    """httpx MockTransport handler that remembers every request it serves."""

    def __init__(self, status_code: int = 200, body: bytes = b'{"status": "ok"}', error: Exception = None):
        self.status_code = status_code
        self.body = body
        self.error = error
        self.requests: List[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        return httpx.Response(
            self.status_code,
            content=self.body,
            headers={"content-type": "application/json"}
        )


@pytest.fixture
def store():
    """Fresh metrics store."""
    return MetricsStore()


@pytest.fixture
def backend():
    """Backend returning 200 for every request."""
    return RecordingBackend()


@pytest.fixture
async def make_proxy(store):
    """
    Build a proxy client in front of a mock backend.

    Requests go through the real FastAPI app and interceptor; only the
    network is replaced by in-process transports.
    """
    opened = []

    def _make(rules: List[ChaosRule], backend, random_source=lambda: 0.0, **kwargs):
        forwarder = ReverseForwarder(
            BACKEND_URL,
            client=httpx.AsyncClient(transport=httpx.MockTransport(backend))
        )
        interceptor = ChaosInterceptor(
            RuleSet(rules),
            store,
            forwarder,
            random_source=random_source,
            **kwargs
        )
        client = httpx.AsyncClient(
            transport=httpx.ASGITransport(app=create_proxy_app(interceptor)),
            base_url=PROXY_URL
        )
        opened.extend([client, forwarder])
        return client

    yield _make

    for resource in opened:
        await resource.aclose()


@pytest.fixture
def make_metric():
    """Factory for request metrics with sensible defaults."""
    def _make(
        method: str = "GET",
        path: str = "/products",
        status_code: int = 200,
        latency_ms: int = 10,
        chaos_type: ChaosType = ChaosType.NONE,
        timestamp: datetime = None
    ) -> RequestMetric:
        return RequestMetric(
            timestamp=timestamp or datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc),
            method=method,
            path=path,
            status_code=status_code,
            latency_ms=latency_ms,
            chaos_applied=chaos_type != ChaosType.NONE,
            chaos_type=chaos_type,
            backend_error=status_code >= 500 and chaos_type != ChaosType.FAILURE,
        )
    return _make


@pytest.fixture
def make_backend():
    """Factory for backends with a fixed status, body or transport error."""
    return RecordingBackend
