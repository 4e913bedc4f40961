"""
End-to-end tests: demo backend behind the chaos proxy.

Chaos on POST /login must surface /signup and /orders as hidden
dependencies while /products stays unaffected.
"""

import httpx
import pytest

from chaoscope.api.routes import create_proxy_app
from chaoscope.services.analysis.comparator import generate_impact_report, get_chaos_description
from chaoscope.services.chaos.forwarder import ReverseForwarder
from chaoscope.services.chaos.interceptor import ChaosInterceptor
from chaoscope.services.chaos.rules import ChaosRule, RuleSet
from chaoscope.services.metrics.store import MetricsStore
from demo_service.app import AuthService, create_app


async def _run_traffic(rules, rounds=3):
    """Drive a fresh demo backend through the proxy and return the metrics."""
    store = MetricsStore()
    backend_client = httpx.AsyncClient(transport=httpx.ASGITransport(app=create_app(AuthService())))
    forwarder = ReverseForwarder("http://demo.local", client=backend_client)
    interceptor = ChaosInterceptor(RuleSet(rules), store, forwarder)

    transport = httpx.ASGITransport(app=create_proxy_app(interceptor))
    async with httpx.AsyncClient(transport=transport, base_url="http://proxy.local") as client:
        for _ in range(rounds):
            login = await client.post("/login")
            token = login.json()["token"] if login.status_code == 200 else "stale-token"
            await client.post("/signup")
            await client.get("/orders", headers={"Authorization": token})
            await client.get("/products")

    await forwarder.aclose()
    return store.snapshot()


class TestDemoService:
    """Tests for the demo backend on its own."""

    @pytest.fixture
    async def client(self):
        transport = httpx.ASGITransport(app=create_app(AuthService()))
        async with httpx.AsyncClient(transport=transport, base_url="http://demo.local") as client:
            yield client

    async def test_signup_needs_recent_login(self, client):
        """Signup fails until someone has logged in."""
        assert (await client.post("/signup")).status_code == 503

        await client.post("/login")

        assert (await client.post("/signup")).status_code == 200

    async def test_orders_need_valid_token(self, client):
        """Orders require a token issued by /login."""
        assert (await client.get("/orders")).status_code == 401

        token = (await client.post("/login")).json()["token"]

        response = await client.get("/orders", headers={"Authorization": token})
        assert response.status_code == 200
        assert len(response.json()) == 2

    async def test_checkout_and_health(self, client):
        """Checkout works with a fresh token and health follows auth."""
        assert (await client.get("/health")).status_code == 503

        token = (await client.post("/login")).json()["token"]

        assert (await client.post("/checkout", headers={"Authorization": token})).status_code == 200
        assert (await client.get("/health")).json() == {"status": "healthy"}

    async def test_products_independent(self, client):
        """Products never depend on auth."""
        response = await client.get("/products")

        assert response.status_code == 200
        assert len(response.json()) == 3

    async def test_metrics_endpoint(self, client):
        """Prometheus metrics are exposed."""
        await client.get("/products")

        response = await client.get("/metrics")

        assert response.status_code == 200
        assert "demo_http_requests_total" in response.text


class TestHiddenDependencies:
    """Baseline vs experiment through the proxy."""

    async def test_login_failure_reveals_hidden_dependencies(self):
        """Failing /login shows /signup and /orders as critical."""
        baseline = await _run_traffic([])
        experiment = await _run_traffic([ChaosRule(path="/login", method="POST", failure_rate=1.0)])

        report = generate_impact_report(baseline, experiment, get_chaos_description(experiment))

        assert report.chaos_description == "failure on POST /login"
        assert [(c.method, c.path) for c in report.directly_affected] == [("POST", "/login")]
        assert {c.path for c in report.critical_impact} == {"/signup", "/orders"}
        assert [c.path for c in report.unaffected] == ["/products"]
        assert report.summary.hidden_dependencies == 2
        assert report.summary.total_endpoints == 4

    async def test_baseline_is_clean(self):
        """Without chaos every request succeeds."""
        baseline = await _run_traffic([])

        assert len(baseline) == 12
        assert all(m.status_code == 200 for m in baseline)
        assert not any(m.chaos_applied for m in baseline)
