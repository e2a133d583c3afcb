from unittest.mock import MagicMock

import httpx
import pytest
import pytest_asyncio

import app.main as main_module
from app.actions import Action
from app.main import create_app
from app.services.dispatch_service import get_action_dispatcher
from buyer_common.logging_utils import correlation_id_var
from tests.test_support.in_memory_broker import InMemoryBroker

pytestmark = pytest.mark.asyncio


async def _ok() -> bool:
    return True


async def _down() -> bool:
    return False


@pytest_asyncio.fixture
async def contract_client():
    app = create_app(publisher=InMemoryBroker(), readiness_checks={"kafka": _ok})
    transport = httpx.ASGITransport(app=app, raise_app_exceptions=False)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


async def test_openapi_documents_every_action_route(contract_client):
    response = await contract_client.get("/openapi.json")

    assert response.status_code == 200
    paths = response.json()["paths"]
    for action in Action:
        assert "post" in paths[f"/{action.value}"]
    assert "/metrics" not in paths


async def test_metrics_include_http_and_action_series(contract_client, valid_payloads, invalid_payload):
    await contract_client.post("/search", content=valid_payloads[Action.SEARCH])
    await contract_client.post("/cancel", content=invalid_payload)

    metrics_response = await contract_client.get("/metrics")
    assert metrics_response.status_code == 200

    metrics_text = metrics_response.text
    assert "http_requests_total{" in metrics_text
    assert "http_request_latency_seconds_count{" in metrics_text
    assert 'buyer_app_action_requests_total{action="search",outcome="ACK"}' in metrics_text
    assert 'buyer_app_validation_failures_total{action="cancel",error_code="30000"}' in metrics_text


async def test_lineage_headers_are_echoed_or_generated(contract_client):
    echoed = await contract_client.get("/health/live", headers={"X-Correlation-Id": "corr-1", "X-Request-Id": "req-1"})
    generated = await contract_client.get("/health/live")

    assert echoed.headers["X-Correlation-Id"] == "corr-1"
    assert echoed.headers["X-Request-Id"] == "req-1"
    assert generated.headers["X-Correlation-Id"].startswith("BAP:")
    assert generated.headers["X-Request-Id"].startswith("REQ:")
    assert generated.headers["X-Trace-Id"]


async def test_health_probes(contract_client):
    live = await contract_client.get("/health/live")
    ready = await contract_client.get("/health/ready")

    assert live.json() == {"status": "alive"}
    assert ready.status_code == 200
    assert ready.json() == {"status": "ready", "dependencies": {"kafka": "ok"}}


async def test_readiness_reports_unavailable_dependency():
    app = create_app(publisher=InMemoryBroker(), readiness_checks={"kafka": _down})
    transport = httpx.ASGITransport(app=app, raise_app_exceptions=False)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        response = await client.get("/health/ready")

    assert response.status_code == 503
    assert response.json()["detail"] == {"status": "not_ready", "dependencies": {"kafka": "unavailable"}}


async def test_unhandled_error_returns_generic_fault(valid_payloads):
    class ExplodingDispatcher:
        async def dispatch(self, action, payload):
            raise RuntimeError("boom")

    app = create_app(publisher=InMemoryBroker())
    app.dependency_overrides[get_action_dispatcher] = lambda: ExplodingDispatcher()
    transport = httpx.ASGITransport(app=app, raise_app_exceptions=False)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        response = await client.post(
            "/support", content=valid_payloads[Action.SUPPORT], headers={"X-Correlation-Id": "corr-boom"}
        )

    assert response.status_code == 500
    body = response.json()
    assert body["error"] == "Internal Server Error"
    assert body["correlation_id"] == "corr-boom"


async def test_unhandled_error_is_logged_with_request_correlation_id(valid_payloads, monkeypatch):
    class ExplodingDispatcher:
        async def dispatch(self, action, payload):
            raise RuntimeError("boom")

    logged_ids = []
    app = create_app(publisher=InMemoryBroker())
    app.dependency_overrides[get_action_dispatcher] = lambda: ExplodingDispatcher()
    critical_logger = MagicMock()
    critical_logger.critical.side_effect = lambda *args, **kwargs: logged_ids.append(correlation_id_var.get())
    monkeypatch.setattr(main_module, "logger", critical_logger)

    transport = httpx.ASGITransport(app=app, raise_app_exceptions=False)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        response = await client.post(
            "/support", content=valid_payloads[Action.SUPPORT], headers={"X-Correlation-Id": "corr-lineage"}
        )

    assert response.status_code == 500
    assert logged_ids == ["corr-lineage"]
    assert correlation_id_var.get() == "<not-set>"


async def test_lifespan_closes_only_the_publisher_it_created():
    broker = InMemoryBroker()
    app = create_app(publisher=broker)

    async with app.router.lifespan_context(app):
        assert app.state.publisher is broker

    assert broker.closed is False
