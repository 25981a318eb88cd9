import importlib
import sys
from pathlib import Path

import httpx
from fastapi.testclient import TestClient

sys.path.append(str(Path(__file__).resolve().parents[1] / "src"))

from probe.client import HttpClientAdapter  # noqa: E402
from stubs import StubAdapter, failure, settings  # noqa: E402


def _client(adapter=None, **kwargs):
    frontend = importlib.import_module("frontend")
    app = frontend.create_app(settings(**kwargs), adapter=adapter or StubAdapter())
    return app, TestClient(app)


def test_pages_served_under_prefix():
    _, client = _client()
    resp = client.get("/")
    assert resp.status_code == 200
    assert "Service Dashboard" in resp.text
    assert "SERVICE-A Service Testing" in client.get("/ui/service-a").text
    assert "Cross-Service Communication Testing" in client.get("/ui/cross-service").text
    assert client.get("/ui/service-c").status_code == 404


def test_health_refresh_and_snapshot():
    _, client = _client(StubAdapter({"/service-b/health": failure("connect failed")}))
    assert client.get("/api/health").json()["service-a"]["status"] == "unknown"

    resp = client.post("/api/health/refresh")
    assert resp.status_code == 200
    data = resp.json()
    assert data["service-a"] == {"status": "healthy", "data": {"ok": True}}
    assert data["service-b"] == {"status": "unhealthy", "data": "connect failed"}
    assert client.get("/api/health").json() == data


def test_endpoint_listing_and_invoke():
    adapter = StubAdapter()
    _, client = _client(adapter)

    eps = client.get("/api/services/service-a/endpoints").json()
    assert eps[0] == {"name": "Health Check", "path": "/health", "method": "GET"}
    assert client.get("/api/services/nope/endpoints").status_code == 404

    resp = client.post("/api/services/service-a/test", json={"name": "Get API Data"})
    assert resp.status_code == 200
    body = resp.json()
    assert body["endpoint"] == "http://gateway/service-a/api"
    assert body["status"] == 200
    assert adapter.calls[-1][1] == "/service-a/api"

    assert client.post("/api/services/service-a/test", json={"name": "Nope"}).status_code == 404


def test_cross_service_api():
    _, client = _client()
    both = client.post("/api/cross-service/both").json()
    assert both["status"] == "Success"
    assert set(both["endpoints"]) == {"service-a-to-b", "service-b-to-a"}

    bogus = client.post("/api/cross-service/bogus")
    assert bogus.status_code == 200
    assert bogus.json()["status"] == "Error"


def test_lifecycle_starts_and_stops_poller():
    app, client = _client(refresh_interval=60.0)
    with client:
        assert app.state.poller.running
    assert not app.state.poller.running
    assert not app.state.runner.surface.active


def test_dev_proxy_forwards_to_gateway():
    seen = {}

    def handler(request):
        seen["url"] = str(request.url)
        return httpx.Response(200, json={"service": "service-a"})

    adapter = HttpClientAdapter(transport=httpx.MockTransport(handler))
    _, client = _client(adapter, dev_proxy=True)

    resp = client.get("/service-a/api?x=1")

    assert resp.status_code == 200
    assert resp.json() == {"service": "service-a"}
    assert seen["url"] == "http://gateway/service-a/api?x=1"


def test_dev_proxy_disabled_by_default():
    _, client = _client()
    assert client.get("/service-a/api").status_code == 404
