import asyncio
import sys
from pathlib import Path

import httpx
import pytest

sys.path.append(str(Path(__file__).resolve().parents[1] / "src"))

from probe.client import ERROR_STATUS, HttpClientAdapter  # noqa: E402


def _adapter(handler):
    return HttpClientAdapter(transport=httpx.MockTransport(handler))


def test_success_returns_body_and_headers():
    def handler(request):
        assert str(request.url) == "http://gateway/service-a/health"
        return httpx.Response(200, json={"status": "healthy"}, headers={"x-service": "a"})

    out = asyncio.run(_adapter(handler).request("http://gateway/", "/service-a/health"))
    assert out.ok
    assert out.status_code == 200
    assert out.body == {"status": "healthy"}
    assert out.headers["x-service"] == "a"


def test_non_json_body_is_text():
    out = asyncio.run(_adapter(lambda r: httpx.Response(200, text="pong")).request("http://gateway", "/x"))
    assert out.body == "pong"


def test_error_status_keeps_server_body():
    def handler(request):
        return httpx.Response(500, json={"message": "Error calling Service B"})

    out = asyncio.run(_adapter(handler).request("http://gateway", "/service-a/api/with-service-b"))
    assert not out.ok
    assert out.status_code == 500
    assert out.body == {"message": "Error calling Service B"}
    assert out.error == "Request failed with status code 500"


def test_error_status_without_body_uses_message():
    out = asyncio.run(_adapter(lambda r: httpx.Response(404)).request("http://gateway", "/nope"))
    assert out.status_code == 404
    assert out.body == "Request failed with status code 404"


def test_transport_failure_is_normalized():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    out = asyncio.run(_adapter(handler).request("http://gateway", "/service-b/health"))
    assert out.status_code == ERROR_STATUS
    assert out.body == "connection refused"
    assert out.headers == {}
    assert out.error == "connection refused"


def test_invalid_url_is_normalized():
    out = asyncio.run(HttpClientAdapter().request("not a url", "/health"))
    assert out.status_code == ERROR_STATUS
    assert isinstance(out.body, str) and out.body


def test_post_sends_json_body():
    seen = {}

    def handler(request):
        seen["method"] = request.method
        seen["body"] = request.read()
        return httpx.Response(201, json={"created": True})

    out = asyncio.run(_adapter(handler).request("http://gateway", "/service-a/api", "post", {"test": True}))
    assert out.status_code == 201
    assert seen["method"] == "POST"
    assert b'"test"' in seen["body"]


def test_unsupported_method_rejected():
    with pytest.raises(ValueError):
        asyncio.run(HttpClientAdapter().request("http://gateway", "/x", "DELETE"))
