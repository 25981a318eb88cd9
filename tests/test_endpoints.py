import asyncio
import sys
from pathlib import Path

import httpx
import pytest

sys.path.append(str(Path(__file__).resolve().parents[1] / "src"))

from probe.client import HttpClientAdapter  # noqa: E402
from probe.config import EndpointDescriptor, HttpMethod, ServiceName  # noqa: E402
from probe.endpoints import EndpointTester, list_endpoints  # noqa: E402
from stubs import StubAdapter, settings  # noqa: E402

HEALTH = EndpointDescriptor("Health Check", "/health", "GET")


def test_list_endpoints_static_table():
    names = [ep.display_name for ep in list_endpoints("service-a")]
    assert names == ["Health Check", "Get API Data", "Call Service B", "Internal Endpoint"]
    paths = [ep.path for ep in list_endpoints(ServiceName.SERVICE_B)]
    assert "/api/with-service-a" in paths
    assert list_endpoints("service-c") == ()


def test_invoke_builds_url_and_keeps_body():
    adapter = StubAdapter()
    tester = EndpointTester(ServiceName.SERVICE_A, adapter, settings())

    out = asyncio.run(tester.invoke(HEALTH))

    assert out.requested_url == "http://gateway/service-a/health"
    assert out.method == "GET"
    assert out.status_code == 200
    assert out.body["ok"] is True
    assert adapter.calls == [("http://gateway", "/service-a/health", "GET", None)]
    assert tester.last_outcome is out


def test_invoke_twice_same_request():
    tester = EndpointTester(ServiceName.SERVICE_B, StubAdapter(), settings())
    first = asyncio.run(tester.invoke(HEALTH))
    second = asyncio.run(tester.invoke(HEALTH))
    assert (first.requested_url, first.method) == (second.requested_url, second.method)
    assert tester.last_outcome is second


def test_post_sends_marker_and_timestamp():
    adapter = StubAdapter()
    tester = EndpointTester(ServiceName.SERVICE_A, adapter, settings())
    asyncio.run(tester.invoke(EndpointDescriptor("Create", "/api", "POST")))
    body = adapter.calls[0][3]
    assert body["test"] is True
    assert "T" in body["timestamp"]


def test_transport_failure_becomes_error_outcome():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    adapter = HttpClientAdapter(transport=httpx.MockTransport(handler))
    tester = EndpointTester(ServiceName.SERVICE_A, adapter, settings())

    out = asyncio.run(tester.invoke(HEALTH))

    assert out.status_code == "Error"
    assert out.body == "connection refused"
    assert out.headers == {}
    assert out.as_dict()["endpoint"] == "http://gateway/service-a/health"


def test_second_invoke_rejected_while_pending():
    async def scenario():
        gate = asyncio.Event()
        adapter = StubAdapter(gate=gate)
        tester = EndpointTester(ServiceName.SERVICE_A, adapter, settings())
        first = asyncio.create_task(tester.invoke(HEALTH))
        await asyncio.sleep(0)
        assert tester.busy
        second = await tester.invoke(HEALTH)
        gate.set()
        return await first, second, adapter, tester

    first, second, adapter, tester = asyncio.run(scenario())
    assert first is not None
    assert second is None
    assert len(adapter.calls) == 1
    assert not tester.busy


def test_deactivated_surface_discards_late_response():
    async def scenario():
        gate = asyncio.Event()
        tester = EndpointTester(ServiceName.SERVICE_A, StubAdapter(gate=gate), settings())
        pending = asyncio.create_task(tester.invoke(HEALTH))
        await asyncio.sleep(0)
        tester.surface.deactivate()
        return await pending, tester

    result, tester = asyncio.run(scenario())
    assert result is None
    assert tester.last_outcome is None
    assert not tester.busy


def test_invoke_by_name_unknown():
    tester = EndpointTester(ServiceName.SERVICE_A, StubAdapter(), settings())
    with pytest.raises(KeyError):
        asyncio.run(tester.invoke_by_name("Nope"))


def test_lowercase_post_is_normalized():
    adapter = StubAdapter()
    tester = EndpointTester(ServiceName.SERVICE_A, adapter, settings())
    descriptor = EndpointDescriptor("Create", "/api", "post")

    out = asyncio.run(tester.invoke(descriptor))

    assert descriptor.method is HttpMethod.POST
    assert out.method == "POST"
    _, _, method, body = adapter.calls[0]
    assert method == "POST"
    assert body["test"] is True


def test_unsupported_method_rejected_at_declaration():
    with pytest.raises(ValueError):
        EndpointDescriptor("Replace", "/api", "PUT")
