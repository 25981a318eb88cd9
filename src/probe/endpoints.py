"""Manual testing of one service's endpoints."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Tuple

from .client import HttpClientAdapter, ResponseOutcome, StatusCode
from .config import ENDPOINTS, EndpointDescriptor, HttpMethod, ServiceName, Settings
from .surface import Surface


def list_endpoints(service: ServiceName | str) -> Tuple[EndpointDescriptor, ...]:
    """Return the static endpoint table for ``service``; empty if unknown."""

    name = ServiceName.parse(service)
    if name is None:
        return ()
    return ENDPOINTS.get(name, ())


@dataclass
class TestOutcome:
    requested_url: str
    method: str
    status_code: StatusCode
    body: Any
    headers: Dict[str, str] = field(default_factory=dict)

    # keep pytest from collecting this as a test class
    __test__ = False

    @classmethod
    def from_response(cls, url: str, method: str, outcome: ResponseOutcome) -> "TestOutcome":
        return cls(url, method, outcome.status_code, outcome.body, dict(outcome.headers))

    def as_dict(self) -> Dict[str, Any]:
        return {
            "endpoint": self.requested_url,
            "method": self.method,
            "status": self.status_code,
            "data": self.body,
            "headers": self.headers,
        }


def post_payload() -> Dict[str, Any]:
    return {"test": True, "timestamp": datetime.now(timezone.utc).isoformat()}


class EndpointTester:
    """Invoke one endpoint of ``service`` at a time."""

    def __init__(self, service: ServiceName, adapter: HttpClientAdapter, settings: Settings) -> None:
        self.service = service
        self.adapter = adapter
        self.settings = settings
        self.surface: Surface[TestOutcome] = Surface(f"tester:{service.value}")

    @property
    def endpoints(self) -> Tuple[EndpointDescriptor, ...]:
        return list_endpoints(self.service)

    @property
    def busy(self) -> bool:
        return self.surface.busy

    @property
    def last_outcome(self) -> Optional[TestOutcome]:
        return self.surface.result

    def find(self, display_name: str) -> EndpointDescriptor:
        for descriptor in self.endpoints:
            if descriptor.display_name == display_name:
                return descriptor
        raise KeyError(display_name)

    async def _invoke(self, descriptor: EndpointDescriptor) -> TestOutcome:
        path = f"/{self.service.value}{descriptor.path}"
        url = self.settings.url_for(self.service, descriptor.path)
        method = descriptor.method.value
        body = post_payload() if descriptor.method is HttpMethod.POST else None
        outcome = await self.adapter.request(self.settings.base_url, path, method, body)
        return TestOutcome.from_response(url, method, outcome)

    async def invoke(self, descriptor: EndpointDescriptor) -> Optional[TestOutcome]:
        """Run ``descriptor`` and replace the last outcome.

        Returns ``None`` without sending anything while a previous invocation
        is still pending.
        """
        return await self.surface.run_exclusive(lambda: self._invoke(descriptor))

    async def invoke_by_name(self, display_name: str) -> Optional[TestOutcome]:
        return await self.invoke(self.find(display_name))
