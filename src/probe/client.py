"""HTTP client adapter.

Every request goes to the gateway base URL plus a service-prefixed path. The
adapter always returns a :class:`ResponseOutcome`; transport failures and
non-2xx statuses are folded into the same shape so callers never need a
separate failure branch.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Union

import httpx

from .errors import HttpErrorStatus, NetworkFailure, ProbeError

logger = logging.getLogger(__name__)

ERROR_STATUS = "Error"
METHODS = ("GET", "POST")

StatusCode = Union[int, str]


@dataclass
class ResponseOutcome:
    status_code: StatusCode
    body: Any
    headers: Dict[str, str] = field(default_factory=dict)
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def _decode_body(resp: httpx.Response) -> Any:
    content_type = resp.headers.get("content-type", "")
    if "json" in content_type:
        try:
            return resp.json()
        except ValueError:
            pass
    return resp.text


def _error_message(exc: Exception) -> str:
    # some httpx transport errors carry an empty message
    return str(exc) or type(exc).__name__


class HttpClientAdapter:
    """Issue GET/POST requests and normalize whatever comes back."""

    def __init__(
        self,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.timeout = timeout
        self.transport = transport

    def client(self) -> httpx.AsyncClient:
        kwargs: Dict[str, Any] = {}
        if self.timeout is not None:
            kwargs["timeout"] = self.timeout
        if self.transport is not None:
            kwargs["transport"] = self.transport
        return httpx.AsyncClient(**kwargs)

    async def _send(self, url: str, method: str, body: Any = None) -> ResponseOutcome:
        try:
            async with self.client() as client:
                if method == "POST":
                    resp = await client.post(url, json=body if body is not None else {})
                else:
                    resp = await client.get(url)
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            raise NetworkFailure(_error_message(exc)) from exc

        headers = dict(resp.headers)
        data = _decode_body(resp)
        if not resp.is_success:
            raise HttpErrorStatus(resp.status_code, data, headers)
        return ResponseOutcome(resp.status_code, data, headers)

    async def request(
        self,
        base_url: str,
        path: str,
        method: str = "GET",
        body: Any = None,
    ) -> ResponseOutcome:
        """Send one request to ``base_url + path``; never raises on failure."""

        method = method.upper()
        if method not in METHODS:
            raise ValueError(f"unsupported method {method!r}")
        url = f"{base_url.rstrip('/')}{path}"
        logger.debug("%s %s", method, url)
        try:
            return await self._send(url, method, body)
        except HttpErrorStatus as exc:
            logger.warning("%s %s -> %s", method, url, exc.status_code)
            return ResponseOutcome(
                exc.status_code,
                exc.body if exc.body not in (None, "") else str(exc),
                exc.headers,
                error=str(exc),
            )
        except ProbeError as exc:
            logger.warning("%s %s failed: %s", method, url, exc)
            return ResponseOutcome(ERROR_STATUS, str(exc), {}, error=str(exc))
