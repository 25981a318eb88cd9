"""Failure types raised inside the probe client.

None of these reach the presentation layer: the adapter and the cross-service
runner convert them into normalized outcomes at the point where they occur.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class ProbeError(Exception):
    """Base class for probe failures."""


class NetworkFailure(ProbeError):
    """No response was received (connection refused, DNS, timeout, bad URL)."""


class HttpErrorStatus(ProbeError):
    """A response arrived with a non-2xx status."""

    def __init__(
        self,
        status_code: int,
        body: Any = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> None:
        super().__init__(f"Request failed with status code {status_code}")
        self.status_code = status_code
        self.body = body
        self.headers = headers or {}


class InvalidModeError(ProbeError, ValueError):
    """Unknown cross-service test mode."""
