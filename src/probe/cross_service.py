"""Cross-service communication tests.

Each service exposes an endpoint that calls the other one. The runner hits
one direction or both; in ``both`` mode the two requests are in flight at the
same time and the merged result appears only after both have settled.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

from .client import ERROR_STATUS, HttpClientAdapter, ResponseOutcome, StatusCode
from .config import Settings
from .errors import InvalidModeError
from .surface import Surface

logger = logging.getLogger(__name__)


class CrossMode(str, Enum):
    A_TO_B = "a-to-b"
    B_TO_A = "b-to-a"
    BOTH = "both"


# direction key -> gateway path
CROSS_PATHS: Dict[str, str] = {
    "service-a-to-b": "/service-a/api/with-service-b",
    "service-b-to-a": "/service-b/api/with-service-a",
}

_SINGLE = {
    CrossMode.A_TO_B: "service-a-to-b",
    CrossMode.B_TO_A: "service-b-to-a",
}


@dataclass
class CrossTestOutcome:
    """Result of a cross-service run.

    Single-direction runs fill ``endpoint``/``status``/``data`` like a plain
    endpoint test. ``both`` runs fill ``endpoints``, ``statuses`` and a
    ``data`` mapping keyed by direction, with an overall ``status``.
    """

    status: StatusCode
    data: Any
    endpoint: Optional[str] = None
    endpoints: Dict[str, str] = field(default_factory=dict)
    statuses: Dict[str, StatusCode] = field(default_factory=dict)

    def as_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"status": self.status, "data": self.data}
        if self.endpoint is not None:
            out["endpoint"] = self.endpoint
        if self.endpoints:
            out["endpoints"] = dict(self.endpoints)
            out["statuses"] = dict(self.statuses)
        return out


def parse_mode(mode: object) -> CrossMode:
    if isinstance(mode, CrossMode):
        return mode
    try:
        return CrossMode(mode)
    except ValueError:
        raise InvalidModeError(f"Unknown test type: {mode!r}") from None


class CrossServiceRunner:
    def __init__(self, adapter: HttpClientAdapter, settings: Settings) -> None:
        self.adapter = adapter
        self.settings = settings
        self.surface: Surface[CrossTestOutcome] = Surface("cross-service")

    @property
    def busy(self) -> bool:
        return self.surface.busy

    @property
    def last_outcome(self) -> Optional[CrossTestOutcome]:
        return self.surface.result

    def _url(self, direction: str) -> str:
        return f"{self.settings.base_url.rstrip('/')}{CROSS_PATHS[direction]}"

    def _call(self, direction: str) -> "asyncio.Future[ResponseOutcome]":
        return asyncio.ensure_future(
            self.adapter.request(self.settings.base_url, CROSS_PATHS[direction], "GET")
        )

    async def run(self, mode: CrossMode | str) -> CrossTestOutcome:
        """Run the cross-service test for ``mode``.

        Raises :class:`InvalidModeError` for anything that is not a
        :class:`CrossMode` value.
        """
        mode = parse_mode(mode)
        if mode is CrossMode.BOTH:
            directions = list(CROSS_PATHS)
            # both requests are scheduled before either is awaited
            pending = [self._call(d) for d in directions]
            results = await asyncio.gather(*pending)
            statuses = {d: r.status_code for d, r in zip(directions, results)}
            all_ok = all(r.ok for r in results)
            return CrossTestOutcome(
                status="Success" if all_ok else ERROR_STATUS,
                data={d: r.body for d, r in zip(directions, results)},
                endpoints={d: self._url(d) for d in directions},
                statuses=statuses,
            )

        direction = _SINGLE[mode]
        outcome = await self._call(direction)
        return CrossTestOutcome(outcome.status_code, outcome.body, endpoint=self._url(direction))

    async def _execute(self, mode: object) -> CrossTestOutcome:
        try:
            return await self.run(mode)  # type: ignore[arg-type]
        except InvalidModeError as exc:
            logger.warning("cross-service test rejected: %s", exc)
            return CrossTestOutcome(ERROR_STATUS, str(exc))

    async def execute(self, mode: object) -> Optional[CrossTestOutcome]:
        """Run ``mode`` through the busy gate; invalid modes become an error outcome."""
        return await self.surface.run_exclusive(lambda: self._execute(mode))
