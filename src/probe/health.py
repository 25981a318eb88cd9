"""Health aggregation across the configured services.

``HealthAggregator`` probes ``/{service}/health`` for every service and swaps
in a complete snapshot at once. ``HealthPoller`` drives it on a fixed interval
from a single asyncio task that is always cancelled on ``stop``.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

from .client import HttpClientAdapter
from .config import ServiceName, Settings
from .surface import Surface

logger = logging.getLogger(__name__)


class HealthStatus(str, Enum):
    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"
    UNKNOWN = "unknown"  # nothing probed yet


@dataclass(frozen=True)
class ProbeResult:
    status: HealthStatus
    payload: Any = None

    def as_dict(self) -> Dict[str, Any]:
        return {"status": self.status.value, "data": self.payload}


AggregateHealth = Dict[ServiceName, ProbeResult]


def initial_snapshot() -> AggregateHealth:
    return {name: ProbeResult(HealthStatus.UNKNOWN) for name in ServiceName}


class HealthAggregator:
    """Probe every service and publish one merged snapshot."""

    def __init__(self, adapter: HttpClientAdapter, settings: Settings) -> None:
        self.adapter = adapter
        self.settings = settings
        self.surface: Surface[AggregateHealth] = Surface("dashboard")
        self.surface.result = initial_snapshot()

    @property
    def snapshot(self) -> AggregateHealth:
        return self.surface.result or initial_snapshot()

    async def check_service(self, name: ServiceName) -> ProbeResult:
        outcome = await self.adapter.request(self.settings.base_url, f"/{name.value}/health", "GET")
        if outcome.ok:
            return ProbeResult(HealthStatus.HEALTHY, outcome.body)
        return ProbeResult(HealthStatus.UNHEALTHY, outcome.error)

    async def _check_all(self) -> AggregateHealth:
        names = list(ServiceName)
        results = await asyncio.gather(*(self.check_service(n) for n in names))
        return dict(zip(names, results))

    async def check_all(self) -> AggregateHealth:
        """Probe all services and replace the snapshot.

        When a check is already running the current snapshot is returned
        unchanged instead of starting a second one.
        """
        result = await self.surface.run_exclusive(self._check_all)
        return result if result is not None else self.snapshot

    async def refresh(self) -> Optional[AggregateHealth]:
        """Manual out-of-band check; ``None`` when one is already in flight."""
        return await self.surface.run_exclusive(self._check_all)

    def as_dict(self) -> Dict[str, Dict[str, Any]]:
        return {name.value: result.as_dict() for name, result in self.snapshot.items()}


class HealthPoller:
    """Run ``aggregator.check_all`` now and then every ``interval`` seconds."""

    def __init__(self, aggregator: HealthAggregator, interval: float = 30.0) -> None:
        self.aggregator = aggregator
        self.interval = interval
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def _loop(self) -> None:
        loop = asyncio.get_running_loop()
        next_at = loop.time()
        while True:
            try:
                await self.aggregator.check_all()
            except asyncio.CancelledError:
                raise
            except Exception:  # keep polling after an unexpected failure
                logger.exception("health check cycle failed")
            # fixed period measured from cycle start, not from cycle end
            next_at += self.interval
            now = loop.time()
            if next_at < now:
                next_at = now
            await asyncio.sleep(next_at - now)

    def start(self) -> None:
        if self.running:
            return
        self.aggregator.surface.activate()
        self._task = asyncio.get_running_loop().create_task(self._loop())

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is not None:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        self.aggregator.surface.deactivate()

    async def __aenter__(self) -> "HealthPoller":
        self.start()
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.stop()
