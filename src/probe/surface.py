"""Per-surface busy flag and result slot.

A surface is one independent view (dashboard, a service tester, the
cross-service tester). Each owns exactly one result slot and admits at most
one in-flight operation.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Generic, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Surface(Generic[T]):
    """Gate re-entrancy and own the latest result."""

    def __init__(self, name: str) -> None:
        self.name = name
        self.busy = False
        self.active = True
        self.result: Optional[T] = None
        self._task: Optional[asyncio.Task] = None

    async def run_exclusive(self, work: Callable[[], Awaitable[T]]) -> Optional[T]:
        """Run ``work`` unless another run is in flight.

        Returns the new result, or ``None`` when the call was rejected or the
        surface was deactivated before the work finished.
        """

        if self.busy or not self.active:
            logger.debug("%s: rejected, busy=%s active=%s", self.name, self.busy, self.active)
            return None
        self.busy = True
        self._task = asyncio.ensure_future(work())
        try:
            result = await self._task
        except asyncio.CancelledError:
            current = asyncio.current_task()
            if self.active or (current is not None and current.cancelling()):
                raise
            return None
        finally:
            self.busy = False
            self._task = None
        if not self.active:
            # torn down while the response was in flight
            return None
        self.result = result
        return result

    def deactivate(self) -> None:
        """Cancel the in-flight operation and stop accepting new ones."""

        self.active = False
        if self._task is not None and not self._task.done():
            self._task.cancel()

    def activate(self) -> None:
        self.active = True
