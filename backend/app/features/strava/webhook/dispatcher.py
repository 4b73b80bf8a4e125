"""
Background dispatcher.

Runs reconciliation units detached from the request that accepted them.
Units for the same key (owner id, object id) run one at a time; units
for different keys run concurrently. A unit's failure or timeout is only
visible in the logs.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Hashable
from typing import Optional

from app.config import settings

logger = logging.getLogger(__name__)


UnitFactory = Callable[[], Awaitable[object]]


class EventDispatcher:
    """
    In-process task dispatcher with per-key serialization.

    Usage:
        dispatcher.submit((owner_id, object_id), lambda: service.process(event, action))
        await dispatcher.drain()  # on shutdown / in tests
    """

    def __init__(self, timeout_seconds: Optional[float] = None):
        self.timeout_seconds = (
            timeout_seconds if timeout_seconds is not None else settings.reconcile_timeout_seconds
        )
        # IMPORTANT: Save task references to prevent garbage collection
        self._tasks: set[asyncio.Task] = set()
        self._locks: dict[Hashable, asyncio.Lock] = {}
        self._waiters: dict[Hashable, int] = {}
        self.completed = 0
        self.failed = 0

    @property
    def pending_count(self) -> int:
        return len(self._tasks)

    def submit(self, key: Hashable, unit: UnitFactory, name: str = "unit") -> asyncio.Task:
        """Schedule a unit of work and return immediately."""
        task = asyncio.create_task(self._run(key, unit, name))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        logger.debug(f"Dispatched {name} for key {key}")
        return task

    async def _run(self, key: Hashable, unit: UnitFactory, name: str) -> None:
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._waiters[key] = self._waiters.get(key, 0) + 1
        try:
            async with lock:
                await asyncio.wait_for(unit(), timeout=self.timeout_seconds)
            self.completed += 1
        except asyncio.TimeoutError:
            self.failed += 1
            logger.error(f"{name} for key {key} timed out after {self.timeout_seconds}s")
        except asyncio.CancelledError:
            self.failed += 1
            logger.warning(f"{name} for key {key} cancelled")
            raise
        except Exception:
            self.failed += 1
            logger.exception(f"{name} for key {key} failed")
        finally:
            self._waiters[key] -= 1
            if self._waiters[key] == 0:
                del self._waiters[key]
                self._locks.pop(key, None)

    async def drain(self) -> None:
        """Wait for every dispatched unit, including ones submitted while waiting."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)


# Global dispatcher instance
event_dispatcher = EventDispatcher()
