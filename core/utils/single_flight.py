# core/utils/single_flight.py
import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict

logger = logging.getLogger(__name__)


class SingleFlight:
    """Collapse concurrent calls for the same key into one in-flight operation.

    Callers arriving while an operation for ``key`` is running await that operation and
    receive its result or exception. A caller being cancelled does not cancel the shared
    operation for the others.
    """

    def __init__(self):
        self._in_flight: Dict[str, asyncio.Task] = {}

    def in_flight(self, key: str) -> bool:
        return key in self._in_flight

    def _forget(self, key: str, task: asyncio.Task) -> None:
        if self._in_flight.get(key) is task:
            del self._in_flight[key]
        # Retrieve the exception so it is not reported as unhandled when every waiter left.
        if not task.cancelled() and task.exception() is not None:
            logger.debug(f"Single-flight operation {key} failed: {task.exception()!r}")

    async def do(self, key: str, operation: Callable[[], Awaitable[Any]]) -> Any:
        task = self._in_flight.get(key)
        if task is None:
            task = asyncio.ensure_future(operation())
            self._in_flight[key] = task
            task.add_done_callback(lambda done: self._forget(key, done))
            logger.debug(f"Started single-flight operation: {key}")
        else:
            logger.debug(f"Joined in-flight operation: {key}")
        return await asyncio.shield(task)
