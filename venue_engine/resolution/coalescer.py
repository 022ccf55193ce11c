import asyncio
import logging
from functools import partial
from typing import Awaitable, Callable, Dict, Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class _InFlight:
    __slots__ = ("task", "waiters")

    def __init__(self, task: asyncio.Task):
        self.task = task
        self.waiters = 0


class RequestCoalescer(Generic[T]):
    """
    At most one running `work` per key; concurrent callers share its result.

    Each caller awaits the shared task through a shield, so one caller going
    away does not cancel the work for the others. When the last caller is
    cancelled the shared task is cancelled too.
    """

    def __init__(self):
        self._in_flight: Dict[str, _InFlight] = {}

    def __len__(self) -> int:
        return len(self._in_flight)

    def __contains__(self, key: str) -> bool:
        return key in self._in_flight

    async def resolve(self, key: str, work: Callable[[], Awaitable[T]]) -> T:
        entry = self._in_flight.get(key)
        if entry is None:
            entry = _InFlight(asyncio.ensure_future(work()))
            self._in_flight[key] = entry
            entry.task.add_done_callback(partial(self._release, key, entry))
        else:
            logger.debug(f"Joining in-flight resolution for {key}")

        entry.waiters += 1
        try:
            return await asyncio.shield(entry.task)
        except asyncio.CancelledError:
            if entry.waiters == 1 and not entry.task.done():
                # Unlink now so a new caller starts fresh instead of joining
                # a task that is still unwinding its cancellation
                if self._in_flight.get(key) is entry:
                    del self._in_flight[key]
                entry.task.cancel()
            raise
        finally:
            entry.waiters -= 1

    def _release(self, key: str, entry: _InFlight, task: asyncio.Task) -> None:
        if self._in_flight.get(key) is entry:
            del self._in_flight[key]
        if not task.cancelled() and task.exception() is not None:
            logger.error(f"Resolution for {key} failed: {task.exception()!r}")
