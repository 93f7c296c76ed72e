"""
Per-container serialization of lifecycle reactions.
"""
import asyncio
import logging
from typing import Awaitable, Callable, Dict, Optional

logger = logging.getLogger(__name__)

Job = Callable[[], Awaitable[None]]


class PendingEventQueue:
    """
    One FIFO chain per key.

    Each job starts after the previous job for the same key has settled,
    whatever its outcome. Different keys run concurrently. Only the event
    loop thread touches the chains.
    """

    def __init__(self):
        self._tails: Dict[str, asyncio.Task] = {}

    def __len__(self) -> int:
        return len(self._tails)

    def __contains__(self, key: str) -> bool:
        return key in self._tails

    def enqueue(self, key: str, job: Job) -> asyncio.Task:
        """
        Appends a job to the key's chain.

        :param key: Container id.
        :param job: Coroutine function to run.
        :return: Task that settles when the job has run.
        """
        previous = self._tails.get(key)
        task = asyncio.get_running_loop().create_task(self._run(key, previous, job))
        self._tails[key] = task
        task.add_done_callback(lambda done: self._settle(key, done))
        return task

    async def _run(self, key: str, previous: Optional[asyncio.Task], job: Job) -> None:
        if previous is not None and not previous.done():
            await asyncio.wait([previous])
        try:
            await job()
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("Queued event for %s failed", key)

    def _settle(self, key: str, task: asyncio.Task) -> None:
        # A newer job may have replaced the tail meanwhile
        if self._tails.get(key) is task:
            del self._tails[key]

    async def drain(self) -> None:
        """Waits until every chain has settled."""
        while self._tails:
            await asyncio.wait(list(self._tails.values()))

    def cancel_all(self) -> None:
        for task in list(self._tails.values()):
            task.cancel()
