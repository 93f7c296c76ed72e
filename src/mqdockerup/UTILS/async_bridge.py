"""
Bridges blocking iterators (docker SDK streams) into the asyncio event loop.
"""
import asyncio
import threading
from typing import AsyncIterator, Callable, Iterable, TypeVar

T = TypeVar("T")

_DONE = object()


class _Failure:
    """Wraps an exception raised inside the worker thread."""

    def __init__(self, error: BaseException):
        self.error = error


async def iterate_in_thread(factory: Callable[[], Iterable[T]]) -> AsyncIterator[T]:
    """
    Consumes a blocking iterable in a daemon thread and yields its items on the loop.

    The iterable is created inside the worker, so opening the underlying
    connection does not block the loop either. Exceptions raised by the
    iterable are re-raised from the async iterator.

    :param factory: Callable returning the blocking iterable.
    """
    loop = asyncio.get_running_loop()
    queue: "asyncio.Queue[object]" = asyncio.Queue()
    stopped = threading.Event()

    def put(item: object) -> None:
        # The loop may be gone when the process is shutting down
        if loop.is_closed():
            return
        try:
            loop.call_soon_threadsafe(queue.put_nowait, item)
        except RuntimeError:
            stopped.set()

    def worker() -> None:
        try:
            for item in factory():
                if stopped.is_set():
                    break
                put(item)
        except BaseException as error:
            put(_Failure(error))
        finally:
            put(_DONE)

    thread = threading.Thread(target=worker, name="mqdockerup-stream", daemon=True)
    thread.start()

    try:
        while True:
            item = await queue.get()
            if item is _DONE:
                return
            if isinstance(item, _Failure):
                raise item.error
            yield item
    finally:
        stopped.set()
