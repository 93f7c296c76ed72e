# Copyright 2024 Michael Maillet, Damien Davison, Sacha Davison
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.


"""
Daemon lifecycle: timers, the event stream task, signals and graceful shutdown.
"""
import asyncio
import logging
import signal
from typing import Any, Dict, List, Optional

from .container_monitor import ContainerMonitor
from .service_context import ServiceContext

logger = logging.getLogger(__name__)


class Supervisor:
    """
    Runs the daemon until a signal or a fatal error asks it to stop.

    On shutdown every container still being updated gets an abort published,
    then the publisher is closed within a bounded grace period.
    """

    def __init__(self, context: ServiceContext):
        self.context = context
        self.exit_code = 0
        self._tasks: List[asyncio.Task] = []
        self._stop_event: Optional[asyncio.Event] = None
        self._shutting_down = False

    def request_shutdown(self, exit_code: int = 0) -> None:
        """Asks the daemon to stop. The first request decides the exit code."""
        if self._stop_event is None or self._stop_event.is_set():
            return
        self.exit_code = exit_code
        self._stop_event.set()

    def _handle_loop_exception(self, loop: asyncio.AbstractEventLoop, context: Dict[str, Any]) -> None:
        error = context.get("exception")
        logger.error("Unhandled error: %s", context.get("message"), exc_info=error)
        self.request_shutdown(1)

    def _install_signal_handlers(self, loop: asyncio.AbstractEventLoop) -> None:
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, self.request_shutdown, 0)
            except (NotImplementedError, RuntimeError):
                # Not supported on this platform or outside the main thread
                logger.debug("Cannot install handler for %s", sig)

    def _watch_reconciler(self, task: asyncio.Task) -> None:
        if self._shutting_down or task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error("Event stream failed: %s", error, exc_info=error)
        else:
            logger.error("Event stream ended unexpectedly")
        self.request_shutdown(1)

    async def run(self) -> int:
        """
        Starts timers and the event stream and waits for shutdown.

        :return: Process exit code.
        """
        loop = asyncio.get_running_loop()
        self._stop_event = asyncio.Event()
        self._install_signal_handlers(loop)
        loop.set_exception_handler(self._handle_loop_exception)

        main = self.context.config.main
        monitor = self.context.monitor
        logger.info(
            "Starting: container check every %ss, image update check every %ss",
            main.container_check_seconds,
            main.update_check_seconds,
        )
        self._tasks = [
            loop.create_task(
                ContainerMonitor.run_forever(main.container_check_seconds, monitor.check_containers, "Container check"),
                name="container-check",
            ),
            loop.create_task(
                ContainerMonitor.run_forever(main.update_check_seconds, monitor.check_image_updates, "Image update check"),
                name="image-update-check",
            ),
        ]
        reconciler_task = loop.create_task(self.context.reconciler.run(), name="event-stream")
        reconciler_task.add_done_callback(self._watch_reconciler)
        self._tasks.append(reconciler_task)

        await self._stop_event.wait()
        await self.shutdown()
        return self.exit_code

    async def shutdown(self) -> None:
        """Publishes aborts, stops all tasks and closes the publisher and context."""
        if self._shutting_down:
            return
        self._shutting_down = True
        logger.info("Shutting down")

        for container_id in list(self.context.updating):
            try:
                await self.context.publisher.publish_abort(container_id)
            except Exception:
                logger.exception("Could not publish abort for %s", container_id[:12])

        for task in self._tasks:
            task.cancel()
        self.context.reconciler.queue.cancel_all()
        await asyncio.gather(*self._tasks, return_exceptions=True)

        grace = self.context.config.runtime.shutdown_grace
        try:
            await asyncio.wait_for(self.context.publisher.close(), grace)
        except asyncio.TimeoutError:
            logger.warning("Publisher did not close within %ss", grace)

        await self.context.close()
        logger.info("Stopped with exit code %d", self.exit_code)
