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
Reacts to container lifecycle events from the runtime's event stream.
"""
import asyncio
import logging
from typing import Any, Dict, Optional

from docker.errors import APIError
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_fixed

from ..exceptions import ContainerNotFoundError
from ..MODELS.container import ContainerRef
from ..MODELS.update_plan import get_event_driven_update_plan, normalize_container_event_action
from ..PARSERS.event_parser import (
    EventStreamParser,
    event_action,
    event_container_id,
    is_container_event,
)
from .event_queue import PendingEventQueue
from .ignore_policy import IgnorePolicy
from .inventory import InventoryStore
from .state_publisher import StatePublisher
from .update_checker import ImageUpdateChecker

logger = logging.getLogger(__name__)


class EventReconciler:
    """
    Consumes the event stream and applies each action's update plan.

    Events for the same container are handled strictly in arrival order;
    a failed reaction is logged and does not hold up later ones.
    """

    def __init__(
        self,
        gateway,
        publisher: StatePublisher,
        checker: ImageUpdateChecker,
        inventory: InventoryStore,
        ignore_policy: IgnorePolicy,
        queue: Optional[PendingEventQueue] = None,
        inspect_retry_delay: float = 1.0,
        create_inspect_attempts: int = 5,
        inspect_attempts: int = 3,
    ):
        self.gateway = gateway
        self.publisher = publisher
        self.checker = checker
        self.inventory = inventory
        self.ignore_policy = ignore_policy
        self.queue = queue if queue is not None else PendingEventQueue()
        self.inspect_retry_delay = inspect_retry_delay
        self.create_inspect_attempts = create_inspect_attempts
        self.inspect_attempts = inspect_attempts

    async def run(self) -> None:
        """Reads the event stream until it ends or the task is cancelled."""
        parser = EventStreamParser()
        logger.info("Listening for container events")
        async for chunk in self.gateway.stream_events():
            for event in parser.feed(chunk):
                self.handle_event(event)
        logger.warning("Container event stream ended")

    def handle_event(self, event: Dict[str, Any]) -> Optional[asyncio.Task]:
        """Classifies one decoded event and queues it when supported."""
        if not is_container_event(event):
            return None
        raw_action = event_action(event)
        action = normalize_container_event_action(raw_action)
        if action is None:
            logger.debug("Ignoring unsupported container action %r", raw_action)
            return None
        if not event_container_id(event):
            logger.debug("Container event %r without an id", raw_action)
            return None
        return self.queue_container_lifecycle_event(action, event)

    def queue_container_lifecycle_event(self, action: str, data: Dict[str, Any]) -> asyncio.Task:
        """
        Chains the handling of an action onto the container's queue.

        :param action: Normalized action.
        :param data: Decoded event carrying the container id.
        :return: Task that settles once the action has been handled.
        """
        container_id = event_container_id(data)
        return self.queue.enqueue(container_id, lambda: self.process(action, container_id))

    async def process(self, action: str, container_id: str) -> None:
        plan = get_event_driven_update_plan(action)
        logger.debug("Handling %s for %s", action, container_id[:12])

        if plan.cleanup_removed_container:
            await self.cleanup(container_id)
            return

        attempts = self.create_inspect_attempts if action == "create" else self.inspect_attempts
        container = await self._inspect_with_retry(container_id, attempts)
        if container is None:
            return
        if self.ignore_policy.ignore_container(container):
            logger.debug("Ignoring %s event for %s", action, container.name)
            return

        if plan.publish_config:
            topics = await self.publisher.publish_config(container)
            self.inventory.upsert(container.id, container.name, container.repository, container.tag)
            for topic in topics:
                self.inventory.add_topic(container.id, topic)
        if plan.publish_container_state:
            await self.publisher.publish_container_state(container)
        if plan.publish_image_update_state and not self.ignore_policy.ignore_updates(container):
            digest_state = await self.checker.check(container)
            await self.publisher.publish_image_update_state(container, digest_state)

    async def cleanup(self, container_id: str) -> None:
        """Removes the retained topics and inventory rows of a destroyed container."""
        if not self.inventory.exists(container_id):
            logger.debug("Destroyed container %s was not tracked", container_id[:12])
            return
        topics = self.inventory.exclusive_topics(container_id)
        await self.publisher.publish_removal(container_id, topics)
        self.inventory.delete(container_id)
        logger.info("Cleaned up removed container %s", container_id[:12])

    async def _inspect_with_retry(self, container_id: str, attempts: int) -> Optional[ContainerRef]:
        retrying = AsyncRetrying(
            stop=stop_after_attempt(attempts),
            wait=wait_fixed(self.inspect_retry_delay),
            retry=retry_if_exception_type((ContainerNotFoundError, APIError)),
            reraise=True,
        )
        try:
            async for attempt in retrying:
                with attempt:
                    return await self.gateway.inspect(container_id)
        except ContainerNotFoundError:
            logger.info("Container %s is gone after %d inspect attempts", container_id[:12], attempts)
        return None
