"""
Timer driven reconciliation of all managed containers.
"""
import asyncio
import logging
from typing import Awaitable, Callable, Dict, List

from ..MODELS.container import ContainerRef, ImageDigestState
from .ignore_policy import IgnorePolicy
from .inventory import InventoryStore
from .state_publisher import StatePublisher
from .update_checker import ImageUpdateChecker

logger = logging.getLogger(__name__)


class ContainerMonitor:
    """
    Periodic full checks, complementing the event stream.
    """

    def __init__(
        self,
        gateway,
        publisher: StatePublisher,
        checker: ImageUpdateChecker,
        inventory: InventoryStore,
        ignore_policy: IgnorePolicy,
    ):
        self.gateway = gateway
        self.publisher = publisher
        self.checker = checker
        self.inventory = inventory
        self.ignore_policy = ignore_policy

    async def check_containers(self) -> List[ContainerRef]:
        """
        Publishes config and state of every managed container and cleans up
        inventory entries of containers that no longer exist.
        """
        containers = await self.gateway.list_managed(self.ignore_policy.ignore_container)
        present = {container.id for container in containers}

        for row in self.inventory.list_all():
            if row.id in present:
                continue
            topics = self.inventory.exclusive_topics(row.id)
            await self.publisher.publish_removal(row.id, topics)
            self.inventory.delete(row.id)
            logger.info("Removed %s (%s) from the inventory", row.name, row.id[:12])

        for container in containers:
            topics = await self.publisher.publish_config(container)
            self.inventory.upsert(container.id, container.name, container.repository, container.tag)
            for topic in topics:
                self.inventory.add_topic(container.id, topic)
            await self.publisher.publish_container_state(container)

        logger.debug("Container check done, %d containers", len(containers))
        return containers

    async def check_image_updates(self) -> Dict[str, ImageDigestState]:
        """Publishes the digest state of every container not ignored for updates."""
        containers = await self.gateway.list_managed(self.ignore_policy.ignore_container)
        states: Dict[str, ImageDigestState] = {}
        for container in containers:
            if self.ignore_policy.ignore_updates(container):
                continue
            try:
                state = await self.checker.check(container)
                await self.publisher.publish_image_update_state(container, state)
            except Exception:
                logger.exception("Image update check failed for %s", container.name)
                continue
            states[container.id] = state
        available = sum(1 for state in states.values() if state.update_available)
        logger.info("Image update check done: %d of %d containers have updates", available, len(states))
        return states

    @staticmethod
    async def run_forever(interval: float, job: Callable[[], Awaitable[object]], name: str = "check") -> None:
        """
        Runs job every interval seconds. A failed run is logged and the
        loop goes on.
        """
        while True:
            try:
                await job()
            except Exception:
                logger.exception("%s failed", name)
            await asyncio.sleep(interval)
