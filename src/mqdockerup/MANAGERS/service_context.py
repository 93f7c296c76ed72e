"""
Explicit wiring of all long-lived components, built once at startup.
"""
import logging
from dataclasses import dataclass, field
from typing import Optional, Set

import aiohttp

from ..MODELS.config import AppConfig
from ..REGISTRY.adapter_factory import RegistryAdapterFactory
from ..REGISTRY.digest_cache import DigestCache
from ..REGISTRY.source_finder import SourceFinder
from .command_handler import CommandHandler
from .container_monitor import ContainerMonitor
from .event_queue import PendingEventQueue
from .event_reconciler import EventReconciler
from .ignore_policy import IgnorePolicy
from .inventory import InventoryStore
from .runtime_gateway import ContainerRuntimeGateway
from .state_publisher import LogStatePublisher, StatePublisher
from .update_checker import ImageUpdateChecker
from .update_orchestrator import UpdateOrchestrator

logger = logging.getLogger(__name__)


@dataclass
class ServiceContext:
    """
    Everything the daemon and the CLI commands operate on.
    """
    config: AppConfig
    gateway: ContainerRuntimeGateway
    publisher: StatePublisher
    inventory: InventoryStore
    cache: DigestCache
    factory: RegistryAdapterFactory
    checker: ImageUpdateChecker
    ignore_policy: IgnorePolicy
    orchestrator: UpdateOrchestrator
    reconciler: EventReconciler
    monitor: ContainerMonitor
    commands: CommandHandler
    session: Optional[aiohttp.ClientSession] = None
    updating: Set[str] = field(default_factory=set)

    @classmethod
    async def create(
        cls,
        config: AppConfig,
        gateway: Optional[ContainerRuntimeGateway] = None,
        publisher: Optional[StatePublisher] = None,
        inventory: Optional[InventoryStore] = None,
        session: Optional[aiohttp.ClientSession] = None,
    ) -> "ServiceContext":
        """
        Builds the context. Must run inside the event loop that will use it.

        :param config: Validated configuration.
        :param gateway: Runtime gateway, created from config.runtime when omitted.
        :param publisher: State publisher, a LogStatePublisher when omitted.
        :param inventory: Inventory store, opened at config.database.path when omitted.
        :param session: HTTP session for registry calls, one is opened when omitted.
        """
        runtime = config.runtime
        if gateway is None:
            gateway = ContainerRuntimeGateway(base_url=runtime.base_url, stop_timeout=runtime.stop_timeout)
        if publisher is None:
            publisher = LogStatePublisher(config.publish)
        if inventory is None:
            inventory = InventoryStore(config.database.path)
        if session is None:
            session = aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=runtime.registry_timeout))

        updating: Set[str] = set()
        cache = DigestCache(ttl=runtime.cache_ttl)
        factory = RegistryAdapterFactory(
            tokens=config.access_tokens, cache=cache, session=session, timeout=runtime.registry_timeout
        )
        source_finder = SourceFinder(gateway.image_labels, cache=cache, session=session)
        checker = ImageUpdateChecker(gateway, factory, source_finder)
        ignore_policy = IgnorePolicy(config.ignore, runtime.self_identifier)
        orchestrator = UpdateOrchestrator(
            gateway,
            publisher,
            checker,
            inventory=inventory,
            updating=updating,
            ignore_policy=ignore_policy,
            progress_interval=runtime.progress_interval,
            self_identifier=runtime.self_identifier,
        )
        reconciler = EventReconciler(
            gateway,
            publisher,
            checker,
            inventory,
            ignore_policy,
            queue=PendingEventQueue(),
            inspect_retry_delay=runtime.inspect_retry_delay,
            create_inspect_attempts=runtime.create_inspect_attempts,
            inspect_attempts=runtime.inspect_attempts,
        )
        monitor = ContainerMonitor(gateway, publisher, checker, inventory, ignore_policy)
        commands = CommandHandler(gateway, orchestrator, monitor)
        return cls(
            config=config,
            gateway=gateway,
            publisher=publisher,
            inventory=inventory,
            cache=cache,
            factory=factory,
            checker=checker,
            ignore_policy=ignore_policy,
            orchestrator=orchestrator,
            reconciler=reconciler,
            monitor=monitor,
            commands=commands,
            session=session,
            updating=updating,
        )

    async def close(self) -> None:
        """Releases the HTTP session, the runtime client and the inventory."""
        if self.session is not None and not self.session.closed:
            await self.session.close()
        self.gateway.close()
        self.inventory.close()
