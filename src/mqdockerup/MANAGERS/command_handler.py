"""
Inbound commands: update and restart requests for a container.
"""
import json
import logging
from typing import Any, Optional, Union

from ..exceptions import ContainerNotFoundError
from .container_monitor import ContainerMonitor
from .update_orchestrator import UpdateOrchestrator

logger = logging.getLogger(__name__)

UPDATE_COMMANDS = ("update", "manualUpdate")
RESTART_COMMAND = "restart"


def parse_container_id(payload: Union[str, bytes, dict, None]) -> Optional[str]:
    """
    Reads 'containerId' from a JSON payload.

    :return: The id, or None when the payload is malformed.
    """
    if isinstance(payload, dict):
        data = payload
    else:
        try:
            data = json.loads(payload)
        except (TypeError, ValueError):
            logger.warning("Ignoring command with malformed payload: %r", payload)
            return None
    if not isinstance(data, dict) or not data.get("containerId"):
        logger.warning("Ignoring command without containerId: %r", payload)
        return None
    return str(data["containerId"])


class CommandHandler:
    """
    Dispatches commands to the orchestrator or the runtime.
    """

    def __init__(self, gateway, orchestrator: UpdateOrchestrator, monitor: ContainerMonitor):
        self.gateway = gateway
        self.orchestrator = orchestrator
        self.monitor = monitor

    async def handle(self, command: str, payload: Union[str, bytes, dict, None]) -> Any:
        """
        Handles one command.

        :param command: 'update', 'manualUpdate' or 'restart'.
        :param payload: JSON with a 'containerId'.
        :return: UpdateOutcome for updates, True for restarts, None when ignored.
        """
        container_id = parse_container_id(payload)
        if container_id is None:
            return None

        if command in UPDATE_COMMANDS:
            try:
                container = await self.gateway.inspect(container_id)
            except ContainerNotFoundError as e:
                logger.warning("Cannot update: %s", e)
                return None
            outcome = await self.orchestrator.update(container)
            await self.monitor.check_containers()
            await self.monitor.check_image_updates()
            return outcome

        if command == RESTART_COMMAND:
            logger.info("Restarting %s", container_id[:12])
            await self.gateway.restart(container_id)
            await self.monitor.check_containers()
            return True

        logger.warning("Unknown command %r", command)
        return None
