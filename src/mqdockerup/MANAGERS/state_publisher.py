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
State publishing interface and a log-backed implementation.
"""
import json
import logging
from collections import deque
from typing import Any, Deque, Dict, List, Optional, Protocol, Tuple

from ..MODELS.config import PublishConfig
from ..MODELS.container import ContainerRef, ImageDigestState
from ..UTILS.topics import container_state_topic, container_update_topic, discovery_topic

logger = logging.getLogger(__name__)

# (component, entity) pairs announced for every container
DISCOVERY_ENTITIES: Tuple[Tuple[str, str], ...] = (
    ("sensor", "docker_status"),
    ("update", "docker_update"),
    ("button", "docker_restart"),
)


class StatePublisher(Protocol):
    """
    Outbound side of the engine. Implementations push state to a broker.
    """

    async def publish_config(self, container: ContainerRef) -> List[str]:
        """Announce discovery entities, returning the discovery topics used."""
        ...

    async def publish_container_state(self, container: ContainerRef) -> None:
        ...

    async def publish_image_update_state(
        self, container: ContainerRef, digest_state: ImageDigestState
    ) -> None:
        ...

    async def publish_update_progress(
        self, container: ContainerRef, percent: int, in_progress: bool
    ) -> None:
        ...

    async def publish_abort(self, container_id: str) -> None:
        ...

    async def publish_removal(self, container_id: str, topics: List[str]) -> None:
        ...

    async def close(self) -> None:
        ...


class LogStatePublisher:
    """
    Renders would-be topics and JSON payloads to the log.
    The last messages are kept in `history` for inspection.
    """

    def __init__(self, config: Optional[PublishConfig] = None, history_size: int = 1000):
        self.config = config or PublishConfig()
        self.history: Deque[Tuple[str, str]] = deque(maxlen=history_size)
        self.closed = False

    def _emit(self, topic: str, payload: Any) -> None:
        text = payload if isinstance(payload, str) else json.dumps(payload, sort_keys=True, default=str)
        self.history.append((topic, text))
        logger.info("publish %s %s", topic, text)

    async def publish_config(self, container: ContainerRef) -> List[str]:
        if not self.config.ha_discovery:
            return []
        state_topic = container_state_topic(self.config.topic, container.name)
        update_topic = container_update_topic(self.config.topic, container.name)
        topics = []
        for component, entity in DISCOVERY_ENTITIES:
            topic = discovery_topic(self.config.discovery_prefix, component, container.name, entity)
            payload: Dict[str, Any] = {
                "name": f"{container.name} {entity.replace('docker_', '').title()}",
                "unique_id": f"{container.name}_{entity}",
                "device": {
                    "identifiers": [container.name],
                    "model": container.image,
                    "name": container.name,
                    "manufacturer": container.created_by,
                },
            }
            if component == "sensor":
                payload["state_topic"] = state_topic
                payload["value_template"] = "{{ value_json.status }}"
            elif component == "update":
                payload["state_topic"] = update_topic
                payload["command_topic"] = f"{self.config.topic}/update"
                payload["payload_install"] = json.dumps({"containerId": container.id})
            else:
                payload["command_topic"] = f"{self.config.topic}/restart"
                payload["payload_press"] = json.dumps({"containerId": container.id})
            self._emit(topic, payload)
            topics.append(topic)
        return topics

    async def publish_container_state(self, container: ContainerRef) -> None:
        self._emit(
            container_state_topic(self.config.topic, container.name),
            {
                "id": container.id,
                "name": container.name,
                "image": container.image,
                "tag": container.tag,
                "status": container.state,
                "created_by": container.created_by,
            },
        )

    async def publish_image_update_state(
        self, container: ContainerRef, digest_state: ImageDigestState
    ) -> None:
        self._emit(
            container_update_topic(self.config.topic, container.name),
            {
                "installed_version": f"{digest_state.tag}: {digest_state.installed_digest}",
                "latest_version": f"{digest_state.tag}: {digest_state.latest_digest}",
                "update_available": digest_state.update_available,
                "registry": digest_state.registry,
                "release_url": digest_state.source_url,
                "checked_at": digest_state.checked_at.isoformat(),
            },
        )

    async def publish_update_progress(
        self, container: ContainerRef, percent: int, in_progress: bool
    ) -> None:
        self._emit(
            container_update_topic(self.config.topic, container.name),
            {"update_percentage": percent, "in_progress": in_progress},
        )

    async def publish_abort(self, container_id: str) -> None:
        self._emit(f"{self.config.topic}/abort", {"containerId": container_id, "in_progress": False})

    async def publish_removal(self, container_id: str, topics: List[str]) -> None:
        # Empty retained payloads clear discovery entries
        for topic in topics:
            self._emit(topic, "")
        logger.debug("Removed %d topics of %s", len(topics), container_id)

    async def close(self) -> None:
        self.closed = True
        logger.info("State publisher closed")
