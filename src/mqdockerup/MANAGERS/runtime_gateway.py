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
Thin asynchronous facade over the Docker Engine API.
Blocking SDK calls run in worker threads; streams are bridged into the loop.
"""
import asyncio
import copy
import logging
import re
from typing import Any, AsyncIterator, Callable, Dict, List, Optional

import docker
from docker.errors import APIError, NotFound

from ..exceptions import ContainerNotFoundError, ImagePullError, UpdateError
from ..MODELS.container import ContainerRef
from ..MODELS.update_progress import PullEvent
from ..UTILS.async_bridge import iterate_in_thread

logger = logging.getLogger(__name__)

# Endpoint settings that can be passed back when (re)connecting a network
ENDPOINT_KEYS = ("IPAMConfig", "Links", "Aliases", "DriverOpts")

# Network modes that do not take endpoint configuration
_NO_ENDPOINT_MODES = ("host", "none")

_SHORT_ID = re.compile(r"^[0-9a-f]{12}$")


def _primary_network(host_config: Dict[str, Any], networks: Dict[str, Any]) -> Optional[str]:
    mode = host_config.get("NetworkMode") or "default"
    if mode in _NO_ENDPOINT_MODES or mode.startswith("container:"):
        return None
    if mode == "default":
        mode = "bridge"
    if mode in networks:
        return mode
    return None


def _endpoint_settings(endpoint: Optional[Dict[str, Any]], short_id: str) -> Dict[str, Any]:
    """Keep only the endpoint keys the create call accepts; drop short-id aliases."""
    settings = {}
    for key in ENDPOINT_KEYS:
        value = (endpoint or {}).get(key)
        if not value:
            continue
        if key == "Aliases":
            value = [alias for alias in value if alias != short_id and not _SHORT_ID.match(alias)]
            if not value:
                continue
        settings[key] = copy.deepcopy(value)
    return settings


def _links_mapping(links: Optional[List[str]]) -> Optional[Dict[str, str]]:
    """Converts inspect style links ('/db:/web/db') into {container: alias}."""
    if not links:
        return None
    mapping = {}
    for link in links:
        target, _, alias = link.partition(":")
        mapping[target.lstrip("/")] = alias.rsplit("/", 1)[-1] or target.lstrip("/")
    return mapping


def _bind_spec(mount: Dict[str, Any]) -> str:
    mode = mount.get("Mode") or ("" if mount.get("RW", True) else "ro")
    spec = f"{mount['Source']}:{mount['Destination']}"
    return f"{spec}:{mode}" if mode else spec


def build_create_spec(attrs: Dict[str, Any], new_image: str) -> Dict[str, Any]:
    """
    Builds the create request body for a replacement container.

    The old container's Config, HostConfig and primary network endpoint are
    carried over with the image replaced. Binds are regenerated from
    bind-type mounts; named volumes are attached again by name so their data
    survives. The result does not alias the input.

    Args:
        attrs: Inspect document of the container being replaced.
        new_image: Image reference for the new container.

    Returns:
        Body for the container create endpoint.
    """
    config = copy.deepcopy(attrs.get("Config") or {})
    host_config = copy.deepcopy(attrs.get("HostConfig") or {})
    networks = (attrs.get("NetworkSettings") or {}).get("Networks") or {}
    short_id = (attrs.get("Id") or "")[:12]

    config["Image"] = new_image
    if short_id and config.get("Hostname") == short_id:
        # Generated from the old id, let the runtime generate a new one
        config.pop("Hostname")

    explicit_mounts = host_config.get("Mounts") or []
    explicit_targets = {mount.get("Target") for mount in explicit_mounts}

    binds: List[str] = []
    volume_mounts: List[Dict[str, Any]] = []
    volumes: Dict[str, Dict[str, Any]] = {}
    for mount in attrs.get("Mounts") or []:
        destination = mount.get("Destination")
        if destination in explicit_targets:
            continue
        if mount.get("Type") == "bind":
            binds.append(_bind_spec(mount))
        elif mount.get("Type") == "volume" and mount.get("Name"):
            volumes[destination] = {}
            volume_mounts.append({
                "Type": "volume",
                "Source": mount["Name"],
                "Target": destination,
                "ReadOnly": not mount.get("RW", True),
            })

    host_config["Binds"] = binds or None
    if volume_mounts:
        host_config["Mounts"] = explicit_mounts + volume_mounts
    if volumes:
        config["Volumes"] = {**(config.get("Volumes") or {}), **volumes}

    body = dict(config)
    body["HostConfig"] = host_config

    primary = _primary_network(host_config, networks)
    if primary is not None:
        body["NetworkingConfig"] = {
            "EndpointsConfig": {primary: _endpoint_settings(networks.get(primary), short_id)}
        }
    return body


def extra_networks(attrs: Dict[str, Any]) -> Dict[str, Dict[str, Any]]:
    """Networks besides the primary one, with their endpoint settings."""
    host_config = attrs.get("HostConfig") or {}
    networks = (attrs.get("NetworkSettings") or {}).get("Networks") or {}
    primary = _primary_network(host_config, networks)
    if primary is None:
        return {}
    short_id = (attrs.get("Id") or "")[:12]
    return {
        name: _endpoint_settings(endpoint, short_id)
        for name, endpoint in networks.items()
        if name != primary
    }


def to_pull_event(raw: Dict[str, Any], image: str) -> PullEvent:
    """Converts one decoded pull stream entry; error entries raise ImagePullError."""
    if raw.get("error") or raw.get("errorDetail"):
        reason = raw.get("error") or (raw.get("errorDetail") or {}).get("message", "unknown error")
        raise ImagePullError(image, reason)
    detail = raw.get("progressDetail") or {}
    return PullEvent(
        layer_id=raw.get("id"),
        status=raw.get("status") or "",
        current=detail.get("current"),
        total=detail.get("total"),
    )


class ContainerRuntimeGateway:
    """
    Asynchronous access to the container runtime.
    """

    def __init__(self, client: Optional[Any] = None, base_url: Optional[str] = None, stop_timeout: int = 10):
        """
        Initializes the gateway.

        :param client: Low-level API client. Created from the environment when omitted.
        :param base_url: Engine URL, e.g. 'unix:///var/run/docker.sock'.
        :param stop_timeout: Seconds the runtime waits before killing a stopping container.
        """
        if client is None:
            if base_url:
                client = docker.APIClient(base_url=base_url)
            else:
                client = docker.APIClient(**docker.utils.kwargs_from_env())
        self.client = client
        self.stop_timeout = stop_timeout
        self._streams: List[Any] = []

    async def _call(self, func: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        return await asyncio.to_thread(func, *args, **kwargs)

    async def list_managed(self, ignore_predicate: Callable[[Any], bool]) -> List[ContainerRef]:
        """
        Lists all containers, stopped ones included, that the predicate does not ignore.
        Containers that disappear between listing and inspecting are skipped.
        """
        summaries = await self._call(self.client.containers, all=True)
        containers = []
        for summary in summaries:
            if ignore_predicate(summary):
                continue
            try:
                containers.append(await self.inspect(summary["Id"]))
            except ContainerNotFoundError:
                logger.debug("Container %s vanished while listing", summary.get("Id"))
        return containers

    async def inspect(self, container_id: str) -> ContainerRef:
        try:
            info = await self._call(self.client.inspect_container, container_id)
        except NotFound as e:
            raise ContainerNotFoundError(container_id) from e
        return ContainerRef.from_inspect(info)

    async def inspect_image(self, image_id: str) -> Optional[Dict[str, Any]]:
        """Inspect document of an image, None when the image is not present."""
        try:
            return await self._call(self.client.inspect_image, image_id)
        except NotFound:
            return None

    async def image_labels(self, image: str) -> Optional[Dict[str, str]]:
        try:
            info = await self.inspect_image(image)
        except APIError as e:
            logger.warning("Error accessing image %s: %s", image, e)
            return None
        if not info:
            return None
        return (info.get("Config") or {}).get("Labels")

    async def pull_with_progress(self, image: str) -> AsyncIterator[PullEvent]:
        """
        Pulls an image, yielding one PullEvent per stream entry.

        :raises ImagePullError: When the runtime reports an error.
        """
        logger.info("Pulling %s", image)
        try:
            async for raw in iterate_in_thread(
                lambda: self.client.pull(image, stream=True, decode=True)
            ):
                yield to_pull_event(raw, image)
        except APIError as e:
            raise ImagePullError(image, str(e)) from e

    async def stream_events(self) -> AsyncIterator[bytes]:
        """Raw container event chunks, undecoded."""
        def open_stream():
            stream = self.client.events(decode=False, filters={"type": "container"})
            self._streams.append(stream)
            return stream

        async for chunk in iterate_in_thread(open_stream):
            yield chunk

    async def stop(self, container_id: str) -> None:
        await self._call(self.client.stop, container_id, timeout=self.stop_timeout)

    async def remove(self, container_id: str) -> None:
        await self._call(self.client.remove_container, container_id)

    async def create(self, body: Dict[str, Any], name: str) -> str:
        created = await self._call(self.client.create_container_from_config, body, name)
        for warning in created.get("Warnings") or []:
            logger.warning("Create %s: %s", name, warning)
        return created["Id"]

    async def start(self, container_id: str) -> None:
        await self._call(self.client.start, container_id)

    async def pause(self, container_id: str) -> None:
        await self._call(self.client.pause, container_id)

    async def unpause(self, container_id: str) -> None:
        await self._call(self.client.unpause, container_id)

    async def restart(self, container_id: str) -> None:
        await self._call(self.client.restart, container_id, timeout=self.stop_timeout)

    async def connect_network(self, container_id: str, network: str, endpoint: Dict[str, Any]) -> None:
        ipam = endpoint.get("IPAMConfig") or {}
        links = _links_mapping(endpoint.get("Links"))
        await self._call(
            self.client.connect_container_to_network,
            container_id,
            network,
            aliases=endpoint.get("Aliases"),
            links=links,
            ipv4_address=ipam.get("IPv4Address"),
            ipv6_address=ipam.get("IPv6Address"),
            driver_opt=endpoint.get("DriverOpts"),
        )

    async def recreate_with_image(self, container: ContainerRef, new_image: str) -> ContainerRef:
        """
        Replaces a container with one running new_image and the same configuration.

        Stop, remove, create, connect extra networks, start. There is no
        rollback: a failure after the stop leaves the old container gone.

        :raises UpdateError: When a runtime call fails.
        """
        body = build_create_spec(container.attrs, new_image)
        networks = extra_networks(container.attrs)
        step = "stop"
        try:
            await self.stop(container.id)
            step = "remove"
            await self.remove(container.id)
            step = "create"
            new_id = await self.create(body, container.name)
            step = "connect"
            for network, endpoint in networks.items():
                await self.connect_network(new_id, network, endpoint)
            step = "start"
            await self.start(new_id)
        except APIError as e:
            raise UpdateError(
                f"Recreating {container.name} failed at {step}: {e}",
                context={"container": container.name, "step": step},
            ) from e
        try:
            return await self.inspect(new_id)
        except Exception as e:
            # The new container runs; report it from what is already known
            logger.warning("Could not inspect %s after start: %s", new_id[:12], e)
            return ContainerRef(id=new_id, name=container.name, image=new_image, labels=container.labels)

    async def remove_image(self, image_id: str) -> bool:
        """Force-removes an image. Failures are logged, never raised."""
        try:
            await self._call(self.client.remove_image, image_id, force=True)
        except APIError as e:
            logger.warning("Could not remove image %s: %s", image_id, e)
            return False
        logger.info("Removed image %s", image_id)
        return True

    def close(self) -> None:
        for stream in self._streams:
            stream.close()
        self._streams.clear()
        self.client.close()
