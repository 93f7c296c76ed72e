"""
Shared in-memory fakes for the runtime, the publisher and registry HTTP.
"""
import asyncio
import copy
from typing import Any, Dict, List, Optional

import pytest

from mqdockerup.exceptions import ContainerNotFoundError
from mqdockerup.MODELS.container import ContainerRef
from mqdockerup.MODELS.update_progress import PullEvent


def make_inspect(
    container_id: str,
    name: str,
    image: str,
    image_id: str = "sha256:img-old",
    labels: Optional[Dict[str, str]] = None,
    state: str = "running",
) -> Dict[str, Any]:
    """Minimal container inspect document."""
    return {
        "Id": container_id,
        "Name": f"/{name}",
        "Image": image_id,
        "Config": {"Image": image, "Labels": labels or {}, "Hostname": container_id[:12]},
        "State": {"Status": state},
        "HostConfig": {"NetworkMode": "bridge", "Binds": None},
        "Mounts": [],
        "NetworkSettings": {"Networks": {"bridge": {"Aliases": None}}},
    }


class FakeResponse:
    def __init__(self, status: int = 200, body: Any = None, headers: Optional[Dict[str, str]] = None):
        self.status = status
        self._body = body
        self.headers = headers or {}

    async def json(self, content_type=None):
        return self._body

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False


class FakeSession:
    """Stands in for aiohttp.ClientSession; answers from a (method, url) table."""

    def __init__(self, responses: Optional[Dict[Any, FakeResponse]] = None, error: Optional[Exception] = None):
        self.responses = responses or {}
        self.error = error
        self.calls: List[Dict[str, Any]] = []
        self.closed = False

    def request(self, method, url, headers=None, timeout=None):
        self.calls.append({"method": method, "url": url, "headers": dict(headers or {})})
        if self.error is not None:
            raise self.error
        return self.responses.get((method, url), FakeResponse(404))

    async def close(self):
        self.closed = True


class FakeGateway:
    """In-memory runtime with the surface of ContainerRuntimeGateway."""

    def __init__(self):
        self.containers: Dict[str, Dict[str, Any]] = {}
        self.images: Dict[str, Dict[str, Any]] = {}
        self.pull_events: List[PullEvent] = []
        self.pull_error: Optional[Exception] = None
        self.recreate_error: Optional[Exception] = None
        self.next_image_id = "sha256:img-new"
        self.event_chunks: List[bytes] = []
        self.calls: List[tuple] = []
        self.inspect_failures: Dict[str, int] = {}
        self.inspect_delay = 0.0
        self._counter = 0

    def add_container(self, info: Dict[str, Any]) -> ContainerRef:
        self.containers[info["Id"]] = info
        return ContainerRef.from_inspect(info)

    def add_image(self, image_id: str, repo_digests: List[str], labels=None) -> None:
        self.images[image_id] = {"Id": image_id, "RepoDigests": repo_digests, "Config": {"Labels": labels}}

    async def list_managed(self, ignore_predicate):
        self.calls.append(("list_managed",))
        result = []
        for info in list(self.containers.values()):
            summary = {"Id": info["Id"], "Names": [info["Name"]], "Labels": info["Config"]["Labels"], "Image": info["Config"]["Image"]}
            if not ignore_predicate(summary):
                result.append(ContainerRef.from_inspect(info))
        return result

    async def inspect(self, container_id):
        self.calls.append(("inspect", container_id))
        if self.inspect_delay:
            await asyncio.sleep(self.inspect_delay)
        remaining = self.inspect_failures.get(container_id, 0)
        if remaining:
            self.inspect_failures[container_id] = remaining - 1
            raise ContainerNotFoundError(container_id)
        info = self.containers.get(container_id)
        if info is None:
            raise ContainerNotFoundError(container_id)
        return ContainerRef.from_inspect(info)

    async def inspect_image(self, image_id):
        return self.images.get(image_id)

    async def image_labels(self, image):
        info = self.images.get(image)
        return (info or {}).get("Config", {}).get("Labels")

    async def pull_with_progress(self, image):
        self.calls.append(("pull", image))
        for event in self.pull_events:
            await asyncio.sleep(0)
            yield event
        if self.pull_error is not None:
            raise self.pull_error

    async def stream_events(self):
        for chunk in self.event_chunks:
            await asyncio.sleep(0)
            yield chunk

    async def recreate_with_image(self, container: ContainerRef, new_image: str) -> ContainerRef:
        self.calls.append(("stop", container.id))
        self.calls.append(("remove", container.id))
        if self.recreate_error is not None:
            self.containers.pop(container.id, None)
            raise self.recreate_error
        old = self.containers.pop(container.id)
        self._counter += 1
        new_id = f"new{self._counter:09d}" + "0" * 52
        info = copy.deepcopy(old)
        info["Id"] = new_id
        info["Image"] = self.next_image_id
        info["Config"]["Image"] = new_image
        self.containers[new_id] = info
        self.calls.append(("create", new_id))
        self.calls.append(("start", new_id))
        return ContainerRef.from_inspect(info)

    async def restart(self, container_id):
        self.calls.append(("restart", container_id))

    async def remove_image(self, image_id):
        self.calls.append(("remove_image", image_id))
        self.images.pop(image_id, None)
        return True

    def close(self):
        self.calls.append(("close",))


class FakePublisher:
    """Records every publish call in order."""

    def __init__(self, close_delay: float = 0.0):
        self.calls: List[tuple] = []
        self.close_delay = close_delay
        self.closed = False

    def of(self, method: str) -> List[tuple]:
        return [call for call in self.calls if call[0] == method]

    async def publish_config(self, container):
        self.calls.append(("config", container.id))
        return [f"homeassistant/sensor/{container.name}/docker_status/config"]

    async def publish_container_state(self, container):
        self.calls.append(("state", container.id, container.state))

    async def publish_image_update_state(self, container, digest_state):
        self.calls.append(("image_state", container.id, digest_state))

    async def publish_update_progress(self, container, percent, in_progress):
        self.calls.append(("progress", container.id, percent, in_progress))

    async def publish_abort(self, container_id):
        self.calls.append(("abort", container_id))

    async def publish_removal(self, container_id, topics):
        self.calls.append(("removal", container_id, list(topics)))

    async def close(self):
        if self.close_delay:
            await asyncio.sleep(self.close_delay)
        self.closed = True


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def publisher():
    return FakePublisher()
