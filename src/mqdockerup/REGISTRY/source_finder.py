"""
Best-effort lookup of the source repository behind an image.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Optional
from urllib.parse import urlparse

import aiohttp

from .digest_cache import SOURCE_NAMESPACE, DigestCache, cache_key
from .image_reference import ImageReference

logger = logging.getLogger(__name__)

OCI_SOURCE_LABEL = "org.opencontainers.image.source"
DOCKER_HUB_API_URL = "https://hub.docker.com/v2/repositories"

LabelLoader = Callable[[str], Awaitable[Optional[Dict[str, str]]]]


def parse_github_url(url: str) -> Optional[str]:
    """
    Reduce a GitHub URL to 'github.com/<owner>/<repo>'.

    >>> parse_github_url("https://github.com/owner/repo/tree/main")
    'github.com/owner/repo'
    """
    parsed = urlparse(url.strip())
    if parsed.hostname != "github.com":
        return None
    parts = [part for part in parsed.path.split("/") if part]
    if len(parts) < 2:
        return None
    return f"github.com/{parts[0]}/{parts[1]}"


def github_url_from_description(description: str) -> Optional[str]:
    """Extract the link following a '[github]' marker in a Docker Hub description."""
    lowered = description.lower()
    start = lowered.find("[github]")
    if start == -1:
        return None
    rest = description[start + len("[github]"):].lstrip("(: ")
    end = len(rest)
    for stop in (")", " ", "\n", "]"):
        index = rest.find(stop)
        if index != -1:
            end = min(end, index)
    return parse_github_url(rest[:end])


class SourceFinder:
    """
    Finds an image's source repository.

    Tries, in order: the OCI source label of the local image, a '[github]'
    link in the Docker Hub description, and a github.com/<user>/<repo> guess
    confirmed with a HEAD request. Results, including misses, are cached.
    """

    def __init__(
        self,
        label_loader: LabelLoader,
        cache: Optional[DigestCache] = None,
        session: Optional[aiohttp.ClientSession] = None,
        timeout: float = 10.0,
    ):
        self.label_loader = label_loader
        self.cache = cache if cache is not None else DigestCache()
        self.session = session
        self.timeout = timeout

    async def find_source_repo(self, image: str, local_image: Optional[str] = None) -> Optional[str]:
        """
        :param image: Repository to find the source of.
        :param local_image: Id or full reference of the local image whose labels
            are read, the repository itself when omitted.
        """
        return await self.cache.get_or_load(
            cache_key(SOURCE_NAMESPACE, image), lambda: self._lookup(image, local_image or image)
        )

    async def _lookup(self, image: str, local_image: str) -> Optional[str]:
        labels = await self.label_loader(local_image)
        if labels and labels.get(OCI_SOURCE_LABEL):
            return labels[OCI_SOURCE_LABEL]

        ref = ImageReference.parse(image)
        if ref.registry == ImageReference.DEFAULT_REGISTRY:
            description_url = await self._from_docker_hub(ref.hub_repository)
            if description_url:
                return description_url

        parts = ref.repository.split("/")
        if len(parts) >= 2:
            candidate = f"github.com/{parts[0]}/{parts[-1]}"
            if await self._exists(f"https://{candidate}"):
                return candidate
        return None

    async def _from_docker_hub(self, repository: str) -> Optional[str]:
        try:
            status, data = await self._request("GET", f"{DOCKER_HUB_API_URL}/{repository}")
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            logger.warning("Error checking Docker Hub for %s: %s", repository, e)
            return None
        if status != 200 or not isinstance(data, dict):
            return None
        return github_url_from_description(data.get("full_description") or "")

    async def _exists(self, url: str) -> bool:
        try:
            status, _ = await self._request("HEAD", url, read_json=False)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.debug("HEAD %s failed: %s", url, e)
            return False
        return 200 <= status < 300

    async def _request(self, method: str, url: str, read_json: bool = True) -> Any:
        timeout = aiohttp.ClientTimeout(total=self.timeout)
        if self.session is not None:
            async with self.session.request(method, url, timeout=timeout) as response:
                body = await response.json(content_type=None) if read_json and response.status == 200 else None
                return response.status, body
        async with aiohttp.ClientSession(timeout=timeout) as session:
            async with session.request(method, url) as response:
                body = await response.json(content_type=None) if read_json and response.status == 200 else None
                return response.status, body
