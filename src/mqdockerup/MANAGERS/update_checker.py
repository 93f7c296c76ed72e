"""
Compares a container's installed image digest with its registry's latest.
"""
import asyncio
import logging
from typing import Any, Dict, Optional, Tuple

from ..exceptions import NoAdapterFoundError, RegistryError
from ..MODELS.container import ContainerRef, ImageDigestState
from ..REGISTRY.adapter_factory import RegistryAdapterFactory
from ..REGISTRY.image_reference import ImageReference
from ..REGISTRY.registry_adapter import strip_sha256
from ..REGISTRY.source_finder import SourceFinder

logger = logging.getLogger(__name__)


def _identity(reference: str) -> Optional[Tuple[str, str]]:
    try:
        ref = ImageReference.parse(reference)
    except ValueError:
        return None
    return ref.registry, ref.hub_repository if ref.registry == ImageReference.DEFAULT_REGISTRY else ref.repository


def select_repo_digest(image_info: Optional[Dict[str, Any]], repository: str) -> Optional[str]:
    """
    Picks the installed digest from an image's RepoDigests.

    The entry whose repository matches the container's is preferred,
    otherwise the first entry is used. Returns the digest without prefix.
    """
    repo_digests = (image_info or {}).get("RepoDigests") or []
    if not repo_digests:
        return None
    wanted = _identity(repository)
    chosen = repo_digests[0]
    for entry in repo_digests:
        name, _, _ = entry.partition("@")
        if _identity(name) == wanted:
            chosen = entry
            break
    return strip_sha256(chosen.partition("@")[2])


class ImageUpdateChecker:
    """
    Builds the ImageDigestState of a container.

    Registry failures are logged and leave latest_digest unset, which reads
    as "unknown" rather than "up to date".
    """

    def __init__(self, gateway, factory: RegistryAdapterFactory, source_finder: Optional[SourceFinder] = None):
        self.gateway = gateway
        self.factory = factory
        self.source_finder = source_finder

    async def installed_digest(self, container: ContainerRef) -> Optional[str]:
        info = await self.gateway.inspect_image(container.image_id or container.image)
        return select_repo_digest(info, container.repository)

    async def latest_digest(self, container: ContainerRef) -> Optional[str]:
        if "@" in container.image:
            logger.debug("%s is pinned to a digest, not checking %s", container.name, container.image)
            return None
        try:
            adapter = self.factory.get_adapter(container.repository, container.tag)
            result = await adapter.check_for_new_digest()
        except NoAdapterFoundError as e:
            logger.warning("No registry adapter for %s: %s", container.name, e)
            return None
        except RegistryError as e:
            logger.error("Registry check failed for %s: %s", container.name, e)
            return None
        except asyncio.TimeoutError:
            logger.error("Registry check timed out for %s (image=%s)", container.name, container.image)
            return None
        return result.new_digest

    async def check(self, container: ContainerRef) -> ImageDigestState:
        installed = await self.installed_digest(container)
        latest = await self.latest_digest(container)
        source_url = None
        if self.source_finder is not None:
            source_url = await self.source_finder.find_source_repo(
                container.repository, container.image_id or container.image
            )
        state = ImageDigestState(
            repository=container.repository,
            tag=container.tag,
            installed_digest=installed,
            latest_digest=latest,
            registry=self.factory.get_registry_name(container.repository),
            source_url=source_url,
        )
        logger.debug(
            "%s: installed=%s latest=%s update_available=%s",
            container.name, installed, latest, state.update_available,
        )
        return state
