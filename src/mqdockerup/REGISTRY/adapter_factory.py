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
Selection of the registry adapter responsible for an image.
"""

import logging
from typing import Optional, Tuple, Type

import aiohttp

from ..exceptions import NoAdapterFoundError
from ..MODELS.config import AccessTokensConfig
from .digest_cache import REGISTRY_NAMESPACE, DigestCache, cache_key
from .dockerhub_adapter import DockerHubAdapter
from .github_adapter import GithubAdapter
from .lscr_adapter import LscrAdapter
from .registry_adapter import RegistryAdapter

logger = logging.getLogger(__name__)

REGISTRY_NOT_FOUND = "Not Found"

# First match wins
REGISTRY_ADAPTERS: Tuple[Type[RegistryAdapter], ...] = (
    DockerHubAdapter,
    GithubAdapter,
    LscrAdapter,
)


def find_adapter_class(image: str) -> Optional[Type[RegistryAdapter]]:
    """Return the first adapter class that can handle the image, if any."""
    for adapter_class in REGISTRY_ADAPTERS:
        if adapter_class.can_handle_image(image):
            return adapter_class
    return None


class RegistryAdapterFactory:
    """
    Creates adapters for images, filling in configured tokens and the shared
    HTTP session.
    """

    def __init__(
        self,
        tokens: Optional[AccessTokensConfig] = None,
        cache: Optional[DigestCache] = None,
        session: Optional[aiohttp.ClientSession] = None,
        timeout: float = 30.0,
    ):
        self.tokens = tokens or AccessTokensConfig()
        self.cache = cache if cache is not None else DigestCache()
        self.session = session
        self.timeout = timeout

    def _configured_token(self, adapter_class: Type[RegistryAdapter]) -> Optional[str]:
        if adapter_class.token_name is None:
            return None
        return getattr(self.tokens, adapter_class.token_name, None)

    def get_adapter(
        self, image: str, tag: Optional[str] = None, token: Optional[str] = None
    ) -> RegistryAdapter:
        """
        Create the adapter for an image.

        Args:
            image: Image reference.
            tag: Tag to check, defaults to the reference's tag.
            token: Access token overriding the configured one.

        Returns:
            Adapter instance.

        Raises:
            NoAdapterFoundError: If no adapter handles the image's registry.
        """
        adapter_class = find_adapter_class(image)
        if adapter_class is None:
            raise NoAdapterFoundError(image)
        return adapter_class(
            image,
            tag=tag,
            access_token=token or self._configured_token(adapter_class),
            session=self.session,
            timeout=self.timeout,
        )

    def get_registry_name(self, image: str) -> str:
        """Display name of the image's registry, 'Not Found' when unsupported."""
        key = cache_key(REGISTRY_NAMESPACE, image)
        name = self.cache.get(key)
        if name is None:
            adapter_class = find_adapter_class(image)
            name = adapter_class.display_name if adapter_class else REGISTRY_NOT_FOUND
            self.cache.set(key, name)
        return name
