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
Base class for registry adapters.
An adapter asks one registry for the current content digest of an image tag.
"""

import asyncio
import base64
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, Mapping, Optional, Tuple

import aiohttp
from pydantic import BaseModel

from ..exceptions import RegistryError
from .image_reference import ImageReference

logger = logging.getLogger(__name__)

SHA256_PREFIX = "sha256:"


class DigestResult(BaseModel):
    """Digest reported by a registry, None when the registry did not know the tag."""

    new_digest: Optional[str] = None


def strip_sha256(digest: Optional[str]) -> Optional[str]:
    """Remove the 'sha256:' prefix from a digest."""
    if not digest:
        return None
    if digest.startswith(SHA256_PREFIX):
        return digest[len(SHA256_PREFIX):]
    return digest


class RegistryAdapter:
    """
    Fetches the latest digest of an image from one registry.

    Subclasses set display_name and hostname and implement check_for_new_digest.
    """

    display_name: str = ""
    hostname: Optional[str] = None
    token_name: Optional[str] = None

    def __init__(
        self,
        image: str,
        tag: Optional[str] = None,
        access_token: Optional[str] = None,
        session: Optional[aiohttp.ClientSession] = None,
        timeout: float = 30.0,
    ):
        """
        Initialize the adapter.

        Args:
            image: Image reference, with or without tag.
            tag: Tag to check. Defaults to the reference's tag, 'latest' if it has none.
            access_token: Registry token, sent base64 encoded as a Bearer token.
            session: Shared aiohttp session. A per-call session is used otherwise.
            timeout: Total request timeout in seconds.
        """
        self.image = image
        self.reference = ImageReference.parse(image)
        self.tag = tag or self.reference.tag or ImageReference.DEFAULT_TAG
        self.access_token = access_token
        self.timeout = timeout
        self._session = session

    @classmethod
    def can_handle_image(cls, image: str) -> bool:
        """Check whether the reference's registry host is exactly this adapter's host."""
        try:
            ref = ImageReference.parse(image)
        except ValueError:
            return False
        return ref.explicit_registry and ref.registry == cls.hostname

    @property
    def repository(self) -> str:
        return self.reference.repository

    def build_headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.access_token:
            encoded = base64.b64encode(self.access_token.encode()).decode()
            headers["Authorization"] = f"Bearer {encoded}"
        return headers

    @asynccontextmanager
    async def _open(
        self, method: str, url: str, headers: Optional[Dict[str, str]] = None
    ) -> AsyncIterator[Any]:
        timeout = aiohttp.ClientTimeout(total=self.timeout)
        if self._session is not None:
            async with self._session.request(
                method, url, headers=headers, timeout=timeout
            ) as response:
                yield response
        else:
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.request(method, url, headers=headers) as response:
                    yield response

    async def _send(
        self,
        method: str,
        url: str,
        headers: Optional[Dict[str, str]] = None,
        read_json: bool = True,
    ) -> Optional[Tuple[Mapping[str, str], Any]]:
        """
        Send one request and return (headers, body).

        Returns None on HTTP 404. Raises RegistryError on any other failure.
        """
        if headers is None:
            headers = self.build_headers()
        try:
            async with self._open(method, url, headers) as response:
                if response.status == 404:
                    return None
                if response.status >= 400:
                    raise RegistryError(
                        f"{self.display_name} returned HTTP {response.status} for {url}",
                        status=response.status,
                        image=self.image,
                    )
                body = await response.json(content_type=None) if read_json else None
                return response.headers, body
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            raise RegistryError(
                f"Request to {self.display_name} failed: {e}", image=self.image
            ) from e

    def _warn_not_found(self) -> None:
        logger.warning(
            "No digest found for %s:%s on %s. This might be a locally built image; "
            "consider excluding it from update checks",
            self.repository,
            self.tag,
            self.display_name,
        )

    async def check_for_new_digest(self) -> DigestResult:
        """Ask the registry for the current digest of the configured tag."""
        raise NotImplementedError
