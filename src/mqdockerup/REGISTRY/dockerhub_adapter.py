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
Docker Hub adapter.
Reads tag digests from the Docker Hub v2 repositories API.
"""

import logging

from .image_reference import ImageReference, split_segments, is_registry_host
from .registry_adapter import DigestResult, RegistryAdapter, strip_sha256

logger = logging.getLogger(__name__)


class DockerHubAdapter(RegistryAdapter):
    """Adapter for images hosted on Docker Hub."""

    API_URL = "https://hub.docker.com/v2/repositories"
    display_name = "DockerHub"
    hostname = "docker.io"
    token_name = "dockerhub"

    @classmethod
    def can_handle_image(cls, image: str) -> bool:
        """
        Claim 'docker.io/...' references and unqualified ones.

        Unqualified means a single segment ('nginx') or two segments whose
        first one is not a registry host ('user/app').
        """
        try:
            ref = ImageReference.parse(image)
        except ValueError:
            return False
        if ref.explicit_registry:
            return ref.registry == cls.hostname
        segments = split_segments(ref.repository)
        return len(segments) == 1 or (
            len(segments) == 2 and not is_registry_host(segments[0])
        )

    def get_image_url(self) -> str:
        return f"{self.API_URL}/{self.reference.hub_repository}/tags/{self.tag}"

    async def check_for_new_digest(self) -> DigestResult:
        result = await self._send("GET", self.get_image_url())
        if result is None:
            self._warn_not_found()
            return DigestResult()

        _, data = result
        data = data or {}
        if not data.get("images"):
            logger.warning("No images listed for %s:%s on Docker Hub", self.repository, self.tag)
            return DigestResult()
        return DigestResult(new_digest=strip_sha256(data.get("digest")))
