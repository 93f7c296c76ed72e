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
GitHub Container Registry adapter.
Reads the manifest digest of a tag from ghcr.io with a HEAD request.
"""

import logging
from typing import Dict, Optional

from .registry_adapter import DigestResult, RegistryAdapter, strip_sha256

logger = logging.getLogger(__name__)

MANIFEST_MEDIA_TYPES = (
    "application/vnd.oci.image.index.v1+json",
    "application/vnd.docker.distribution.manifest.list.v2+json",
    "application/vnd.oci.image.manifest.v1+json",
    "application/vnd.docker.distribution.manifest.v2+json",
)


class GithubAdapter(RegistryAdapter):
    """Adapter for images hosted on ghcr.io."""

    display_name = "Github Packages"
    hostname = "ghcr.io"
    token_name = "github"

    def get_image_url(self) -> str:
        return f"https://{self.hostname}/v2/{self.repository}/manifests/{self.tag}"

    def get_token_url(self) -> str:
        return f"https://{self.hostname}/token?scope=repository:{self.repository}:pull"

    async def _anonymous_token(self) -> Optional[str]:
        """Fetch an anonymous pull token, enough for public packages."""
        result = await self._send("GET", self.get_token_url(), headers={})
        if result is None:
            return None
        _, data = result
        return (data or {}).get("token")

    async def _manifest_headers(self) -> Dict[str, str]:
        headers = self.build_headers()
        headers["Accept"] = ", ".join(MANIFEST_MEDIA_TYPES)
        if not self.access_token:
            token = await self._anonymous_token()
            if token:
                headers["Authorization"] = f"Bearer {token}"
            else:
                logger.debug("No GitHub token configured and no anonymous token for %s", self.repository)
        return headers

    async def check_for_new_digest(self) -> DigestResult:
        headers = await self._manifest_headers()
        result = await self._send("HEAD", self.get_image_url(), headers=headers, read_json=False)
        if result is None:
            self._warn_not_found()
            return DigestResult()

        response_headers, _ = result
        digest = response_headers.get("Docker-Content-Digest") or response_headers.get(
            "docker-content-digest"
        )
        if not digest:
            logger.warning("ghcr.io sent no digest header for %s:%s", self.repository, self.tag)
            return DigestResult()
        return DigestResult(new_digest=strip_sha256(digest))
