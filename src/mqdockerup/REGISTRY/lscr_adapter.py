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
LinuxServer.io adapter.
lscr.io images are mirrored on Docker Hub, so their tags are read from there.
"""

import logging
from urllib.parse import quote

from .registry_adapter import DigestResult, RegistryAdapter, strip_sha256

logger = logging.getLogger(__name__)


class LscrAdapter(RegistryAdapter):
    """Adapter for images hosted on lscr.io."""

    API_URL = "https://hub.docker.com/v2/repositories"
    display_name = "LinuxServer.io"
    hostname = "lscr.io"

    def get_image_url(self) -> str:
        return f"{self.API_URL}/{self.repository}/tags?name={quote(self.tag)}"

    async def check_for_new_digest(self) -> DigestResult:
        result = await self._send("GET", self.get_image_url())
        if result is None:
            self._warn_not_found()
            return DigestResult()

        _, data = result
        results = (data or {}).get("results") or []
        if not results:
            self._warn_not_found()
            return DigestResult()

        # The name filter is a prefix match, prefer the exact tag
        entry = next((item for item in results if item.get("name") == self.tag), results[0])
        if not entry.get("images"):
            logger.warning("No images listed for %s:%s on lscr.io", self.repository, self.tag)
            return DigestResult()
        return DigestResult(new_digest=strip_sha256(entry.get("digest")))
