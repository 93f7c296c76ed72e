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
Image reference parsing and handling.
Parses image references like 'nginx:latest', 'ghcr.io/user/app:1.0' or
'lscr.io/linuxserver/plex@sha256:...'.
"""

from typing import Optional, Tuple
from dataclasses import dataclass


def split_segments(reference: str) -> Tuple[str, ...]:
    """Split a reference (without tag or digest) into its '/' segments."""
    return tuple(reference.split("/"))


def is_registry_host(segment: str) -> bool:
    """
    Check whether the first segment of a reference names a registry host.

    Args:
        segment: First '/' segment of the reference.

    Returns:
        True for 'ghcr.io', 'localhost', 'registry:5000' and the like.
    """
    return "." in segment or ":" in segment or segment == "localhost"


@dataclass(frozen=True)
class ImageReference:
    """
    Parsed image reference.

    Examples:
        - nginx -> docker.io/library/nginx:latest
        - nginx:1.25 -> docker.io/library/nginx:1.25
        - myuser/myimage:v1 -> docker.io/myuser/myimage:v1
        - ghcr.io/user/app@sha256:abc123... -> ghcr.io/user/app@sha256:abc123...
    """

    registry: str
    repository: str
    tag: Optional[str] = None
    digest: Optional[str] = None
    explicit_registry: bool = False

    DEFAULT_REGISTRY = "docker.io"
    DEFAULT_TAG = "latest"

    @classmethod
    def parse(cls, reference: str) -> "ImageReference":
        """
        Parse an image reference string.

        Args:
            reference: Image reference string (e.g., 'nginx:latest', 'myuser/myimage:v1')

        Returns:
            Parsed ImageReference object.
        """
        if not reference or not reference.strip():
            raise ValueError("Empty image reference")
        reference = reference.strip()

        digest = None
        if "@" in reference:
            reference, digest = reference.rsplit("@", 1)

        # A colon before the last '/' belongs to a registry port
        tag = None
        last_colon = reference.rfind(":")
        if last_colon > reference.rfind("/"):
            tag = reference[last_colon + 1:] or None
            reference = reference[:last_colon]

        parts = split_segments(reference)
        if len(parts) > 1 and is_registry_host(parts[0]):
            registry = parts[0]
            repository = "/".join(parts[1:])
            explicit = True
        else:
            registry = cls.DEFAULT_REGISTRY
            repository = reference
            explicit = False

        if not repository:
            raise ValueError(f"Invalid image reference: {reference!r}")

        if not tag and not digest:
            tag = cls.DEFAULT_TAG

        return cls(
            registry=registry,
            repository=repository,
            tag=tag,
            digest=digest,
            explicit_registry=explicit,
        )

    @property
    def hub_repository(self) -> str:
        """Repository path as Docker Hub's API expects it ('library/' for official images)."""
        if "/" not in self.repository:
            return f"library/{self.repository}"
        return self.repository

    @property
    def full_name(self) -> str:
        """Get full image name with registry."""
        name = f"{self.registry}/{self.repository}"
        if self.digest:
            return f"{name}@{self.digest}"
        if self.tag:
            return f"{name}:{self.tag}"
        return name

    @property
    def short_name(self) -> str:
        """Get short image name (without registry if default)."""
        name = self.repository
        if self.registry != self.DEFAULT_REGISTRY:
            name = f"{self.registry}/{name}"
        if self.digest:
            return f"{name}@{self.digest}"
        if self.tag:
            return f"{name}:{self.tag}"
        return name

    def __str__(self) -> str:
        return self.short_name


def registry_host(image: str) -> Optional[str]:
    """
    Return the explicit registry host of a reference, or None when the
    reference is unqualified (e.g. 'nginx' or 'user/app').
    """
    ref = ImageReference.parse(image)
    return ref.registry if ref.explicit_registry else None
