"""
Models for managed containers and the digest state of their images.
"""
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Tuple

from pydantic import BaseModel, Field

COMPOSE_LABEL_PREFIX = "com.docker.compose."


def split_image(image: str) -> Tuple[str, str]:
    """
    Splits 'repository[:tag]' into its parts, defaulting the tag to 'latest'.

    A colon that belongs to a registry port (e.g. 'localhost:5000/app') is
    not a tag separator. Digest references keep the digest as the tag part.
    """
    if "@" in image:
        repository, digest = image.split("@", 1)
        return repository, digest
    last_colon = image.rfind(":")
    if last_colon > image.rfind("/"):
        return image[:last_colon], image[last_colon + 1:]
    return image, "latest"


class ContainerRef(BaseModel):
    """
    Identity of a managed container, built from a runtime inspect document.
    """
    id: str
    name: str
    image: str
    labels: Dict[str, str] = {}
    image_id: Optional[str] = None
    state: Optional[str] = None
    attrs: Dict[str, Any] = Field(default_factory=dict, repr=False)

    model_config = {"frozen": True}

    @classmethod
    def from_inspect(cls, info: Dict[str, Any]) -> "ContainerRef":
        """
        Builds a reference from the output of a container inspect call.

        :param info: Inspect document as returned by the Engine API.
        :return: ContainerRef with the leading '/' stripped from the name.
        """
        config = info.get("Config") or {}
        state = info.get("State") or {}
        return cls(
            id=info["Id"],
            name=(info.get("Name") or "").lstrip("/"),
            image=config.get("Image") or info.get("Image", ""),
            labels=config.get("Labels") or {},
            image_id=info.get("Image"),
            state=state.get("Status"),
            attrs=info,
        )

    @property
    def repository(self) -> str:
        return split_image(self.image)[0]

    @property
    def tag(self) -> str:
        return split_image(self.image)[1]

    @property
    def short_id(self) -> str:
        return self.id[:12]

    @property
    def created_by(self) -> str:
        """'Composer' for compose-managed containers, 'Docker' otherwise."""
        if any(key.startswith(COMPOSE_LABEL_PREFIX) for key in self.labels):
            return "Composer"
        return "Docker"


class ImageDigestState(BaseModel):
    """
    Installed vs. latest digest of a container image.

    Digests are stored without the 'sha256:' prefix. latest_digest is None
    when the registry could not be asked or did not know the tag; that is
    "unknown", never "up to date".
    """
    repository: str
    tag: str
    installed_digest: Optional[str] = None
    latest_digest: Optional[str] = None
    checked_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    registry: Optional[str] = None
    source_url: Optional[str] = None

    @property
    def update_available(self) -> Optional[bool]:
        """True/False when both digests are known, None otherwise."""
        if not self.installed_digest or not self.latest_digest:
            return None
        return self.installed_digest != self.latest_digest
