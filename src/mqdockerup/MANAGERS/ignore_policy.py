"""
Label and name based rules for skipping containers.
"""
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

from .. import SELF_IDENTIFIER
from ..MODELS.config import IgnoreConfig
from ..MODELS.container import ContainerRef

IGNORE_CONTAINER_LABEL = "mqdockerup.ignore_container"
IGNORE_UPDATES_LABEL = "mqdockerup.ignore_updates"
WILDCARD = "*"

ContainerLike = Union[ContainerRef, Mapping[str, Any]]


def is_self_image(image: str, identifier: str = SELF_IDENTIFIER) -> bool:
    """True when the image belongs to this tool, compared case-insensitively."""
    return identifier.lower() in (image or "").lower()


def _names_labels_image(container: ContainerLike) -> Tuple[List[str], Dict[str, str], str]:
    if isinstance(container, ContainerRef):
        return [container.name], container.labels, container.image
    # Summary entry of a container listing
    names = [name.lstrip("/") for name in container.get("Names") or []]
    return names, container.get("Labels") or {}, container.get("Image") or ""


def _label_is_true(labels: Mapping[str, str], label: str) -> bool:
    return str(labels.get(label, "")).strip().lower() == "true"


class IgnorePolicy:
    """
    Decides which containers are monitored and which may be updated.
    """

    def __init__(self, config: Optional[IgnoreConfig] = None, self_identifier: str = SELF_IDENTIFIER):
        self.config = config or IgnoreConfig()
        self.self_identifier = self_identifier

    def ignore_container(self, container: ContainerLike) -> bool:
        """
        A container is not monitored when all containers are ignored ('*'),
        when it carries mqdockerup.ignore_container=true, or when its name is
        in the configured list.
        """
        if self.config.containers.strip() == WILDCARD:
            return True
        names, labels, _ = _names_labels_image(container)
        if _label_is_true(labels, IGNORE_CONTAINER_LABEL):
            return True
        ignored = set(self.config.container_names)
        return any(name in ignored for name in names)

    def ignore_updates(self, container: ContainerLike) -> bool:
        """
        Update checks and updates are skipped for '*', for
        mqdockerup.ignore_updates=true, for listed names, and for this tool's
        own image.
        """
        if self.config.updates.strip() == WILDCARD:
            return True
        names, labels, image = _names_labels_image(container)
        if _label_is_true(labels, IGNORE_UPDATES_LABEL):
            return True
        ignored = set(self.config.update_names)
        if any(name in ignored for name in names):
            return True
        return is_self_image(image, self.self_identifier)
