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
Exception hierarchy shared by the registry, runtime and update layers.
"""
from typing import Any, Dict, Optional


class MqDockerUpError(Exception):
    """Base error carrying a context dictionary for log lines."""

    def __init__(self, message: str, *, context: Optional[Dict[str, Any]] = None):
        self.message = message
        self.context = {key: value for key, value in (context or {}).items() if value is not None}
        super().__init__(message)

    def __str__(self) -> str:
        if not self.context:
            return self.message
        details = ", ".join(f"{key}={value}" for key, value in self.context.items())
        return f"{self.message} ({details})"


class ConfigError(MqDockerUpError):
    """Raised when the configuration file or environment is invalid."""


class RegistryError(MqDockerUpError):
    """Raised when a registry answers with an unexpected HTTP failure."""

    def __init__(self, message: str, *, status: Optional[int] = None, image: Optional[str] = None):
        self.status = status
        self.image = image
        super().__init__(message, context={"status": status, "image": image})


class NoAdapterFoundError(MqDockerUpError):
    """Raised when no registry adapter can handle an image reference."""

    def __init__(self, image: str):
        self.image = image
        super().__init__(f"No adapter found for the image: {image}", context={"image": image})


class ContainerNotFoundError(MqDockerUpError):
    """Raised when the runtime does not know a container id."""

    def __init__(self, container_id: str):
        self.container_id = container_id
        super().__init__(
            f"Container {container_id} not found", context={"container_id": container_id}
        )


class ImagePullError(MqDockerUpError):
    """Raised when the pull stream reports an error."""

    def __init__(self, image: str, reason: str):
        self.image = image
        self.reason = reason
        super().__init__(f"Failed to pull {image}: {reason}", context={"image": image})


class UpdateError(MqDockerUpError):
    """Raised when recreating a container fails part way through."""
