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
Short-lived cache for registry lookups.
Holds registry names and source repository URLs so that repeated checks of
the same image do not hit the network again within the TTL.
"""

import time
from collections import OrderedDict
from typing import Any, Awaitable, Callable, Optional, Tuple

REGISTRY_NAMESPACE = "registry"
SOURCE_NAMESPACE = "source"

_MISSING = object()


def cache_key(namespace: str, image: str) -> str:
    """Build a namespaced key, e.g. 'registry:nginx'."""
    return f"{namespace}:{image}"


class DigestCache:
    """
    TTL cache with a size bound.
    The oldest entry is evicted first when the cache is full.
    """

    def __init__(
        self,
        ttl: float = 300.0,
        max_entries: int = 1024,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize the cache.

        Args:
            ttl: Lifetime of an entry in seconds.
            max_entries: Maximum number of entries kept.
            clock: Monotonic time source, replaceable in tests.
        """
        self.ttl = ttl
        self.max_entries = max_entries
        self._clock = clock
        self._entries: "OrderedDict[str, Tuple[float, Any]]" = OrderedDict()

    def __len__(self) -> int:
        return len(self._entries)

    def _lookup(self, key: str) -> Any:
        entry = self._entries.get(key)
        if entry is None:
            return _MISSING
        expires_at, value = entry
        if self._clock() >= expires_at:
            del self._entries[key]
            return _MISSING
        return value

    def get(self, key: str, default: Any = None) -> Any:
        """Get a cached value, or default when absent or expired."""
        value = self._lookup(key)
        return default if value is _MISSING else value

    def set(self, key: str, value: Any) -> None:
        """Store a value, evicting the oldest entries beyond max_entries."""
        self._entries.pop(key, None)
        self._entries[key] = (self._clock() + self.ttl, value)
        while len(self._entries) > self.max_entries:
            self._entries.popitem(last=False)

    async def get_or_load(self, key: str, loader: Callable[[], Awaitable[Any]]) -> Any:
        """
        Return the cached value, or await loader() and cache its result.
        Exceptions from the loader propagate and nothing is cached.
        """
        value = self._lookup(key)
        if value is not _MISSING:
            return value
        value = await loader()
        self.set(key, value)
        return value

    def clear(self) -> None:
        self._entries.clear()
