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
In-place container updates: pull, track layer progress, recreate, clean up.
"""
import logging
import time
from typing import Callable, Dict, Optional, Set

from .. import SELF_IDENTIFIER
from ..MODELS.container import ContainerRef
from ..MODELS.update_progress import LayerProgress, PullEvent, UpdateOutcome, UpdateState
from .ignore_policy import IgnorePolicy, is_self_image
from .inventory import InventoryStore
from .state_publisher import StatePublisher
from .update_checker import ImageUpdateChecker

logger = logging.getLogger(__name__)

DOWNLOADING = "Downloading"

# After any of these the layer's download is finished
DOWNLOAD_FINISHED_STATUSES = (
    "Verifying Checksum",
    "Download complete",
    "Extracting",
    "Pull complete",
)


class LayerProgressTracker:
    """
    Aggregates per-layer pull progress into one percentage.

    Only 'Downloading' events carry byte counts that count toward progress;
    later milestones pin a layer to its total. Replaying an event never
    moves progress backwards.
    """

    def __init__(self, interval: float = 1.0, clock: Callable[[], float] = time.monotonic):
        """
        Initializes the tracker.

        :param interval: Minimum seconds between two publishes.
        :param clock: Monotonic time source.
        """
        self.interval = interval
        self._clock = clock
        self._last_publish: Optional[float] = None
        self.layers: Dict[str, LayerProgress] = {}

    def record(self, event: PullEvent) -> bool:
        """
        Applies one pull event.

        :return: True when the event changed a layer.
        """
        if not event.layer_id:
            return False
        layer = self.layers.get(event.layer_id)
        if event.status == DOWNLOADING and event.total:
            if layer is None:
                layer = LayerProgress(id=event.layer_id, total=event.total)
                self.layers[event.layer_id] = layer
            before = (layer.current, layer.total)
            layer.total = max(layer.total, event.total)
            layer.current = min(max(layer.current, event.current or 0), layer.total)
            return before != (layer.current, layer.total)
        if event.status in DOWNLOAD_FINISHED_STATUSES and layer is not None:
            if layer.current != layer.total:
                layer.current = layer.total
                return True
        return False

    @property
    def percent(self) -> Optional[int]:
        total = sum(layer.total for layer in self.layers.values())
        if total <= 0:
            return None
        current = sum(layer.current for layer in self.layers.values())
        return round(100 * current / total)

    def should_publish(self) -> bool:
        """True at most once per interval."""
        now = self._clock()
        if self._last_publish is None or now - self._last_publish >= self.interval:
            self._last_publish = now
            return True
        return False


class UpdateOrchestrator:
    """
    Drives one container through IDLE -> PULLING -> LAYER_PROGRESS ->
    RECREATING -> STARTED, or into FAILED.

    The pull completes before anything destructive happens. A failure after
    the old container was stopped is reported, not rolled back.
    """

    def __init__(
        self,
        gateway,
        publisher: StatePublisher,
        checker: ImageUpdateChecker,
        inventory: Optional[InventoryStore] = None,
        updating: Optional[Set[str]] = None,
        ignore_policy: Optional[IgnorePolicy] = None,
        progress_interval: float = 1.0,
        self_identifier: str = SELF_IDENTIFIER,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.gateway = gateway
        self.publisher = publisher
        self.checker = checker
        self.inventory = inventory
        self.updating: Set[str] = updating if updating is not None else set()
        self.ignore_policy = ignore_policy
        self.progress_interval = progress_interval
        self.self_identifier = self_identifier
        self._clock = clock

    @staticmethod
    def _transition(outcome: UpdateOutcome, state: UpdateState) -> None:
        outcome.state = state
        outcome.history.append(state)
        logger.debug("Update of %s: %s", outcome.container_id[:12], state.value)

    async def update(self, container: ContainerRef) -> UpdateOutcome:
        """
        Updates a container to the current version of its image reference.

        :param container: Container to update.
        :return: Outcome with the visited states and the new container on success.
        """
        outcome = UpdateOutcome(container_id=container.id)
        if is_self_image(container.image, self.self_identifier):
            logger.error(
                "Refusing to update %s: it runs this tool's own image %s", container.name, container.image
            )
            outcome.error = "self-update refused"
            return outcome
        if self.ignore_policy is not None and self.ignore_policy.ignore_updates(container):
            logger.warning("Refusing to update %s: updates are ignored for it", container.name)
            outcome.error = "updates ignored"
            return outcome
        if container.id in self.updating:
            logger.warning("Update of %s is already in progress", container.name)
            outcome.error = "update already in progress"
            return outcome

        self.updating.add(container.id)
        try:
            await self._run(container, outcome)
        except Exception as e:
            self._transition(outcome, UpdateState.FAILED)
            outcome.error = str(e)
            logger.error("Update of %s failed: %s", container.name, e)
            await self.publisher.publish_abort(container.id)
        finally:
            self.updating.discard(container.id)
        return outcome

    async def _run(self, container: ContainerRef, outcome: UpdateOutcome) -> None:
        logger.info("Updating %s (%s)", container.name, container.image)
        self._transition(outcome, UpdateState.PULLING)
        tracker = LayerProgressTracker(self.progress_interval, self._clock)
        async for event in self.gateway.pull_with_progress(container.image):
            if not tracker.record(event):
                continue
            if outcome.state != UpdateState.LAYER_PROGRESS:
                self._transition(outcome, UpdateState.LAYER_PROGRESS)
            percent = tracker.percent
            if percent is not None and tracker.should_publish():
                await self.publisher.publish_update_progress(container, percent, True)

        self._transition(outcome, UpdateState.RECREATING)
        new_container = await self.gateway.recreate_with_image(container, container.image)
        outcome.new_container = new_container
        self._transition(outcome, UpdateState.STARTED)
        logger.info("Updated %s: %s -> %s", container.name, container.short_id, new_container.short_id)

        await self._after_update(container, new_container)

    async def _after_update(self, old: ContainerRef, new: ContainerRef) -> None:
        """Bookkeeping once the new container runs; failures here do not fail the update."""
        try:
            await self.publisher.publish_update_progress(new, 100, False)
        except Exception:
            logger.exception("Could not publish final progress of %s", new.name)

        try:
            digest_state = await self.checker.check(new)
            await self.publisher.publish_image_update_state(new, digest_state)
        except Exception:
            logger.exception("Could not publish image state of %s after update", new.name)

        if self.inventory is not None:
            try:
                self.inventory.delete(old.id)
                self.inventory.upsert(new.id, new.name, new.repository, new.tag)
            except Exception:
                logger.exception("Could not record %s in the inventory", new.name)

        # Unknown new image id: the old image may still be in use
        if old.image_id and new.image_id and old.image_id != new.image_id:
            try:
                await self.gateway.remove_image(old.image_id)
            except Exception:
                logger.exception("Could not remove old image %s", old.image_id)
