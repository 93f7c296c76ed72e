"""
Fixed mapping from container lifecycle actions to the work they trigger.
"""
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

SUPPORTED_CONTAINER_EVENT_ACTIONS: Tuple[str, ...] = (
    "create",
    "start",
    "die",
    "stop",
    "destroy",
    "rename",
    "update",
    "pause",
    "unpause",
    "restart",
    "health_status",
)

HEALTH_STATUS = "health_status"


@dataclass(frozen=True)
class UpdatePlan:
    """
    What to (re)publish for one lifecycle action.
    """
    publish_config: bool
    publish_container_state: bool
    publish_image_update_state: bool
    cleanup_removed_container: bool


_STATE_ONLY = UpdatePlan(
    publish_config=False,
    publish_container_state=True,
    publish_image_update_state=False,
    cleanup_removed_container=False,
)

_FULL = UpdatePlan(
    publish_config=True,
    publish_container_state=True,
    publish_image_update_state=True,
    cleanup_removed_container=False,
)

EVENT_DRIVEN_UPDATE_PLANS: Dict[str, UpdatePlan] = {
    "create": _FULL,
    "start": _STATE_ONLY,
    "die": _STATE_ONLY,
    "stop": _STATE_ONLY,
    "destroy": UpdatePlan(
        publish_config=False,
        publish_container_state=False,
        publish_image_update_state=False,
        cleanup_removed_container=True,
    ),
    "rename": UpdatePlan(
        publish_config=True,
        publish_container_state=True,
        publish_image_update_state=False,
        cleanup_removed_container=False,
    ),
    "update": _FULL,
    "pause": _STATE_ONLY,
    "unpause": _STATE_ONLY,
    "restart": _STATE_ONLY,
    HEALTH_STATUS: _STATE_ONLY,
}


def normalize_container_event_action(action: Optional[str]) -> Optional[str]:
    """
    Maps a raw runtime action onto a supported action name.

    Health events arrive as 'health_status: healthy' and similar; all of them
    collapse into 'health_status'. Unsupported actions return None.
    """
    if not action:
        return None
    if action == HEALTH_STATUS or action.startswith(HEALTH_STATUS + ":"):
        return HEALTH_STATUS
    if action in EVENT_DRIVEN_UPDATE_PLANS:
        return action
    return None


def get_event_driven_update_plan(action: str) -> UpdatePlan:
    """
    Returns the plan for a normalized action.

    :raises KeyError: If the action is not supported.
    """
    return EVENT_DRIVEN_UPDATE_PLANS[action]
