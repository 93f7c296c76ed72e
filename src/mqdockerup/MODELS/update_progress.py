"""
Models for image pull progress and update outcomes.
"""
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel

from .container import ContainerRef


class UpdateState(str, Enum):
    """
    States of a single container update.
    """
    IDLE = "idle"
    PULLING = "pulling"
    LAYER_PROGRESS = "layer_progress"
    RECREATING = "recreating"
    STARTED = "started"
    FAILED = "failed"


class PullEvent(BaseModel):
    """
    One entry of the runtime's pull stream, reduced to what progress needs.
    """
    layer_id: Optional[str] = None
    status: str = ""
    current: Optional[int] = None
    total: Optional[int] = None


class LayerProgress(BaseModel):
    """
    Progress of one image layer.
    """
    id: str
    current: int = 0
    total: int = 0


class UpdateOutcome(BaseModel):
    """
    Result of an update attempt, including the states it went through.
    """
    container_id: str
    state: UpdateState = UpdateState.IDLE
    history: List[UpdateState] = []
    new_container: Optional[ContainerRef] = None
    error: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.state == UpdateState.STARTED
