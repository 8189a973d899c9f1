"""Combination task descriptors and per-task state."""

from enum import Enum
from typing import NamedTuple

from pydantic import BaseModel, ConfigDict, computed_field

from ..errors import ErrorCategory, InvalidTransitionError
from .critique import CritiqueRecord
from .image import ImageArtifact
from .wardrobe import ReferenceImageSet


class TaskKey(NamedTuple):
    """Identity of one top x bottom combination."""
    top_id: str
    bottom_id: str

    def __str__(self) -> str:
        return f"{self.top_id}-{self.bottom_id}"


class TaskPhase(str, Enum):
    PENDING = "pending"
    IMAGE_GENERATING = "image_generating"
    IMAGE_READY = "image_ready"
    CRITIQUE_GENERATING = "critique_generating"
    COMPLETE = "complete"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (TaskPhase.COMPLETE, TaskPhase.FAILED)


ALLOWED_TRANSITIONS: dict[TaskPhase, frozenset[TaskPhase]] = {
    TaskPhase.PENDING: frozenset({TaskPhase.IMAGE_GENERATING}),
    TaskPhase.IMAGE_GENERATING: frozenset({TaskPhase.IMAGE_READY, TaskPhase.FAILED}),
    TaskPhase.IMAGE_READY: frozenset({TaskPhase.CRITIQUE_GENERATING}),
    # FAILED here only when the critic is configured to raise
    TaskPhase.CRITIQUE_GENERATING: frozenset({TaskPhase.COMPLETE, TaskPhase.FAILED}),
    TaskPhase.COMPLETE: frozenset(),
    TaskPhase.FAILED: frozenset(),
}


class TaskDescriptor(BaseModel):
    """Everything needed to render and critique one combination."""

    model_config = ConfigDict(frozen=True)

    key: TaskKey
    body_images: ReferenceImageSet
    top_images: ReferenceImageSet
    bottom_images: ReferenceImageSet
    accessory_images: ReferenceImageSet = ()
    volumetric_mode: bool = False

    @computed_field
    @property
    def task_id(self) -> str:
        return str(self.key)


class TaskState(BaseModel):
    """Current state of one combination, as observers see it.

    Records are never edited in place; ``advance`` returns the replacement.
    """

    model_config = ConfigDict(frozen=True, ser_json_bytes="base64")

    key: TaskKey
    phase: TaskPhase = TaskPhase.PENDING
    image: ImageArtifact | None = None
    critique: CritiqueRecord | None = None
    error_message: str | None = None
    error_category: ErrorCategory | None = None

    @computed_field
    @property
    def task_id(self) -> str:
        return str(self.key)

    @property
    def top_id(self) -> str:
        return self.key.top_id

    @property
    def bottom_id(self) -> str:
        return self.key.bottom_id

    @property
    def loading(self) -> bool:
        return not self.phase.is_terminal

    @classmethod
    def pending(cls, descriptor: TaskDescriptor) -> "TaskState":
        return cls(key=descriptor.key)

    def advance(self, phase: TaskPhase, **changes) -> "TaskState":
        """Return this state moved to ``phase`` with ``changes`` applied."""
        if phase not in ALLOWED_TRANSITIONS[self.phase]:
            raise InvalidTransitionError(
                f"Task {self.task_id}: cannot move from {self.phase.value} to {phase.value}"
            )
        if changes.get("image") is not None and self.image is not None:
            raise InvalidTransitionError(f"Task {self.task_id}: image is already set")
        if phase is TaskPhase.FAILED and changes.get("critique") is not None:
            raise InvalidTransitionError(f"Task {self.task_id}: failed tasks carry no critique")
        return self.model_copy(update={"phase": phase, **changes})
