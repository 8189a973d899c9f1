"""Data models for the wardrobe try-on orchestrator."""

from .image import ImageArtifact
from .critique import CritiqueRecord, fallback_critique
from .wardrobe import (
    DetectedProfile,
    ItemRole,
    ReferenceImageSet,
    UserProfile,
    Wardrobe,
    WardrobeItem,
    WardrobeSnapshot,
)
from .task import TaskDescriptor, TaskKey, TaskPhase, TaskState

__all__ = [
    "ImageArtifact",
    "CritiqueRecord",
    "fallback_critique",
    "DetectedProfile",
    "ItemRole",
    "ReferenceImageSet",
    "UserProfile",
    "Wardrobe",
    "WardrobeItem",
    "WardrobeSnapshot",
    "TaskDescriptor",
    "TaskKey",
    "TaskPhase",
    "TaskState",
]
