"""Expand a wardrobe into one task per valid top x bottom pair."""

from typing import Iterable, Sequence

from ..errors import DuplicateItemError, InsufficientInputError
from ..models import (
    ImageArtifact,
    ReferenceImageSet,
    TaskDescriptor,
    TaskKey,
    UserProfile,
    WardrobeItem,
    WardrobeSnapshot,
)


def _valid(items: Iterable[WardrobeItem]) -> list[WardrobeItem]:
    return [item for item in items if item.images]


def _check_unique(items: list[WardrobeItem], label: str) -> None:
    seen: set[str] = set()
    for item in items:
        if item.id in seen:
            raise DuplicateItemError(f"Two {label} share the id {item.id!r}")
        seen.add(item.id)


def flatten_accessories(accessories: Iterable[WardrobeItem]) -> ReferenceImageSet:
    """All accessory images, in item order then image order."""
    return tuple(image for item in _valid(accessories) for image in item.images)


def expand_tasks(
    body_images: Sequence[ImageArtifact],
    tops: Iterable[WardrobeItem],
    bottoms: Iterable[WardrobeItem],
    accessories: Iterable[WardrobeItem] = (),
    *,
    volumetric_mode: bool = False,
) -> list[TaskDescriptor]:
    """Build the task list for a run.

    Tops and bottoms without images are dropped before the product is taken.
    Descriptors are emitted top-major (every bottom for the first top, then
    the second top, ...), which is also the order they are executed in.
    Every descriptor shares the same body and accessory image sets.

    Raises:
        InsufficientInputError: no body image, or no top/bottom with an image
        DuplicateItemError: two valid tops (or two valid bottoms) share an id
    """
    body = tuple(body_images)
    if not body:
        raise InsufficientInputError("Please upload at least one body photo.")

    valid_tops = _valid(tops)
    valid_bottoms = _valid(bottoms)
    if not valid_tops or not valid_bottoms:
        raise InsufficientInputError(
            "Please ensure at least one top and one bottom have an image uploaded."
        )
    _check_unique(valid_tops, "tops")
    _check_unique(valid_bottoms, "bottoms")

    shared_accessories = flatten_accessories(accessories)

    return [
        TaskDescriptor(
            key=TaskKey(top.id, bottom.id),
            body_images=body,
            top_images=top.images,
            bottom_images=bottom.images,
            accessory_images=shared_accessories,
            volumetric_mode=volumetric_mode,
        )
        for top in valid_tops
        for bottom in valid_bottoms
    ]


def expand_snapshot(snapshot: WardrobeSnapshot, profile: UserProfile) -> list[TaskDescriptor]:
    """Expand a wardrobe snapshot using the profile's rendering mode."""
    return expand_tasks(
        snapshot.body_images,
        snapshot.tops,
        snapshot.bottoms,
        snapshot.accessories,
        volumetric_mode=profile.volumetric_mode,
    )
