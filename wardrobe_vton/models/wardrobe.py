"""Wardrobe, body reference and user profile models."""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, computed_field

from .image import ImageArtifact, new_id

ReferenceImageSet = tuple[ImageArtifact, ...]


class ItemRole(str, Enum):
    TOP = "top"
    BOTTOM = "bottom"
    ACCESSORY = "accessory"


class WardrobeItem(BaseModel):
    """A clothing item and its reference photos (angles, details)."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=new_id)
    role: ItemRole
    images: ReferenceImageSet = ()

    @computed_field
    @property
    def is_valid(self) -> bool:
        """Items without images contribute nothing to a run."""
        return len(self.images) > 0


class WardrobeSnapshot(BaseModel):
    """Read-only view of the wardrobe at the moment a run starts."""

    model_config = ConfigDict(frozen=True)

    body_images: ReferenceImageSet = ()
    tops: tuple[WardrobeItem, ...] = ()
    bottoms: tuple[WardrobeItem, ...] = ()
    accessories: tuple[WardrobeItem, ...] = ()


class Wardrobe:
    """In-memory wardrobe store.

    Items are immutable records; every edit swaps in a new record, so a
    snapshot taken before an edit keeps seeing the old one.
    """

    def __init__(self):
        self._body_images: list[ImageArtifact] = []
        self._items: dict[ItemRole, list[WardrobeItem]] = {role: [] for role in ItemRole}

    @property
    def body_images(self) -> ReferenceImageSet:
        return tuple(self._body_images)

    def set_body_images(self, images: list[ImageArtifact]) -> None:
        self._body_images = list(images)

    def add_body_images(self, images: list[ImageArtifact]) -> None:
        self._body_images.extend(images)

    def remove_body_image(self, image_id: str) -> None:
        self._body_images = [img for img in self._body_images if img.id != image_id]

    def items(self, role: ItemRole) -> tuple[WardrobeItem, ...]:
        return tuple(self._items[role])

    def add_item(self, role: ItemRole, images: list[ImageArtifact] | None = None) -> WardrobeItem:
        item = WardrobeItem(role=role, images=tuple(images or ()))
        self._items[role].append(item)
        return item

    def remove_item(self, item_id: str) -> None:
        for role, items in self._items.items():
            self._items[role] = [item for item in items if item.id != item_id]

    def add_images(self, item_id: str, images: list[ImageArtifact]) -> WardrobeItem:
        item = self._find(item_id)
        return self._replace(item, item.model_copy(update={"images": item.images + tuple(images)}))

    def remove_image(self, item_id: str, image_id: str) -> WardrobeItem:
        item = self._find(item_id)
        kept = tuple(img for img in item.images if img.id != image_id)
        return self._replace(item, item.model_copy(update={"images": kept}))

    def snapshot(self) -> WardrobeSnapshot:
        return WardrobeSnapshot(
            body_images=tuple(self._body_images),
            tops=tuple(self._items[ItemRole.TOP]),
            bottoms=tuple(self._items[ItemRole.BOTTOM]),
            accessories=tuple(self._items[ItemRole.ACCESSORY]),
        )

    def _find(self, item_id: str) -> WardrobeItem:
        for items in self._items.values():
            for item in items:
                if item.id == item_id:
                    return item
        raise KeyError(f"No wardrobe item with id {item_id!r}")

    def _replace(self, old: WardrobeItem, new: WardrobeItem) -> WardrobeItem:
        items = self._items[old.role]
        items[items.index(old)] = new
        return new


class DetectedProfile(BaseModel):
    """Body stats estimated from a photo. Empty strings mean 'not detected'."""
    height: str = ""
    weight: str = ""
    skin_tone: str = ""
    body_type: str = ""
    additional_notes: str = ""


class UserProfile(BaseModel):
    """Descriptive attributes handed to the stylist, plus the rendering mode."""

    model_config = ConfigDict(frozen=True)

    height: str = ""
    weight: str = ""
    skin_tone: str = ""
    body_type: str = "Average"
    occasion: str = ""
    style_preferences: str = ""
    additional_notes: str = ""

    # Volumetric ("3D scan") rendering and technical fit critique
    volumetric_mode: bool = False

    def merged_with(self, detected: DetectedProfile) -> "UserProfile":
        """Apply detected stats field by field; empty values never overwrite."""
        updates = {
            field: value.strip()
            for field, value in detected.model_dump().items()
            if isinstance(value, str) and value.strip()
        }
        return self.model_copy(update=updates)

    def for_scan(self) -> "UserProfile":
        """Profile to use when the body reference comes from a 3D scan."""
        return self.model_copy(update={"volumetric_mode": True})
