# Test fixtures and configuration
import io
import pytest
import sys
from pathlib import Path

from PIL import Image

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from wardrobe_vton.interfaces import CritiqueSynthesisClient, VisualSynthesisClient
from wardrobe_vton.models import (
    CritiqueRecord,
    ImageArtifact,
    ItemRole,
    UserProfile,
    WardrobeItem,
)


def _png_bytes(size=(1, 1), color="white") -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", size, color).save(buf, format="PNG")
    return buf.getvalue()


# 1x1 white PNG
MINIMAL_PNG = _png_bytes()


def make_image(image_id: str) -> ImageArtifact:
    return ImageArtifact(id=image_id, data=MINIMAL_PNG, media_type="image/png")


def make_item(role: ItemRole, item_id: str, image_count: int = 1) -> WardrobeItem:
    images = tuple(make_image(f"{item_id}-img{i}") for i in range(image_count))
    return WardrobeItem(id=item_id, role=role, images=images)


def good_critique(rating: float = 8) -> CritiqueRecord:
    return CritiqueRecord(
        rating=rating,
        suitability="Balanced proportions for the body type.",
        color_analysis="Autumn palette, warm tones work.",
        verdict="Effortlessly chic.",
        best_for_event="Weekend brunch",
        improvements="Add a belt.",
    )


class FakeImageClient(VisualSynthesisClient):
    """Records calls; fails for combinations listed in ``failures``.

    Combinations are identified by the ids of their first top and bottom image.
    """

    def __init__(self, failures: dict[tuple[str, str], Exception] | None = None, events: list | None = None):
        self.failures = failures or {}
        self.events = events if events is not None else []
        self.calls = []

    async def generate(self, body, top, bottom, accessories, volumetric_mode):
        combo = (top[0].id, bottom[0].id)
        self.calls.append({
            "combo": combo,
            "body": body,
            "top": top,
            "bottom": bottom,
            "accessories": accessories,
            "volumetric_mode": volumetric_mode,
        })
        self.events.append(("generate", combo))
        if combo in self.failures:
            raise self.failures[combo]
        return make_image(f"render-{combo[0]}-{combo[1]}")


class FakeCritic(CritiqueSynthesisClient):
    def __init__(self, record: CritiqueRecord | None = None, error: Exception | None = None, events: list | None = None):
        self.record = record or good_critique()
        self.error = error
        self.events = events if events is not None else []
        self.calls = []

    async def critique(self, image, profile):
        self.calls.append((image, profile))
        self.events.append(("critique", image.id))
        if self.error is not None:
            raise self.error
        return self.record


@pytest.fixture
def minimal_png_bytes():
    """Minimal valid PNG image bytes."""
    return MINIMAL_PNG


@pytest.fixture
def body_images():
    return (make_image("body-front"), make_image("body-side"))


@pytest.fixture
def profile():
    return UserProfile(
        height="5'9\" / 175cm",
        weight="70kg",
        skin_tone="Fair with cool undertones",
        body_type="Athletic",
        occasion="Business casual",
    )
