"""Tests for data models."""

import pytest
from pydantic import ValidationError

from wardrobe_vton.errors import InvalidTransitionError
from wardrobe_vton.models import (
    CritiqueRecord,
    DetectedProfile,
    ImageArtifact,
    ItemRole,
    TaskKey,
    TaskPhase,
    TaskState,
    UserProfile,
    Wardrobe,
    fallback_critique,
)

from conftest import MINIMAL_PNG, good_critique, make_image


class TestImageArtifact:

    def test_from_bytes_sniffs_media_type(self):
        image = ImageArtifact.from_bytes(MINIMAL_PNG)

        assert image.media_type == "image/png"
        assert image.size == len(MINIMAL_PNG)
        assert len(image.id) == 12

    def test_from_bytes_rejects_empty(self):
        with pytest.raises(ValueError):
            ImageArtifact.from_bytes(b"")

    def test_data_url_round_trip(self):
        image = make_image("x")

        restored = ImageArtifact.from_data_url(image.to_data_url(), image_id="x")

        assert restored == image

    def test_json_serializes_base64(self):
        dumped = make_image("x").model_dump_json()

        assert "iVBORw0KGgo" in dumped

    def test_frozen(self):
        with pytest.raises(ValidationError):
            make_image("x").id = "y"


class TestCritiqueRecord:

    def test_rating_bounds(self):
        with pytest.raises(ValidationError):
            good_critique(rating=11)
        with pytest.raises(ValidationError):
            good_critique(rating=0)

    @pytest.mark.parametrize("rating,band", [(9, "editorial"), (6.5, "solid"), (4, "unremarkable"), (2, "needs revision")])
    def test_rating_band(self, rating, band):
        assert good_critique(rating=rating).rating_band == band

    def test_fallback_is_degraded(self):
        record = fallback_critique()

        assert record.rating == 5
        assert record.degraded
        assert "technical issue" in record.suitability

    def test_improvements_optional(self):
        record = CritiqueRecord(
            rating=7, suitability="s", color_analysis="c", verdict="v", best_for_event="e",
        )
        assert record.improvements is None
        assert not record.degraded


class TestUserProfile:

    def test_merge_skips_empty_values(self):
        profile = UserProfile(height="180cm", body_type="Athletic", occasion="Wedding")
        detected = DetectedProfile(height="", weight="75kg", skin_tone=" Olive ", body_type="")

        merged = profile.merged_with(detected)

        assert merged.height == "180cm"
        assert merged.weight == "75kg"
        assert merged.skin_tone == "Olive"
        assert merged.body_type == "Athletic"
        assert merged.occasion == "Wedding"

    def test_merge_returns_new_profile(self):
        profile = UserProfile()

        merged = profile.merged_with(DetectedProfile(height="170cm"))

        assert profile.height == ""
        assert merged.height == "170cm"

    def test_for_scan_enables_volumetric_mode(self):
        profile = UserProfile(occasion="Gala")

        scan_profile = profile.for_scan()

        assert scan_profile.volumetric_mode
        assert scan_profile.occasion == "Gala"
        assert not profile.volumetric_mode


class TestWardrobe:

    def test_items_by_role(self):
        wardrobe = Wardrobe()
        top = wardrobe.add_item(ItemRole.TOP, [make_image("t")])
        wardrobe.add_item(ItemRole.BOTTOM)

        assert wardrobe.items(ItemRole.TOP) == (top,)
        assert not wardrobe.items(ItemRole.BOTTOM)[0].is_valid
        assert wardrobe.items(ItemRole.ACCESSORY) == ()

    def test_edits_replace_records(self):
        wardrobe = Wardrobe()
        original = wardrobe.add_item(ItemRole.TOP, [make_image("a")])

        updated = wardrobe.add_images(original.id, [make_image("b")])

        assert [img.id for img in updated.images] == ["a", "b"]
        assert [img.id for img in original.images] == ["a"]
        assert wardrobe.items(ItemRole.TOP) == (updated,)

    def test_remove_image_and_item(self):
        wardrobe = Wardrobe()
        item = wardrobe.add_item(ItemRole.BOTTOM, [make_image("a"), make_image("b")])

        item = wardrobe.remove_image(item.id, "a")
        assert [img.id for img in item.images] == ["b"]

        wardrobe.remove_item(item.id)
        assert wardrobe.items(ItemRole.BOTTOM) == ()

    def test_unknown_item(self):
        with pytest.raises(KeyError):
            Wardrobe().add_images("missing", [make_image("a")])

    def test_body_images(self):
        wardrobe = Wardrobe()
        wardrobe.set_body_images([make_image("front")])
        wardrobe.add_body_images([make_image("side")])
        wardrobe.remove_body_image("front")

        assert [img.id for img in wardrobe.body_images] == ["side"]
        assert wardrobe.snapshot().body_images == wardrobe.body_images


class TestTaskState:

    def test_key_renders_task_id(self):
        state = TaskState(key=TaskKey("T1", "B1"))

        assert state.task_id == "T1-B1"
        assert state.top_id == "T1"
        assert state.bottom_id == "B1"
        assert state.loading

    def test_full_lifecycle(self):
        state = TaskState(key=TaskKey("T1", "B1"))
        state = state.advance(TaskPhase.IMAGE_GENERATING)
        state = state.advance(TaskPhase.IMAGE_READY, image=make_image("r"))
        state = state.advance(TaskPhase.CRITIQUE_GENERATING)
        state = state.advance(TaskPhase.COMPLETE, critique=good_critique())

        assert state.phase is TaskPhase.COMPLETE
        assert state.image.id == "r"
        assert not state.loading

    @pytest.mark.parametrize("start,target", [
        (TaskPhase.PENDING, TaskPhase.COMPLETE),
        (TaskPhase.PENDING, TaskPhase.FAILED),
        (TaskPhase.IMAGE_READY, TaskPhase.FAILED),
        (TaskPhase.COMPLETE, TaskPhase.IMAGE_GENERATING),
        (TaskPhase.FAILED, TaskPhase.IMAGE_GENERATING),
    ])
    def test_illegal_transitions(self, start, target):
        state = TaskState(key=TaskKey("T1", "B1"), phase=start)

        with pytest.raises(InvalidTransitionError):
            state.advance(target)

    def test_image_set_at_most_once(self):
        state = TaskState(
            key=TaskKey("T1", "B1"), phase=TaskPhase.IMAGE_GENERATING, image=make_image("first"),
        )

        with pytest.raises(InvalidTransitionError):
            state.advance(TaskPhase.IMAGE_READY, image=make_image("second"))

    def test_failed_never_carries_critique(self):
        state = TaskState(key=TaskKey("T1", "B1"), phase=TaskPhase.CRITIQUE_GENERATING)

        with pytest.raises(InvalidTransitionError):
            state.advance(TaskPhase.FAILED, critique=good_critique())
