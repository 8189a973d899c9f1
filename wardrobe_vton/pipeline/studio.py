"""Outfit studio - wires the wardrobe, the synthesis clients and the runner."""

import asyncio
import logging
from pathlib import Path

from ..agents import ProfileDetector, StylistCritic
from ..config import PipelineConfig
from ..interfaces import CritiqueSynthesisClient, VisualSynthesisClient
from ..models import (
    DetectedProfile,
    ImageArtifact,
    TaskDescriptor,
    UserProfile,
    Wardrobe,
    WardrobeSnapshot,
)
from ..services import ComfyUIClient
from ..storage import ScanStore
from .expander import expand_snapshot
from .results import ResultCollection
from .runner import CombinationRunner

logger = logging.getLogger(__name__)


class OutfitStudio:
    """Generates every top x bottom look in a wardrobe.

    Flow:
    1. Snapshot the wardrobe and expand it into combination tasks
    2. Publish one pending result per task
    3. Render and critique each task in order, publishing as it goes

    ``results`` is the single object observers read from.
    """

    def __init__(
        self,
        config: PipelineConfig,
        image_client: VisualSynthesisClient | None = None,
        critic: CritiqueSynthesisClient | None = None,
        profile_detector: ProfileDetector | None = None,
        scan_store: ScanStore | None = None,
    ):
        self.config = config

        # Initialize services
        self.image_client = image_client or ComfyUIClient(
            config=config.comfyui,
            comfyui_input_dir=config.comfyui_input_dir,
            generation=config.generation,
        )
        self.critic = critic or StylistCritic(
            config=config.critique,
            endpoint=config.azure_openai_endpoint,
            deployment=config.azure_openai_deployment,
        )
        self.profile_detector = profile_detector or ProfileDetector(
            endpoint=config.azure_openai_endpoint,
            deployment=config.azure_openai_deployment,
        )
        self.scan_store = scan_store or ScanStore(config.scan_store_path)

        self.wardrobe = Wardrobe()
        self.results = ResultCollection()
        self.runner = CombinationRunner(
            image_client=self.image_client,
            critic=self.critic,
            results=self.results,
            config=config.runner,
        )

    @property
    def in_progress(self) -> bool:
        return self.results.in_progress

    def prepare(self, profile: UserProfile, snapshot: WardrobeSnapshot | None = None) -> list[TaskDescriptor]:
        """Expand the wardrobe and publish pending results; no remote call is made.

        Raises:
            InsufficientInputError: nothing to combine
            RunInProgressError: the previous run has not finished
        """
        snapshot = snapshot if snapshot is not None else self.wardrobe.snapshot()
        descriptors = expand_snapshot(snapshot, profile)
        self.runner.begin(descriptors, profile)
        return descriptors

    async def execute(self, descriptors: list[TaskDescriptor], profile: UserProfile) -> ResultCollection:
        """Process prepared tasks, then archive the run."""
        results = await self.runner.execute(descriptors, profile)
        self.archive()
        return results

    async def generate(self, profile: UserProfile, snapshot: WardrobeSnapshot | None = None) -> ResultCollection:
        """Run every combination to completion."""
        descriptors = self.prepare(profile, snapshot)
        return await self.execute(descriptors, profile)

    def launch(self, profile: UserProfile, snapshot: WardrobeSnapshot | None = None) -> asyncio.Task:
        """Prepare now, process in the background."""
        descriptors = self.prepare(profile, snapshot)
        return asyncio.create_task(self.execute(descriptors, profile))

    async def detect_profile(self, image: ImageArtifact, profile: UserProfile) -> UserProfile:
        """Auto-detect body stats and merge them into ``profile``."""
        detected: DetectedProfile = await self.profile_detector.detect(image)
        return profile.merged_with(detected)

    def load_scan(self, scan_id: str, profile: UserProfile) -> UserProfile:
        """Use a saved scan as the body reference; switches to volumetric mode."""
        scan = self.scan_store.get_scan(scan_id)
        if scan is None:
            raise KeyError(f"Scan not found: {scan_id}")
        self.wardrobe.set_body_images(scan.images)
        logger.info("Loaded saved scan %s", scan_id)
        return profile.for_scan()

    def archive(self) -> Path | None:
        """Write the finished run to ``output_dir/<run_id>/``.

        Images are named by expansion index (``000.png``, ``001.png``, ...);
        item ids never reach the filesystem. ``results.json`` maps each file
        back to its task.
        """
        if self.results.run_id is None:
            return None
        run_dir = self.config.output_dir / self.results.run_id
        run_dir.mkdir(parents=True, exist_ok=True)
        files: dict[str, dict[str, str]] = {}
        for index, state in enumerate(self.results.get_all()):
            if state.image is None:
                continue
            suffix = state.image.media_type.split("/")[-1]
            filename = f"{index:03d}.{suffix}"
            (run_dir / filename).write_bytes(state.image.data)
            files[filename] = {"top_id": state.top_id, "bottom_id": state.bottom_id}
        return self.results.save(run_dir / "results.json", files=files)

    async def close(self) -> None:
        close = getattr(self.image_client, "close", None)
        if close is not None:
            await close()
