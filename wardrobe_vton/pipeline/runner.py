"""Drives combination tasks through image synthesis and critique."""

import asyncio
import logging
from typing import Sequence

from ..config import RunnerConfig
from ..errors import InvalidTransitionError, RunInProgressError, SynthesisError, classify_error
from ..interfaces import CritiqueSynthesisClient, VisualSynthesisClient
from ..models import TaskDescriptor, TaskPhase, TaskState, UserProfile
from .results import ResultCollection

logger = logging.getLogger(__name__)


class CombinationRunner:
    """Runs every task of a batch and publishes each transition.

    Flow per task:
    1. image_generating -> visual synthesis
    2. image_ready (or failed, and the task stops here)
    3. critique_generating -> stylist critique
    4. complete

    Tasks are pulled from a queue in expansion order by
    ``config.max_concurrency`` workers. With the default of one worker a task
    is fully finished, publications included, before the next one starts.
    A failure stays on its own task; the batch always runs to the end.
    """

    def __init__(
        self,
        image_client: VisualSynthesisClient,
        critic: CritiqueSynthesisClient,
        results: ResultCollection | None = None,
        config: RunnerConfig | None = None,
    ):
        self.image_client = image_client
        self.critic = critic
        self.results = results if results is not None else ResultCollection()
        self.config = config or RunnerConfig()

    def begin(self, descriptors: Sequence[TaskDescriptor], profile: UserProfile) -> list[TaskState]:
        """Publish one pending state per task before any remote call is made."""
        if self.results.in_progress:
            raise RunInProgressError("A generation run is already in progress.")

        self.results.reset(TaskState.pending(descriptor) for descriptor in descriptors)
        self.results.mark_started()
        logger.info(
            "Run %s started: %d combinations (volumetric=%s)",
            self.results.run_id, len(descriptors), profile.volumetric_mode,
        )
        return self.results.get_all()

    async def execute(self, descriptors: Sequence[TaskDescriptor], profile: UserProfile) -> ResultCollection:
        """Process every task; call ``begin`` first.

        Raises:
            InvalidTransitionError: a task is not pending in the current run;
                nothing is processed
        """
        queue: asyncio.Queue[TaskDescriptor] = asyncio.Queue()
        for descriptor in descriptors:
            queue.put_nowait(descriptor)

        workers: list[asyncio.Task] = []
        try:
            self._check_pending(descriptors)
            count = min(self.config.max_concurrency, max(len(descriptors), 1))
            workers = [asyncio.create_task(self._worker(queue, profile)) for _ in range(count)]
            await asyncio.gather(*workers)
        finally:
            for worker in workers:
                worker.cancel()
            await asyncio.gather(*workers, return_exceptions=True)
            self.results.mark_finished()

        logger.info("Run %s finished: %s", self.results.run_id, self.results.summary())
        return self.results

    async def run(self, descriptors: Sequence[TaskDescriptor], profile: UserProfile) -> ResultCollection:
        """Initialize the results and process every task."""
        self.begin(descriptors, profile)
        return await self.execute(descriptors, profile)

    def launch(self, descriptors: Sequence[TaskDescriptor], profile: UserProfile) -> asyncio.Task:
        """Initialize the results now and process the tasks in the background."""
        self.begin(descriptors, profile)
        return asyncio.create_task(self.execute(descriptors, profile))

    def _check_pending(self, descriptors: Sequence[TaskDescriptor]) -> None:
        for descriptor in descriptors:
            state = self.results.get(descriptor.key)
            if state is None:
                raise InvalidTransitionError(
                    f"Task {descriptor.task_id} was not initialized; call begin() first"
                )
            if state.phase is not TaskPhase.PENDING:
                raise InvalidTransitionError(
                    f"Task {descriptor.task_id} is already {state.phase.value}; call begin() for a new run"
                )

    async def _worker(self, queue: asyncio.Queue, profile: UserProfile) -> None:
        while True:
            try:
                descriptor = queue.get_nowait()
            except asyncio.QueueEmpty:
                return
            await self._process(descriptor, profile)

    async def _process(self, descriptor: TaskDescriptor, profile: UserProfile) -> None:
        state = self.results.get(descriptor.key)
        if state is None:
            raise KeyError(f"Task {descriptor.task_id} was not initialized; call begin() first")

        # Stage 1: image
        state = self._publish(state.advance(TaskPhase.IMAGE_GENERATING))
        try:
            image = await self.image_client.generate(
                body=descriptor.body_images,
                top=descriptor.top_images,
                bottom=descriptor.bottom_images,
                accessories=descriptor.accessory_images,
                volumetric_mode=descriptor.volumetric_mode,
            )
            if image is None or not image.data:
                raise SynthesisError("No image data returned by the image service.", kind="empty_output")
        except Exception as e:
            self._fail(state, e, stage="image")
            return

        state = self._publish(state.advance(TaskPhase.IMAGE_READY, image=image))

        # Stage 2: critique
        state = self._publish(state.advance(TaskPhase.CRITIQUE_GENERATING))
        try:
            critique = await self.critic.critique(image, profile)
        except Exception as e:
            self._fail(state, e, stage="critique")
            return

        self._publish(state.advance(TaskPhase.COMPLETE, critique=critique))
        logger.info(
            "Task %s complete (rating %s%s)",
            descriptor.task_id, critique.rating, ", degraded" if critique.degraded else "",
        )

    def _fail(self, state: TaskState, error: Exception, stage: str) -> None:
        classified = classify_error(error)
        logger.warning(
            "Task %s failed at %s stage [%s]: %s",
            state.task_id, stage, classified.category.value, error,
        )
        self._publish(state.advance(
            TaskPhase.FAILED,
            error_message=classified.message,
            error_category=classified.category,
        ))

    def _publish(self, state: TaskState) -> TaskState:
        return self.results.upsert(state)
