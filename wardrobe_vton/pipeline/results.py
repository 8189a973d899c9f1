"""Observable collection of task states for the current run."""

import json
import logging
import uuid
from collections import Counter
from datetime import datetime
from pathlib import Path
from typing import Callable, Iterable

from ..models import TaskKey, TaskPhase, TaskState

logger = logging.getLogger(__name__)

Listener = Callable[[TaskState], None]


class ResultCollection:
    """Mapping of task key to the latest published TaskState.

    The runner is the only writer. Every write replaces a whole record, so a
    reader never sees a half-updated task. Listeners are called synchronously
    after each write.
    """

    def __init__(self):
        self._states: dict[TaskKey, TaskState] = {}
        self._listeners: list[Listener] = []
        self.run_id: str | None = None
        self.in_progress = False
        self.started_at: datetime | None = None
        self.completed_at: datetime | None = None

    def __len__(self) -> int:
        return len(self._states)

    def __contains__(self, key: object) -> bool:
        return key in self._states

    def reset(self, states: Iterable[TaskState]) -> None:
        """Discard the previous run and publish ``states`` as the new run."""
        new_states: dict[TaskKey, TaskState] = {}
        for state in states:
            if state.key in new_states:
                raise ValueError(f"Duplicate task {state.task_id} in run")
            new_states[state.key] = state
        self._states = new_states
        self.run_id = uuid.uuid4().hex[:8]
        self.started_at = datetime.now()
        self.completed_at = None
        for state in self._states.values():
            self._notify(state)

    def mark_started(self) -> None:
        self.in_progress = True

    def mark_finished(self) -> None:
        self.in_progress = False
        self.completed_at = datetime.now()

    def upsert(self, state: TaskState) -> TaskState:
        """Insert or replace the whole record for ``state.key``."""
        self._states[state.key] = state
        self._notify(state)
        return state

    def update(self, key: TaskKey, **changes) -> TaskState:
        """Partial update, applied as a full replacement of the current record."""
        current = self._states[key]
        return self.upsert(current.model_copy(update=changes))

    def get(self, key: TaskKey) -> TaskState | None:
        return self._states.get(key)

    def get_all(self) -> list[TaskState]:
        """States in the order the tasks were expanded."""
        return list(self._states.values())

    def summary(self) -> dict[str, int]:
        counts = Counter(state.phase.value for state in self._states.values())
        return {phase.value: counts.get(phase.value, 0) for phase in TaskPhase}

    @property
    def is_done(self) -> bool:
        return all(state.phase.is_terminal for state in self._states.values())

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register ``listener`` for every publication; returns an unsubscribe function."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def save(self, path: Path, files: dict[str, dict[str, str]] | None = None) -> Path:
        """Save the current run to JSON.

        ``files`` maps archived image filenames to the task they belong to.
        """
        payload = {
            "run_id": self.run_id,
            "in_progress": self.in_progress,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "summary": self.summary(),
            "tasks": [state.model_dump(mode="json", exclude={"image"}) for state in self._states.values()],
            "files": files or {},
        }
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
        return path

    def _notify(self, state: TaskState) -> None:
        for listener in list(self._listeners):
            try:
                listener(state)
            except Exception:
                logger.exception("Result listener failed for task %s", state.task_id)
