"""In-memory task registry: the single source of truth for job state.

State machine::

    pending -> compressing -> finishing -> completed
                    |             |
                    +-------------+--> failed

`finishing` only means a progress event reported 100% while the engine call
is still outstanding. `completed` is reached solely through mark_completed(),
i.e. when the engine call itself returns. Progress and completion come from
different sources and are never merged here.

Every mutation takes the registry lock, so a progress event racing the
dispatcher's completion for the same key cannot lose an update. Events for
unknown or terminal keys are dropped (returned False), never raised.
"""

import logging
import math
import threading
from datetime import datetime
from typing import Dict, List, Optional

from squeeze.domain.errors import DuplicateActiveTask
from squeeze.domain.models import MediaKind, Task, TaskStatus

PROGRESS_MIN = 0.0
PROGRESS_MAX = 100.0


class TaskRegistry:
    """Thread-safe mapping from task key (the input path) to Task."""

    def __init__(self):
        self._lock = threading.RLock()
        self._tasks: Dict[str, Task] = {}
        self.logger = logging.getLogger(__name__)

    def __len__(self) -> int:
        with self._lock:
            return len(self._tasks)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._tasks

    def create(self, key: str, kind: MediaKind, input_path: str, output_path: str) -> Task:
        """Registers a fresh pending task and returns a copy of it.

        Raises DuplicateActiveTask while a task for `key` is still in flight.
        A terminal task with the same key is replaced: same identity, new lifecycle.
        """
        with self._lock:
            existing = self._tasks.get(key)
            if existing is not None and existing.status.blocks_resubmission:
                self.logger.info(f"TASK_DUPLICATE: {key} (status={existing.status.value})")
                raise DuplicateActiveTask(key)

            task = Task(
                id=key,
                input_path=input_path,
                output_path=output_path,
                kind=MediaKind(kind),
            )
            self._tasks[key] = task
            if existing is not None:
                self.logger.info(f"TASK_RESUBMITTED: {key} (previous={existing.status.value})")
            else:
                self.logger.info(f"TASK_CREATED: {key} kind={task.kind.value}")
            return task.model_copy()

    def mark_dispatched(self, key: str) -> bool:
        """pending -> compressing. Ignored for missing or non-pending tasks."""
        with self._lock:
            task = self._tasks.get(key)
            if task is None or task.status is not TaskStatus.PENDING:
                return False
            self._set_status(task, TaskStatus.COMPRESSING)
            self.logger.debug(f"TASK_DISPATCHED: {key}")
            return True

    def apply_progress(self, key: str, progress: float) -> bool:
        """Stores a progress reading for a live task.

        Status follows the reading: >= 100 is `finishing`, anything lower is
        `compressing`. Readings are not required to increase. Returns False
        when the event is stale (unknown or terminal key) or not a number.
        """
        try:
            value = float(progress)
        except (TypeError, ValueError):
            self.logger.warning(f"PROGRESS_INVALID: {key} progress={progress!r}")
            return False
        if math.isnan(value):
            self.logger.warning(f"PROGRESS_INVALID: {key} progress=nan")
            return False
        value = min(PROGRESS_MAX, max(PROGRESS_MIN, value))

        with self._lock:
            task = self._tasks.get(key)
            if task is None or task.is_terminal:
                state = task.status.value if task is not None else "unknown"
                self.logger.debug(f"PROGRESS_STALE: {key} progress={value:.1f} ({state})")
                return False
            task.progress = value
            new_status = TaskStatus.FINISHING if value >= PROGRESS_MAX else TaskStatus.COMPRESSING
            if task.status is not new_status:
                self._set_status(task, new_status)
            else:
                task.updated_at = datetime.now()
            return True

    def mark_completed(self, key: str, message: Optional[str] = None) -> bool:
        """Any live state -> completed, with progress forced to 100."""
        with self._lock:
            task = self._tasks.get(key)
            if task is None or task.is_terminal:
                return False
            task.progress = PROGRESS_MAX
            task.error = None
            task.message = message
            task.finished_at = datetime.now()
            self._set_status(task, TaskStatus.COMPLETED)
            self.logger.info(f"TASK_DONE: {key}")
            return True

    def mark_failed(self, key: str, message: str) -> bool:
        """Any live state -> failed. The message is kept verbatim; progress is left alone."""
        with self._lock:
            task = self._tasks.get(key)
            if task is None or task.is_terminal:
                return False
            task.error = message
            task.finished_at = datetime.now()
            self._set_status(task, TaskStatus.FAILED)
            self.logger.info(f"TASK_FAILED: {key} (progress={task.progress:.1f})")
            self.logger.debug(f"TASK_FAILED_DETAIL: {key}: {message}")
            return True

    def get(self, key: str) -> Optional[Task]:
        with self._lock:
            task = self._tasks.get(key)
            return task.model_copy() if task is not None else None

    def snapshot(self) -> List[Task]:
        """Copies of all tasks, in the order their keys were first registered."""
        with self._lock:
            return [task.model_copy() for task in self._tasks.values()]

    def active_count(self) -> int:
        with self._lock:
            return sum(1 for task in self._tasks.values() if not task.is_terminal)

    def _set_status(self, task: Task, status: TaskStatus):
        task.status = status
        task.updated_at = datetime.now()
