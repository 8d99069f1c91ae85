"""Job dispatcher: the only component that calls the compression engine.

submit() validates settings, registers the task and hands the engine call to a
bounded thread pool. Validation and duplicate errors are raised to the caller
before anything runs. Engine failures never propagate as exceptions: they land
in the task's `error` field and in the JobOutcome the returned future resolves
to. One engine call per submit(), no retries.
"""

import concurrent.futures
import logging
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from squeeze.config.strategy import describe_settings, validate_settings
from squeeze.domain.errors import DuplicateActiveTask, EngineFailure
from squeeze.domain.events import TaskCompleted, TaskFailed, TaskQueued, TaskRejected
from squeeze.domain.models import MediaKind, TaskStatus
from squeeze.domain.settings import AnySettings
from squeeze.infrastructure.engine import CompressionEngine
from squeeze.infrastructure.event_bus import EventBus
from squeeze.pipeline.registry import TaskRegistry

DEFAULT_OUTPUT_SUFFIX = "_compressed"


@dataclass(frozen=True)
class JobOutcome:
    task_id: str
    status: TaskStatus
    message: str

    @property
    def succeeded(self) -> bool:
        return self.status is TaskStatus.COMPLETED


def default_output_path(input_path: Union[str, Path], suffix: str = DEFAULT_OUTPUT_SUFFIX) -> str:
    """`/a/clip.mp4` -> `/a/clip_compressed.mp4`; extensionless names get the suffix appended."""
    path = Path(input_path)
    return str(path.with_name(f"{path.stem}{suffix}{path.suffix}"))


class JobDispatcher:
    """Validates, registers and runs compression jobs.

    Args:
        registry: TaskRegistry that owns job state.
        engine: CompressionEngine invoked once per job.
        event_bus: EventBus for TaskQueued/TaskCompleted/TaskFailed/TaskRejected.
        max_workers: Upper bound on concurrent engine calls.
        output_suffix: Suffix for derived output paths.
    """

    def __init__(
        self,
        registry: TaskRegistry,
        engine: CompressionEngine,
        event_bus: EventBus,
        max_workers: int = 2,
        output_suffix: str = DEFAULT_OUTPUT_SUFFIX,
    ):
        self.registry = registry
        self.engine = engine
        self.event_bus = event_bus
        self.output_suffix = output_suffix
        self.logger = logging.getLogger(__name__)
        self._executor = concurrent.futures.ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="squeeze-job"
        )
        self._closed = False
        self._close_lock = threading.RLock()

    def submit(
        self,
        kind: Union[MediaKind, str],
        input_path: Union[str, Path],
        output_path: Optional[Union[str, Path]],
        settings: AnySettings,
    ) -> "concurrent.futures.Future[JobOutcome]":
        """Queues one job and returns a future for its outcome.

        Raises:
            SettingsValidationError: settings break a rule; nothing registered.
            DuplicateActiveTask: a job for this input is still in flight.
            RuntimeError: the dispatcher has been shut down.
        """
        kind = MediaKind(kind)
        validate_settings(kind, settings)

        key = str(input_path)
        output = str(output_path) if output_path else default_output_path(key, self.output_suffix)

        with self._close_lock:
            if self._closed:
                raise RuntimeError("Dispatcher is shut down")
            try:
                self.registry.create(key, kind, key, output)
            except DuplicateActiveTask as exc:
                self.event_bus.publish(TaskRejected(task_id=key, reason=str(exc)))
                raise
            self.registry.mark_dispatched(key)
            task = self.registry.get(key)
            if task is not None:
                self.event_bus.publish(TaskQueued(task=task))
            future = self._executor.submit(self._run_job, kind, key, output, settings)

        self.logger.info(f"JOB_SUBMITTED: {key} -> {output} ({describe_settings(settings)})")
        return future

    def _run_job(self, kind: MediaKind, key: str, output_path: str, settings: AnySettings) -> JobOutcome:
        try:
            message = self.engine.compress(kind, key, output_path, settings)
        except EngineFailure as exc:
            return self._finish_failed(key, exc.message)
        except Exception as exc:
            self.logger.exception(f"JOB_CRASHED: {key}")
            return self._finish_failed(key, str(exc) or type(exc).__name__)

        self.registry.mark_completed(key, message)
        task = self.registry.get(key)
        if task is not None:
            self.event_bus.publish(TaskCompleted(task=task, message=message))
        return JobOutcome(task_id=key, status=TaskStatus.COMPLETED, message=message)

    def _finish_failed(self, key: str, message: str) -> JobOutcome:
        self.registry.mark_failed(key, message)
        task = self.registry.get(key)
        if task is not None:
            self.event_bus.publish(TaskFailed(task=task, error_message=message))
        return JobOutcome(task_id=key, status=TaskStatus.FAILED, message=message)

    def shutdown(self, wait: bool = True, cancel_pending: bool = False):
        """Stops accepting jobs; with wait=True blocks until running jobs end.

        cancel_pending drops jobs that have not reached a worker yet (Ctrl+C).
        """
        with self._close_lock:
            self._closed = True
        self._executor.shutdown(wait=wait, cancel_futures=cancel_pending)

    def __enter__(self) -> "JobDispatcher":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.shutdown(wait=True)
        return False
