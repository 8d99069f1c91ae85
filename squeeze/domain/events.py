"""Domain events for the compression job pipeline.

Events flow through the EventBus and decouple the dispatcher and the engines
from the progress bridge and the UI layer.

See `infrastructure/event_bus.py` for the pub/sub mechanism.
"""

from typing import ClassVar
from pydantic import BaseModel
from .models import Task


class Event(BaseModel):
    """Base class for all domain events.

    Events are validated Pydantic models. They are not frozen by default.
    """

    pass


class ProgressEvent(Event):
    """PROGRESS_EVENT pushed by an engine while it works on a task.

    Payload is `{task_id, progress}`. Events may arrive late, out of order, or
    for tasks that no longer exist; the registry decides what to keep.
    """

    EVENT_NAME: ClassVar[str] = "PROGRESS_EVENT"

    task_id: str
    progress: float


class TaskEvent(Event):
    """Base class for events about a registered task (carries a snapshot)."""

    task: Task


class TaskQueued(TaskEvent):
    """Emitted after a task is registered and handed to the worker pool."""

    pass


class TaskCompleted(TaskEvent):
    """Emitted when the engine call returns successfully."""

    message: str


class TaskFailed(TaskEvent):
    """Emitted when the engine call fails; message is the engine's, verbatim."""

    error_message: str


class TaskRejected(Event):
    """Emitted when a submission is refused before a task is registered."""

    task_id: str
    reason: str
