"""Error types raised by the job orchestration layer.

Validation and duplicate errors are raised synchronously from
`JobDispatcher.submit()`. Engine failures are raised by engines inside the
worker pool and end up in the task's `error` field; callers never see them as
exceptions. Stale progress events are not errors at all: the registry drops
them and logs at DEBUG.
"""

from typing import List


class SqueezeError(Exception):
    """Base class for all squeeze errors."""


class SettingsValidationError(SqueezeError):
    """Settings failed the pre-dispatch rules. Nothing was registered."""

    def __init__(self, issues: List[str]):
        self.issues = list(issues)
        super().__init__("Invalid settings: " + "; ".join(self.issues))


class DuplicateActiveTask(SqueezeError):
    """A non-terminal task already exists for this key."""

    def __init__(self, task_id: str):
        self.task_id = task_id
        super().__init__(f"Already queued: {task_id}")


class EngineFailure(SqueezeError):
    """The compression engine rejected the job.

    `message` is stored on the task verbatim; nothing in the pipeline parses it.
    """

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)
