from datetime import datetime
from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field

class MediaKind(str, Enum):
    VIDEO = "video"
    AUDIO = "audio"
    IMAGE = "image"

class TaskStatus(str, Enum):
    PENDING = "pending"
    COMPRESSING = "compressing"
    FINISHING = "finishing"  # progress hit 100 but the engine call has not returned yet
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (TaskStatus.COMPLETED, TaskStatus.FAILED)

    @property
    def blocks_resubmission(self) -> bool:
        return not self.is_terminal

class Task(BaseModel):
    """One compression job, keyed by its input path."""

    id: str
    input_path: str
    output_path: str
    kind: MediaKind
    status: TaskStatus = TaskStatus.PENDING
    progress: float = 0.0
    error: Optional[str] = None
    message: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)
    finished_at: Optional[datetime] = None

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal
