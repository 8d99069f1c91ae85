import threading
from collections import deque
from datetime import datetime
from typing import Deque, Optional
from squeeze.domain.models import Task

class UIState:
    """Thread-safe counters and recent activity for the dashboard."""

    def __init__(self, activity_feed_max_items: int = 5):
        self._lock = threading.RLock()

        # Counters
        self.queued_count = 0
        self.completed_count = 0
        self.failed_count = 0
        self.rejected_count = 0

        self.recent_tasks: Deque[Task] = deque(maxlen=activity_feed_max_items)

        self.ui_title = "SQUEEZE"
        self.settings_summary = ""
        self.processing_start_time: Optional[datetime] = None

        self.last_action: str = ""
        self.last_action_time: Optional[datetime] = None

    @property
    def finished_count(self) -> int:
        with self._lock:
            return self.completed_count + self.failed_count

    def add_queued_task(self, task: Task):
        with self._lock:
            self.queued_count += 1
            if self.processing_start_time is None:
                self.processing_start_time = datetime.now()

    def add_completed_task(self, task: Task):
        with self._lock:
            self.completed_count += 1
            self.recent_tasks.appendleft(task)

    def add_failed_task(self, task: Task):
        with self._lock:
            self.failed_count += 1
            self.recent_tasks.appendleft(task)

    def add_rejected(self):
        with self._lock:
            self.rejected_count += 1

    def set_last_action(self, action: str):
        with self._lock:
            self.last_action = action
            self.last_action_time = datetime.now()

    def get_last_action(self) -> str:
        """Last action message; cleared once it is older than a minute."""
        with self._lock:
            if self.last_action and self.last_action_time:
                elapsed = (datetime.now() - self.last_action_time).total_seconds()
                if elapsed > 60:
                    self.last_action = ""
                    self.last_action_time = None
            return self.last_action
