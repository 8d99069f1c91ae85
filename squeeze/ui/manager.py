import logging
from pathlib import Path
from squeeze.infrastructure.event_bus import EventBus
from squeeze.ui.state import UIState
from squeeze.domain.events import TaskQueued, TaskCompleted, TaskFailed, TaskRejected

class UIManager:
    """Subscribes to EventBus and updates UIState."""

    def __init__(self, bus: EventBus, state: UIState):
        self.bus = bus
        self.state = state
        self.logger = logging.getLogger(__name__)
        self._setup_subscriptions()

    def _setup_subscriptions(self):
        self.bus.subscribe(TaskQueued, self.on_task_queued)
        self.bus.subscribe(TaskCompleted, self.on_task_completed)
        self.bus.subscribe(TaskFailed, self.on_task_failed)
        self.bus.subscribe(TaskRejected, self.on_task_rejected)

    def close(self):
        self.bus.unsubscribe(TaskQueued, self.on_task_queued)
        self.bus.unsubscribe(TaskCompleted, self.on_task_completed)
        self.bus.unsubscribe(TaskFailed, self.on_task_failed)
        self.bus.unsubscribe(TaskRejected, self.on_task_rejected)

    def on_task_queued(self, event: TaskQueued):
        self.state.add_queued_task(event.task)
        self.state.set_last_action(f"Queued: {Path(event.task.input_path).name}")

    def on_task_completed(self, event: TaskCompleted):
        self.state.add_completed_task(event.task)
        self.state.set_last_action(f"Done: {Path(event.task.input_path).name}")

    def on_task_failed(self, event: TaskFailed):
        self.state.add_failed_task(event.task)
        self.state.set_last_action(f"Failed: {Path(event.task.input_path).name}")

    def on_task_rejected(self, event: TaskRejected):
        self.logger.debug(f"UI: rejected {event.task_id}: {event.reason}")
        self.state.add_rejected()
        self.state.set_last_action(f"Skipped: {event.reason}")
