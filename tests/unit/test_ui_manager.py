from squeeze.infrastructure.event_bus import EventBus
from squeeze.ui.state import UIState
from squeeze.ui.manager import UIManager
from squeeze.domain.events import TaskCompleted, TaskFailed, TaskQueued, TaskRejected
from squeeze.domain.models import MediaKind, Task, TaskStatus

def _task(status=TaskStatus.PENDING):
    return Task(id="/v/test.mp4", input_path="/v/test.mp4", output_path="/v/out.mp4", kind=MediaKind.VIDEO, status=status)

def test_ui_manager_updates_state_on_events():
    bus = EventBus()
    state = UIState()
    UIManager(bus, state)

    bus.publish(TaskQueued(task=_task()))
    assert state.queued_count == 1
    assert state.get_last_action() == "Queued: test.mp4"

    bus.publish(TaskCompleted(task=_task(TaskStatus.COMPLETED), message="ok"))
    assert state.completed_count == 1
    assert state.get_last_action() == "Done: test.mp4"

    bus.publish(TaskFailed(task=_task(TaskStatus.FAILED), error_message="ffmpeg error"))
    assert state.failed_count == 1
    assert state.get_last_action() == "Failed: test.mp4"

    bus.publish(TaskRejected(task_id="/v/test.mp4", reason="Already queued: /v/test.mp4"))
    assert state.rejected_count == 1
    assert state.get_last_action() == "Skipped: Already queued: /v/test.mp4"

def test_ui_manager_close_unsubscribes():
    bus = EventBus()
    state = UIState()
    manager = UIManager(bus, state)
    manager.close()

    bus.publish(TaskQueued(task=_task()))
    assert state.queued_count == 0
