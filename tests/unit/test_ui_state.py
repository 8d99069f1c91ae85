from datetime import datetime, timedelta
from squeeze.domain.models import MediaKind, Task
from squeeze.ui.state import UIState

def _task(name="a.mp4"):
    return Task(id=name, input_path=name, output_path=f"out_{name}", kind=MediaKind.VIDEO)

def test_counters():
    state = UIState()
    state.add_queued_task(_task())
    state.add_queued_task(_task("b.mp4"))
    state.add_completed_task(_task())
    state.add_failed_task(_task("b.mp4"))
    state.add_rejected()

    assert state.queued_count == 2
    assert state.completed_count == 1
    assert state.failed_count == 1
    assert state.rejected_count == 1
    assert state.finished_count == 2
    assert [t.id for t in state.recent_tasks] == ["b.mp4", "a.mp4"]
    assert state.processing_start_time is not None

def test_recent_tasks_bounded_newest_first():
    state = UIState(activity_feed_max_items=2)
    for name in ["1", "2", "3"]:
        state.add_completed_task(_task(name))
    assert [t.id for t in state.recent_tasks] == ["3", "2"]

def test_last_action_expires():
    state = UIState()
    state.set_last_action("Queued: a.mp4")
    assert state.get_last_action() == "Queued: a.mp4"

    state.last_action_time = datetime.now() - timedelta(seconds=61)
    assert state.get_last_action() == ""
    assert state.last_action_time is None
