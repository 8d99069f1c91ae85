import io

from rich.console import Console

from squeeze.domain.models import MediaKind
from squeeze.pipeline.registry import TaskRegistry
from squeeze.ui.dashboard import TaskDashboard, truncate_error
from squeeze.ui.state import UIState


def _console():
    return Console(file=io.StringIO(), width=300, record=True, color_system=None)


def _render(dashboard):
    dashboard.console.print(dashboard.create_display())
    return dashboard.console.export_text()


def test_truncate_error():
    assert truncate_error(None) == ""
    assert truncate_error("short") == "short"
    message = "x" * 150
    assert truncate_error(message) == "x" * 100 + "..."
    assert truncate_error("y" * 100) == "y" * 100

def test_dashboard_format_helpers():
    dashboard = TaskDashboard(TaskRegistry(), UIState(), console=_console())
    assert dashboard.format_elapsed(None) == "--:--"
    assert dashboard.format_elapsed(59) == "59s"
    assert dashboard.format_elapsed(61) == "01m 01s"
    assert dashboard.format_elapsed(3661) == "1h 01m"
    assert dashboard._sanitize_filename("/a/b/clip.mp4") == "clip.mp4"
    long_name = "/a/" + "n" * 60 + ".mp4"
    shortened = dashboard._sanitize_filename(long_name, max_len=21)
    assert len(shortened) == 21
    assert "…" in shortened

def test_dashboard_renders_tasks():
    registry = TaskRegistry()
    registry.create("/v/done.mp4", MediaKind.VIDEO, "/v/done.mp4", "/v/done_c.mp4")
    registry.create("/v/bad.mp4", MediaKind.VIDEO, "/v/bad.mp4", "/v/bad_c.mp4")
    registry.create("/v/run.wav", MediaKind.AUDIO, "/v/run.wav", "/v/run_c.wav")
    registry.mark_completed("/v/done.mp4", "Compressed to /v/done_c.mp4")
    registry.mark_failed("/v/bad.mp4", "E" * 150)
    registry.apply_progress("/v/run.wav", 42.5)

    state = UIState()
    state.settings_summary = "video: quality (balanced)"
    text = _render(TaskDashboard(registry, state, console=_console()))

    assert "done.mp4" in text
    assert "completed" in text
    assert "failed" in text
    assert "compressing" in text
    assert "42.5%" in text
    assert "E" * 100 + "..." in text
    assert "E" * 101 not in text
    assert "video: quality (balanced)" in text

def test_dashboard_context_manager():
    registry = TaskRegistry()
    dashboard = TaskDashboard(registry, UIState(), console=_console(), refresh_interval=0.01)
    with dashboard as running:
        assert running is dashboard
        registry.create("/a.mp4", MediaKind.VIDEO, "/a.mp4", "/b.mp4")
    assert dashboard._live is None
    assert not dashboard._refresh_thread.is_alive()

def test_dashboard_activity_feed_lists_finished_tasks():
    registry = TaskRegistry()
    state = UIState()
    dashboard = TaskDashboard(registry, state, console=_console())
    assert "ACTIVITY FEED" not in _render(dashboard)

    for key in ("/v/ok.mp4", "/v/broken.mp4"):
        state.add_queued_task(registry.create(key, MediaKind.VIDEO, key, key + ".out"))
    registry.mark_completed("/v/ok.mp4", "Compressed to /v/ok.mp4.out")
    registry.mark_failed("/v/broken.mp4", "F" * 90)
    state.add_completed_task(registry.get("/v/ok.mp4"))
    state.add_failed_task(registry.get("/v/broken.mp4"))

    text = _render(TaskDashboard(registry, state, console=_console()))
    assert "ACTIVITY FEED" in text
    assert "✓ ok.mp4" in text
    assert "✗ broken.mp4" in text
    assert "F" * 60 + "..." in text
    assert "finished 2/2" in text
