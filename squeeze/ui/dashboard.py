import logging
import threading
import time
from datetime import datetime
from pathlib import Path
from typing import Optional

from rich.console import Console, Group
from rich.live import Live
from rich.panel import Panel
from rich.table import Table

from squeeze.domain.models import Task, TaskStatus
from squeeze.pipeline.registry import TaskRegistry
from squeeze.ui.state import UIState

ERROR_DISPLAY_MAX = 100

STATUS_STYLES = {
    TaskStatus.PENDING: "dim",
    TaskStatus.COMPRESSING: "cyan",
    TaskStatus.FINISHING: "blue",
    TaskStatus.COMPLETED: "green",
    TaskStatus.FAILED: "red",
}


def truncate_error(message: Optional[str], max_len: int = ERROR_DISPLAY_MAX) -> str:
    """Shortens an engine message for display; the task keeps the full text."""
    if not message:
        return ""
    if len(message) <= max_len:
        return message
    return message[:max_len] + "..."


class TaskDashboard:
    """Live task table: one row per registered task, in submission order."""

    def __init__(self, registry: TaskRegistry, state: UIState, console: Optional[Console] = None, refresh_interval: float = 0.25):
        self.registry = registry
        self.state = state
        self.console = console or Console()
        self.refresh_interval = refresh_interval
        self.logger = logging.getLogger(__name__)
        self._live: Optional[Live] = None
        self._refresh_thread: Optional[threading.Thread] = None
        self._stop_refresh = threading.Event()
        self._ui_lock = threading.Lock()

    # --- Formatters ---

    def format_elapsed(self, seconds: Optional[float]) -> str:
        """Format time: 59s, 01m 01s, 1h 01m."""
        if seconds is None:
            return "--:--"
        if seconds < 60:
            return f"{int(seconds)}s"
        if seconds < 3600:
            return f"{int(seconds // 60):02d}m {int(seconds % 60):02d}s"
        return f"{int(seconds // 3600)}h {int((seconds % 3600) // 60):02d}m"

    def _sanitize_filename(self, path: str, max_len: int = 40) -> str:
        """Truncate long names as prefix…suffix."""
        filename = Path(path).name or path
        if len(filename) <= max_len:
            return filename
        part_len = (max_len - 1) // 2
        return f"{filename[:part_len]}…{filename[-part_len:]}"

    def _task_detail(self, task: Task) -> str:
        if task.status is TaskStatus.FAILED:
            return f"[red]{truncate_error(task.error)}[/]"
        if task.status is TaskStatus.COMPLETED:
            return f"[dim]{task.message or ''}[/]"
        return ""

    # --- Render Logic ---

    def _render_header(self) -> Panel:
        with self.state._lock:
            started = self.state.processing_start_time
            elapsed = (datetime.now() - started).total_seconds() if started else None
            line = (
                f"queued [bold]{self.state.queued_count}[/]  "
                f"finished [bold]{self.state.finished_count}/{self.state.queued_count}[/]  "
                f"done [green]{self.state.completed_count}[/]  "
                f"failed [red]{self.state.failed_count}[/]  "
                f"skipped [yellow]{self.state.rejected_count}[/]  "
                f"active [cyan]{self.registry.active_count()}[/]  "
                f"elapsed {self.format_elapsed(elapsed)}"
            )
            if self.state.settings_summary:
                line = f"{self.state.settings_summary}\n{line}"
            last_action = self.state.get_last_action()
        if last_action:
            line = f"{line}\n[dim]{last_action}[/]"
        return Panel(line, title=self.state.ui_title, border_style="cyan")

    def _render_tasks(self) -> Table:
        table = Table(expand=True, box=None, header_style="bold")
        table.add_column("File", ratio=2, no_wrap=True)
        table.add_column("Kind", width=6)
        table.add_column("Status", width=12)
        table.add_column("Progress", justify="right", width=8)
        table.add_column("Details", ratio=3)

        for task in self.registry.snapshot():
            style = STATUS_STYLES.get(task.status, "")
            table.add_row(
                self._sanitize_filename(task.input_path),
                task.kind.value,
                f"[{style}]{task.status.value}[/]" if style else task.status.value,
                f"{task.progress:5.1f}%",
                self._task_detail(task),
            )
        return table

    def _render_activity_item(self, task: Task) -> str:
        name = self._sanitize_filename(task.input_path)
        if task.status is TaskStatus.FAILED:
            return f"[red]✗[/] {name}  [red]{truncate_error(task.error, 60)}[/]"
        return f"[green]✓[/] {name}  [dim]{task.message or ''}[/]"

    def _render_activity(self) -> Optional[Panel]:
        with self.state._lock:
            tasks = list(self.state.recent_tasks)
        if not tasks:
            return None
        lines = "\n".join(self._render_activity_item(task) for task in tasks)
        return Panel(lines, title="ACTIVITY FEED", border_style="cyan")

    def create_display(self):
        parts = [self._render_header(), Panel(self._render_tasks(), title="TASKS", border_style="cyan")]
        activity = self._render_activity()
        if activity is not None:
            parts.append(activity)
        return Group(*parts)

    def _refresh_loop(self):
        while not self._stop_refresh.is_set():
            if self._live:
                try:
                    display = self.create_display()
                    with self._ui_lock:
                        self._live.update(display)
                except Exception:
                    self.logger.debug("UI: refresh failed", exc_info=True)
            time.sleep(self.refresh_interval)

    def start(self):
        self._live = Live(self.create_display(), console=self.console, refresh_per_second=4)
        self._live.start()
        self._stop_refresh.clear()
        self._refresh_thread = threading.Thread(target=self._refresh_loop, daemon=True)
        self._refresh_thread.start()
        return self

    def stop(self):
        self._stop_refresh.set()
        if self._refresh_thread:
            self._refresh_thread.join(timeout=1.0)
        if self._live:
            # Final frame shows every task in its last state
            with self._ui_lock:
                self._live.update(self.create_display())
            self._live.stop()
            self._live = None

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.stop()
        return False
