"""Bridges PROGRESS_EVENTs from the engines into the task registry.

The bridge subscribes to ProgressEvent on start and unsubscribes on stop. The
bus callback only enqueues; a single worker thread drains the queue and calls
TaskRegistry.apply_progress(). Publishers (engine worker threads) never touch
the registry directly and never block on it.
"""

import logging
import queue
import threading
from typing import Any, Dict, Optional

from pydantic import ValidationError

from squeeze.domain.events import ProgressEvent
from squeeze.infrastructure.event_bus import EventBus
from squeeze.pipeline.registry import TaskRegistry

_STOP = object()


class ProgressBridge:
    """Scoped PROGRESS_EVENT subscription.

    Use as a context manager::

        with ProgressBridge(bus, registry):
            ...  # events published on `bus` reach `registry`
    """

    def __init__(self, event_bus: EventBus, registry: TaskRegistry):
        self.event_bus = event_bus
        self.registry = registry
        self.logger = logging.getLogger(__name__)
        self._queue: "queue.Queue[Any]" = queue.Queue()
        self._worker: Optional[threading.Thread] = None
        self._state_lock = threading.Lock()
        self.applied_count = 0
        self.dropped_count = 0

    @property
    def running(self) -> bool:
        return self._worker is not None and self._worker.is_alive()

    def start(self) -> "ProgressBridge":
        with self._state_lock:
            if self._worker is not None:
                raise RuntimeError("ProgressBridge already started")
            self.event_bus.subscribe(ProgressEvent, self._enqueue)
            self._worker = threading.Thread(
                target=self._run, name="progress-bridge", daemon=True
            )
            self._worker.start()
        self.logger.debug("PROGRESS_BRIDGE: subscribed")
        return self

    def stop(self, timeout: Optional[float] = 5.0):
        """Unsubscribes, applies whatever is already queued, then joins the worker."""
        with self._state_lock:
            worker = self._worker
            if worker is None:
                return
            self.event_bus.unsubscribe(ProgressEvent, self._enqueue)
            self._queue.put(_STOP)
        worker.join(timeout)
        with self._state_lock:
            self._worker = None
        self.logger.debug(
            f"PROGRESS_BRIDGE: stopped (applied={self.applied_count}, dropped={self.dropped_count})"
        )

    def __enter__(self) -> "ProgressBridge":
        return self.start()

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.stop()
        return False

    def feed(self, payload: Dict[str, Any]) -> bool:
        """Queues a raw `{task_id, progress}` payload. Malformed payloads are dropped."""
        try:
            event = ProgressEvent.model_validate(payload)
        except ValidationError as exc:
            self.logger.warning(f"PROGRESS_MALFORMED: {payload!r} ({exc.error_count()} error(s))")
            return False
        self._enqueue(event)
        return True

    def flush(self):
        """Blocks until every event queued so far has been applied or dropped."""
        self._queue.join()

    def _enqueue(self, event: ProgressEvent):
        self._queue.put(event)

    def _run(self):
        while True:
            item = self._queue.get()
            try:
                if item is _STOP:
                    return
                if self.registry.apply_progress(item.task_id, item.progress):
                    self.applied_count += 1
                else:
                    self.dropped_count += 1
            except Exception:
                self.logger.exception(f"PROGRESS_BRIDGE: failed to apply {item!r}")
            finally:
                self._queue.task_done()
