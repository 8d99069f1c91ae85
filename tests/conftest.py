import threading
import pytest
import yaml
from typing import List, Optional
from squeeze.config.models import AppConfig
from squeeze.domain.errors import EngineFailure
from squeeze.domain.events import ProgressEvent
from squeeze.infrastructure.engine import CompressionEngine
from squeeze.infrastructure.event_bus import EventBus
from squeeze.pipeline.registry import TaskRegistry

# ============================================================================
# Configuration Fixtures
# ============================================================================

@pytest.fixture
def sample_config():
    """Returns a sample AppConfig object for testing."""
    return AppConfig(
        general={
            "max_workers": 2,
            "engine": "simulated",
            "output_suffix": "_compressed",
            "debug": False,
        },
        simulation={
            "steps": 4,
            "step_delay_s": 0.0,
        },
    )

@pytest.fixture
def config_yaml_path(tmp_path):
    """Creates a temporary YAML config file."""
    config_data = {
        "general": {
            "max_workers": 3,
            "engine": "simulated",
            "output_suffix": "_small",
            "debug": True,
        },
        "ffmpeg": {
            "ffmpeg_path": "/usr/local/bin/ffmpeg",
            "video_codec": "libx265",
        },
        "defaults": {
            "video_strategy": "constant-bitrate",
            "audio_quality": "high",
            "image_quality": 60,
        },
        "simulation": {
            "steps": 2,
            "step_delay_s": 0,
        },
    }

    config_file = tmp_path / "squeeze.yaml"
    with open(config_file, "w") as f:
        yaml.dump(config_data, f)

    return config_file

# ============================================================================
# Pipeline Fixtures
# ============================================================================

@pytest.fixture
def event_bus():
    """Returns a fresh EventBus instance."""
    return EventBus()

@pytest.fixture
def registry():
    """Returns an empty TaskRegistry."""
    return TaskRegistry()


class ScriptedEngine(CompressionEngine):
    """Test engine: publishes the given progress readings, then succeeds or fails.

    With a `gate`, every call blocks after publishing progress until the gate
    is set, so tests can observe tasks mid-flight.
    """

    name = "scripted"

    def __init__(self, event_bus: EventBus, progress: Optional[List[float]] = None,
                 message: str = "ok", fail_with: Optional[str] = None,
                 gate: Optional[threading.Event] = None, raise_exc: Optional[Exception] = None):
        super().__init__(event_bus)
        self.progress = progress or []
        self.message = message
        self.fail_with = fail_with
        self.gate = gate
        self.raise_exc = raise_exc
        self.calls = []
        self.started = threading.Event()

    def _work(self, kind, input_path, output_path, settings):
        self.calls.append((kind, input_path, output_path, settings))
        for value in self.progress:
            self.event_bus.publish(ProgressEvent(task_id=input_path, progress=value))
        self.started.set()
        if self.gate is not None:
            assert self.gate.wait(5.0), "gate was never released"
        if self.raise_exc is not None:
            raise self.raise_exc
        if self.fail_with is not None:
            raise EngineFailure(self.fail_with)
        return self.message

    def compress_video(self, input_path, output_path, settings):
        return self._work("video", input_path, output_path, settings)

    def compress_audio(self, input_path, output_path, settings):
        return self._work("audio", input_path, output_path, settings)

    def compress_image(self, input_path, output_path, settings):
        return self._work("image", input_path, output_path, settings)


@pytest.fixture
def scripted_engine_factory(event_bus):
    """Builds ScriptedEngine instances bound to the shared event_bus."""
    def factory(**kwargs):
        return ScriptedEngine(event_bus, **kwargs)
    return factory
