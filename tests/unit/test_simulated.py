import pytest
from squeeze.config.models import SimulationConfig
from squeeze.config.strategy import select_strategy
from squeeze.domain.errors import EngineFailure
from squeeze.domain.events import ProgressEvent
from squeeze.domain.models import MediaKind
from squeeze.domain.settings import AudioSettings, ImageSettings
from squeeze.infrastructure.simulated import SimulatedEngine


@pytest.fixture
def progress(event_bus):
    received = []
    event_bus.subscribe(ProgressEvent, received.append)
    return received


def test_simulated_video_success(event_bus, progress):
    engine = SimulatedEngine(event_bus, SimulationConfig(steps=4, step_delay_s=0))
    message = engine.compress(MediaKind.VIDEO, "/a/b.mp4", "/a/b_compressed.mp4", select_strategy("quality"))

    assert [e.progress for e in progress] == [0.0, 25.0, 50.0, 75.0, 100.0]
    assert all(e.task_id == "/a/b.mp4" for e in progress)
    assert message == (
        "Simulated video compression: processed '/a/b.mp4' to '/a/b_compressed.mp4' "
        "(quality (balanced), CRF 23, 720p, audio medium)"
    )

@pytest.mark.parametrize("kind,settings,label", [
    (MediaKind.AUDIO, AudioSettings(), "audio"),
    (MediaKind.IMAGE, ImageSettings(quality=50), "image"),
])
def test_simulated_other_kinds(event_bus, progress, kind, settings, label):
    engine = SimulatedEngine(event_bus, SimulationConfig(steps=1, step_delay_s=0))
    message = engine.compress(kind, "in", "out", settings)
    assert message.startswith(f"Simulated {label} compression")
    assert [e.progress for e in progress] == [0.0, 100.0]

def test_simulated_failure(event_bus, progress):
    config = SimulationConfig(steps=4, step_delay_s=0, fail_message="ffmpeg error")
    engine = SimulatedEngine(event_bus, config)

    with pytest.raises(EngineFailure) as exc:
        engine.compress_audio("in.wav", "out.mp3", AudioSettings())

    assert exc.value.message == "ffmpeg error"
    assert [e.progress for e in progress] == [0.0, 25.0]

def test_simulated_default_config(event_bus):
    engine = SimulatedEngine(event_bus)
    assert engine.config.steps == 10
    assert engine.name == "simulated"
