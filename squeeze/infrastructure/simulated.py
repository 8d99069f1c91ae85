import logging
import time
from typing import Optional
from squeeze.config.models import SimulationConfig
from squeeze.config.strategy import describe_settings
from squeeze.domain.errors import EngineFailure
from squeeze.domain.events import ProgressEvent
from squeeze.domain.models import MediaKind
from squeeze.domain.settings import AnySettings, AudioSettings, ImageSettings, VideoSettingsBase
from squeeze.infrastructure.engine import CompressionEngine
from squeeze.infrastructure.event_bus import EventBus

class SimulatedEngine(CompressionEngine):
    """Engine stand-in for --demo runs: stepped progress, no file IO.

    With `fail_message` set, every job fails halfway through with that message.
    """

    name = "simulated"

    def __init__(self, event_bus: EventBus, config: Optional[SimulationConfig] = None):
        super().__init__(event_bus)
        self.config = config or SimulationConfig()
        self.logger = logging.getLogger(__name__)

    def _simulate(self, kind: MediaKind, input_path: str, output_path: str, settings: AnySettings) -> str:
        steps = self.config.steps
        fail_at = steps // 2 if self.config.fail_message else None
        self.logger.debug(f"SIMULATE_START: {input_path} ({kind.value}, {steps} steps)")

        for step in range(steps + 1):
            if fail_at is not None and step == fail_at:
                raise EngineFailure(self.config.fail_message)
            progress = step * 100.0 / steps
            self.event_bus.publish(ProgressEvent(task_id=input_path, progress=progress))
            if step < steps and self.config.step_delay_s > 0:
                time.sleep(self.config.step_delay_s)

        return (
            f"Simulated {kind.value} compression: processed '{input_path}' to '{output_path}' "
            f"({describe_settings(settings)})"
        )

    def compress_video(self, input_path: str, output_path: str, settings: VideoSettingsBase) -> str:
        return self._simulate(MediaKind.VIDEO, input_path, output_path, settings)

    def compress_audio(self, input_path: str, output_path: str, settings: AudioSettings) -> str:
        return self._simulate(MediaKind.AUDIO, input_path, output_path, settings)

    def compress_image(self, input_path: str, output_path: str, settings: ImageSettings) -> str:
        return self._simulate(MediaKind.IMAGE, input_path, output_path, settings)
