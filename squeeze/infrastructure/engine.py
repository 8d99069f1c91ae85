from abc import ABC, abstractmethod
from squeeze.domain.models import MediaKind
from squeeze.domain.settings import AnySettings, AudioSettings, ImageSettings, VideoSettingsBase
from squeeze.infrastructure.event_bus import EventBus

class CompressionEngine(ABC):
    """External compression command.

    Each call blocks its worker thread until the job ends, publishes
    ProgressEvent(task_id=input_path, ...) on the bus while it runs, and
    returns a success message or raises EngineFailure(message).
    """

    name = "engine"

    def __init__(self, event_bus: EventBus):
        self.event_bus = event_bus

    @abstractmethod
    def compress_video(self, input_path: str, output_path: str, settings: VideoSettingsBase) -> str:
        ...

    @abstractmethod
    def compress_audio(self, input_path: str, output_path: str, settings: AudioSettings) -> str:
        ...

    @abstractmethod
    def compress_image(self, input_path: str, output_path: str, settings: ImageSettings) -> str:
        ...

    def compress(self, kind: MediaKind, input_path: str, output_path: str, settings: AnySettings) -> str:
        """Routes to the command for `kind`."""
        kind = MediaKind(kind)
        if kind is MediaKind.VIDEO:
            return self.compress_video(input_path, output_path, settings)
        if kind is MediaKind.AUDIO:
            return self.compress_audio(input_path, output_path, settings)
        return self.compress_image(input_path, output_path, settings)
