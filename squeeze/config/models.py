from pathlib import Path
from typing import Optional
from pydantic import BaseModel, Field, field_validator
from squeeze.domain.settings import AudioQuality, QualityPreset, StrategyTag

ENGINE_NAMES = {"ffmpeg", "simulated"}

class GeneralConfig(BaseModel):
    max_workers: int = Field(default=2, gt=0)
    engine: str = "ffmpeg"
    output_suffix: str = "_compressed"
    log_path: Optional[str] = None
    log_name: str = "squeeze.log"
    debug: bool = False

    @field_validator("engine")
    @classmethod
    def validate_engine(cls, v: str) -> str:
        normalized = v.strip().lower()
        if normalized not in ENGINE_NAMES:
            raise ValueError(f"Unsupported engine: {v}. Use one of {sorted(ENGINE_NAMES)}")
        return normalized

    @field_validator("output_suffix")
    @classmethod
    def validate_output_suffix(cls, v: str) -> str:
        if not v:
            raise ValueError("output_suffix cannot be empty (output would overwrite input)")
        return v

    @field_validator("log_name")
    @classmethod
    def validate_log_name(cls, v: str) -> str:
        if not v or Path(v).name != v:
            raise ValueError(f"log_name must be a plain file name, got: {v!r} (use log_path for a full path)")
        return v

class FFmpegConfig(BaseModel):
    """Paths and codecs for the ffmpeg engine."""
    ffmpeg_path: str = "ffmpeg"
    ffprobe_path: str = "ffprobe"
    video_codec: str = "libx264"
    audio_codec: str = "aac"

class DefaultsConfig(BaseModel):
    """Starting settings offered for each media kind."""
    video_strategy: StrategyTag = StrategyTag.QUALITY
    video_preset: QualityPreset = QualityPreset.BALANCED
    audio_quality: AudioQuality = AudioQuality.MEDIUM
    image_quality: int = Field(default=75, ge=0, le=100)

class SimulationConfig(BaseModel):
    """Simulated engine (--demo) pacing."""
    steps: int = Field(default=10, ge=1)
    step_delay_s: float = Field(default=0.1, ge=0.0)
    fail_message: Optional[str] = None

class AppConfig(BaseModel):
    general: GeneralConfig = Field(default_factory=GeneralConfig)
    ffmpeg: FFmpegConfig = Field(default_factory=FFmpegConfig)
    defaults: DefaultsConfig = Field(default_factory=DefaultsConfig)
    simulation: SimulationConfig = Field(default_factory=SimulationConfig)
