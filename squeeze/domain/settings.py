"""Compression settings, one pydantic model per media kind and video strategy.

Video settings are a tagged union on `strategy`. Each variant carries only the
fields its encoding mode reads, so a constant-bitrate bundle has no CRF at all
and a quality bundle has no bitrate target. Switching strategy means building a
new variant (see `squeeze.config.strategy`), never toggling a tag on a shared
bag of optional fields.

Range rules (CRF 0-51, quality 0-100, positive targets) are not field
constraints: out-of-range values may sit in a bundle while it is edited and are
reported by `validate_settings()` before dispatch. Types are enforced, so a
numeric field never holds a non-numeric value.
"""

from enum import Enum
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class StrategyTag(str, Enum):
    QUALITY = "quality"
    VARIABLE_BITRATE = "variable-bitrate"
    CONSTANT_BITRATE = "constant-bitrate"
    SCALE = "scale"
    TARGET_SIZE = "target-size"


class QualityPreset(str, Enum):
    SMALL = "small"
    BALANCED = "balanced"
    HIGH = "high"


class Resolution(str, Enum):
    P480 = "480p"
    P720 = "720p"
    P1080 = "1080p"
    ORIGINAL = "original"


class AudioQuality(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class _Settings(BaseModel):
    model_config = ConfigDict(frozen=True, allow_inf_nan=False)


class VideoSettingsBase(_Settings):
    resolution: Resolution = Resolution.ORIGINAL
    audio_quality: AudioQuality = AudioQuality.MEDIUM
    custom_overrides: bool = False


class QualitySettings(VideoSettingsBase):
    strategy: Literal[StrategyTag.QUALITY] = StrategyTag.QUALITY
    preset: QualityPreset = QualityPreset.BALANCED
    resolution: Resolution = Resolution.P720
    crf: int = 23


class VariableBitrateSettings(VideoSettingsBase):
    strategy: Literal[StrategyTag.VARIABLE_BITRATE] = StrategyTag.VARIABLE_BITRATE
    crf: int = 22


class ConstantBitrateSettings(VideoSettingsBase):
    strategy: Literal[StrategyTag.CONSTANT_BITRATE] = StrategyTag.CONSTANT_BITRATE
    target_bitrate_kbps: int = 1000


class ScaleSettings(VideoSettingsBase):
    strategy: Literal[StrategyTag.SCALE] = StrategyTag.SCALE
    scale_percent: float = 50.0
    crf: Optional[int] = None  # only set through custom overrides


class TargetSizeSettings(VideoSettingsBase):
    strategy: Literal[StrategyTag.TARGET_SIZE] = StrategyTag.TARGET_SIZE
    target_size_mb: float = 100.0
    crf: Optional[int] = None  # only set through custom overrides


VideoSettings = Annotated[
    Union[
        QualitySettings,
        VariableBitrateSettings,
        ConstantBitrateSettings,
        ScaleSettings,
        TargetSizeSettings,
    ],
    Field(discriminator="strategy"),
]

VIDEO_SETTINGS_TYPES = (
    QualitySettings,
    VariableBitrateSettings,
    ConstantBitrateSettings,
    ScaleSettings,
    TargetSizeSettings,
)


class AudioSettings(_Settings):
    audio_quality: AudioQuality = AudioQuality.MEDIUM


class ImageSettings(_Settings):
    quality: int = 75


AnySettings = Union[
    QualitySettings,
    VariableBitrateSettings,
    ConstantBitrateSettings,
    ScaleSettings,
    TargetSizeSettings,
    AudioSettings,
    ImageSettings,
]
