"""Strategy selection, field edits and pre-dispatch validation for settings."""

from __future__ import annotations

import logging
import math
from typing import Any, Dict, List, Optional, Tuple, Union

from pydantic import ValidationError

from squeeze.config.models import DefaultsConfig
from squeeze.domain.errors import SettingsValidationError
from squeeze.domain.models import MediaKind
from squeeze.domain.settings import (
    VIDEO_SETTINGS_TYPES,
    AnySettings,
    AudioQuality,
    AudioSettings,
    ConstantBitrateSettings,
    ImageSettings,
    QualityPreset,
    QualitySettings,
    Resolution,
    ScaleSettings,
    StrategyTag,
    TargetSizeSettings,
    VariableBitrateSettings,
    VideoSettingsBase,
)

logger = logging.getLogger(__name__)

CRF_MIN = 0
CRF_MAX = 51
IMAGE_QUALITY_MIN = 0
IMAGE_QUALITY_MAX = 100

QUALITY_PRESETS: Dict[QualityPreset, Tuple[Resolution, int, AudioQuality]] = {
    QualityPreset.SMALL: (Resolution.P480, 28, AudioQuality.LOW),
    QualityPreset.BALANCED: (Resolution.P720, 23, AudioQuality.MEDIUM),
    QualityPreset.HIGH: (Resolution.P1080, 18, AudioQuality.HIGH),
}

# Video fields the user may only touch with custom_overrides on.
OVERRIDE_FIELDS = frozenset({"resolution", "crf", "audio_quality"})

# Fields changed only through select_strategy()/select_preset().
_SELECTOR_FIELDS = frozenset({"strategy", "preset"})

_KIND_SETTINGS = {
    MediaKind.VIDEO: VIDEO_SETTINGS_TYPES,
    MediaKind.AUDIO: (AudioSettings,),
    MediaKind.IMAGE: (ImageSettings,),
}


def _normalize_key(key: str) -> str:
    return str(key).strip().replace("-", "_")


def select_strategy(
    tag: Union[StrategyTag, str],
    current: Optional[VideoSettingsBase] = None,
    preset: Optional[Union[QualityPreset, str]] = None,
) -> VideoSettingsBase:
    """Returns fresh video settings for `tag` with that strategy's defaults.

    Fields of the previous strategy are dropped and custom overrides are
    switched off. For the quality strategy the preset defaults to the current
    one (when `current` is already a quality bundle) or balanced.
    """
    try:
        tag = StrategyTag(tag)
    except ValueError:
        raise ValueError(
            f"Unknown strategy '{tag}'. Use one of {[t.value for t in StrategyTag]}."
        ) from None

    if tag is StrategyTag.QUALITY:
        if preset is None:
            preset = current.preset if isinstance(current, QualitySettings) else QualityPreset.BALANCED
        try:
            preset = QualityPreset(preset)
        except ValueError:
            raise ValueError(
                f"Unknown preset '{preset}'. Use one of {[p.value for p in QualityPreset]}."
            ) from None
        resolution, crf, audio_quality = QUALITY_PRESETS[preset]
        new: VideoSettingsBase = QualitySettings(
            preset=preset, resolution=resolution, crf=crf, audio_quality=audio_quality
        )
    elif tag is StrategyTag.VARIABLE_BITRATE:
        new = VariableBitrateSettings()
    elif tag is StrategyTag.CONSTANT_BITRATE:
        new = ConstantBitrateSettings()
    elif tag is StrategyTag.SCALE:
        new = ScaleSettings()
    else:
        new = TargetSizeSettings()

    previous = getattr(current, "strategy", None)
    if previous is not None and previous is not tag:
        logger.debug(f"STRATEGY: {previous.value} -> {tag.value}")
    return new


def select_preset(
    preset: Union[QualityPreset, str], current: Optional[VideoSettingsBase] = None
) -> VideoSettingsBase:
    return select_strategy(StrategyTag.QUALITY, current, preset=preset)


def is_field_editable(key: str, settings: AnySettings) -> bool:
    """Whether set_field() would accept a change to `key` on these settings."""
    key = _normalize_key(key)
    if key in _SELECTOR_FIELDS or key not in type(settings).model_fields:
        return False
    if isinstance(settings, VideoSettingsBase) and key in OVERRIDE_FIELDS:
        # ConstantBitrateSettings has no crf field, so it never gets here for crf.
        return settings.custom_overrides
    return True


def set_field(key: str, value: Any, current: AnySettings) -> AnySettings:
    """Returns settings with one field changed, or `current` if the edit is refused.

    Refused edits: fields the active variant does not carry (CRF under
    constant-bitrate included), override-gated video fields while custom
    overrides are off, and values that do not parse as the field's type.
    """
    key = _normalize_key(key)
    if not is_field_editable(key, current):
        logger.debug(f"SETTINGS_LOCKED: {key} on {type(current).__name__}")
        return current

    if isinstance(value, str):
        value = value.strip()

    candidate = current.model_dump()
    candidate[key] = value
    try:
        return type(current).model_validate(candidate)
    except ValidationError as exc:
        logger.warning(f"SETTINGS_REJECTED: {key}={value!r} ({exc.error_count()} error(s))")
        return current


def collect_issues(kind: Union[MediaKind, str], settings: Any) -> List[str]:
    """Lists every rule the settings break for the given media kind."""
    kind = MediaKind(kind)
    expected = _KIND_SETTINGS[kind]
    if not isinstance(settings, expected):
        return [f"{type(settings).__name__} cannot be used for {kind.value} jobs"]

    issues: List[str] = []
    crf = getattr(settings, "crf", None)
    if crf is not None and not (CRF_MIN <= crf <= CRF_MAX):
        issues.append(f"crf must be between {CRF_MIN} and {CRF_MAX} (got {crf})")

    if isinstance(settings, ImageSettings):
        if not (IMAGE_QUALITY_MIN <= settings.quality <= IMAGE_QUALITY_MAX):
            issues.append(
                f"quality must be between {IMAGE_QUALITY_MIN} and {IMAGE_QUALITY_MAX} (got {settings.quality})"
            )
    elif isinstance(settings, ScaleSettings):
        if not settings.scale_percent > 0:
            issues.append(f"scale_percent must be > 0 (got {settings.scale_percent})")
    elif isinstance(settings, TargetSizeSettings):
        if not settings.target_size_mb > 0:
            issues.append(f"target_size_mb must be > 0 (got {settings.target_size_mb})")
    elif isinstance(settings, ConstantBitrateSettings):
        if not settings.target_bitrate_kbps > 0:
            issues.append(f"target_bitrate_kbps must be > 0 (got {settings.target_bitrate_kbps})")
    return issues


def validate_settings(kind: Union[MediaKind, str], settings: Any) -> AnySettings:
    """Returns the settings unchanged, or raises SettingsValidationError."""
    issues = collect_issues(kind, settings)
    if issues:
        raise SettingsValidationError(issues)
    return settings


def default_settings(
    kind: Union[MediaKind, str], defaults: Optional[DefaultsConfig] = None
) -> AnySettings:
    """Starting settings for a media kind, taken from the config defaults."""
    kind = MediaKind(kind)
    defaults = defaults or DefaultsConfig()
    if kind is MediaKind.VIDEO:
        return select_strategy(defaults.video_strategy, preset=defaults.video_preset)
    if kind is MediaKind.AUDIO:
        return AudioSettings(audio_quality=defaults.audio_quality)
    return ImageSettings(quality=defaults.image_quality)


def _format_number(value: float) -> str:
    if math.isfinite(value) and float(value).is_integer():
        return str(int(value))
    return f"{value:.2f}".rstrip("0").rstrip(".")


def describe_settings(settings: AnySettings) -> str:
    """One-line summary used in logs and the CLI header."""
    if isinstance(settings, ImageSettings):
        return f"image quality {settings.quality}"
    if isinstance(settings, AudioSettings):
        return f"audio {settings.audio_quality.value}"

    parts = [settings.strategy.value]
    if isinstance(settings, QualitySettings):
        parts[0] = f"quality ({settings.preset.value})"
    elif isinstance(settings, ConstantBitrateSettings):
        parts.append(f"{settings.target_bitrate_kbps} kbps")
    elif isinstance(settings, ScaleSettings):
        parts.append(f"{_format_number(settings.scale_percent)}%")
    elif isinstance(settings, TargetSizeSettings):
        parts.append(f"{_format_number(settings.target_size_mb)} MB")

    crf = getattr(settings, "crf", None)
    if crf is not None:
        parts.append(f"CRF {crf}")
    parts.append(settings.resolution.value)
    parts.append(f"audio {settings.audio_quality.value}")
    if settings.custom_overrides:
        parts.append("custom")
    return ", ".join(parts)
