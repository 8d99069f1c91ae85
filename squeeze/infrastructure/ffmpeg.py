import subprocess
import re
import logging
import time
from collections import deque
from pathlib import Path
from typing import Deque, List, Optional
from squeeze.config.models import FFmpegConfig
from squeeze.domain.errors import EngineFailure
from squeeze.domain.events import ProgressEvent
from squeeze.domain.settings import (
    AudioQuality,
    AudioSettings,
    ConstantBitrateSettings,
    ImageSettings,
    QualityPreset,
    QualitySettings,
    Resolution,
    ScaleSettings,
    TargetSizeSettings,
    VideoSettingsBase,
)
from squeeze.infrastructure.engine import CompressionEngine
from squeeze.infrastructure.event_bus import EventBus
from squeeze.infrastructure.ffprobe import FFprobeAdapter

RESOLUTION_SCALE = {
    Resolution.P480: "854:480",
    Resolution.P720: "1280:720",
    Resolution.P1080: "1920:1080",
}

AUDIO_BITRATE_KBPS = {
    AudioQuality.LOW: 96,
    AudioQuality.MEDIUM: 128,
    AudioQuality.HIGH: 192,
}

PRESET_SPEED = {
    QualityPreset.SMALL: "fast",
    QualityPreset.BALANCED: "medium",
    QualityPreset.HIGH: "slow",
}

MIN_TARGET_VIDEO_KBPS = 100
ERROR_TAIL_LINES = 20

# 'Duration: 00:00:20.02, start: ...' and 'time=00:00:09.96' from ffmpeg stderr
DURATION_REGEX = re.compile(r"Duration:\s*(\d+):(\d+):(\d+(?:\.\d+)?)")
TIME_REGEX = re.compile(r"time=(\d+):(\d+):(\d+(?:\.\d+)?)")


def _hms_to_seconds(match: "re.Match[str]") -> float:
    h, m, s = map(float, match.groups())
    return h * 3600 + m * 60 + s


def parse_duration(line: str) -> Optional[float]:
    match = DURATION_REGEX.search(line)
    return _hms_to_seconds(match) if match else None


def parse_time(line: str) -> Optional[float]:
    match = TIME_REGEX.search(line)
    return _hms_to_seconds(match) if match else None


def target_video_kbps(target_size_mb: float, duration_s: float, audio_kbps: int) -> int:
    """Video bitrate that lands the whole file near target_size_mb."""
    if duration_s <= 0:
        raise ValueError("Duration must be > 0 to compute a target bitrate.")
    total_kbps = target_size_mb * 8192.0 / duration_s
    return max(MIN_TARGET_VIDEO_KBPS, int(total_kbps - audio_kbps))


def format_size(size: int) -> str:
    size_f = float(size)
    for unit in ["B", "KB", "MB", "GB"]:
        if size_f < 1024.0:
            return f"{size_f:.1f}{unit}"
        size_f /= 1024.0
    return f"{size_f:.1f}TB"


def _file_size(path: str) -> Optional[int]:
    try:
        return Path(path).stat().st_size
    except OSError:
        return None


def describe_size_change(input_size: Optional[int], output_size: Optional[int]) -> str:
    if not input_size or output_size is None:
        return "size change unknown"
    change = (output_size - input_size) / input_size * 100.0
    if change > 0:
        return f"{change:.2f}% larger than the original"
    if change < 0:
        return f"{-change:.2f}% smaller than the original"
    return "same size as the original"


class FFmpegEngine(CompressionEngine):
    """Compression engine that shells out to ffmpeg."""

    name = "ffmpeg"

    def __init__(self, event_bus: EventBus, config: Optional[FFmpegConfig] = None, ffprobe: Optional[FFprobeAdapter] = None):
        super().__init__(event_bus)
        self.config = config or FFmpegConfig()
        self.ffprobe = ffprobe or FFprobeAdapter(self.config.ffprobe_path)
        self.logger = logging.getLogger(__name__)

    # ── command construction ──────────────────────────────────────────────────

    def _base_command(self, input_path: str) -> List[str]:
        return [self.config.ffmpeg_path, "-y", "-hide_banner", "-i", str(input_path)]

    def _video_rate_args(self, settings: VideoSettingsBase, duration_s: Optional[float]) -> List[str]:
        if isinstance(settings, QualitySettings):
            return ["-crf", str(settings.crf), "-preset", PRESET_SPEED[settings.preset]]
        if isinstance(settings, ConstantBitrateSettings):
            kbps = settings.target_bitrate_kbps
            return [
                "-b:v", f"{kbps}k",
                "-minrate", f"{kbps}k",
                "-maxrate", f"{kbps}k",
                "-bufsize", f"{kbps * 2}k",
            ]
        if isinstance(settings, TargetSizeSettings):
            audio_kbps = AUDIO_BITRATE_KBPS[settings.audio_quality]
            kbps = target_video_kbps(settings.target_size_mb, duration_s or 0.0, audio_kbps)
            if settings.crf is not None:
                # Capped CRF: quality target, bitrate ceiling from the size budget
                return ["-crf", str(settings.crf), "-maxrate", f"{kbps}k", "-bufsize", f"{kbps * 2}k"]
            return ["-b:v", f"{kbps}k", "-maxrate", f"{kbps}k", "-bufsize", f"{kbps * 2}k"]

        # variable-bitrate, scale
        crf = getattr(settings, "crf", None)
        args = ["-preset", "medium"]
        if crf is not None:
            args = ["-crf", str(crf)] + args
        return args

    def _video_filter_args(self, settings: VideoSettingsBase) -> List[str]:
        # Resolution only applies as a custom override; presets keep the source size
        if settings.custom_overrides and settings.resolution in RESOLUTION_SCALE:
            return ["-vf", f"scale={RESOLUTION_SCALE[settings.resolution]}"]
        if isinstance(settings, ScaleSettings):
            factor = settings.scale_percent / 100.0
            return ["-vf", f"scale=trunc(iw*{factor:g}/2)*2:-2"]
        return []

    def _build_video_command(self, input_path: str, output_path: str, settings: VideoSettingsBase, duration_s: Optional[float] = None) -> List[str]:
        """Constructs the ffmpeg command line arguments for a video job."""
        cmd = self._base_command(input_path)
        cmd.extend(["-c:v", self.config.video_codec])
        cmd.extend(self._video_rate_args(settings, duration_s))
        cmd.extend(self._video_filter_args(settings))
        cmd.extend([
            "-c:a", self.config.audio_codec,
            "-b:a", f"{AUDIO_BITRATE_KBPS[settings.audio_quality]}k",
        ])
        cmd.append(str(output_path))
        return cmd

    def _build_audio_command(self, input_path: str, output_path: str, settings: AudioSettings) -> List[str]:
        """Constructs the ffmpeg command line arguments for an audio-only job."""
        suffix = Path(output_path).suffix.lower()
        if suffix == ".mp3":
            codec = "libmp3lame"
        elif suffix in (".ogg", ".opus"):
            codec = "libopus"
        else:
            codec = self.config.audio_codec
        cmd = self._base_command(input_path)
        cmd.extend([
            "-vn",
            "-c:a", codec,
            "-b:a", f"{AUDIO_BITRATE_KBPS[settings.audio_quality]}k",
            str(output_path),
        ])
        return cmd

    def _build_image_command(self, input_path: str, output_path: str, settings: ImageSettings) -> List[str]:
        """Constructs the ffmpeg command line arguments for a still image."""
        quality = settings.quality
        suffix = Path(output_path).suffix.lower()
        cmd = self._base_command(input_path)
        if suffix == ".webp":
            cmd.extend(["-c:v", "libwebp", "-quality", str(quality)])
        elif suffix == ".png":
            # PNG is lossless: lower quality buys more compression effort
            cmd.extend(["-compression_level", str(round((100 - quality) * 9 / 100))])
        else:
            # JPEG-style qscale, 2 (best) .. 31 (worst)
            cmd.extend(["-q:v", str(round(31 - quality * 29 / 100))])
        cmd.extend(["-frames:v", "1", str(output_path)])
        return cmd

    # ── execution ─────────────────────────────────────────────────────────────

    def _publish_progress(self, task_id: str, progress: float):
        self.event_bus.publish(ProgressEvent(task_id=task_id, progress=min(100.0, progress)))

    def _stop_process(self, process: subprocess.Popen, filename: str):
        self.logger.warning(f"FFMPEG_ABORTED: {filename} (terminating child process)")
        process.terminate()
        try:
            process.wait(timeout=3)
        except subprocess.TimeoutExpired:
            process.kill()
            process.wait()

    def _run(self, task_id: str, cmd: List[str], total_duration: Optional[float] = None) -> None:
        """Runs ffmpeg, publishing progress; raises EngineFailure on a non-zero exit."""
        filename = Path(task_id).name
        start_time = time.monotonic()
        self.logger.debug(f"FFMPEG_CMD: {' '.join(cmd)}")

        try:
            process = subprocess.Popen(
                cmd,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                universal_newlines=True,
                errors="replace",
                bufsize=1
            )
        except OSError as exc:
            raise EngineFailure(f"Cannot start ffmpeg ({cmd[0]}): {exc}") from exc

        tail: Deque[str] = deque(maxlen=ERROR_TAIL_LINES)
        duration = total_duration if total_duration and total_duration > 0 else None
        exited = False

        try:
            if process.stdout is not None:
                for line in process.stdout:
                    line = line.rstrip()
                    tail.append(line)
                    if duration is None:
                        # single-frame inputs report 'Duration: 00:00:00.00'
                        parsed = parse_duration(line)
                        if parsed is not None and parsed > 0:
                            duration = parsed
                        continue
                    current = parse_time(line)
                    if current is not None:
                        self._publish_progress(task_id, current / duration * 100.0)
            process.wait()
            exited = True
        finally:
            if not exited:
                self._stop_process(process, filename)

        elapsed = time.monotonic() - start_time

        if process.returncode != 0:
            self.logger.info(f"FFMPEG_END: {filename} status=failed code={process.returncode} elapsed={elapsed:.2f}s")
            details = "\n".join(tail)
            message = f"ffmpeg exited with code {process.returncode}"
            raise EngineFailure(f"{message}: {details}" if details else message)

        self._publish_progress(task_id, 100.0)
        self.logger.info(f"FFMPEG_END: {filename} status=completed elapsed={elapsed:.2f}s")

    def _success_message(self, input_path: str, output_path: str) -> str:
        input_size = _file_size(input_path)
        output_size = _file_size(output_path)
        size_text = format_size(output_size) if output_size is not None else "unknown size"
        return f"Compressed to {output_path} ({size_text}, {describe_size_change(input_size, output_size)})"

    def compress_video(self, input_path: str, output_path: str, settings: VideoSettingsBase) -> str:
        duration = None
        if isinstance(settings, TargetSizeSettings):
            try:
                duration = self.ffprobe.get_duration(input_path)
            except (RuntimeError, OSError, ValueError) as exc:
                raise EngineFailure(f"Cannot compute target bitrate for {input_path}: {exc}") from exc
        cmd = self._build_video_command(input_path, output_path, settings, duration_s=duration)
        self._run(input_path, cmd, total_duration=duration)
        return self._success_message(input_path, output_path)

    def compress_audio(self, input_path: str, output_path: str, settings: AudioSettings) -> str:
        cmd = self._build_audio_command(input_path, output_path, settings)
        self._run(input_path, cmd)
        return self._success_message(input_path, output_path)

    def compress_image(self, input_path: str, output_path: str, settings: ImageSettings) -> str:
        self._publish_progress(input_path, 0.0)
        cmd = self._build_image_command(input_path, output_path, settings)
        self._run(input_path, cmd)
        return self._success_message(input_path, output_path)
