import subprocess
import json
from pathlib import Path
from typing import Any, Dict, Union

class FFprobeAdapter:
    """Wrapper around ffprobe to read container duration."""

    def __init__(self, ffprobe_path: str = "ffprobe"):
        self.ffprobe_path = ffprobe_path

    @staticmethod
    def _to_float(value: Any) -> float:
        try:
            return float(value)
        except (TypeError, ValueError):
            return 0.0

    @classmethod
    def _parse_duration_tag(cls, value: Any) -> float:
        if value is None:
            return 0.0
        text = str(value).strip()
        if not text:
            return 0.0
        try:
            return float(text)
        except ValueError:
            pass
        if ":" in text:
            parts = text.split(":")
            if len(parts) in (2, 3):
                try:
                    parts_f = [float(p) for p in parts]
                except ValueError:
                    return 0.0
                if len(parts_f) == 2:
                    minutes, seconds = parts_f
                    return minutes * 60 + seconds
                hours, minutes, seconds = parts_f
                return hours * 3600 + minutes * 60 + seconds
        return 0.0

    def probe(self, file_path: Union[str, Path]) -> Dict[str, Any]:
        """Executes ffprobe and returns its parsed JSON output."""
        cmd = [
            self.ffprobe_path,
            "-v", "quiet",
            "-print_format", "json",
            "-show_streams",
            "-show_format",
            str(file_path)
        ]

        result = subprocess.run(cmd, capture_output=True, text=True)
        if result.returncode != 0:
            raise RuntimeError(f"ffprobe failed for {file_path}: {result.stderr}")

        return json.loads(result.stdout)

    def get_duration(self, file_path: Union[str, Path]) -> float:
        """Duration in seconds: container first, then the longest stream, then tags."""
        data = self.probe(file_path)

        duration = self._to_float(data.get("format", {}).get("duration"))
        if duration > 0:
            return duration

        streams = data.get("streams", [])
        stream_durations = [self._to_float(s.get("duration")) for s in streams]
        duration = max(stream_durations, default=0.0)
        if duration > 0:
            return duration

        for stream in streams:
            duration = self._parse_duration_tag(stream.get("tags", {}).get("DURATION"))
            if duration > 0:
                return duration

        raise RuntimeError(f"ffprobe reported no duration for {file_path}")
