import pytest
import json
from pathlib import Path
from unittest.mock import patch
from squeeze.infrastructure.ffprobe import FFprobeAdapter

def _mock_run(mock_run, payload, returncode=0):
    mock_run.return_value.stdout = json.dumps(payload)
    mock_run.return_value.returncode = returncode
    mock_run.return_value.stderr = ""

def test_ffprobe_duration_from_format():
    with patch("subprocess.run") as mock_run:
        _mock_run(mock_run, {"streams": [], "format": {"duration": "10.0"}})

        adapter = FFprobeAdapter()
        assert adapter.get_duration(Path("test.mp4")) == 10.0

        cmd = mock_run.call_args.args[0]
        assert cmd[0] == "ffprobe"
        assert cmd[-1] == "test.mp4"

def test_ffprobe_custom_binary():
    with patch("subprocess.run") as mock_run:
        _mock_run(mock_run, {"format": {"duration": "1"}})
        FFprobeAdapter("/opt/bin/ffprobe").get_duration("a.mp4")
        assert mock_run.call_args.args[0][0] == "/opt/bin/ffprobe"

def test_ffprobe_error():
    with patch("subprocess.run") as mock_run:
        mock_run.return_value.returncode = 1
        mock_run.return_value.stderr = "error"

        adapter = FFprobeAdapter()
        with pytest.raises(RuntimeError):
            adapter.get_duration(Path("test.mp4"))

def test_ffprobe_duration_fallback_from_streams():
    payload = {
        "streams": [{"duration": "4.5"}, {"duration": "12.25"}, {"duration": "N/A"}],
        "format": {"duration": "N/A"},
    }
    with patch("subprocess.run") as mock_run:
        _mock_run(mock_run, payload)
        assert FFprobeAdapter().get_duration("a.mkv") == 12.25

def test_ffprobe_duration_fallback_from_tags():
    payload = {
        "streams": [{"codec_type": "video", "tags": {"DURATION": "00:01:02.500000000"}}],
        "format": {},
    }
    with patch("subprocess.run") as mock_run:
        _mock_run(mock_run, payload)
        assert FFprobeAdapter().get_duration("a.mkv") == pytest.approx(62.5)

def test_ffprobe_no_duration_raises():
    with patch("subprocess.run") as mock_run:
        _mock_run(mock_run, {"streams": [{"codec_type": "video"}], "format": {}})
        with pytest.raises(RuntimeError, match="no duration"):
            FFprobeAdapter().get_duration("a.mkv")

@pytest.mark.parametrize("value,expected", [
    (None, 0.0),
    ("", 0.0),
    ("15", 15.0),
    ("01:30", 90.0),
    ("1:00:00", 3600.0),
    ("bogus", 0.0),
])
def test_parse_duration_tag(value, expected):
    assert FFprobeAdapter._parse_duration_tag(value) == expected
