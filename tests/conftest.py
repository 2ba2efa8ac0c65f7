"""Shared test fixtures for cliptimeline tests."""

import subprocess

import pytest
import imageio_ffmpeg
from PIL import Image

_FFMPEG = imageio_ffmpeg.get_ffmpeg_exe()


def _make_video(out, color):
    subprocess.run(
        [
            _FFMPEG, "-y",
            "-f", "lavfi", "-i", f"color=c={color}:s=320x240:d=5:r=10",
            "-f", "lavfi", "-i", "anullsrc=r=44100:cl=mono",
            "-shortest",
            "-c:v", "libx264", "-crf", "28", "-pix_fmt", "yuv420p",
            "-c:a", "aac", "-b:a", "32k",
            str(out),
        ],
        check=True,
        capture_output=True,
    )
    return out


@pytest.fixture
def source_video(tmp_path):
    """Create a 5-second test video (320x240, 10fps) with silent audio.

    Shared across test_export.py, test_media.py and test_main.py.
    """
    return _make_video(tmp_path / "source.mp4", "blue")


@pytest.fixture
def second_video(tmp_path):
    """Same encoding parameters as source_video, so both concat by copy."""
    return _make_video(tmp_path / "second.mp4", "red")


@pytest.fixture
def source_audio(tmp_path):
    """Create a 4-second 440 Hz sine tone."""
    out = tmp_path / "tone.wav"
    subprocess.run(
        [
            _FFMPEG, "-y",
            "-f", "lavfi", "-i", "sine=frequency=440:sample_rate=44100:duration=4",
            str(out),
        ],
        check=True,
        capture_output=True,
    )
    return out


@pytest.fixture
def still_image(tmp_path):
    out = tmp_path / "title.png"
    Image.new("RGB", (64, 48), (30, 30, 30)).save(out)
    return out

