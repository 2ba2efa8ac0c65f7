"""Media probing — durations and sizes of source files.

Uses moviepy for video/audio (same probing path the rest of the tooling
uses) and Pillow for still images, which have no intrinsic duration.
"""

from dataclasses import dataclass
from pathlib import Path

from moviepy import AudioFileClip, VideoFileClip
from PIL import Image

from .clips import Clip, infer_kind
from .resolver import DEFAULT_DROP_DURATION, new_clip_id


@dataclass(frozen=True)
class MediaInfo:
    kind: str
    duration: float | None
    size: tuple[int, int] | None = None


def probe_media(path: str | Path) -> MediaInfo:
    """Probe a local media file.

    Raises:
        FileNotFoundError: The file does not exist.
        ValueError: The extension is not a known media type.
    """
    path = Path(path)
    if not path.is_file():
        raise FileNotFoundError(f"Media file not found: {path}")

    kind = infer_kind(path.name)
    if kind is None:
        raise ValueError(f"Unrecognized media type: {path.name}")

    if kind == "video":
        with VideoFileClip(str(path)) as clip:
            return MediaInfo(kind, float(clip.duration), tuple(clip.size))
    if kind == "audio":
        with AudioFileClip(str(path)) as clip:
            return MediaInfo(kind, float(clip.duration))
    with Image.open(path) as img:
        return MediaInfo(kind, None, img.size)


def clip_from_media(
    path: str | Path,
    track_id: str,
    start: float = 0.0,
    clip_id: str | None = None,
    image_duration: float = DEFAULT_DROP_DURATION,
) -> Clip:
    """Build a clip spanning the whole media file.

    Still images get `image_duration` seconds.
    """
    info = probe_media(path)
    return Clip(
        id=clip_id or new_clip_id(),
        track_id=track_id,
        start=start,
        duration=info.duration if info.duration else image_duration,
        kind=info.kind,
        source_ref=str(path),
        name=Path(path).stem,
    )
