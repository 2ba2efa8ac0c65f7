"""Plain helpers shared by the pure-logic test modules."""

from cliptimeline.clips import Clip


def make_clip(clip_id, track_id="track1", start=0.0, duration=5.0, kind=None, **kwargs):
    """Clip factory with sensible defaults for pure-logic tests."""
    if kind is None:
        kind = "video" if track_id == "track1" else "audio"
    ext = {"video": "mp4", "audio": "mp3", "image": "png"}[kind]
    kwargs.setdefault("source_ref", f"{clip_id}.{ext}")
    return Clip(
        id=clip_id, track_id=track_id, start=start, duration=duration,
        kind=kind, **kwargs,
    )
