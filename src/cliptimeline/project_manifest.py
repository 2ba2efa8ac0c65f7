"""Project manifest loader — a timeline described in YAML.

Project manifest schema:
  project:
    name: "demo"
  paths:
    media: "/data/media"
  export:                       # optional, defaults shown
    format: mp4                 # mp4 | webm | gif
    quality: standard           # draft | standard | high
    size: 720p                  # 480p | 720p | 1080p
  playback:                     # optional
    volume: 1.0
    muted: false
    drift_tolerance: 0.5
  clips:
    - id: intro
      track: track1
      start: 0.0
      duration: 5.0             # optional: probed from the file
      kind: video               # optional: inferred from the extension
      source: "${media}/intro.mp4"
      volume: 1.0
      muted: false
      trim_start: 0.0
      trim_end: 0.0
      name: "Intro"

Tracks are the fixed default layout (track1 video, track2/track3 audio,
track4 voice-over).
"""

from pathlib import Path

import yaml

from .clips import DEFAULT_TRACKS, Clip, infer_kind
from .common import resolve_path_vars
from .playback import DEFAULT_DRIFT_TOLERANCE, PlaybackController, PlaybackSynchronizer
from .render_plan import ExportOptions
from .timeline import Timeline


def _probe_duration(source: str) -> float | None:
    # moviepy is heavy to import; only pay for it when a duration is missing.
    from .media import probe_media
    return probe_media(source).duration


def _parse_clip(entry: dict, index: int, paths: dict) -> Clip:
    """Validate one clip entry and build the Clip."""
    for key in ("id", "track", "start", "source"):
        if key not in entry:
            raise ValueError(f"Clip {index}: missing required field '{key}'")

    cid = str(entry["id"])
    prefix = f"Clip {index} ({cid})"
    source = resolve_path_vars(str(entry["source"]), paths)

    kind = entry.get("kind") or infer_kind(source)
    if kind is None:
        raise ValueError(f"{prefix}: missing 'kind' and cannot infer it from '{source}'")

    duration = entry.get("duration")
    if duration is None:
        duration = _probe_duration(source)
        if duration is None:
            raise ValueError(f"{prefix}: 'duration' is required for {kind} clips")

    try:
        return Clip(
            id=cid,
            track_id=str(entry["track"]),
            start=float(entry["start"]),
            duration=float(duration),
            kind=kind,
            source_ref=source,
            volume=float(entry.get("volume", 1.0)),
            muted=bool(entry.get("muted", False)),
            trim_start=float(entry.get("trim_start", 0.0)),
            trim_end=float(entry.get("trim_end", 0.0)),
            name=str(entry.get("name", "")),
        )
    except ValueError as exc:
        raise type(exc)(f"{prefix}: {exc}") from exc


def load_project_manifest(manifest_path: str | Path) -> dict:
    """Load, validate, and normalize a project manifest.

    Processing pipeline:
      1. Parse YAML.
      2. Validate export and playback settings.
      3. Resolve ${path} variables in clip sources.
      4. Infer missing kinds, probe missing durations, build Clip values.
      5. Check for duplicate clip ids.

    Returns:
        Config dict: name, export (ExportOptions), playback (dict),
        clips (list of Clip).

    Raises:
        ValueError: Missing/invalid fields.
    """
    with open(manifest_path) as f:
        raw = yaml.safe_load(f) or {}

    project = raw.get("project") or {}
    name = str(project.get("name", Path(manifest_path).stem))

    export = ExportOptions.from_dict(raw.get("export"))

    playback = dict(raw.get("playback") or {})
    volume = playback.get("volume", 1.0)
    if not isinstance(volume, (int, float)) or not 0 <= volume <= 1:
        raise ValueError(f"Project manifest: playback.volume must be in [0, 1], got {volume!r}")
    tolerance = playback.get("drift_tolerance", DEFAULT_DRIFT_TOLERANCE)
    if not isinstance(tolerance, (int, float)) or tolerance <= 0:
        raise ValueError(
            f"Project manifest: playback.drift_tolerance must be > 0, got {tolerance!r}"
        )
    playback = {
        "volume": float(volume),
        "muted": bool(playback.get("muted", False)),
        "drift_tolerance": float(tolerance),
    }

    paths = raw.get("paths", {})
    clips = []
    seen_ids = set()
    for i, entry in enumerate(raw.get("clips") or []):
        clip = _parse_clip(entry, i, paths)
        if clip.id in seen_ids:
            raise ValueError(f"Duplicate clip id: '{clip.id}'")
        seen_ids.add(clip.id)
        clips.append(clip)

    return {"name": name, "export": export, "playback": playback, "clips": clips}


def validate_project_sources(config: dict) -> None:
    """Check that every clip source exists on disk.

    Raises:
        FileNotFoundError: Lists all missing files.
    """
    missing = [c.source_ref for c in config["clips"] if not Path(c.source_ref).exists()]
    if missing:
        msg = f"Missing {len(missing)} source file(s):\n"
        for p in missing:
            msg += f"  - {p}\n"
        raise FileNotFoundError(msg)


def build_timeline(config: dict) -> Timeline:
    """Place the manifest's clips on a fresh default timeline.

    Raises:
        OverlapError, TrackKindMismatchError, UnknownTrackError.
    """
    return Timeline(DEFAULT_TRACKS, config["clips"])


def build_controller(
    config: dict,
    resource_factory,
    timeline: Timeline | None = None,
) -> PlaybackController:
    """Preview controller for a manifest, using its playback settings.

    The synchronizer seeks with the manifest's `drift_tolerance`, and the
    controller starts at the manifest's master volume and mute.
    """
    if timeline is None:
        timeline = build_timeline(config)
    playback = config["playback"]
    synchronizer = PlaybackSynchronizer(
        resource_factory, drift_tolerance=playback["drift_tolerance"],
    )
    controller = PlaybackController(timeline.snapshot, synchronizer)
    controller.set_volume(playback["volume"])
    controller.muted = playback["muted"]
    return controller


def save_project_manifest(
    timeline: Timeline,
    manifest_path: str | Path,
    name: str,
    export: ExportOptions | None = None,
) -> None:
    """Write a timeline back out in the project manifest format."""
    clips = []
    for clip in timeline.clips:
        entry = {
            "id": clip.id,
            "track": clip.track_id,
            "start": clip.start,
            "duration": clip.duration,
            "kind": clip.kind,
            "source": clip.source_ref,
        }
        if clip.volume != 1.0:
            entry["volume"] = clip.volume
        if clip.muted:
            entry["muted"] = True
        if clip.trim_start:
            entry["trim_start"] = clip.trim_start
        if clip.trim_end:
            entry["trim_end"] = clip.trim_end
        if clip.name:
            entry["name"] = clip.name
        clips.append(entry)

    data = {
        "project": {"name": name},
        "export": (export or ExportOptions()).to_dict(),
        "clips": clips,
    }
    Path(manifest_path).parent.mkdir(parents=True, exist_ok=True)
    with open(manifest_path, "w") as f:
        yaml.safe_dump(data, f, sort_keys=False)
