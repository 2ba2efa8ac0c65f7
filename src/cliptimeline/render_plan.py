"""Render plan builder — compiles a clip snapshot into ffmpeg operations.

The plan is pure data, rebuilt for every export and never mutated:

  1. concat     video-track clips sorted by (start, id), written to a concat
                manifest with inpoint/outpoint for trims, stream-copied
                into one file.
  2. mix_audio  only when the timeline has audio clips: each audio clip is
                trimmed, gain-adjusted, delayed to its start, and amixed
                over the concatenated video.
  3. encode     scale to the requested size and encode with the quality
                preset for the requested format.

Each stage's output file is the next stage's input. Argument vectors
follow the ffmpeg CLI convention without the executable name; the export
runner supplies that along with its progress flags.

Limitations:
  - Gaps between video clips are NOT filled with black frames; clips are
    concatenated back to back. Gaps are reported in `RenderPlan.gaps`.
  - Image clips cannot be stream-copied by the concat demuxer and are
    reported in `RenderPlan.skipped`.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path

from .clips import Clip
from .common import EPSILON, format_seconds, quote_concat_path
from .errors import ExportStageError

logger = logging.getLogger(__name__)


# ── Export options ─────────────────────────────────────────────────

VALID_FORMATS = {"mp4", "webm", "gif"}
VALID_QUALITIES = {"draft", "standard", "high"}

SIZE_DIMENSIONS = {
    "480p": (854, 480),
    "720p": (1280, 720),
    "1080p": (1920, 1080),
}

# Per format: quality -> encoder settings.
QUALITY_PRESETS = {
    "mp4": {
        "draft": {"crf": 28, "preset": "ultrafast"},
        "standard": {"crf": 23, "preset": "medium"},
        "high": {"crf": 18, "preset": "slow"},
    },
    "webm": {
        "draft": {"crf": 40, "deadline": "realtime"},
        "standard": {"crf": 33, "deadline": "good"},
        "high": {"crf": 24, "deadline": "best"},
    },
    "gif": {
        "draft": {"fps": 8},
        "standard": {"fps": 12},
        "high": {"fps": 15},
    },
}


@dataclass(frozen=True)
class ExportOptions:
    format: str = "mp4"
    quality: str = "standard"
    size: str = "720p"

    def __post_init__(self):
        if self.format not in VALID_FORMATS:
            raise ValueError(
                f"Invalid export format '{self.format}'. Valid: {sorted(VALID_FORMATS)}"
            )
        if self.quality not in VALID_QUALITIES:
            raise ValueError(
                f"Invalid export quality '{self.quality}'. "
                f"Valid: {sorted(VALID_QUALITIES)}"
            )
        if self.size not in SIZE_DIMENSIONS:
            raise ValueError(
                f"Invalid export size '{self.size}'. Valid: {sorted(SIZE_DIMENSIONS)}"
            )

    @classmethod
    def from_dict(cls, data: dict | None) -> "ExportOptions":
        data = data or {}
        # "targetSize" is accepted as an alias of "size".
        size = data.get("size", data.get("targetSize", "720p"))
        return cls(
            format=str(data.get("format", "mp4")),
            quality=str(data.get("quality", "standard")),
            size=str(size),
        )

    def to_dict(self) -> dict:
        return {"format": self.format, "quality": self.quality, "size": self.size}


# ── Plan entries ───────────────────────────────────────────────────

@dataclass(frozen=True)
class ConcatEntry:
    clip_id: str
    source: str
    inpoint: float
    outpoint: float

    @property
    def duration(self) -> float:
        return self.outpoint - self.inpoint


@dataclass(frozen=True)
class AudioMixEntry:
    clip_id: str
    source: str
    trim_start: float
    effective_duration: float
    delay: float
    volume: float


@dataclass(frozen=True)
class EncodeParams:
    format: str
    width: int
    height: int
    settings: dict = field(default_factory=dict)

    def codec_args(self) -> list[str]:
        """Format-specific encoder flags."""
        if self.format == "mp4":
            return [
                "-c:v", "libx264",
                "-crf", str(self.settings["crf"]),
                "-preset", self.settings["preset"],
                "-pix_fmt", "yuv420p",
                "-c:a", "aac",
                "-movflags", "+faststart",
            ]
        if self.format == "webm":
            return [
                "-c:v", "libvpx-vp9",
                "-crf", str(self.settings["crf"]),
                "-b:v", "0",
                "-deadline", self.settings["deadline"],
                "-c:a", "libopus",
            ]
        return ["-r", str(self.settings["fps"]), "-an"]


@dataclass(frozen=True)
class Operation:
    """One external transcoder invocation."""

    stage: str
    args: tuple[str, ...]
    output: str
    expected_duration: float


@dataclass(frozen=True)
class RenderPlan:
    concat: tuple[ConcatEntry, ...]
    audio_mix: tuple[AudioMixEntry, ...]
    encode: EncodeParams
    operations: tuple[Operation, ...]
    manifest_path: str
    manifest_text: str
    output: str
    gaps: tuple[tuple[str, str, float], ...] = ()
    skipped: tuple[str, ...] = ()

    @property
    def duration(self) -> float:
        return sum(entry.duration for entry in self.concat)

    @property
    def stages(self) -> tuple[str, ...]:
        return tuple(op.stage for op in self.operations)


# ── Plan steps ─────────────────────────────────────────────────────

def _sorted(clips) -> list[Clip]:
    return sorted(clips, key=lambda c: (c.start, c.id))


def build_concat_list(
    clips,
    video_track_id: str,
    sources: dict[str, str] | None = None,
) -> tuple[list[ConcatEntry], list[str], list[tuple[str, str, float]]]:
    """Step 1: ordered concat entries, skipped clip ids, and timeline gaps."""
    sources = sources or {}
    entries = []
    skipped = []
    gaps = []
    previous = None

    for clip in _sorted(c for c in clips if c.track_id == video_track_id):
        if clip.kind != "video":
            logger.warning(
                "skipping %s clip %s: only video clips can be concatenated",
                clip.kind, clip.id,
            )
            skipped.append(clip.id)
            continue
        if previous is not None and clip.start - previous.end > EPSILON:
            gap = clip.start - previous.end
            logger.warning(
                "%.3fs gap between %s and %s is not filled",
                gap, previous.id, clip.id,
            )
            gaps.append((previous.id, clip.id, gap))
        entries.append(ConcatEntry(
            clip_id=clip.id,
            source=sources.get(clip.id, clip.source_ref),
            inpoint=clip.trim_start,
            outpoint=clip.trim_start + clip.effective_duration,
        ))
        previous = clip

    return entries, skipped, gaps


def build_audio_mix(clips, sources: dict[str, str] | None = None) -> list[AudioMixEntry]:
    """Step 2: one mix entry per audio clip, in (start, id) order."""
    sources = sources or {}
    return [
        AudioMixEntry(
            clip_id=clip.id,
            source=sources.get(clip.id, clip.source_ref),
            trim_start=clip.trim_start,
            effective_duration=clip.effective_duration,
            delay=clip.start,
            volume=0.0 if clip.muted else clip.volume,
        )
        for clip in _sorted(c for c in clips if c.kind == "audio")
    ]


def resolve_encode_params(options: ExportOptions) -> EncodeParams:
    """Step 3: map quality and size to concrete encoder settings."""
    width, height = SIZE_DIMENSIONS[options.size]
    settings = dict(QUALITY_PRESETS[options.format][options.quality])
    return EncodeParams(
        format=options.format, width=width, height=height, settings=settings,
    )


def render_concat_manifest(entries: list[ConcatEntry]) -> str:
    """Concat demuxer manifest: one 'file' directive per clip, in order."""
    lines = []
    for entry in entries:
        lines.append(f"file {quote_concat_path(entry.source)}")
        if entry.inpoint > 0:
            lines.append(f"inpoint {format_seconds(entry.inpoint)}")
        lines.append(f"outpoint {format_seconds(entry.outpoint)}")
    return "\n".join(lines) + "\n"


def build_mix_filter(entries: list[AudioMixEntry]) -> str:
    """Filter graph mixing every entry over input 0 (the concatenated video).

    Entry i is ffmpeg input i+1: trimmed to its playable range, scaled by
    its volume, delayed to its timeline start, then all are amixed. The mix
    is padded with silence so `-shortest` ends the output with the video.
    """
    parts = []
    labels = []
    for i, entry in enumerate(entries):
        delay_ms = int(round(entry.delay * 1000))
        label = f"[a{i}]"
        parts.append(
            f"[{i + 1}:a]"
            f"atrim=start={format_seconds(entry.trim_start)}"
            f":duration={format_seconds(entry.effective_duration)},"
            f"asetpts=PTS-STARTPTS,"
            f"volume={entry.volume:.3f},"
            f"adelay=delays={delay_ms}:all=1"
            f"{label}"
        )
        labels.append(label)
    parts.append(
        f"{''.join(labels)}amix=inputs={len(entries)}"
        f":duration=longest:normalize=0,apad[aout]"
    )
    return ";".join(parts)


# ── Plan ───────────────────────────────────────────────────────────

def build_render_plan(
    clips,
    options: ExportOptions,
    video_track_id: str,
    work_dir: str | Path = ".",
    sources: dict[str, str] | None = None,
) -> RenderPlan:
    """Compile a clip snapshot into an ordered ffmpeg operation list.

    Args:
        clips: Clip snapshot (any iterable of Clip).
        options: Export format, quality and size.
        video_track_id: Track whose clips are concatenated.
        work_dir: Directory for the manifest and stage outputs.
        sources: Optional clip id -> local file overrides (fetched media).

    Returns:
        RenderPlan with operations in stage order.

    Raises:
        ExportStageError: Nothing on the video track can be exported.
    """
    work = Path(work_dir)
    concat, skipped, gaps = build_concat_list(clips, video_track_id, sources)
    if not concat:
        raise ExportStageError("plan", "no video clips on the video track")

    audio_mix = build_audio_mix(clips, sources)
    encode = resolve_encode_params(options)
    total = sum(entry.duration for entry in concat)

    manifest_path = str(work / "concat_list.txt")
    concat_out = str(work / "temp_concat.mp4")
    operations = [Operation(
        stage="concat",
        args=(
            "-f", "concat", "-safe", "0",
            "-i", manifest_path,
            "-c", "copy",
            concat_out,
        ),
        output=concat_out,
        expected_duration=total,
    )]

    current = concat_out
    if audio_mix:
        mixed_out = str(work / "temp_with_audio.mp4")
        inputs = ["-i", current]
        for entry in audio_mix:
            inputs.extend(["-i", entry.source])
        operations.append(Operation(
            stage="mix_audio",
            args=(
                *inputs,
                "-filter_complex", build_mix_filter(audio_mix),
                "-map", "0:v", "-map", "[aout]",
                "-c:v", "copy", "-c:a", "aac",
                "-shortest",
                mixed_out,
            ),
            output=mixed_out,
            expected_duration=total,
        ))
        current = mixed_out

    final_out = str(work / f"output.{options.format}")
    operations.append(Operation(
        stage="encode",
        args=(
            "-i", current,
            "-s", f"{encode.width}x{encode.height}",
            *encode.codec_args(),
            final_out,
        ),
        output=final_out,
        expected_duration=total,
    ))

    return RenderPlan(
        concat=tuple(concat),
        audio_mix=tuple(audio_mix),
        encode=encode,
        operations=tuple(operations),
        manifest_path=manifest_path,
        manifest_text=render_concat_manifest(concat),
        output=final_out,
        gaps=tuple(gaps),
        skipped=tuple(skipped),
    )
