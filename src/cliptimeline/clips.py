"""Clip and track value types.

A Clip is an immutable placed media segment. Edits never mutate a clip in
place: `Clip.replace()` returns a new value, so snapshots handed to the
history, the playback synchronizer, and the render plan builder can be
shared without copying.

External clip records use camelCase keys:
  {id, trackId, start, duration, kind, sourceRef,
   volume?, muted?, trimStart?, trimEnd?, name?}
"""

import dataclasses
from dataclasses import dataclass, field
from pathlib import PurePosixPath

from .errors import InvalidTrimError


# ── Media kinds ────────────────────────────────────────────────────

VALID_KINDS = {"video", "audio", "image"}

VIDEO_EXTENSIONS = {".mp4", ".mov", ".avi", ".webm"}
AUDIO_EXTENSIONS = {".mp3", ".wav", ".ogg", ".m4a"}
IMAGE_EXTENSIONS = {".jpg", ".jpeg", ".png", ".gif", ".webp"}


def infer_kind(source_ref: str) -> str | None:
    """Guess a media kind from the source's file extension.

    Query strings and fragments are ignored so URLs work too. Returns
    None when the extension is not recognized.
    """
    path = source_ref.split("?", 1)[0].split("#", 1)[0]
    suffix = PurePosixPath(path).suffix.lower()
    if suffix in VIDEO_EXTENSIONS:
        return "video"
    if suffix in AUDIO_EXTENSIONS:
        return "audio"
    if suffix in IMAGE_EXTENSIONS:
        return "image"
    return None


# ── Clip ───────────────────────────────────────────────────────────

@dataclass(frozen=True)
class Clip:
    """A media segment placed on a track."""

    id: str
    track_id: str
    start: float
    duration: float
    kind: str
    source_ref: str
    volume: float = 1.0
    muted: bool = False
    trim_start: float = 0.0
    trim_end: float = 0.0
    name: str = ""

    def __post_init__(self):
        if not self.id:
            raise ValueError("Clip id must be a non-empty string")
        if self.kind not in VALID_KINDS:
            raise ValueError(
                f"Clip '{self.id}': invalid kind '{self.kind}'. "
                f"Valid: {sorted(VALID_KINDS)}"
            )
        if self.start < 0:
            raise ValueError(f"Clip '{self.id}': start must be >= 0, got {self.start}")
        if self.duration <= 0:
            raise ValueError(
                f"Clip '{self.id}': duration must be > 0, got {self.duration}"
            )
        if not 0.0 <= self.volume <= 1.0:
            raise ValueError(
                f"Clip '{self.id}': volume must be in [0, 1], got {self.volume}"
            )
        if self.trim_start < 0 or self.trim_end < 0:
            raise InvalidTrimError(
                f"Clip '{self.id}': trims must be >= 0, "
                f"got trim_start={self.trim_start}, trim_end={self.trim_end}"
            )
        if self.effective_duration <= 0:
            raise InvalidTrimError(
                f"Clip '{self.id}': trim_start ({self.trim_start}) + trim_end "
                f"({self.trim_end}) leaves no playable duration of {self.duration}s"
            )

    @property
    def end(self) -> float:
        return self.start + self.duration

    @property
    def effective_duration(self) -> float:
        """Playable seconds once both trims are removed."""
        return self.duration - self.trim_start - self.trim_end

    def replace(self, **changes) -> "Clip":
        """Return a copy with the given fields changed (validated again)."""
        return dataclasses.replace(self, **changes)

    def to_record(self) -> dict:
        """Serialize to the external camelCase record."""
        return {
            "id": self.id,
            "trackId": self.track_id,
            "start": self.start,
            "duration": self.duration,
            "kind": self.kind,
            "sourceRef": self.source_ref,
            "volume": self.volume,
            "muted": self.muted,
            "trimStart": self.trim_start,
            "trimEnd": self.trim_end,
            "name": self.name,
        }


# Record key -> Clip field. Optional keys fall back to dataclass defaults.
_RECORD_FIELDS = {
    "id": "id",
    "trackId": "track_id",
    "start": "start",
    "duration": "duration",
    "kind": "kind",
    "sourceRef": "source_ref",
    "volume": "volume",
    "muted": "muted",
    "trimStart": "trim_start",
    "trimEnd": "trim_end",
    "name": "name",
}

_REQUIRED_RECORD_KEYS = ("id", "trackId", "start", "duration", "sourceRef")


def clip_from_record(record: dict) -> Clip:
    """Build a Clip from an external camelCase record.

    `kind` may be omitted when it can be inferred from the source extension.

    Raises:
        ValueError: Missing required keys or invalid values.
        InvalidTrimError: Trims leave no playable duration.
    """
    for key in _REQUIRED_RECORD_KEYS:
        if key not in record:
            raise ValueError(f"Clip record: missing required field '{key}'")

    kwargs = {}
    for key, attr in _RECORD_FIELDS.items():
        if key in record and record[key] is not None:
            kwargs[attr] = record[key]

    if "kind" not in kwargs:
        kind = infer_kind(str(record["sourceRef"]))
        if kind is None:
            raise ValueError(
                f"Clip record '{record['id']}': missing 'kind' and cannot infer "
                f"it from '{record['sourceRef']}'"
            )
        kwargs["kind"] = kind

    for attr in ("start", "duration", "volume", "trim_start", "trim_end"):
        if attr in kwargs:
            kwargs[attr] = float(kwargs[attr])
    for attr in ("id", "track_id", "source_ref", "name"):
        if attr in kwargs:
            kwargs[attr] = str(kwargs[attr])
    if "muted" in kwargs:
        kwargs["muted"] = bool(kwargs["muted"])

    return Clip(**kwargs)


# ── Tracks ─────────────────────────────────────────────────────────

@dataclass(frozen=True)
class Track:
    """A lane on the timeline accepting a fixed set of media kinds."""

    id: str
    name: str
    kinds: frozenset = field(default_factory=frozenset)

    def accepts(self, kind: str) -> bool:
        return kind in self.kinds

    @property
    def is_video(self) -> bool:
        return "video" in self.kinds


VIDEO_TRACK_ID = "track1"

# One video lane, two music/effects lanes, and a dedicated voice-over lane.
DEFAULT_TRACKS = (
    Track(VIDEO_TRACK_ID, "Video", frozenset({"video", "image"})),
    Track("track2", "Audio 1", frozenset({"audio"})),
    Track("track3", "Audio 2", frozenset({"audio"})),
    Track("track4", "Voiceover", frozenset({"audio"})),
)
