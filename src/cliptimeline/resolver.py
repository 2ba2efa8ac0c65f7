"""Collision & snap resolver — turns desired placements into valid ones.

A drag, resize, keyboard nudge, or library drop produces a *desired*
placement. The resolver returns a Clip value that satisfies the
no-overlap invariant on its destination track, or None when no valid
placement exists (the caller then keeps the clip where it was).

Snapping: candidate edges within SNAP_THRESHOLD_PX of a snap point are
moved onto it. Snap points are the ruler's time markers followed by the
start/end of every other clip on the destination track; the first point
within tolerance wins. A snap is only taken if the snapped placement is
still conflict-free.

Move collision policy, against the earliest overlapping clip:
  1. place immediately before it, if that fits;
  2. otherwise place immediately after its end, if that fits;
  3. otherwise reject.

The resolver never mutates the timeline. Results depend only on the
timeline contents and the arguments, so the same request always resolves
the same way.
"""

import logging
import math
import uuid
from dataclasses import dataclass, field

from .clips import Clip, clip_from_record, infer_kind
from .common import EPSILON, clamp, intervals_overlap
from .errors import InvalidTrimError, TrackKindMismatchError

logger = logging.getLogger(__name__)


# ── Editing constants ──────────────────────────────────────────────

MIN_CLIP_DURATION = 0.5          # seconds
DEFAULT_PIXELS_PER_SECOND = 80   # timeline zoom
SNAP_THRESHOLD_PX = 5
TRACK_HEIGHT_PX = 40
DEFAULT_DROP_DURATION = 5.0      # seconds, for media without a known length
NUDGE_STEP = 0.1
NUDGE_STEP_COARSE = 1.0

RESIZE_EDGES = {"start", "end"}

NUDGE_ACTIONS = {
    "left", "right",
    "shrink_start", "extend_start",
    "shrink_end", "extend_end",
}


# ── Ruler markers ──────────────────────────────────────────────────

def marker_interval(pixels_per_second: float) -> int:
    """Seconds between ruler markers at a given zoom level."""
    if pixels_per_second <= 40:
        return 5
    if pixels_per_second <= 80:
        return 2
    return 1


def time_markers(duration: float, pixels_per_second: float) -> list[float]:
    """Ruler marker times from 0 through the end of the timeline."""
    interval = marker_interval(pixels_per_second)
    count = math.ceil(duration / interval)
    return [float(i * interval) for i in range(count + 1)]


def new_clip_id() -> str:
    return f"clip-{uuid.uuid4().hex[:12]}"


# ── Drop payload ───────────────────────────────────────────────────

@dataclass(frozen=True)
class DropPayload:
    """A clip-like record dropped from the media library.

    `allowed_track`, when set, restricts which track may receive the drop.
    """

    record: dict = field(default_factory=dict)
    allowed_track: str | None = None

    @classmethod
    def from_dict(cls, data: dict) -> "DropPayload":
        record = {k: v for k, v in data.items() if k != "allowedTrack"}
        return cls(record=record, allowed_track=data.get("allowedTrack"))


# ── Resolver ───────────────────────────────────────────────────────

class CollisionResolver:
    """Resolves desired clip placements against a Timeline."""

    def __init__(
        self,
        timeline,
        pixels_per_second: float = DEFAULT_PIXELS_PER_SECOND,
        snap_enabled: bool = True,
        snap_threshold_px: float = SNAP_THRESHOLD_PX,
        track_height_px: float = TRACK_HEIGHT_PX,
        min_duration: float = MIN_CLIP_DURATION,
    ):
        if pixels_per_second <= 0:
            raise ValueError(f"pixels_per_second must be > 0, got {pixels_per_second}")
        self.timeline = timeline
        self.pixels_per_second = pixels_per_second
        self.snap_enabled = snap_enabled
        self.snap_threshold_px = snap_threshold_px
        self.track_height_px = track_height_px
        self.min_duration = min_duration

    @property
    def snap_tolerance(self) -> float:
        """Snap threshold converted from pixels to seconds."""
        return self.snap_threshold_px / self.pixels_per_second

    # ── Helpers ────────────────────────────────────────────────────

    def snap_points(self, track_id: str, exclude: str | None = None) -> list[float]:
        points = time_markers(self.timeline.duration, self.pixels_per_second)
        for other in self.timeline.clips_on(track_id, exclude=exclude):
            points.append(other.start)
            points.append(other.end)
        return points

    def _nearest_snap(self, time: float, points: list[float]) -> float | None:
        for point in points:
            if abs(point - time) < self.snap_tolerance:
                return point
        return None

    def _is_free(self, others, start: float, duration: float) -> bool:
        if start < -EPSILON:
            return False
        return not any(
            intervals_overlap(start, duration, o.start, o.duration) for o in others
        )

    def _fit(self, clip: Clip, start: float, duration: float) -> Clip | None:
        """Clip at (start, duration) if that is valid on its track, else None."""
        others = self.timeline.clips_on(clip.track_id, exclude=clip.id)
        if not self._is_free(others, start, duration):
            return None
        try:
            return clip.replace(start=max(0.0, start), duration=duration)
        except InvalidTrimError:
            return None

    # ── Move ───────────────────────────────────────────────────────

    def resolve_move(
        self,
        clip: Clip,
        start: float,
        track_id: str | None = None,
    ) -> Clip | None:
        """Resolve moving `clip` to `start` on `track_id` (default: its track).

        `clip` does not need to be on the timeline yet; new clips resolve
        the same way.
        """
        track_id = track_id or clip.track_id
        track = self.timeline.track(track_id)
        if not track.accepts(clip.kind):
            logger.debug("move of %s rejected: %s does not accept %s",
                         clip.id, track_id, clip.kind)
            return None

        start = max(0.0, start)
        duration = clip.duration
        others = self.timeline.clips_on(track_id, exclude=clip.id)

        if self.snap_enabled:
            points = self.snap_points(track_id, exclude=clip.id)
            snapped = self._nearest_snap(start, points)
            if snapped is not None and self._is_free(others, snapped, duration):
                return clip.replace(start=snapped, track_id=track_id)
            snapped_end = self._nearest_snap(start + duration, points)
            if snapped_end is not None:
                candidate = snapped_end - duration
                if candidate >= -EPSILON and self._is_free(others, candidate, duration):
                    return clip.replace(start=max(0.0, candidate), track_id=track_id)

        if self._is_free(others, start, duration):
            return clip.replace(start=start, track_id=track_id)

        blocker = next(
            o for o in others
            if intervals_overlap(start, duration, o.start, o.duration)
        )

        before = blocker.start - duration
        if before >= -EPSILON and self._is_free(others, before, duration):
            logger.debug("%s placed before %s at %.3f", clip.id, blocker.id, before)
            return clip.replace(start=max(0.0, before), track_id=track_id)

        after = blocker.end
        if self._is_free(others, after, duration):
            logger.debug("%s placed after %s at %.3f", clip.id, blocker.id, after)
            return clip.replace(start=after, track_id=track_id)

        logger.debug("no room for %s near %s on %s", clip.id, blocker.id, track_id)
        return None

    def resolve_placement(self, clip: Clip) -> Clip | None:
        """Resolve a clip's own (start, track) — used for new clips."""
        return self.resolve_move(clip, clip.start, clip.track_id)

    def resolve_drag(
        self,
        clip: Clip,
        origin_start: float,
        origin_track_id: str,
        dx_px: float,
        dy_px: float,
    ) -> Clip | None:
        """Resolve a pointer drag measured from where the drag began.

        Horizontal displacement maps to time; vertical displacement maps
        to a track index, clamped to the available tracks.
        """
        start = max(0.0, origin_start + dx_px / self.pixels_per_second)
        tracks = self.timeline.tracks
        offset = math.floor(dy_px / self.track_height_px + 0.5)
        index = int(clamp(
            self.timeline.track_index(origin_track_id) + offset, 0, len(tracks) - 1,
        ))
        return self.resolve_move(clip, start, tracks[index].id)

    # ── Resize ─────────────────────────────────────────────────────

    def resolve_resize(self, clip: Clip, edge: str, time: float) -> Clip | None:
        """Resolve dragging one edge of `clip` to `time`.

        edge="start" keeps the end fixed; edge="end" keeps the start fixed.
        The duration never drops below the minimum clip duration.
        """
        if edge not in RESIZE_EDGES:
            raise ValueError(
                f"Invalid resize edge '{edge}'. Valid: {sorted(RESIZE_EDGES)}"
            )
        others = self.timeline.clips_on(clip.track_id, exclude=clip.id)
        points = self.snap_points(clip.track_id, exclude=clip.id) if self.snap_enabled else []

        if edge == "start":
            end = clip.end
            new_start = clamp(time, 0.0, end - self.min_duration)
            snapped = self._nearest_snap(new_start, points)
            if (
                snapped is not None
                and 0.0 <= snapped <= end - self.min_duration
                and self._is_free(others, snapped, end - snapped)
            ):
                new_start = snapped
            return self._fit(clip, new_start, end - new_start)

        start = clip.start
        new_end = max(time, start + self.min_duration)
        snapped = self._nearest_snap(new_end, points)
        if (
            snapped is not None
            and snapped >= start + self.min_duration
            and self._is_free(others, start, snapped - start)
        ):
            new_end = snapped
        return self._fit(clip, start, new_end - start)

    # ── Keyboard nudges ────────────────────────────────────────────

    def resolve_nudge(self, clip: Clip, action: str, coarse: bool = False) -> Clip | None:
        """Fine-tune a clip by 0.1s (1s when coarse). No snapping."""
        if action not in NUDGE_ACTIONS:
            raise ValueError(
                f"Invalid nudge action '{action}'. Valid: {sorted(NUDGE_ACTIONS)}"
            )
        step = NUDGE_STEP_COARSE if coarse else NUDGE_STEP

        if action == "left":
            return self._fit(clip, max(0.0, clip.start - step), clip.duration)
        if action == "right":
            return self._fit(clip, clip.start + step, clip.duration)
        if action == "shrink_start":
            if clip.duration <= self.min_duration:
                return None
            decrease = min(step, clip.duration - self.min_duration)
            return self._fit(clip, clip.start + decrease, clip.duration - decrease)
        if action == "extend_start":
            new_start = max(0.0, clip.start - step)
            return self._fit(clip, new_start, clip.end - new_start)
        if action == "shrink_end":
            if clip.duration <= self.min_duration:
                return None
            return self._fit(clip, clip.start, max(self.min_duration, clip.duration - step))
        # extend_end
        return self._fit(clip, clip.start, clip.duration + step)

    # ── Drops ──────────────────────────────────────────────────────

    def resolve_drop(
        self,
        payload: DropPayload,
        track_id: str,
        time: float,
        append: bool = False,
    ) -> Clip | None:
        """Resolve a library drop onto `track_id` at `time`.

        Missing fields are filled in: kind from the file extension,
        duration DEFAULT_DROP_DURATION, and a fresh id when the payload has
        none or its id is already on the timeline. With append=True the
        clip goes right after the last clip on the track.

        Raises:
            TrackKindMismatchError: Incompatible kind or allowed_track violated.
            ValueError: Payload without a source or recognizable kind.
        """
        track = self.timeline.track(track_id)
        if payload.allowed_track is not None and payload.allowed_track != track_id:
            raise TrackKindMismatchError(
                f"This item can only be dropped on track '{payload.allowed_track}', "
                f"not '{track_id}'"
            )

        record = dict(payload.record)
        source = record.get("sourceRef") or record.get("src")
        if not source:
            raise ValueError("Drop payload has no 'sourceRef'")
        kind = record.get("kind") or infer_kind(str(source))
        if kind is None:
            raise ValueError(f"Cannot determine media kind of '{source}'")
        if not track.accepts(kind):
            raise TrackKindMismatchError(
                f"Cannot place {kind} item on track '{track.name}'"
            )

        if append:
            existing = self.timeline.clips_on(track_id)
            if existing:
                time = max(c.end for c in existing)

        clip_id = record.get("id")
        if not clip_id or clip_id in self.timeline:
            clip_id = new_clip_id()

        record.update({
            "id": clip_id,
            "trackId": track_id,
            "start": max(0.0, float(time)),
            "duration": record.get("duration") or DEFAULT_DROP_DURATION,
            "kind": kind,
            "sourceRef": str(source),
        })
        record.pop("src", None)
        clip = clip_from_record(record)
        return self.resolve_move(clip, clip.start, track_id)
