"""Timeline store — the single owner of clip placement state.

All mutations go through add_clip / remove_clip / update_clip. Each one
builds a candidate clip, validates it against the track rules and the
no-overlap invariant, and only then commits, so a failed call leaves the
timeline untouched.

Readers get snapshots: tuples of frozen Clip values, safe to keep after
further edits.
"""

import logging

from .clips import DEFAULT_TRACKS, Clip, Track
from .common import intervals_overlap
from .errors import (
    ClipNotFoundError,
    OverlapError,
    TrackKindMismatchError,
    UnknownTrackError,
)

logger = logging.getLogger(__name__)


def _sort_key(clip: Clip):
    return (clip.start, clip.id)


class Timeline:
    """Ordered set of clips on a fixed list of tracks."""

    def __init__(self, tracks=DEFAULT_TRACKS, clips=()):
        self._tracks: tuple[Track, ...] = tuple(tracks)
        if not self._tracks:
            raise ValueError("Timeline needs at least one track")
        ids = [t.id for t in self._tracks]
        if len(set(ids)) != len(ids):
            raise ValueError(f"Duplicate track ids: {ids}")
        self._clips: dict[str, Clip] = {}
        self.revision = 0
        for clip in clips:
            self.add_clip(clip)

    # ── Tracks ─────────────────────────────────────────────────────

    @property
    def tracks(self) -> tuple[Track, ...]:
        return self._tracks

    def track(self, track_id: str) -> Track:
        for track in self._tracks:
            if track.id == track_id:
                return track
        raise UnknownTrackError(f"Unknown track: '{track_id}'")

    def track_index(self, track_id: str) -> int:
        for i, track in enumerate(self._tracks):
            if track.id == track_id:
                return i
        raise UnknownTrackError(f"Unknown track: '{track_id}'")

    @property
    def video_track(self) -> Track:
        """The first track accepting video."""
        for track in self._tracks:
            if track.is_video:
                return track
        raise UnknownTrackError("Timeline has no video track")

    # ── Queries ────────────────────────────────────────────────────

    def get(self, clip_id: str) -> Clip:
        try:
            return self._clips[clip_id]
        except KeyError:
            raise ClipNotFoundError(clip_id) from None

    def __contains__(self, clip_id) -> bool:
        return clip_id in self._clips

    def __len__(self) -> int:
        return len(self._clips)

    @property
    def clips(self) -> tuple[Clip, ...]:
        """All clips ordered by (start, id)."""
        return tuple(sorted(self._clips.values(), key=_sort_key))

    def clips_on(self, track_id: str, exclude: str | None = None) -> list[Clip]:
        """Clips on one track ordered by start, optionally skipping one id."""
        return sorted(
            (c for c in self._clips.values()
             if c.track_id == track_id and c.id != exclude),
            key=_sort_key,
        )

    @property
    def duration(self) -> float:
        """End time of the last clip, 0 for an empty timeline."""
        return max((c.end for c in self._clips.values()), default=0.0)

    def find_overlap(
        self,
        track_id: str,
        start: float,
        duration: float,
        exclude: str | None = None,
    ) -> Clip | None:
        """Earliest clip on the track overlapping [start, start+duration)."""
        for other in self.clips_on(track_id, exclude=exclude):
            if intervals_overlap(start, duration, other.start, other.duration):
                return other
        return None

    def is_free(
        self,
        track_id: str,
        start: float,
        duration: float,
        exclude: str | None = None,
    ) -> bool:
        return self.find_overlap(track_id, start, duration, exclude) is None

    # ── Mutations ──────────────────────────────────────────────────

    def _check_placement(self, clip: Clip) -> None:
        track = self.track(clip.track_id)
        if not track.accepts(clip.kind):
            raise TrackKindMismatchError(
                f"Cannot place {clip.kind} clip '{clip.id}' on track "
                f"'{track.name}' (accepts: {sorted(track.kinds)})"
            )
        blocker = self.find_overlap(
            clip.track_id, clip.start, clip.duration, exclude=clip.id,
        )
        if blocker is not None:
            raise OverlapError(clip.id, clip.track_id, blocker.id)

    def add_clip(self, clip: Clip) -> Clip:
        """Place a new clip.

        Raises:
            ValueError: Duplicate clip id.
            UnknownTrackError, TrackKindMismatchError, OverlapError.
        """
        if clip.id in self._clips:
            raise ValueError(f"Duplicate clip id: '{clip.id}'")
        self._check_placement(clip)
        self._clips[clip.id] = clip
        self.revision += 1
        logger.debug(
            "added %s on %s at %.3f (+%.3f)",
            clip.id, clip.track_id, clip.start, clip.duration,
        )
        return clip

    def remove_clip(self, clip_id: str) -> Clip:
        """Remove a clip and return it."""
        clip = self.get(clip_id)
        del self._clips[clip_id]
        self.revision += 1
        logger.debug("removed %s", clip_id)
        return clip

    def update_clip(self, clip_id: str, **patch) -> Clip:
        """Apply a field patch atomically and return the updated clip.

        Patch keys are Clip field names (start, duration, track_id,
        trim_start, ...). The id cannot be changed.

        Raises:
            ClipNotFoundError, ValueError, InvalidTrimError,
            UnknownTrackError, TrackKindMismatchError, OverlapError.
        """
        current = self.get(clip_id)
        if "id" in patch and patch["id"] != clip_id:
            raise ValueError(f"Clip '{clip_id}': id is immutable")
        patch.pop("id", None)
        candidate = current.replace(**patch)
        if candidate == current:
            return current
        self._check_placement(candidate)
        self._clips[clip_id] = candidate
        self.revision += 1
        logger.debug("updated %s: %s", clip_id, sorted(patch))
        return candidate

    # ── Snapshots ──────────────────────────────────────────────────

    def snapshot(self) -> tuple[Clip, ...]:
        """Immutable copy of the full clip set."""
        return self.clips

    def restore(self, snapshot) -> None:
        """Replace the clip set wholesale with a snapshot."""
        self._clips = {clip.id: clip for clip in snapshot}
        self.revision += 1
