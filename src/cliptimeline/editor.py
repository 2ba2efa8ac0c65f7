"""Timeline editor — the mutation API the UI layer talks to.

Wraps a Timeline with a CollisionResolver and a History. Every edit is a
direct method call that either commits (and records a history snapshot)
or leaves the timeline untouched:

  - add_clip / update_clip raise OverlapError only when the resolver
    cannot find a conflict-free placement either; an update that changes
    a clip's length is never relocated and raises on overlap;
  - drag / resize / nudge / move return None when the resolver rejects
    the request (the clip stays where it was);
  - drop raises TrackKindMismatchError for incompatible tracks.
"""

import logging

from .clips import DEFAULT_TRACKS, Clip
from .errors import OverlapError
from .history import DEFAULT_MAX_DEPTH, History
from .resolver import CollisionResolver, DropPayload
from .timeline import Timeline

logger = logging.getLogger(__name__)

# Patch fields that change a clip's length rather than its position.
LENGTH_FIELDS = frozenset({"duration", "trim_start", "trim_end"})


class TimelineEditor:
    """Timeline + resolver + undo history behind one API."""

    def __init__(
        self,
        timeline: Timeline | None = None,
        resolver: CollisionResolver | None = None,
        max_history: int | None = DEFAULT_MAX_DEPTH,
    ):
        self.timeline = timeline if timeline is not None else Timeline(DEFAULT_TRACKS)
        self.resolver = resolver if resolver is not None else CollisionResolver(self.timeline)
        self.history = History(self.timeline.snapshot(), max_depth=max_history)

    # ── Read access ────────────────────────────────────────────────

    @property
    def clips(self) -> tuple[Clip, ...]:
        return self.timeline.snapshot()

    def get(self, clip_id: str) -> Clip:
        return self.timeline.get(clip_id)

    @property
    def duration(self) -> float:
        return self.timeline.duration

    # ── Commit helpers ─────────────────────────────────────────────

    def _commit(self) -> None:
        self.history.record(self.timeline.snapshot())

    def _apply(self, resolved: Clip | None) -> Clip | None:
        """Write a resolver result back to the timeline."""
        if resolved is None:
            return None
        updated = self.timeline.update_clip(
            resolved.id,
            start=resolved.start,
            duration=resolved.duration,
            track_id=resolved.track_id,
        )
        self._commit()
        return updated

    # ── Clip Model operations ──────────────────────────────────────

    def add_clip(self, clip: Clip) -> Clip:
        """Add a clip, relocating it next to a blocking clip if needed.

        Raises:
            OverlapError: Neither the requested nor any adjacent slot fits.
            TrackKindMismatchError, UnknownTrackError, ValueError.
        """
        try:
            added = self.timeline.add_clip(clip)
        except OverlapError:
            resolved = self.resolver.resolve_placement(clip)
            if resolved is None:
                raise
            logger.info(
                "relocated %s from %.3f to %.3f to avoid overlap",
                clip.id, clip.start, resolved.start,
            )
            added = self.timeline.add_clip(resolved)
        self._commit()
        return added

    def remove_clip(self, clip_id: str) -> Clip:
        removed = self.timeline.remove_clip(clip_id)
        self._commit()
        return removed

    def update_clip(self, clip_id: str, **patch) -> Clip:
        """Apply a patch atomically; overlapping moves are resolved first.

        Only patches that reposition the clip (start and/or track) are
        handed to the resolver. A patch that changes the clip's length
        is rejected when it overlaps a neighbour.

        Raises:
            OverlapError: The patched placement cannot be resolved, or a
                length change overlaps a neighbour.
            InvalidTrimError, TrackKindMismatchError, ClipNotFoundError.
        """
        try:
            updated = self.timeline.update_clip(clip_id, **patch)
        except OverlapError:
            if LENGTH_FIELDS & patch.keys():
                raise
            candidate = self.timeline.get(clip_id).replace(**patch)
            resolved = self.resolver.resolve_placement(candidate)
            if resolved is None:
                raise
            updated = self.timeline.update_clip(
                clip_id, **{**patch, "start": resolved.start},
            )
        self._commit()
        return updated

    # ── Interactive edits ──────────────────────────────────────────

    def move_clip(self, clip_id: str, start: float, track_id: str | None = None) -> Clip | None:
        clip = self.timeline.get(clip_id)
        return self._apply(self.resolver.resolve_move(clip, start, track_id))

    def drag_clip(
        self,
        clip_id: str,
        origin_start: float,
        origin_track_id: str,
        dx_px: float,
        dy_px: float,
    ) -> Clip | None:
        clip = self.timeline.get(clip_id)
        return self._apply(self.resolver.resolve_drag(
            clip, origin_start, origin_track_id, dx_px, dy_px,
        ))

    def resize_clip(self, clip_id: str, edge: str, time: float) -> Clip | None:
        clip = self.timeline.get(clip_id)
        return self._apply(self.resolver.resolve_resize(clip, edge, time))

    def nudge_clip(self, clip_id: str, action: str, coarse: bool = False) -> Clip | None:
        clip = self.timeline.get(clip_id)
        return self._apply(self.resolver.resolve_nudge(clip, action, coarse=coarse))

    def drop(
        self,
        payload: DropPayload | dict,
        track_id: str,
        time: float,
        append: bool = False,
    ) -> Clip | None:
        """Drop a library item onto a track; None if it does not fit."""
        if isinstance(payload, dict):
            payload = DropPayload.from_dict(payload)
        resolved = self.resolver.resolve_drop(payload, track_id, time, append=append)
        if resolved is None:
            return None
        added = self.timeline.add_clip(resolved)
        self._commit()
        return added

    def set_volume(self, clip_id: str, volume: float) -> Clip:
        return self.update_clip(clip_id, volume=volume)

    def toggle_mute(self, clip_id: str) -> Clip:
        clip = self.timeline.get(clip_id)
        return self.update_clip(clip_id, muted=not clip.muted)

    def set_trim(self, clip_id: str, trim_start: float | None = None,
                 trim_end: float | None = None) -> Clip:
        patch = {}
        if trim_start is not None:
            patch["trim_start"] = trim_start
        if trim_end is not None:
            patch["trim_end"] = trim_end
        return self.update_clip(clip_id, **patch)

    # ── History ────────────────────────────────────────────────────

    def undo(self) -> bool:
        snapshot = self.history.undo()
        if snapshot is None:
            return False
        self.timeline.restore(snapshot)
        return True

    def redo(self) -> bool:
        snapshot = self.history.redo()
        if snapshot is None:
            return False
        self.timeline.restore(snapshot)
        return True
