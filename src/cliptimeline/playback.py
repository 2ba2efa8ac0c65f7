"""Playback synchronizer — maps one global clock onto per-clip media players.

For a global time t a clip is *active* when start <= t < end. Inside an
active clip, `relative = t - start` selects the source position:

  - relative < trim_start: held (paused on its first frame, silent);
  - relative >= trim_start + effective_duration: held (trimmed tail);
  - otherwise playing, with local_time = relative.

Each active clip gets its own media resource from a factory. The
synchronizer only nudges a resource when it has drifted more than
`drift_tolerance` seconds from where it should be, which bounds drift
without seeking on every tick. Resources of clips that stop being active
are released immediately.

PlaybackClock is the scheduler: advance(delta) moves time forward, so a
test (or any timer) can drive playback deterministically.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Protocol

from .clips import Clip
from .common import clamp

logger = logging.getLogger(__name__)

DEFAULT_DRIFT_TOLERANCE = 0.5   # seconds
DEFAULT_TICK_SECONDS = 0.1      # ~10 Hz is enough for UI feedback


# ── Per-clip state ─────────────────────────────────────────────────

def effective_volume(
    clip_volume: float,
    clip_muted: bool,
    global_volume: float,
    global_muted: bool,
) -> float:
    """Clip volume scaled by the master volume; either mute silences it."""
    gain = 0.0 if (global_muted or clip_muted) else global_volume
    return clamp(clip_volume * gain, 0.0, 1.0)


@dataclass(frozen=True)
class ClipState:
    """What a clip's player should be doing at one instant."""

    clip: Clip
    local_time: float
    held: bool
    volume: float

    @property
    def clip_id(self) -> str:
        return self.clip.id

    @property
    def audible(self) -> bool:
        return not self.held and self.volume > 0


def is_active(clip: Clip, t: float) -> bool:
    return clip.start <= t < clip.end


def clip_state_at(
    clip: Clip,
    t: float,
    global_volume: float = 1.0,
    global_muted: bool = False,
) -> ClipState | None:
    """State of `clip` at global time t, or None if it is not active."""
    if not is_active(clip, t):
        return None
    relative = t - clip.start
    held = relative < clip.trim_start or relative >= clip.trim_start + clip.effective_duration
    if held:
        # Park the decoder at the first playable frame of the trimmed range.
        local_time = clip.trim_start
        volume = 0.0
    else:
        local_time = relative
        volume = effective_volume(clip.volume, clip.muted, global_volume, global_muted)
    return ClipState(clip=clip, local_time=local_time, held=held, volume=volume)


@dataclass(frozen=True)
class PlaybackFrame:
    """Everything active at one global time."""

    time: float
    video: ClipState | None
    audio: tuple[ClipState, ...]

    @property
    def states(self) -> tuple[ClipState, ...]:
        return ((self.video,) if self.video else ()) + self.audio


def resolve_frame(
    clips,
    t: float,
    global_volume: float = 1.0,
    global_muted: bool = False,
) -> PlaybackFrame:
    """Resolve the active clips at time t.

    Video and image clips live on the video track, where the no-overlap
    invariant leaves at most one active. All active audio clips are
    returned in (start, id) order and are mixed by the caller.
    """
    video = None
    audio = []
    for clip in sorted(clips, key=lambda c: (c.start, c.id)):
        state = clip_state_at(clip, t, global_volume, global_muted)
        if state is None:
            continue
        if clip.kind == "audio":
            audio.append(state)
        else:
            video = state
    return PlaybackFrame(time=t, video=video, audio=tuple(audio))


# ── Media resources ────────────────────────────────────────────────

class MediaResource(Protocol):
    """An externally owned player for one clip's source."""

    position: float
    paused: bool

    def play(self) -> None: ...

    def pause(self) -> None: ...

    def seek(self, position: float) -> None: ...

    def set_volume(self, volume: float) -> None: ...

    def release(self) -> None: ...


class PlaybackSynchronizer:
    """Issues play/pause/seek/volume directives to one resource per clip."""

    def __init__(
        self,
        resource_factory: Callable[[Clip], MediaResource],
        drift_tolerance: float = DEFAULT_DRIFT_TOLERANCE,
    ):
        self.resource_factory = resource_factory
        self.drift_tolerance = drift_tolerance
        self._resources: dict[str, MediaResource] = {}
        self._sources: dict[str, str] = {}

    @property
    def active_ids(self) -> set[str]:
        return set(self._resources)

    def resource(self, clip_id: str) -> MediaResource | None:
        return self._resources.get(clip_id)

    def _acquire(self, clip: Clip) -> MediaResource:
        resource = self._resources.get(clip.id)
        if resource is not None and self._sources[clip.id] != clip.source_ref:
            # Same clip id now points at different media (e.g. after undo).
            self._release(clip.id)
            resource = None
        if resource is None:
            resource = self.resource_factory(clip)
            self._resources[clip.id] = resource
            self._sources[clip.id] = clip.source_ref
            logger.debug("acquired resource for %s", clip.id)
        return resource

    def _release(self, clip_id: str) -> None:
        resource = self._resources.pop(clip_id)
        self._sources.pop(clip_id, None)
        resource.pause()
        resource.release()
        logger.debug("released resource for %s", clip_id)

    def sync(
        self,
        clips,
        t: float,
        playing: bool,
        global_volume: float = 1.0,
        global_muted: bool = False,
    ) -> PlaybackFrame:
        """Bring every resource in line with global time t.

        Calling sync twice with the same arguments issues no new seeks and
        no play/pause flips the second time.
        """
        frame = resolve_frame(clips, t, global_volume, global_muted)
        wanted = {state.clip_id: state for state in frame.states}

        for clip_id in sorted(set(self._resources) - set(wanted)):
            self._release(clip_id)

        for clip_id in sorted(wanted):
            state = wanted[clip_id]
            resource = self._acquire(state.clip)

            if abs(resource.position - state.local_time) > self.drift_tolerance:
                logger.debug(
                    "seek %s: %.3f -> %.3f",
                    clip_id, resource.position, state.local_time,
                )
                resource.seek(state.local_time)

            resource.set_volume(state.volume)

            should_play = playing and not state.held
            if should_play and resource.paused:
                resource.play()
            elif not should_play and not resource.paused:
                resource.pause()

        return frame

    def release_all(self) -> None:
        for clip_id in sorted(self._resources):
            self._release(clip_id)


# ── Clock ──────────────────────────────────────────────────────────

class PlaybackClock:
    """Logical playback clock driven by explicit advance() calls."""

    def __init__(self, duration: float = 0.0):
        self.time = 0.0
        self.duration = duration
        self.playing = False

    def play(self) -> None:
        if self.time >= self.duration:
            self.time = 0.0
        self.playing = True

    def pause(self) -> None:
        self.playing = False

    def toggle(self) -> None:
        if self.playing:
            self.pause()
        else:
            self.play()

    def seek(self, time: float) -> float:
        self.time = clamp(time, 0.0, self.duration)
        return self.time

    def advance(self, delta: float) -> float:
        """Move forward by delta seconds while playing; stop at the end."""
        if delta < 0:
            raise ValueError(f"delta must be >= 0, got {delta}")
        if self.playing:
            self.time = min(self.time + delta, self.duration)
            if self.time >= self.duration:
                self.playing = False
        return self.time


class PlaybackController:
    """Couples a clock, a synchronizer, and a clip snapshot source.

    `clip_source` is any zero-argument callable returning the current clip
    snapshot, usually `timeline.snapshot`.
    """

    def __init__(
        self,
        clip_source: Callable[[], tuple],
        synchronizer: PlaybackSynchronizer,
        clock: PlaybackClock | None = None,
    ):
        self.clip_source = clip_source
        self.synchronizer = synchronizer
        self.clock = clock or PlaybackClock()
        self.volume = 1.0
        self.muted = False

    def set_volume(self, volume: float) -> None:
        self.volume = clamp(volume, 0.0, 1.0)

    def toggle_mute(self) -> None:
        self.muted = not self.muted

    def _sync(self) -> PlaybackFrame:
        clips = self.clip_source()
        self.clock.duration = max((c.end for c in clips), default=0.0)
        return self.synchronizer.sync(
            clips, self.clock.time, self.clock.playing, self.volume, self.muted,
        )

    def play(self) -> PlaybackFrame:
        self.clock.duration = max((c.end for c in self.clip_source()), default=0.0)
        self.clock.play()
        return self._sync()

    def pause(self) -> PlaybackFrame:
        self.clock.pause()
        return self._sync()

    def seek(self, time: float) -> PlaybackFrame:
        self.clock.duration = max((c.end for c in self.clip_source()), default=0.0)
        self.clock.seek(time)
        return self._sync()

    def tick(self, delta: float = DEFAULT_TICK_SECONDS) -> PlaybackFrame:
        self.clock.advance(delta)
        return self._sync()

    def stop(self) -> None:
        self.clock.pause()
        self.synchronizer.release_all()
