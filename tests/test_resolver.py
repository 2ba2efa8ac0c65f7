"""Tests for collision resolution, snapping, resize and drop handling."""

import pytest

from helpers import make_clip
from cliptimeline.errors import TrackKindMismatchError
from cliptimeline.resolver import (
    DEFAULT_DROP_DURATION,
    CollisionResolver,
    DropPayload,
    marker_interval,
    time_markers,
)
from cliptimeline.timeline import Timeline


def _resolver(*clips, snap=False, **kwargs):
    timeline = Timeline(clips=clips)
    return CollisionResolver(timeline, snap_enabled=snap, **kwargs)


class TestMarkers:
    def test_interval_by_zoom(self):
        assert marker_interval(20) == 5
        assert marker_interval(40) == 5
        assert marker_interval(80) == 2
        assert marker_interval(200) == 1

    def test_markers_cover_duration(self):
        assert time_markers(10.0, 80) == [0.0, 2.0, 4.0, 6.0, 8.0, 10.0]
        assert time_markers(9.0, 40) == [0.0, 5.0, 10.0]

    def test_empty_timeline(self):
        assert time_markers(0.0, 80) == [0.0]


class TestResolveMove:
    def test_free_position_kept(self):
        resolver = _resolver(make_clip("a", start=0.0, duration=5.0))
        moved = resolver.resolve_move(make_clip("b", duration=2.0), 7.3)
        assert moved.start == pytest.approx(7.3)

    def test_overlap_placed_after_blocker(self):
        # a occupies [0, 5); b wants 3 but cannot fit before a.
        resolver = _resolver(make_clip("a", start=0.0, duration=5.0))
        moved = resolver.resolve_move(make_clip("b", duration=4.0), 3.0)
        assert moved.start == 5.0

    def test_overlap_placed_before_blocker(self):
        resolver = _resolver(make_clip("a", start=10.0, duration=5.0))
        moved = resolver.resolve_move(make_clip("b", duration=3.0), 11.0)
        assert moved.start == 7.0

    def test_rejected_when_no_room(self):
        resolver = _resolver(
            make_clip("a", start=0.0, duration=5.0),
            make_clip("c", start=5.0, duration=3.0),
        )
        assert resolver.resolve_move(make_clip("b", duration=4.0), 3.0) is None

    def test_negative_start_clamped(self):
        resolver = _resolver()
        assert resolver.resolve_move(make_clip("b"), -3.0).start == 0.0

    def test_incompatible_track_rejected(self):
        resolver = _resolver()
        assert resolver.resolve_move(make_clip("v"), 0.0, "track2") is None

    def test_moves_to_other_track(self):
        resolver = _resolver(make_clip("m", track_id="track2", duration=5.0))
        moved = resolver.resolve_move(resolver.timeline.get("m"), 1.0, "track3")
        assert moved.track_id == "track3"
        assert moved.start == 1.0

    def test_ignores_itself(self):
        clip = make_clip("a", start=0.0, duration=5.0)
        resolver = _resolver(clip)
        assert resolver.resolve_move(clip, 1.0).start == 1.0

    def test_does_not_mutate_timeline(self):
        resolver = _resolver(make_clip("a", duration=5.0))
        before = resolver.timeline.snapshot()
        resolver.resolve_move(make_clip("b", duration=4.0), 3.0)
        assert resolver.timeline.snapshot() == before

    def test_deterministic(self):
        clips = (
            make_clip("a", start=0.0, duration=5.0),
            make_clip("c", start=9.0, duration=3.0),
        )
        first = _resolver(*clips, snap=True).resolve_move(make_clip("b", duration=3.0), 4.0)
        second = _resolver(*clips, snap=True).resolve_move(make_clip("b", duration=3.0), 4.0)
        assert first == second


class TestSnapping:
    def test_snaps_start_to_clip_end(self):
        resolver = _resolver(make_clip("a", duration=5.0), snap=True)
        moved = resolver.resolve_move(make_clip("b", duration=2.0), 5.03)
        assert moved.start == 5.0

    def test_snaps_end_to_clip_start(self):
        resolver = _resolver(make_clip("a", start=10.0, duration=5.0), snap=True)
        # b would end at 9.97; its end snaps onto a's start.
        moved = resolver.resolve_move(make_clip("b", duration=2.5), 7.47)
        assert moved.start == pytest.approx(7.5)

    def test_snaps_to_ruler_marker(self):
        resolver = _resolver(make_clip("a", duration=10.0), snap=True)
        moved = resolver.resolve_move(
            make_clip("m", track_id="track2", duration=1.0), 3.96,
        )
        assert moved.start == 4.0

    def test_outside_tolerance_not_snapped(self):
        resolver = _resolver(make_clip("a", duration=5.0), snap=True)
        moved = resolver.resolve_move(make_clip("b", duration=2.0), 5.3)
        assert moved.start == pytest.approx(5.3)

    def test_tolerance_scales_with_zoom(self):
        resolver = _resolver(snap=True, pixels_per_second=10)
        assert resolver.snap_tolerance == pytest.approx(0.5)

    def test_snap_disabled(self):
        resolver = _resolver(make_clip("a", duration=5.0), snap=False)
        moved = resolver.resolve_move(make_clip("b", duration=2.0), 5.03)
        assert moved.start == pytest.approx(5.03)


class TestResolveDrag:
    def test_horizontal_pixels_to_seconds(self):
        clip = make_clip("a", duration=2.0)
        resolver = _resolver(clip)
        moved = resolver.resolve_drag(clip, 0.0, "track1", dx_px=160, dy_px=0)
        assert moved.start == pytest.approx(2.0)

    def test_vertical_track_change(self):
        clip = make_clip("m", track_id="track2", duration=2.0)
        resolver = _resolver(clip)
        assert resolver.resolve_drag(clip, 0.0, "track2", 0, 40).track_id == "track3"
        assert resolver.resolve_drag(clip, 0.0, "track2", 0, 15).track_id == "track2"
        assert resolver.resolve_drag(clip, 0.0, "track2", 0, 25).track_id == "track3"

    def test_track_index_clamped(self):
        clip = make_clip("m", track_id="track3", duration=2.0)
        resolver = _resolver(clip)
        assert resolver.resolve_drag(clip, 0.0, "track3", 0, 400).track_id == "track4"

    def test_audio_onto_video_track_rejected(self):
        clip = make_clip("m", track_id="track2", duration=2.0)
        resolver = _resolver(clip)
        assert resolver.resolve_drag(clip, 0.0, "track2", 0, -40) is None


class TestResolveResize:
    def test_end_edge(self):
        clip = make_clip("m", track_id="track2", duration=5.0)
        resized = _resolver(clip).resolve_resize(clip, "end", 3.0)
        assert (resized.start, resized.duration) == (0.0, 3.0)

    def test_start_edge_keeps_end(self):
        clip = make_clip("m", track_id="track2", duration=5.0)
        resized = _resolver(clip).resolve_resize(clip, "start", 2.0)
        assert resized.start == 2.0
        assert resized.end == 5.0

    def test_minimum_duration(self):
        clip = make_clip("m", track_id="track2", duration=5.0)
        resolver = _resolver(clip)
        assert resolver.resolve_resize(clip, "end", 0.1).duration == 0.5
        shrunk = resolver.resolve_resize(clip, "start", 9.0)
        assert shrunk.start == 4.5
        assert shrunk.duration == 0.5

    def test_resize_into_neighbour_rejected(self):
        clip = make_clip("a", track_id="track2", duration=5.0)
        resolver = _resolver(clip, make_clip("b", track_id="track2", start=6.0))
        assert resolver.resolve_resize(clip, "end", 7.0) is None

    def test_resize_below_trims_rejected(self):
        clip = make_clip("a", duration=5.0, trim_start=1.0, trim_end=1.0)
        assert _resolver(clip).resolve_resize(clip, "end", 1.0) is None

    def test_invalid_edge(self):
        clip = make_clip("a")
        with pytest.raises(ValueError, match="Invalid resize edge"):
            _resolver(clip).resolve_resize(clip, "middle", 1.0)


class TestResolveNudge:
    def test_right_and_left(self):
        clip = make_clip("a", start=1.0, duration=2.0)
        resolver = _resolver(clip)
        assert resolver.resolve_nudge(clip, "right").start == pytest.approx(1.1)
        assert resolver.resolve_nudge(clip, "left").start == pytest.approx(0.9)

    def test_coarse_step(self):
        clip = make_clip("a", start=1.0, duration=2.0)
        assert _resolver(clip).resolve_nudge(clip, "right", coarse=True).start == 2.0

    def test_left_stops_at_zero(self):
        clip = make_clip("a", start=0.05, duration=2.0)
        assert _resolver(clip).resolve_nudge(clip, "left").start == 0.0

    def test_edge_nudges(self):
        clip = make_clip("a", start=1.0, duration=2.0)
        resolver = _resolver(clip)
        extended = resolver.resolve_nudge(clip, "extend_end")
        assert extended.duration == pytest.approx(2.1)
        shrunk = resolver.resolve_nudge(clip, "shrink_start")
        assert (shrunk.start, shrunk.end) == (pytest.approx(1.1), pytest.approx(3.0))
        grown = resolver.resolve_nudge(clip, "extend_start")
        assert grown.start == pytest.approx(0.9)
        assert grown.end == pytest.approx(3.0)

    def test_shrink_at_minimum_rejected(self):
        clip = make_clip("a", duration=0.5)
        resolver = _resolver(clip)
        assert resolver.resolve_nudge(clip, "shrink_end") is None
        assert resolver.resolve_nudge(clip, "shrink_start") is None

    def test_nudge_into_neighbour_rejected(self):
        clip = make_clip("a", duration=2.0)
        resolver = _resolver(clip, make_clip("b", start=2.0, duration=2.0))
        assert resolver.resolve_nudge(clip, "right") is None

    def test_invalid_action(self):
        clip = make_clip("a")
        with pytest.raises(ValueError, match="Invalid nudge action"):
            _resolver(clip).resolve_nudge(clip, "up")


class TestResolveDrop:
    def test_fills_defaults(self):
        resolver = _resolver()
        clip = resolver.resolve_drop(DropPayload({"sourceRef": "song.mp3"}), "track2", 3.0)
        assert clip.kind == "audio"
        assert clip.track_id == "track2"
        assert clip.start == 3.0
        assert clip.duration == DEFAULT_DROP_DURATION
        assert clip.id.startswith("clip-")

    def test_keeps_known_duration_and_id(self):
        resolver = _resolver()
        payload = DropPayload({"id": "intro", "sourceRef": "intro.mp4", "duration": 12.0})
        clip = resolver.resolve_drop(payload, "track1", 0.0)
        assert clip.id == "intro"
        assert clip.duration == 12.0

    def test_duplicate_id_replaced(self):
        resolver = _resolver(make_clip("intro"))
        payload = DropPayload({"id": "intro", "sourceRef": "intro.mp4"})
        clip = resolver.resolve_drop(payload, "track1", 20.0)
        assert clip.id != "intro"

    def test_incompatible_kind(self):
        resolver = _resolver()
        with pytest.raises(TrackKindMismatchError):
            resolver.resolve_drop(DropPayload({"sourceRef": "song.mp3"}), "track1", 0.0)

    def test_allowed_track_enforced(self):
        resolver = _resolver()
        payload = DropPayload.from_dict({"sourceRef": "vo.mp3", "allowedTrack": "track4"})
        assert payload.allowed_track == "track4"
        assert "allowedTrack" not in payload.record
        with pytest.raises(TrackKindMismatchError, match="track4"):
            resolver.resolve_drop(payload, "track2", 0.0)
        assert resolver.resolve_drop(payload, "track4", 0.0).track_id == "track4"

    def test_append_after_last_clip(self):
        resolver = _resolver(
            make_clip("a", track_id="track2", duration=4.0),
            make_clip("b", track_id="track2", start=6.0, duration=3.0),
        )
        clip = resolver.resolve_drop(
            DropPayload({"sourceRef": "x.wav"}), "track2", 0.0, append=True,
        )
        assert clip.start == 9.0

    def test_drop_onto_occupied_spot_resolved(self):
        resolver = _resolver(make_clip("a", duration=5.0))
        clip = resolver.resolve_drop(
            DropPayload({"sourceRef": "b.mp4", "duration": 4.0}), "track1", 3.0,
        )
        assert clip.start == 5.0

    def test_unknown_kind(self):
        with pytest.raises(ValueError, match="Cannot determine media kind"):
            _resolver().resolve_drop(DropPayload({"sourceRef": "blob"}), "track1", 0.0)

    def test_missing_source(self):
        with pytest.raises(ValueError, match="no 'sourceRef'"):
            _resolver().resolve_drop(DropPayload({}), "track1", 0.0)
