"""Tests for render plan compilation (pure, no ffmpeg runs)."""

import pytest

from helpers import make_clip
from cliptimeline.errors import ExportStageError
from cliptimeline.render_plan import (
    AudioMixEntry,
    ConcatEntry,
    ExportOptions,
    build_audio_mix,
    build_concat_list,
    build_mix_filter,
    build_render_plan,
    render_concat_manifest,
    resolve_encode_params,
)


class TestExportOptions:
    def test_defaults(self):
        options = ExportOptions()
        assert options.to_dict() == {"format": "mp4", "quality": "standard", "size": "720p"}

    def test_from_dict_target_size_alias(self):
        options = ExportOptions.from_dict({"format": "webm", "targetSize": "1080p"})
        assert options.size == "1080p"
        assert options.format == "webm"

    def test_from_none(self):
        assert ExportOptions.from_dict(None) == ExportOptions()

    @pytest.mark.parametrize("field,value", [
        ("format", "avi"), ("quality", "ultra"), ("size", "4k"),
    ])
    def test_invalid(self, field, value):
        with pytest.raises(ValueError, match=f"Invalid export {field}"):
            ExportOptions(**{field: value})


class TestEncodeParams:
    def test_mp4_high(self):
        params = resolve_encode_params(ExportOptions("mp4", "high", "1080p"))
        assert (params.width, params.height) == (1920, 1080)
        args = params.codec_args()
        assert args[args.index("-crf") + 1] == "18"
        assert args[args.index("-preset") + 1] == "slow"
        assert "libx264" in args

    def test_webm_draft(self):
        params = resolve_encode_params(ExportOptions("webm", "draft", "480p"))
        assert (params.width, params.height) == (854, 480)
        args = params.codec_args()
        assert "libvpx-vp9" in args
        assert args[args.index("-deadline") + 1] == "realtime"

    def test_gif_frame_rate(self):
        args = resolve_encode_params(ExportOptions("gif", "standard")).codec_args()
        assert args == ["-r", "12", "-an"]


class TestConcatList:
    def test_sorted_by_start(self):
        clips = [
            make_clip("A", start=5.0, duration=5.0),
            make_clip("B", start=0.0, duration=5.0),
            make_clip("C", start=10.0, duration=5.0),
        ]
        entries, skipped, gaps = build_concat_list(clips, "track1")
        assert [e.clip_id for e in entries] == ["B", "A", "C"]
        assert skipped == []
        assert gaps == []

    def test_trim_points(self):
        clip = make_clip("A", duration=10.0, trim_start=1.5, trim_end=2.5)
        entry = build_concat_list([clip], "track1")[0][0]
        assert entry.inpoint == 1.5
        assert entry.outpoint == 7.5
        assert entry.duration == clip.effective_duration

    def test_only_video_track(self):
        clips = [make_clip("v"), make_clip("m", track_id="track2")]
        entries, _, _ = build_concat_list(clips, "track1")
        assert [e.clip_id for e in entries] == ["v"]

    def test_images_skipped(self):
        clips = [make_clip("title", kind="image"), make_clip("v", start=5.0)]
        entries, skipped, _ = build_concat_list(clips, "track1")
        assert [e.clip_id for e in entries] == ["v"]
        assert skipped == ["title"]

    def test_gaps_reported(self):
        clips = [make_clip("a", duration=2.0), make_clip("b", start=3.5, duration=2.0)]
        _, _, gaps = build_concat_list(clips, "track1")
        assert gaps == [("a", "b", pytest.approx(1.5))]

    def test_source_overrides(self):
        entries, _, _ = build_concat_list([make_clip("a")], "track1", {"a": "/tmp/a.mp4"})
        assert entries[0].source == "/tmp/a.mp4"


class TestAudioMix:
    def test_entries(self):
        clips = [
            make_clip("v"),
            make_clip("m", track_id="track2", start=2.0, duration=6.0,
                      trim_start=1.0, trim_end=1.0, volume=0.4),
        ]
        (entry,) = build_audio_mix(clips)
        assert entry.clip_id == "m"
        assert entry.delay == 2.0
        assert entry.trim_start == 1.0
        assert entry.effective_duration == 4.0
        assert entry.volume == 0.4

    def test_muted_clip_is_silent(self):
        (entry,) = build_audio_mix([make_clip("m", track_id="track2", muted=True)])
        assert entry.volume == 0.0

    def test_filter_graph(self):
        entries = [
            AudioMixEntry("m1", "a.wav", 1.0, 3.0, 2.5, 0.4),
            AudioMixEntry("m2", "b.wav", 0.0, 5.0, 0.0, 1.0),
        ]
        assert build_mix_filter(entries) == (
            "[1:a]atrim=start=1.000:duration=3.000,asetpts=PTS-STARTPTS,"
            "volume=0.400,adelay=delays=2500:all=1[a0];"
            "[2:a]atrim=start=0.000:duration=5.000,asetpts=PTS-STARTPTS,"
            "volume=1.000,adelay=delays=0:all=1[a1];"
            "[a0][a1]amix=inputs=2:duration=longest:normalize=0,apad[aout]"
        )


class TestConcatManifest:
    def test_inpoint_only_when_trimmed(self):
        text = render_concat_manifest([
            ConcatEntry("a", "/m/a.mp4", 0.0, 5.0),
            ConcatEntry("b", "/m/b.mp4", 1.25, 4.0),
        ])
        assert text == (
            "file '/m/a.mp4'\n"
            "outpoint 5.000\n"
            "file '/m/b.mp4'\n"
            "inpoint 1.250\n"
            "outpoint 4.000\n"
        )


class TestBuildRenderPlan:
    def test_video_only(self, tmp_path):
        plan = build_render_plan(
            [make_clip("a"), make_clip("b", start=5.0, trim_end=1.0)],
            ExportOptions("mp4", "draft", "480p"),
            "track1",
            work_dir=tmp_path,
        )
        assert plan.stages == ("concat", "encode")
        assert plan.duration == pytest.approx(9.0)
        assert plan.manifest_path == str(tmp_path / "concat_list.txt")
        assert plan.output == str(tmp_path / "output.mp4")
        encode = plan.operations[-1]
        assert encode.args[:4] == ("-i", str(tmp_path / "temp_concat.mp4"), "-s", "854x480")

    def test_with_audio(self, tmp_path):
        plan = build_render_plan(
            [make_clip("a"), make_clip("m", track_id="track2", duration=3.0)],
            ExportOptions("webm"),
            "track1",
            work_dir=tmp_path,
        )
        assert plan.stages == ("concat", "mix_audio", "encode")
        mix = plan.operations[1]
        assert mix.args[:4] == ("-i", str(tmp_path / "temp_concat.mp4"), "-i", "m.mp3")
        assert "[aout]" in mix.args
        assert plan.operations[2].args[1] == str(tmp_path / "temp_with_audio.mp4")
        assert plan.output.endswith("output.webm")

    def test_stage_outputs_chain(self, tmp_path):
        plan = build_render_plan(
            [make_clip("a"), make_clip("m", track_id="track2")],
            ExportOptions(), "track1", work_dir=tmp_path,
        )
        for prev, op in zip(plan.operations, plan.operations[1:]):
            assert prev.output in op.args

    def test_no_video_clips(self):
        with pytest.raises(ExportStageError, match="no video clips") as exc_info:
            build_render_plan([make_clip("m", track_id="track2")], ExportOptions(), "track1")
        assert exc_info.value.stage == "plan"

    def test_plan_does_not_touch_disk(self, tmp_path):
        build_render_plan([make_clip("a")], ExportOptions(), "track1", work_dir=tmp_path)
        assert list(tmp_path.iterdir()) == []
