#!/usr/bin/env python3
"""Generate synthetic media and a demo project for cliptimeline.

Creates four solid-color video clips, two sine-tone audio beds, and a
title card in examples/demo-media/, then writes examples/demo-project.yaml
placing them on the default tracks. Each video clip ends with a white
"END" frame so trims and cut points are obvious in the export.

Usage:
    python examples/generate_demo_clips.py
    # Then:
    cliptimeline inspect --project examples/demo-project.yaml --time 3
    cliptimeline export --project examples/demo-project.yaml \
        --output examples/demo-renders/demo.mp4
"""

import numpy as np
from moviepy import AudioArrayClip, ColorClip, CompositeVideoClip, ImageClip
from pathlib import Path
from PIL import Image, ImageDraw, ImageFont

from cliptimeline.clips import Clip
from cliptimeline.project_manifest import save_project_manifest
from cliptimeline.render_plan import ExportOptions
from cliptimeline.timeline import Timeline

EXAMPLES_DIR = Path(__file__).resolve().parent
OUTPUT_DIR = EXAMPLES_DIR / "demo-media"
SIZE = (320, 240)
FPS = 30
SAMPLE_RATE = 44100

# (name, color, duration)
VIDEOS = [
    ("shot-01", (180, 60, 60),  3.0),  # red
    ("shot-02", (60, 60, 180),  2.5),  # blue
    ("shot-03", (60, 160, 60),  4.0),  # green
    ("shot-04", (200, 130, 40), 2.0),  # orange
]

# (name, frequency Hz, duration)
TONES = [
    ("bed-low", 220.0, 8.0),
    ("voice-high", 660.0, 3.0),
]


def _font(size: int):
    try:
        return ImageFont.truetype(
            "/usr/share/fonts/truetype/dejavu/DejaVuSans-Bold.ttf", size
        )
    except OSError:
        return ImageFont.load_default()


def _text_frame(text: str, bg_color: tuple[int, int, int]) -> Image.Image:
    """White centered text on a solid background."""
    img = Image.new("RGB", SIZE, bg_color)
    draw = ImageDraw.Draw(img)
    font = _font(40)
    bbox = draw.textbbox((0, 0), text, font=font)
    tw, th = bbox[2] - bbox[0], bbox[3] - bbox[1]
    draw.text(((SIZE[0] - tw) / 2, (SIZE[1] - th) / 2), text,
              fill=(255, 255, 255), font=font)
    return img


def _write_video(out: Path, color, duration: float) -> None:
    body_dur = max(duration - 0.5, 0.5)
    body = ColorClip(size=SIZE, color=color, duration=body_dur)
    dim = tuple(max(c // 3, 20) for c in color)
    end_frame = np.array(_text_frame("END", dim))
    end_clip = ImageClip(end_frame, duration=0.5).with_start(body_dur)
    final = CompositeVideoClip([body, end_clip], size=SIZE)
    final.write_videofile(str(out), fps=FPS, logger=None)


def _write_tone(out: Path, freq: float, duration: float) -> None:
    t = np.arange(int(duration * SAMPLE_RATE)) / SAMPLE_RATE
    wave = 0.3 * np.sin(2 * np.pi * freq * t)
    stereo = np.column_stack([wave, wave])
    AudioArrayClip(stereo, fps=SAMPLE_RATE).write_audiofile(str(out), logger=None)


def main():
    OUTPUT_DIR.mkdir(parents=True, exist_ok=True)

    for name, color, duration in VIDEOS:
        out = OUTPUT_DIR / f"{name}.mp4"
        if out.exists():
            print(f"  skip {name} (exists)")
            continue
        _write_video(out, color, duration)
        print(f"  wrote {name} ({duration}s)")

    for name, freq, duration in TONES:
        out = OUTPUT_DIR / f"{name}.wav"
        if out.exists():
            print(f"  skip {name} (exists)")
            continue
        _write_tone(out, freq, duration)
        print(f"  wrote {name} ({duration}s @ {freq:.0f} Hz)")

    title = OUTPUT_DIR / "title.png"
    if not title.exists():
        _text_frame("DEMO", (30, 30, 30)).save(title)
        print("  wrote title.png")

    # Lay the shots back to back on the video track; trim the third one.
    timeline = Timeline()
    start = 0.0
    for name, _, duration in VIDEOS:
        trim_end = 1.0 if name == "shot-03" else 0.0
        timeline.add_clip(Clip(
            id=name, track_id="track1", start=start, duration=duration,
            kind="video", source_ref=str(OUTPUT_DIR / f"{name}.mp4"),
            trim_end=trim_end, name=name,
        ))
        start += duration
    timeline.add_clip(Clip(
        id="bed", track_id="track2", start=0.0, duration=8.0, kind="audio",
        source_ref=str(OUTPUT_DIR / "bed-low.wav"), volume=0.4,
    ))
    timeline.add_clip(Clip(
        id="voice", track_id="track4", start=2.0, duration=3.0, kind="audio",
        source_ref=str(OUTPUT_DIR / "voice-high.wav"),
    ))

    project = EXAMPLES_DIR / "demo-project.yaml"
    save_project_manifest(
        timeline, project, name="demo",
        export=ExportOptions(format="mp4", quality="draft", size="480p"),
    )
    print(f"\nDone. {len(timeline)} clips, {timeline.duration:.1f}s -> {project}")


if __name__ == "__main__":
    main()
