"""CLI for playback inspection — what the preview shows at a given time.

Usage:
    cliptimeline inspect --project project.yaml --time 12.5
    cliptimeline inspect --project project.yaml --time 3 --volume 0.8 --muted
"""

import argparse

from .errors import TimelineError
from .export_cli import add_logging_args, configure_logging
from .playback import resolve_frame
from .project_manifest import build_timeline, load_project_manifest


def _describe(state) -> str:
    clip = state.clip
    status = "held" if state.held else "playing"
    return (
        f"{clip.id:<16} {clip.track_id:<8} {clip.kind:<6} {status:<8} "
        f"local={state.local_time:7.3f}s  volume={state.volume:.2f}"
    )


def main(args=None):
    parser = argparse.ArgumentParser(
        description="Show the active clips, local times, and volumes at a time.",
    )
    parser.add_argument(
        "--project", required=True,
        help="Path to YAML project manifest",
    )
    parser.add_argument(
        "--time", type=float, required=True,
        help="Global playback time in seconds",
    )
    parser.add_argument(
        "--volume", type=float, default=None,
        help="Master volume override (default: manifest playback.volume)",
    )
    parser.add_argument(
        "--muted", action="store_true",
        help="Master mute",
    )
    add_logging_args(parser)
    parsed = parser.parse_args(args)
    configure_logging(parsed.log_level)

    if parsed.time < 0:
        parser.error("--time must be >= 0")

    try:
        config = load_project_manifest(parsed.project)
        timeline = build_timeline(config)
    except (OSError, ValueError, TimelineError) as exc:
        parser.error(str(exc))

    playback = config["playback"]
    volume = parsed.volume if parsed.volume is not None else playback["volume"]
    muted = parsed.muted or playback["muted"]

    frame = resolve_frame(timeline.snapshot(), parsed.time, volume, muted)
    print(f"t={frame.time:.3f}s of {timeline.duration:.3f}s")
    if not frame.states:
        print("  (nothing active)")
    for state in frame.states:
        print("  " + _describe(state))


if __name__ == "__main__":
    main()
