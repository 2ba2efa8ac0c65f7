"""CLI for export — render a project manifest to one video file.

Usage:
    cliptimeline export --project project.yaml --output final.mp4
    cliptimeline export --project project.yaml --output final.webm \
        --format webm --quality high --size 1080p
"""

import argparse
import logging

from .errors import ExportStageError, SourceFetchError, TimelineError
from .export import ExportEvent, LocalFileFetcher, export_timeline
from .project_manifest import build_timeline, load_project_manifest
from .render_plan import (
    SIZE_DIMENSIONS,
    VALID_FORMATS,
    VALID_QUALITIES,
    ExportOptions,
)


def add_logging_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--log-level", default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging verbosity (default: WARNING)",
    )


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level),
        format="%(levelname)s %(name)s: %(message)s",
    )


def _print_event(event: ExportEvent) -> None:
    if event.status == "progress":
        print(f"  {event.stage:<10} {event.percent:5.1f}%")
    elif event.status == "success":
        print(f"Done: {event.artifact}")
    else:
        print(f"FAILED during {event.stage}: {event.reason}")


def main(args=None):
    parser = argparse.ArgumentParser(
        description="Export a timeline project to a single rendered file.",
    )
    parser.add_argument(
        "--project", required=True,
        help="Path to YAML project manifest",
    )
    parser.add_argument(
        "--output", required=True,
        help="Output file path",
    )
    parser.add_argument(
        "--format", choices=sorted(VALID_FORMATS), default=None,
        help="Override the manifest's export format",
    )
    parser.add_argument(
        "--quality", choices=sorted(VALID_QUALITIES), default=None,
        help="Override the manifest's export quality",
    )
    parser.add_argument(
        "--size", choices=sorted(SIZE_DIMENSIONS), default=None,
        help="Override the manifest's export size",
    )
    add_logging_args(parser)
    parsed = parser.parse_args(args)
    configure_logging(parsed.log_level)

    try:
        config = load_project_manifest(parsed.project)
        timeline = build_timeline(config)
    except (OSError, ValueError, TimelineError) as exc:
        parser.error(str(exc))

    base = config["export"]
    options = ExportOptions(
        format=parsed.format or base.format,
        quality=parsed.quality or base.quality,
        size=parsed.size or base.size,
    )

    print(f"Exporting {config['name']}: {len(timeline)} clips, "
          f"{timeline.duration:.1f}s, {options.format} {options.size} {options.quality}")
    try:
        export_timeline(
            timeline.snapshot(),
            options,
            parsed.output,
            video_track_id=timeline.video_track.id,
            fetcher=LocalFileFetcher(),
            on_event=_print_event,
        )
    except (ExportStageError, SourceFetchError):
        # Already reported through _print_event.
        raise SystemExit(1)


if __name__ == "__main__":
    main()
