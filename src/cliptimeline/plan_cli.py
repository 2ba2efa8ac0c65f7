"""CLI for render plans — print what an export would run, without running it.

Usage:
    cliptimeline plan --project project.yaml
    cliptimeline plan --project project.yaml --work-dir /tmp/render --quality high
"""

import argparse
import shlex

from .errors import TimelineError
from .export_cli import add_logging_args, configure_logging
from .project_manifest import build_timeline, load_project_manifest
from .render_plan import (
    SIZE_DIMENSIONS,
    VALID_FORMATS,
    VALID_QUALITIES,
    ExportOptions,
    build_render_plan,
)


def main(args=None):
    parser = argparse.ArgumentParser(
        description="Print the concat manifest and ffmpeg operations for a project.",
    )
    parser.add_argument(
        "--project", required=True,
        help="Path to YAML project manifest",
    )
    parser.add_argument(
        "--work-dir", default="render",
        help="Directory the plan's intermediate files would go to (default: render)",
    )
    parser.add_argument("--format", choices=sorted(VALID_FORMATS), default=None)
    parser.add_argument("--quality", choices=sorted(VALID_QUALITIES), default=None)
    parser.add_argument("--size", choices=sorted(SIZE_DIMENSIONS), default=None)
    add_logging_args(parser)
    parsed = parser.parse_args(args)
    configure_logging(parsed.log_level)

    try:
        config = load_project_manifest(parsed.project)
        timeline = build_timeline(config)
        base = config["export"]
        options = ExportOptions(
            format=parsed.format or base.format,
            quality=parsed.quality or base.quality,
            size=parsed.size or base.size,
        )
        plan = build_render_plan(
            timeline.snapshot(), options, timeline.video_track.id,
            work_dir=parsed.work_dir,
        )
    except (OSError, ValueError, TimelineError) as exc:
        parser.error(str(exc))

    print(f"# {plan.manifest_path}")
    print(plan.manifest_text, end="")
    print()
    for i, op in enumerate(plan.operations, 1):
        print(f"[{i}] {op.stage}")
        print("    ffmpeg " + " ".join(shlex.quote(a) for a in op.args))

    for before, after, gap in plan.gaps:
        print(f"WARNING: {gap:.2f}s gap between {before} and {after} is not filled")
    for clip_id in plan.skipped:
        print(f"WARNING: clip {clip_id} is skipped (not concatenable)")


if __name__ == "__main__":
    main()
