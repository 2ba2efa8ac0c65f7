"""Subcommand dispatcher for cliptimeline.

Usage:
    cliptimeline export   --project project.yaml --output final.mp4
    cliptimeline plan     --project project.yaml
    cliptimeline inspect  --project project.yaml --time 12.5
"""

import argparse
import sys


def main(args=None):
    parser = argparse.ArgumentParser(
        prog="cliptimeline",
        description="Multi-track timeline engine: preview state, render plans, export.",
    )
    subparsers = parser.add_subparsers(dest="command")

    # Register subcommands. Each delegates to its own module's main().
    subparsers.add_parser("export", help="Render a project to a single video file")
    subparsers.add_parser("plan", help="Print the ffmpeg operations for a project")
    subparsers.add_parser("inspect", help="Show active clips at a playback time")

    # Parse only the subcommand name, pass the rest to the subcommand's parser.
    parsed, remaining = parser.parse_known_args(args)

    if parsed.command is None:
        parser.print_help()
        sys.exit(1)

    if parsed.command == "export":
        from .export_cli import main as export_main
        export_main(remaining)
    elif parsed.command == "plan":
        from .plan_cli import main as plan_main
        plan_main(remaining)
    elif parsed.command == "inspect":
        from .inspect_cli import main as inspect_main
        inspect_main(remaining)


if __name__ == "__main__":
    main()
