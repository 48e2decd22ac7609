"""Subcommand dispatcher for scenereel.

Usage:
    scenereel compose --manifest story.yaml --output story.mp4
    scenereel compose --manifest story.yaml --validate
    scenereel engine
"""

import argparse
import sys


def main(args=None):
    parser = argparse.ArgumentParser(
        prog="scenereel",
        description="Still-image scenes to narrated-story video.",
    )
    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser("compose", help="Render a YAML scene manifest to mp4")
    subparsers.add_parser("engine", help="Load the encoding engine and report its source")

    parsed, remaining = parser.parse_known_args(args)

    if parsed.command is None:
        parser.print_help()
        sys.exit(1)

    if parsed.command == "compose":
        from .cli import main as compose_main
        compose_main(remaining)
    elif parsed.command == "engine":
        from .engine_cli import main as engine_main
        engine_main(remaining)


if __name__ == "__main__":
    main()
