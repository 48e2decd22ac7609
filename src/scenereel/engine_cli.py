"""CLI that bootstraps the encoding engine and reports what was loaded.

Usage:
    python -m scenereel.engine_cli
    SCENEREEL_ENGINE_MIRRORS=https://mirror.example/ffmpeg python -m scenereel.engine_cli
"""

import argparse
import sys

from .cli import setup_logging
from .engine import default_bootstrapper
from .errors import CompositionError, EngineUnavailable
from .progress import ProgressReporter


def main(args=None):
    parser = argparse.ArgumentParser(
        description="Load the encoding engine and print its source and version.",
    )
    parser.add_argument(
        "--verbose", action="store_true",
        help="Debug logging",
    )
    args = parser.parse_args(args)
    setup_logging(args.verbose)

    bootstrapper = default_bootstrapper()
    print("Candidate sources:")
    for source in bootstrapper.sources():
        print(f"  - {source.name}")

    reporter = ProgressReporter(lambda r: print(f"  {r.percent:5.1f}%  {r.message}", flush=True))
    try:
        handle = bootstrapper.ensure_ready(reporter=reporter)
    except EngineUnavailable as e:
        print(f"\n{e}")
        for name, reason in e.attempts:
            print(f"  - {name}: {reason}")
        sys.exit(1)
    except CompositionError as e:
        print(f"\n{e}")
        sys.exit(1)

    print(f"\nEngine:  {handle.executable}")
    print(f"Version: {handle.version}")
    print(f"Source:  {handle.source}")
    print(f"Storage: {handle.workdir}")


if __name__ == "__main__":
    main()
