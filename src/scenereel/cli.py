"""CLI for composition — render a YAML scene manifest to mp4.

Usage:
    # Render
    python -m scenereel.cli --manifest story.yaml --output story.mp4

    # Validate only (no engine, no rendering)
    python -m scenereel.cli --manifest story.yaml --validate
"""

import argparse
import logging
import sys
import time

from .compositor import Compositor, validate_request
from .errors import CompositionError
from .manifest import load_composition_manifest, validate_image_paths
from .progress import CompositionProgress
from .timing import total_duration


def setup_logging(verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


class _ProgressPrinter:
    """Prints one line per stage change and per 10% step."""

    def __init__(self):
        self._stage = None
        self._decile = -1

    def __call__(self, record: CompositionProgress) -> None:
        decile = int(record.percent // 10)
        if record.stage == self._stage and decile == self._decile:
            return
        self._stage = record.stage
        self._decile = decile
        extra = f"  (eta {record.eta})" if record.eta else ""
        print(f"  [{record.stage.value:>14}] {record.percent:5.1f}%  {record.message}{extra}", flush=True)


def main(args=None):
    parser = argparse.ArgumentParser(
        description="Compose still-image scenes into a video.",
    )
    parser.add_argument(
        "--manifest", required=True,
        help="Path to YAML composition manifest",
    )
    parser.add_argument(
        "--output",
        help="Output mp4 path (required unless --validate)",
    )
    parser.add_argument(
        "--validate", action="store_true",
        help="Validate manifest and timing only, don't render",
    )
    parser.add_argument(
        "--verbose", action="store_true",
        help="Debug logging (includes the full engine command)",
    )
    args = parser.parse_args(args)
    setup_logging(args.verbose)

    request = load_composition_manifest(args.manifest)
    validate_image_paths(request)
    scenes = request.renderable_scenes()

    if args.validate:
        if scenes:
            try:
                validate_request(request, scenes)
            except CompositionError as e:
                print(f"Invalid: {e}")
                sys.exit(1)
        duration = total_duration(
            [s.duration_seconds for s in scenes],
            request.transition_duration_seconds,
            request.transition_enabled,
        )
        print(f"Manifest valid: {len(scenes)}/{len(request.scenes)} renderable scenes")
        for s in request.scenes:
            status = "ok" if s.has_image else "no image"
            text = s.narration_text.replace("\n", " ")[:60]
            print(f"  {s.index}: {s.duration_seconds:.2f}s [{status}] {text}")
        print(f"Expected duration: ~{duration:.1f}s")
        return

    if not args.output:
        parser.error("--output is required (unless using --validate)")

    print(f"Composing {len(scenes)} scenes ({request.resolution}, {request.frame_rate}fps)")
    t0 = time.monotonic()
    try:
        artifact = Compositor(on_progress=_ProgressPrinter()).compose(request)
    except CompositionError as e:
        print(f"\nFailed: {e}")
        sys.exit(1)

    path = artifact.save(args.output)
    elapsed = time.monotonic() - t0
    print(
        f"\nDone: {path} ({artifact.duration_seconds:.1f}s video, "
        f"{artifact.size_bytes / (1024 * 1024):.1f}MB, {elapsed:.1f}s wall)"
    )


if __name__ == "__main__":
    main()
