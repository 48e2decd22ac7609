"""Encode orchestration — scenes in, one mp4 artifact out.

Pipeline for one request:
  1. Keep scenes that carry an image reference; none → NoRenderableScenes.
  2. Validate timing and options (before touching the engine).
  3. Ensure the shared engine is loaded.
  4. Stage each scene image into working storage, one at a time.
  5. Build the filter graph and run a single encode command.
  6. Read the output back as an Artifact.
  7. Delete every staged input and the output, whatever happened.

Progress windows (percent of the run):
  bootstrapping 0–25, staging 25–40, encoding 40–99, finished 100.
"""

import logging
import threading
import time

import requests

from .common import (
    new_request_id,
    output_filename,
    sanitize_project_name,
    staged_image_name,
    staged_output_name,
)
from .engine import PCT_READY, EngineBootstrapper, EngineHandle, default_bootstrapper
from .errors import (
    CompositionCancelled,
    CompositionError,
    EncodeFailure,
    InvalidConfiguration,
    NoRenderableScenes,
    StagingFailure,
)
from .grades import TRANSITIONS
from .graph import FilterGraph, build_graph
from .models import RESOLUTIONS, Artifact, CompositionRequest, Scene
from .progress import ProgressCallback, ProgressReporter, Stage, format_eta, scale_into
from .sources import FetchCancelled
from .staging import prepare_scene_image
from .timing import validate_timing

logger = logging.getLogger(__name__)

PCT_STAGING_START = PCT_READY
PCT_ENCODING_START = 40
PCT_ENCODING_END = 99

VIDEO_CODEC = "libx264"
VIDEO_PRESET = "fast"
VIDEO_CRF = "23"
PIXEL_FORMAT = "yuv420p"


def validate_request(request: CompositionRequest, scenes: list[Scene]) -> None:
    """Reject requests that would build a wrong or invalid graph.

    Raises:
        InvalidConfiguration: Unknown resolution / transition style,
            duplicate scene indices, or invalid timing.
    """
    if request.resolution not in RESOLUTIONS:
        raise InvalidConfiguration(
            f"Unknown resolution '{request.resolution}'. Valid: {sorted(RESOLUTIONS)}"
        )

    seen = set()
    for scene in request.scenes:
        if scene.index in seen:
            raise InvalidConfiguration(f"Duplicate scene index {scene.index}")
        seen.add(scene.index)

    if request.transition_enabled and len(scenes) > 1:
        style = (request.transition_style or "").strip().lower()
        if style not in TRANSITIONS:
            raise InvalidConfiguration(
                f"Unknown transition style '{request.transition_style}'. "
                f"Valid: {sorted(TRANSITIONS)}"
            )

    validate_timing(
        [s.duration_seconds for s in scenes],
        request.frame_rate,
        request.transition_duration_seconds,
        request.transition_enabled,
    )


def build_encode_args(
    graph: FilterGraph,
    request: CompositionRequest,
    output_name: str,
    threads: int | None = None,
) -> list[str]:
    """Full engine argument list: inputs, graph, muxing options, output."""
    input_args, filter_complex, label = graph.parts()
    args = [
        *input_args,
        "-filter_complex", filter_complex,
        "-map", f"[{label}]",
        "-c:v", VIDEO_CODEC,
        "-preset", VIDEO_PRESET,
        "-crf", VIDEO_CRF,
    ]
    if threads:
        args += ["-threads", str(threads)]
    args += [
        "-pix_fmt", PIXEL_FORMAT,
        "-r", str(request.frame_rate),
        "-movflags", "+faststart",
        "-an",
        output_name,
    ]
    return args


class Compositor:
    """Runs composition requests against a (shared) engine."""

    def __init__(
        self,
        bootstrapper: EngineBootstrapper | None = None,
        on_progress: ProgressCallback | None = None,
        encode_timeout: float | None = None,
        session: requests.Session | None = None,
    ):
        self.bootstrapper = bootstrapper or default_bootstrapper()
        self.reporter = ProgressReporter(on_progress)
        self.encode_timeout = encode_timeout or self.bootstrapper.settings.encode_timeout
        self._session = session

    def compose(
        self,
        request: CompositionRequest,
        cancel: threading.Event | None = None,
    ) -> Artifact:
        """Render `request` to an mp4 Artifact.

        Raises:
            NoRenderableScenes: No scene has an image reference.
            InvalidConfiguration: Options/timing rejected before engine work.
            EngineUnavailable: The engine could not be loaded.
            StagingFailure: A scene image could not be resolved or staged.
            EncodeFailure: The engine failed or produced no output.
            CompositionCancelled: `cancel` was set during the run.
            CompositionError: Any other failure, wrapped.
        """
        reporter = self.reporter
        reporter.reset()

        scenes = request.renderable_scenes()
        if not scenes:
            error = NoRenderableScenes("No scene has an image to render")
            reporter.emit(Stage.FAILED, 0, str(error))
            raise error
        try:
            validate_request(request, scenes)
        except InvalidConfiguration as e:
            reporter.emit(Stage.FAILED, 0, str(e))
            raise

        request_id = sanitize_project_name(request.request_id) if request.request_id else new_request_id()
        output_name = staged_output_name(request_id, request.project_name)
        staged: list[str] = []
        engine: EngineHandle | None = None
        logger.info(
            "Composing %d scene(s) for '%s' (request %s)",
            len(scenes), request.project_name, request_id,
        )

        try:
            engine = self.bootstrapper.ensure_ready(reporter=reporter, cancel=cancel)
            input_names = self._stage_inputs(engine, scenes, request_id, staged, cancel)

            graph = build_graph(scenes, request, input_names)
            args = build_encode_args(graph, request, output_name, threads=engine.threads)
            self._check_cancel(cancel)

            self._encode(engine, args, graph, cancel)
            self._check_cancel(cancel)

            if not engine.exists(output_name):
                raise EncodeFailure(f"Engine finished without producing {output_name}")
            data = engine.read_file(output_name)
        except CompositionCancelled:
            reporter.emit(Stage.CANCELLED, reporter.percent, "Generation cancelled")
            raise
        except CompositionError as e:
            reporter.emit(Stage.FAILED, reporter.percent, str(e))
            raise
        except OSError as e:
            error = EncodeFailure(f"Engine storage error: {e}")
            reporter.emit(Stage.FAILED, reporter.percent, str(error))
            raise error from e
        except Exception as e:
            logger.exception("Unexpected failure while composing request %s", request_id)
            error = CompositionError(f"Unexpected failure: {e.__class__.__name__}: {e}")
            reporter.emit(Stage.FAILED, reporter.percent, str(error))
            raise error from e
        finally:
            if engine is not None:
                self._cleanup(engine, [*staged, output_name])

        artifact = Artifact(
            data=data,
            filename=output_filename(request.project_name),
            duration_seconds=graph.timeline.total_duration,
            frame_count=graph.timeline.total_frames,
        )
        reporter.emit(
            Stage.FINISHED, 100,
            f"Video generated: {len(scenes)} scene(s), {artifact.duration_seconds:.1f}s",
        )
        return artifact

    # ── Steps ──

    def _check_cancel(self, cancel: threading.Event | None) -> None:
        if cancel is not None and cancel.is_set():
            raise CompositionCancelled("Generation cancelled")

    def _stage_inputs(
        self,
        engine: EngineHandle,
        scenes: list[Scene],
        request_id: str,
        staged: list[str],
        cancel: threading.Event | None,
    ) -> list[str]:
        """Write each scene image into working storage; returns names in order.

        `staged` is appended to as files land, so the caller can clean up
        after a partial failure.
        """
        total = len(scenes)
        self.reporter.emit(
            Stage.STAGING, PCT_STAGING_START, "Processing images...",
            current_scene_index=0, total_scenes=total,
        )
        names = []
        for position, scene in enumerate(scenes):
            self._check_cancel(cancel)
            self.reporter.emit(
                Stage.STAGING,
                scale_into(position / total, PCT_STAGING_START, PCT_ENCODING_START),
                f"Loading image {position + 1}/{total}...",
                current_scene_index=scene.index,
                total_scenes=total,
            )
            try:
                data, ext = prepare_scene_image(
                    scene.index, scene.source_image, cancel=cancel, session=self._session,
                )
            except FetchCancelled:
                raise CompositionCancelled("Generation cancelled")

            name = staged_image_name(request_id, position, ext)
            try:
                engine.write_file(name, data)
            except OSError as e:
                raise StagingFailure(
                    f"Scene {scene.index}: could not stage image: {e}",
                    scene_index=scene.index,
                )
            staged.append(name)
            names.append(name)
        return names

    def _encode(
        self,
        engine: EngineHandle,
        args: list[str],
        graph: FilterGraph,
        cancel: threading.Event | None,
    ) -> None:
        reporter = self.reporter
        reporter.emit(Stage.ENCODING, PCT_ENCODING_START, "Encoding video...")
        started = time.monotonic()
        last_step = -1

        def _on_progress(fraction: float) -> None:
            nonlocal last_step
            step = int(fraction * 100)
            if step <= last_step:
                return
            last_step = step
            elapsed = time.monotonic() - started
            remaining = elapsed / fraction - elapsed if fraction > 0.05 else 0.0
            reporter.emit(
                Stage.ENCODING,
                scale_into(fraction, PCT_ENCODING_START, PCT_ENCODING_END),
                f"Encoding video... {step}%",
                elapsed_seconds=round(elapsed, 1),
                eta=format_eta(remaining),
            )

        engine.run(
            args,
            expected_duration=graph.timeline.total_duration,
            on_progress=_on_progress,
            timeout=self.encode_timeout,
            cancel=cancel,
        )

    def _cleanup(self, engine: EngineHandle, names: list[str]) -> None:
        """Best-effort removal of staged files; failures are only logged."""
        for name in names:
            try:
                if engine.exists(name):
                    engine.delete_file(name)
            except OSError as e:
                logger.warning("Could not delete %s from working storage: %s", name, e)


def compose(
    request: CompositionRequest,
    on_progress: ProgressCallback | None = None,
    cancel: threading.Event | None = None,
    bootstrapper: EngineBootstrapper | None = None,
) -> Artifact:
    """Compose `request` with the process-wide engine."""
    return Compositor(bootstrapper=bootstrapper, on_progress=on_progress).compose(request, cancel=cancel)
