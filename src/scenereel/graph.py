"""Filter graph builder — per-scene chains combined by xfade or concat.

The graph is built as a small typed IR first and rendered to ffmpeg's
-filter_complex syntax only at the end, so timing and ordering can be
inspected without parsing strings.

Per-scene chain (input i → label v{i}):
  1. loop the still for the scene's frame count, retime to fps
  2. upscale 1.2x past the target size (room to pan)
  3. motion on:  zoompan 1.0 → 1.15 with a small alternating drift
     motion off: fit inside the target size and pad to it
  4. optional color grade expression
  5. trim to the exact duration and reset timestamps
  6. normalize fps / pixel format / SAR so chains are blend-compatible

Combination:
  - one scene, or transitions disabled: concat all chains → [vout]
  - otherwise fold left-to-right with xfade at the offsets from timing.py,
    each fold producing [xf{i}] and the last one [vout]
"""

from dataclasses import dataclass, field
from enum import Enum

from .grades import color_grade_filter, xfade_transition
from .models import CompositionRequest, RESOLUTIONS, Scene
from .timing import Timeline, build_timeline


ZOOM_START = 1.0
ZOOM_END = 1.15
OVERSCAN = 1.2
PAN_X = 0.02
PAN_Y = 0.01

OUTPUT_LABEL = "vout"


def _fmt(value: float) -> str:
    """Fixed 3-decimal seconds, the precision used throughout the graph."""
    return f"{value:.3f}"


def _even(value: float) -> int:
    """Round to the nearest even integer (libx264 needs even dimensions)."""
    n = int(round(value))
    return n if n % 2 == 0 else n + 1


# ── IR ────────────────────────────────────────────────────────────


@dataclass
class InputSpec:
    path: str
    options: list[str] = field(default_factory=list)

    def to_args(self) -> list[str]:
        return [*self.options, "-i", self.path]


@dataclass
class FilterOp:
    """A single filter. `raw` holds a pre-rendered expression (may be a
    comma-joined sub-chain, as color grades are)."""

    name: str
    params: list[tuple[str, object]] = field(default_factory=list)
    raw: str | None = None

    def render(self) -> str:
        if self.raw is not None:
            return self.raw
        if not self.params:
            return self.name
        args = ":".join(f"{k}={v}" for k, v in self.params)
        return f"{self.name}={args}"


@dataclass
class SceneChain:
    position: int
    scene_index: int
    input_index: int
    frames: int
    duration: float
    ops: list[FilterOp]

    @property
    def label(self) -> str:
        return f"v{self.position}"

    def op_names(self) -> list[str]:
        return [op.name for op in self.ops]

    def render(self) -> str:
        body = ",".join(op.render() for op in self.ops)
        return f"[{self.input_index}:v]{body}[{self.label}]"


class CombineMode(str, Enum):
    CONCAT = "concat"
    XFADE = "xfade"


@dataclass
class Blend:
    left: str
    right: str
    transition: str
    duration: float
    offset: float
    out: str

    def render(self) -> str:
        return (
            f"[{self.left}][{self.right}]xfade=transition={self.transition}"
            f":duration={_fmt(self.duration)}:offset={_fmt(self.offset)}[{self.out}]"
        )


@dataclass
class FilterGraph:
    inputs: list[InputSpec]
    chains: list[SceneChain]
    mode: CombineMode
    blends: list[Blend]
    timeline: Timeline
    output_label: str = OUTPUT_LABEL

    def input_args(self) -> list[str]:
        args: list[str] = []
        for spec in self.inputs:
            args.extend(spec.to_args())
        return args

    def render(self) -> str:
        parts = [chain.render() for chain in self.chains]
        if self.mode == CombineMode.XFADE:
            parts.extend(blend.render() for blend in self.blends)
        else:
            labels = "".join(f"[{chain.label}]" for chain in self.chains)
            parts.append(f"{labels}concat=n={len(self.chains)}:v=1:a=0[{self.output_label}]")
        return ";".join(parts)

    def parts(self) -> tuple[list[str], str, str]:
        """(per-input arguments, filter_complex expression, output label)."""
        return self.input_args(), self.render(), self.output_label


# ── Builder ───────────────────────────────────────────────────────


def _motion_ops(
    position: int, frames: int, width: int, height: int, fps: int,
) -> list[FilterOp]:
    # Horizontal drift flips every scene, vertical on a period of three,
    # so consecutive scenes never all drift the same way.
    pan_x = PAN_X if position % 2 == 0 else -PAN_X
    pan_y = PAN_Y if position % 3 == 0 else -PAN_Y
    zoom = f"{ZOOM_START}+{ZOOM_END - ZOOM_START:.2f}*on/{frames}"
    x = f"iw/2-(iw/zoom/2)+iw*{pan_x}*on/{frames}"
    y = f"ih/2-(ih/zoom/2)+ih*{pan_y}*on/{frames}"
    return [
        FilterOp("zoompan", [
            ("z", f"'{zoom}'"),
            ("x", f"'{x}'"),
            ("y", f"'{y}'"),
            ("d", 1),
            ("s", f"{width}x{height}"),
            ("fps", fps),
        ]),
    ]


def _fit_ops(width: int, height: int) -> list[FilterOp]:
    return [
        FilterOp("scale", [("w", width), ("h", height), ("force_original_aspect_ratio", "decrease")]),
        FilterOp("pad", [("w", width), ("h", height), ("x", "(ow-iw)/2"), ("y", "(oh-ih)/2")]),
    ]


def build_scene_chain(
    position: int,
    scene: Scene,
    frames: int,
    request: CompositionRequest,
) -> SceneChain:
    """Build the filter chain for the scene at `position` (0-based)."""
    width, height = RESOLUTIONS[request.resolution]
    fps = request.frame_rate

    ops = [
        FilterOp("loop", [("loop", frames - 1), ("size", 1), ("start", 0)]),
        FilterOp("setpts", [], raw=f"setpts=N/{fps}/TB"),
        FilterOp("scale", [("w", _even(width * OVERSCAN)), ("h", _even(height * OVERSCAN))]),
    ]
    if request.motion_enabled:
        ops.extend(_motion_ops(position, frames, width, height, fps))
    else:
        ops.extend(_fit_ops(width, height))

    if request.color_grade_enabled:
        grade = color_grade_filter(request.color_grade_style)
        if grade:
            ops.append(FilterOp("grade", raw=grade))

    ops.extend([
        FilterOp("trim", [("duration", _fmt(scene.duration_seconds))]),
        FilterOp("setpts", [], raw="setpts=PTS-STARTPTS"),
        FilterOp("fps", [("fps", fps)]),
        FilterOp("format", [("pix_fmts", "yuv420p")]),
        FilterOp("setsar", [("sar", 1)]),
    ])
    return SceneChain(
        position=position,
        scene_index=scene.index,
        input_index=position,
        frames=frames,
        duration=scene.duration_seconds,
        ops=ops,
    )


def build_graph(
    scenes: list[Scene],
    request: CompositionRequest,
    input_names: list[str],
) -> FilterGraph:
    """Build the complete graph for already-filtered, renderable scenes.

    Args:
        scenes: Scenes with resolvable images, in display order.
        request: Global options (fps, resolution, motion, transitions, grade).
        input_names: Staged file name for each scene, same order.

    Returns:
        FilterGraph whose parts() gives (input args, graph, output label).

    Raises:
        ValueError: Empty scene list or input_names length mismatch.
        InvalidConfiguration: Timing that would produce a wrong timeline.
    """
    if not scenes:
        raise ValueError("No scenes to build a graph for")
    if len(input_names) != len(scenes):
        raise ValueError(
            f"Expected {len(scenes)} input names, got {len(input_names)}"
        )

    fps = request.frame_rate
    timeline = build_timeline(
        [s.duration_seconds for s in scenes],
        fps,
        request.transition_duration_seconds,
        request.transition_enabled,
    )

    inputs = [
        InputSpec(
            path=name,
            options=["-loop", "1", "-framerate", str(fps), "-t", _fmt(scene.duration_seconds)],
        )
        for scene, name in zip(scenes, input_names)
    ]
    chains = [
        build_scene_chain(i, scene, timeline.frames[i], request)
        for i, scene in enumerate(scenes)
    ]

    if not timeline.transitions_enabled:
        return FilterGraph(
            inputs=inputs, chains=chains, mode=CombineMode.CONCAT,
            blends=[], timeline=timeline,
        )

    transition = xfade_transition(request.transition_style)
    blends = []
    current = chains[0].label
    for i in range(1, len(chains)):
        out = OUTPUT_LABEL if i == len(chains) - 1 else f"xf{i}"
        blends.append(Blend(
            left=current,
            right=chains[i].label,
            transition=transition,
            duration=timeline.transition,
            offset=timeline.offsets[i],
            out=out,
        ))
        current = out

    return FilterGraph(
        inputs=inputs, chains=chains, mode=CombineMode.XFADE,
        blends=blends, timeline=timeline,
    )
