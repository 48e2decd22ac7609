"""Timing arithmetic for frame counts and transition offsets.

Pure functions, no side effects. All times are seconds (float), all frame
counts are ints.

Transition model: with transitions enabled, every adjacent pair of scenes
overlaps by T seconds. Scene i starts blending into the running composite
at

    offset(i) = sum(duration[0..i-1]) - T * i

so each transition borrows T seconds from the timeline instead of adding
to it, and the total is sum(duration) - T * (N - 1).
"""

import math
from dataclasses import dataclass

from .errors import InvalidConfiguration


def seconds_to_frames(seconds: float, fps: int) -> int:
    """Convert a duration to a whole frame count, rounding half up."""
    return int(math.floor(seconds * fps + 0.5))


def transition_offsets(
    durations: list[float],
    transition: float,
    clamp: bool = True,
) -> list[float]:
    """Start time of each scene's blend into the running composite.

    Returns one offset per scene; offset[0] is always 0 (the first scene
    has nothing to blend into). With clamp=True negative offsets are
    raised to 0; validate_timing() rejects configurations where that
    would ever happen.
    """
    offsets = [0.0]
    elapsed = 0.0
    for i in range(1, len(durations)):
        elapsed += durations[i - 1]
        offset = elapsed - transition * i
        if clamp:
            offset = max(0.0, offset)
        offsets.append(offset)
    return offsets


def total_duration(
    durations: list[float],
    transition: float,
    transitions_enabled: bool,
) -> float:
    """Output duration of the composed video."""
    total = sum(durations)
    if transitions_enabled and len(durations) > 1:
        total -= transition * (len(durations) - 1)
    return total


def validate_timing(
    durations: list[float],
    fps: int,
    transition: float,
    transitions_enabled: bool,
) -> None:
    """Reject timing that would yield negative offsets or empty scenes.

    Raises:
        InvalidConfiguration: non-positive fps or duration, or a
            transition that is not strictly shorter than every scene.
    """
    if not isinstance(fps, int) or isinstance(fps, bool) or fps <= 0:
        raise InvalidConfiguration(f"frame rate must be a positive integer, got {fps!r}")

    for i, d in enumerate(durations):
        if not d > 0:
            raise InvalidConfiguration(
                f"scene {i + 1}: duration must be > 0, got {d!r}"
            )
        if seconds_to_frames(d, fps) < 1:
            raise InvalidConfiguration(
                f"scene {i + 1}: duration {d}s is shorter than one frame at {fps}fps"
            )

    if not transitions_enabled:
        return

    if not transition > 0:
        raise InvalidConfiguration(
            f"transition duration must be > 0 when transitions are enabled, got {transition!r}"
        )
    shortest = min(durations, default=None)
    if shortest is not None and transition >= shortest:
        raise InvalidConfiguration(
            f"transition duration ({transition}s) must be shorter than the "
            f"shortest scene ({shortest}s)"
        )


# ── Timeline summary ──────────────────────────────────────────────


@dataclass
class Timeline:
    """Derived timing for one composition."""

    fps: int
    durations: list[float]
    frames: list[int]
    offsets: list[float]
    transition: float
    transitions_enabled: bool

    @property
    def total_duration(self) -> float:
        return total_duration(self.durations, self.transition, self.transitions_enabled)

    @property
    def total_frames(self) -> int:
        return seconds_to_frames(self.total_duration, self.fps)


def build_timeline(
    durations: list[float],
    fps: int,
    transition: float = 0.0,
    transitions_enabled: bool = False,
) -> Timeline:
    """Validate timing and compute frame counts and offsets in one go."""
    validate_timing(durations, fps, transition, transitions_enabled)
    blending = transitions_enabled and len(durations) > 1
    return Timeline(
        fps=fps,
        durations=list(durations),
        frames=[seconds_to_frames(d, fps) for d in durations],
        offsets=transition_offsets(durations, transition) if blending else [0.0] * len(durations),
        transition=transition if blending else 0.0,
        transitions_enabled=blending,
    )
