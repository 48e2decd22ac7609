"""Progress records and the monotonic reporter that emits them.

A run moves through bootstrapping → staging-inputs → encoding → finished
(or failed / cancelled). The reporter clamps percentages at the point of
emission so repeated or out-of-order engine callbacks can never move the
reported value backwards within a run.
"""

import math
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Callable


class Stage(str, Enum):
    BOOTSTRAPPING = "bootstrapping"
    STAGING = "staging-inputs"
    ENCODING = "encoding"
    FINISHED = "finished"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (Stage.FINISHED, Stage.FAILED, Stage.CANCELLED)


@dataclass(frozen=True)
class CompositionProgress:
    stage: Stage
    percent: float
    message: str
    current_scene_index: int | None = None
    total_scenes: int | None = None
    downloaded_mb: float | None = None
    total_mb: float | None = None
    download_label: str | None = None
    elapsed_seconds: float | None = None
    eta: str | None = None


ProgressCallback = Callable[[CompositionProgress], None]


class ProgressReporter:
    """Wraps a caller callback; keeps percent in [0, 100] and non-decreasing."""

    def __init__(self, callback: ProgressCallback | None = None):
        self._callback = callback
        self._lock = threading.Lock()
        self._percent = 0.0
        self._last: CompositionProgress | None = None

    @property
    def percent(self) -> float:
        return self._percent

    @property
    def last(self) -> CompositionProgress | None:
        return self._last

    def reset(self) -> None:
        """Start a new run at 0%."""
        with self._lock:
            self._percent = 0.0
            self._last = None

    def emit(self, stage: Stage, percent: float, message: str, **extra) -> CompositionProgress:
        with self._lock:
            value = min(100.0, max(self._percent, float(percent)))
            self._percent = value
            record = CompositionProgress(stage=stage, percent=value, message=message, **extra)
            self._last = record
        if self._callback is not None:
            self._callback(record)
        return record


def scale_into(fraction: float, start: float, end: float) -> float:
    """Map a 0..1 fraction into the [start, end] percentage window."""
    fraction = min(1.0, max(0.0, fraction))
    return start + (end - start) * fraction


def format_eta(seconds: float) -> str:
    if seconds <= 0:
        return "Calculating..."
    total = math.ceil(seconds)
    if total < 60:
        return f"~{total}s"
    minutes, secs = divmod(total, 60)
    return f"~{minutes}m {secs}s" if secs else f"~{minutes}m"
