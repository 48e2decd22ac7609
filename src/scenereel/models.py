"""Data model for composition requests and their output artifact."""

from dataclasses import dataclass, field
from pathlib import Path


# ── Resolutions ────────────────────────────────────────────────────

RESOLUTIONS = {
    "360p": (640, 360),
    "480p": (854, 480),
    "720p": (1280, 720),
    "1080p": (1920, 1080),
}

DEFAULT_RESOLUTION = "1080p"


# ── Request ────────────────────────────────────────────────────────


@dataclass
class Scene:
    """One still image shown for an exact duration.

    source_image may be raw bytes, a filesystem path, a data URI
    (data:image/png;base64,...) or an http(s) URL. narration_text is
    carried through untouched; it is never rendered into pixels.
    """

    index: int
    source_image: bytes | str | Path | None
    duration_seconds: float
    narration_text: str = ""

    @property
    def has_image(self) -> bool:
        if self.source_image is None:
            return False
        if isinstance(self.source_image, (bytes, bytearray)):
            return len(self.source_image) > 0
        return bool(str(self.source_image).strip())


@dataclass
class CompositionRequest:
    """A full composition job: ordered scenes plus global options."""

    scenes: list[Scene]
    project_name: str = "video"
    frame_rate: int = 30
    resolution: str = DEFAULT_RESOLUTION
    motion_enabled: bool = True
    transition_enabled: bool = True
    transition_style: str = "fade"
    transition_duration_seconds: float = 0.5
    color_grade_enabled: bool = True
    color_grade_style: str = "cinematic"
    request_id: str | None = None

    def renderable_scenes(self) -> list[Scene]:
        """Scenes with an image reference, in display order."""
        return [s for s in self.scenes if s.has_image]

    @property
    def size(self) -> tuple[int, int]:
        return RESOLUTIONS[self.resolution]


# ── Output ─────────────────────────────────────────────────────────


@dataclass
class Artifact:
    """Encoded video bytes handed back to the caller."""

    data: bytes = field(repr=False)
    filename: str
    duration_seconds: float
    frame_count: int
    content_type: str = "video/mp4"

    @property
    def size_bytes(self) -> int:
        return len(self.data)

    def save(self, path: str | Path) -> Path:
        """Write the video to disk, appending .mp4 if the name lacks it."""
        target = Path(path)
        if target.suffix.lower() != ".mp4":
            target = target.with_name(target.name + ".mp4")
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(self.data)
        return target
