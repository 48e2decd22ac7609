"""Composition manifest loader — YAML → CompositionRequest.

Manifest schema:
  project: "My Story"              # output name (sanitized)
  video:
    fps: 30                        # default 30
    resolution: 1080p              # 360p | 480p | 720p | 1080p
  motion: true                     # pan/zoom on each still
  transition:
    enabled: true
    style: fade                    # see grades.TRANSITIONS
    duration: 0.5                  # seconds, < shortest scene
  color_grade:
    enabled: true
    style: cinematic               # warm | cool | cinematic | vintage | none
  paths:
    images: "/data/run-1"
  scenes:
    - image: "${images}/001.png"   # path, URL or data URI
      duration: 4.0
      text: "Narration for scene 1"
      index: 1                     # optional, defaults to position + 1

Only structure is checked here (types, required keys, enum names);
timing rules are enforced by the compositor before any engine work.
"""

from pathlib import Path

import yaml

from .common import resolve_path_vars
from .grades import COLOR_GRADES, TRANSITIONS
from .models import RESOLUTIONS, CompositionRequest, Scene


def _section(raw: dict, key: str) -> dict:
    value = raw.get(key) or {}
    if not isinstance(value, dict):
        raise ValueError(f"Manifest: '{key}' must be a mapping")
    return value


def _flag(value, name: str) -> bool:
    if not isinstance(value, bool):
        raise ValueError(f"Manifest: {name} must be true or false, got {value!r}")
    return value


def load_composition_manifest(manifest_path: str | Path) -> CompositionRequest:
    """Load and validate a composition manifest.

    Args:
        manifest_path: Path to the YAML manifest.

    Returns:
        CompositionRequest with ${vars} resolved and defaults applied.

    Raises:
        ValueError: Missing/invalid fields.
        FileNotFoundError: Missing manifest file.
    """
    with open(manifest_path) as f:
        raw = yaml.safe_load(f) or {}
    if not isinstance(raw, dict):
        raise ValueError("Manifest: top level must be a mapping")

    video = _section(raw, "video")
    fps = video.get("fps", 30)
    if not isinstance(fps, int) or isinstance(fps, bool) or fps <= 0:
        raise ValueError(f"Manifest: video.fps must be a positive integer, got {fps!r}")
    resolution = str(video.get("resolution", "1080p"))
    if resolution not in RESOLUTIONS:
        raise ValueError(
            f"Manifest: invalid video.resolution '{resolution}'. Valid: {sorted(RESOLUTIONS)}"
        )

    transition = _section(raw, "transition")
    transition_style = str(transition.get("style", "fade"))
    if transition_style not in TRANSITIONS:
        raise ValueError(
            f"Manifest: invalid transition.style '{transition_style}'. "
            f"Valid: {sorted(TRANSITIONS)}"
        )
    transition_duration = transition.get("duration", 0.5)
    if not isinstance(transition_duration, (int, float)) or isinstance(transition_duration, bool):
        raise ValueError(
            f"Manifest: transition.duration must be a number, got {transition_duration!r}"
        )

    grade = _section(raw, "color_grade")
    grade_style = str(grade.get("style", "cinematic"))
    if grade_style not in COLOR_GRADES:
        raise ValueError(
            f"Manifest: invalid color_grade.style '{grade_style}'. "
            f"Valid: {sorted(COLOR_GRADES)}"
        )

    paths = raw.get("paths", {}) or {}
    scenes = []
    for i, entry in enumerate(raw.get("scenes") or []):
        if not isinstance(entry, dict):
            raise ValueError(f"Scene {i}: must be a mapping")
        if "duration" not in entry:
            raise ValueError(f"Scene {i}: missing required field 'duration'")
        duration = entry["duration"]
        if not isinstance(duration, (int, float)) or isinstance(duration, bool):
            raise ValueError(f"Scene {i}: duration must be a number, got {duration!r}")

        image = entry.get("image")
        if isinstance(image, str):
            image = resolve_path_vars(image, paths)

        scenes.append(Scene(
            index=int(entry.get("index", i + 1)),
            source_image=image,
            duration_seconds=float(duration),
            narration_text=str(entry.get("text", "") or ""),
        ))

    return CompositionRequest(
        scenes=scenes,
        project_name=str(raw.get("project", "video")),
        frame_rate=fps,
        resolution=resolution,
        motion_enabled=_flag(raw.get("motion", True), "motion"),
        transition_enabled=_flag(transition.get("enabled", True), "transition.enabled"),
        transition_style=transition_style,
        transition_duration_seconds=float(transition_duration),
        color_grade_enabled=_flag(grade.get("enabled", True), "color_grade.enabled"),
        color_grade_style=grade_style,
    )


def validate_image_paths(request: CompositionRequest) -> None:
    """Check that every local image path in the request exists on disk.

    URLs, data URIs and in-memory bytes are not checked.

    Raises:
        FileNotFoundError: Lists all missing files.
    """
    missing = []
    for scene in request.scenes:
        ref = scene.source_image
        if not isinstance(ref, (str, Path)) or not str(ref).strip():
            continue
        text = str(ref)
        if text.startswith(("data:", "http://", "https://")):
            continue
        if not Path(text).expanduser().exists():
            missing.append(text)

    if missing:
        msg = f"Missing {len(missing)} image file(s):\n"
        for p in missing:
            msg += f"  - {p}\n"
        raise FileNotFoundError(msg)
