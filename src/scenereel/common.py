"""Shared helpers for manifest paths and working-storage names."""

import re
import uuid


def resolve_path_vars(text: str, paths: dict[str, str]) -> str:
    """Replace ${name} variables in a string using the paths dict."""
    def _replace(match):
        key = match.group(1)
        if key not in paths:
            raise ValueError(f"Unknown path variable: ${{{key}}}")
        return str(paths[key])
    return re.sub(r"\$\{(\w+)\}", _replace, text)


def sanitize_project_name(name: str) -> str:
    """Reduce a project name to [A-Za-z0-9_-]; other characters become '_'."""
    safe = re.sub(r"[^a-zA-Z0-9_-]", "_", name or "")
    return safe or "video"


def output_filename(project_name: str) -> str:
    """User-facing file name of the finished video."""
    return f"{sanitize_project_name(project_name)}_video.mp4"


def new_request_id() -> str:
    return uuid.uuid4().hex[:12]


# ── Working-storage names ─────────────────────────────────────────
# Working storage is one flat namespace shared by every run in the
# process, so every staged name carries the run's request id.


def staged_image_name(request_id: str, position: int, ext: str) -> str:
    """Zero-padded, per-request name for the image at `position` (0-based)."""
    return f"{request_id}_img_{position:03d}.{ext}"


def staged_output_name(request_id: str, project_name: str) -> str:
    return f"{request_id}_{output_filename(project_name)}"
