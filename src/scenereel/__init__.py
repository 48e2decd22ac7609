"""scenereel — compose still-image scenes into an mp4.

Each scene is a picture with a display duration. Scenes get a slow
pan/zoom, an optional color grade and optional blended transitions, and
are encoded in one pass by an ffmpeg engine that is loaded once per
process and shared by every composition.
"""

from .compositor import Compositor, compose
from .errors import (
    CompositionCancelled,
    CompositionError,
    EncodeFailure,
    EngineUnavailable,
    InvalidConfiguration,
    NoRenderableScenes,
    StagingFailure,
)
from .engine import ensure_engine_ready
from .models import Artifact, CompositionRequest, Scene
from .progress import CompositionProgress, Stage

__all__ = [
    "Artifact",
    "CompositionCancelled",
    "CompositionError",
    "CompositionProgress",
    "CompositionRequest",
    "Compositor",
    "EncodeFailure",
    "EngineUnavailable",
    "InvalidConfiguration",
    "NoRenderableScenes",
    "Scene",
    "Stage",
    "StagingFailure",
    "compose",
    "ensure_engine_ready",
]
