"""Error taxonomy for scene composition.

Every failure that crosses the compositor boundary is a CompositionError
subclass carrying a human-readable message. Raw engine / network / decode
errors are wrapped, never surfaced as-is.
"""


class CompositionError(Exception):
    """Base class for all composition failures."""


class InvalidConfiguration(CompositionError):
    """Request options that would produce wrong timing or an invalid graph."""


class NoRenderableScenes(CompositionError):
    """No scene in the request carries a usable image reference."""


class EngineUnavailable(CompositionError):
    """Every candidate engine source failed, timed out or was rejected.

    `attempts` holds one (source_name, reason) pair per source tried, in
    the order they were tried.
    """

    def __init__(self, message: str, attempts: list[tuple[str, str]] | None = None):
        super().__init__(message)
        self.attempts = list(attempts or [])


class StagingFailure(CompositionError):
    """A scene image could not be resolved, decoded or written to storage."""

    def __init__(self, message: str, scene_index: int | None = None):
        super().__init__(message)
        self.scene_index = scene_index


class EncodeFailure(CompositionError):
    """The engine exited with an error or did not produce an output file."""

    def __init__(
        self,
        message: str,
        returncode: int | None = None,
        output_tail: str = "",
    ):
        super().__init__(message)
        self.returncode = returncode
        self.output_tail = output_tail


class CompositionCancelled(CompositionError):
    """The caller cancelled the run."""
