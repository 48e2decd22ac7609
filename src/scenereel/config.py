"""Engine configuration read from SCENEREEL_* environment variables."""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import ClassVar


def _float_env(name: str, default: float, minimum: float = 0.0) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return max(minimum, float(raw))
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}")


@dataclass
class EngineSettings:
    """Where to look for the ffmpeg engine and how long to wait for it."""

    env_prefix: ClassVar[str] = "SCENEREEL_"

    ffmpeg_path: str | None = None
    mirrors: list[str] = field(default_factory=list)
    cache_dir: Path = field(default_factory=lambda: Path.home() / ".cache" / "scenereel")
    workdir: Path | None = None
    use_system_ffmpeg: bool = True
    use_bundled_ffmpeg: bool = True
    control_timeout: float = 15.0
    binary_timeout: float = 300.0
    encode_timeout: float = 1800.0
    threads: int | None = None

    @classmethod
    def from_env(cls) -> "EngineSettings":
        prefix = cls.env_prefix
        mirrors = [
            m.strip().rstrip("/")
            for m in os.getenv(f"{prefix}ENGINE_MIRRORS", "").split(",")
            if m.strip()
        ]
        cache_dir = os.getenv(f"{prefix}CACHE_DIR")
        workdir = os.getenv(f"{prefix}WORKDIR")
        threads = os.getenv(f"{prefix}THREADS")
        return cls(
            ffmpeg_path=os.getenv(f"{prefix}FFMPEG") or None,
            mirrors=mirrors,
            cache_dir=Path(cache_dir) if cache_dir else Path.home() / ".cache" / "scenereel",
            workdir=Path(workdir) if workdir else None,
            use_system_ffmpeg=os.getenv(f"{prefix}USE_SYSTEM_FFMPEG", "true").lower() == "true",
            use_bundled_ffmpeg=os.getenv(f"{prefix}USE_BUNDLED_FFMPEG", "true").lower() == "true",
            control_timeout=_float_env(f"{prefix}CONTROL_TIMEOUT", 15.0, minimum=1.0),
            binary_timeout=_float_env(f"{prefix}BINARY_TIMEOUT", 300.0, minimum=1.0),
            encode_timeout=_float_env(f"{prefix}ENCODE_TIMEOUT", 1800.0, minimum=10.0),
            threads=int(threads) if threads else None,
        )
