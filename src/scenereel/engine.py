"""Encoding engine bootstrap and the handle used to run it.

The engine is an ffmpeg executable plus a flat working directory that
inputs are staged into and outputs are read back from. One handle exists
per process: it is created on first use, shared by every composition,
and its temp working directory is removed at interpreter exit.

Bootstrap tries candidate sources in order, first success wins:
  1. SCENEREEL_FFMPEG (explicit executable)
  2. ffmpeg on PATH
  3. the binary bundled with imageio-ffmpeg
  4. remote mirrors, each serving a control module (SHA256SUMS-style
     checksum manifest, short timeout) and a binary payload (the ffmpeg
     executable, long timeout). The payload is verified against the
     checksum and installed into the cache dir.
Every candidate must also pass a `-version` probe before it is accepted.

Concurrent ensure_ready() calls coalesce onto a single in-flight
initialization; a failed bootstrap leaves no handle behind so the next
call starts from scratch.
"""

import atexit
import hashlib
import logging
import os
import shutil
import subprocess
import tempfile
import threading
import time
from concurrent.futures import Future
from concurrent.futures import TimeoutError as FutureTimeout
from dataclasses import dataclass
from pathlib import Path
from typing import Callable

import imageio_ffmpeg
import requests

from .config import EngineSettings
from .errors import CompositionCancelled, EncodeFailure, EngineUnavailable
from .progress import ProgressReporter, Stage, scale_into
from .sources import AllSourcesFailed, FetchCancelled, fetch_bytes, first_success, format_bytes

logger = logging.getLogger(__name__)

PROBE_TIMEOUT = 30.0
OUTPUT_TAIL_LINES = 200
WAIT_POLL_INTERVAL = 0.1

# Bootstrap milestones (percent of the whole run).
PCT_STARTING = 5
PCT_CONTROL = 10
PCT_BINARY = 18
PCT_INITIALIZING = 22
PCT_READY = 25


# ── Sources ───────────────────────────────────────────────────────


@dataclass
class LocalSource:
    """An executable already on this machine; `resolve` returns its path."""

    name: str
    resolve: Callable[[], str | None]


@dataclass
class MirrorSource:
    """A remote base URL serving a checksum manifest and an ffmpeg binary."""

    base_url: str
    control_name: str = "SHA256SUMS"
    binary_name: str = "ffmpeg"

    @property
    def name(self) -> str:
        return self.base_url

    @property
    def control_url(self) -> str:
        return f"{self.base_url.rstrip('/')}/{self.control_name}"

    @property
    def binary_url(self) -> str:
        return f"{self.base_url.rstrip('/')}/{self.binary_name}"


def default_sources(settings: EngineSettings) -> list:
    """Candidate sources in priority order for the given settings."""
    sources: list = []
    if settings.ffmpeg_path:
        sources.append(LocalSource("configured", lambda: settings.ffmpeg_path))
    if settings.use_system_ffmpeg:
        sources.append(LocalSource("system", lambda: shutil.which("ffmpeg")))
    if settings.use_bundled_ffmpeg:
        sources.append(LocalSource("imageio-ffmpeg", imageio_ffmpeg.get_ffmpeg_exe))
    sources.extend(MirrorSource(url) for url in settings.mirrors)
    return sources


def parse_checksums(text: str) -> dict[str, str]:
    """Parse `<sha256>  <filename>` lines (sha256sum format, '*' allowed)."""
    sums = {}
    for line in text.splitlines():
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        parts = line.split()
        if len(parts) < 2:
            continue
        digest, filename = parts[0].lower(), parts[-1].lstrip("*")
        sums[filename] = digest
    return sums


def probe_version(executable: str | Path) -> str:
    """Run `<executable> -version` and return its first output line.

    Raises:
        RuntimeError: The executable is missing, hangs, or exits non-zero.
    """
    try:
        result = subprocess.run(
            [str(executable), "-hide_banner", "-version"],
            capture_output=True, encoding="utf-8", errors="replace", timeout=PROBE_TIMEOUT,
        )
    except (OSError, subprocess.SubprocessError) as e:
        raise RuntimeError(f"cannot execute {executable}: {e}")
    if result.returncode != 0:
        raise RuntimeError(f"{executable} -version exited with code {result.returncode}")
    first_line = (result.stdout or "").strip().splitlines()
    return first_line[0] if first_line else "ffmpeg (unknown version)"


# ── Handle ────────────────────────────────────────────────────────


@dataclass
class EngineHandle:
    """A loaded engine: executable, version banner, working storage."""

    executable: Path
    version: str
    source: str
    workdir: Path
    loaded: bool = True
    threads: int | None = None

    # ── Working storage (flat namespace) ──

    def path_for(self, name: str) -> Path:
        if not name or "/" in name or "\\" in name or name in (".", ".."):
            raise ValueError(f"Working storage names must be flat file names, got {name!r}")
        return self.workdir / name

    def write_file(self, name: str, data: bytes) -> None:
        self.path_for(name).write_bytes(data)

    def read_file(self, name: str) -> bytes:
        return self.path_for(name).read_bytes()

    def delete_file(self, name: str) -> None:
        self.path_for(name).unlink()

    def exists(self, name: str) -> bool:
        return self.path_for(name).exists()

    def list_files(self) -> list[str]:
        return sorted(p.name for p in self.workdir.iterdir() if p.is_file())

    # ── Execution ──

    def run(
        self,
        args: list[str],
        expected_duration: float | None = None,
        on_progress: Callable[[float], None] | None = None,
        timeout: float = 1800.0,
        cancel: threading.Event | None = None,
    ) -> list[str]:
        """Run ffmpeg with `args` inside working storage.

        Progress is read from `-progress pipe:1`; on_progress receives the
        fraction of expected_duration encoded so far (0..1).

        Returns:
            Tail of the engine's output lines.

        Raises:
            EncodeFailure: Non-zero exit, timeout, or the process could not start.
            CompositionCancelled: The cancel event was set while running.
        """
        cmd = [
            str(self.executable), "-hide_banner", "-nostdin", "-y",
            "-progress", "pipe:1", "-nostats",
            *args,
        ]
        logger.debug("Engine command: %s", " ".join(cmd))

        try:
            process = subprocess.Popen(
                cmd,
                cwd=str(self.workdir),
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                encoding="utf-8",
                errors="replace",
                bufsize=1,
            )
        except OSError as e:
            raise EncodeFailure(f"Failed to start engine: {e}")

        done = threading.Event()
        stop_reason: list[str] = []

        def _watchdog() -> None:
            deadline = time.monotonic() + timeout
            while not done.wait(0.1):
                if cancel is not None and cancel.is_set():
                    stop_reason.append("cancelled")
                elif time.monotonic() > deadline:
                    stop_reason.append("timeout")
                else:
                    continue
                process.kill()
                return

        watcher = threading.Thread(target=_watchdog, daemon=True)
        watcher.start()

        output_tail: list[str] = []
        try:
            if process.stdout is None:
                raise EncodeFailure("Engine did not provide an output stream")
            for line in process.stdout:
                line = line.strip()
                if not line:
                    continue
                output_tail.append(line)
                if len(output_tail) > OUTPUT_TAIL_LINES:
                    output_tail = output_tail[-OUTPUT_TAIL_LINES:]

                if line.startswith(("out_time_us=", "out_time_ms=")) and on_progress and expected_duration:
                    try:
                        seconds = int(line.split("=", 1)[1]) / 1_000_000
                    except ValueError:
                        continue
                    on_progress(min(1.0, max(0.0, seconds / expected_duration)))
                elif line == "progress=end" and on_progress:
                    on_progress(1.0)
            process.wait()
        finally:
            done.set()
            watcher.join()
            if process.poll() is None:
                process.kill()
                process.wait()

        tail_text = "\n".join(output_tail[-40:])
        if stop_reason and stop_reason[0] == "cancelled":
            raise CompositionCancelled("Encoding cancelled")
        if stop_reason and stop_reason[0] == "timeout":
            raise EncodeFailure(
                f"Engine timed out after {timeout:g}s. Output tail:\n{tail_text}",
                returncode=process.returncode,
                output_tail=tail_text,
            )
        if process.returncode != 0:
            raise EncodeFailure(
                f"Engine failed (code {process.returncode}). Output:\n{tail_text}",
                returncode=process.returncode,
                output_tail=tail_text,
            )
        return output_tail


# ── Bootstrapper ──────────────────────────────────────────────────


class EngineBootstrapper:
    """Owns the process-wide EngineHandle and its lazy initialization."""

    def __init__(
        self,
        settings: EngineSettings | None = None,
        sources: list | None = None,
        session: requests.Session | None = None,
    ):
        self.settings = settings or EngineSettings.from_env()
        self._sources = sources
        self._session = session
        self._lock = threading.Lock()
        self._handle: EngineHandle | None = None
        self._inflight: Future | None = None
        self.initializations = 0

    @property
    def handle(self) -> EngineHandle | None:
        return self._handle

    def sources(self) -> list:
        if self._sources is not None:
            return list(self._sources)
        return default_sources(self.settings)

    def is_ready(self) -> bool:
        handle = self._handle
        return handle is not None and handle.loaded

    def reset(self) -> None:
        """Drop the current handle; the next ensure_ready() bootstraps again."""
        with self._lock:
            if self._handle is not None:
                self._handle.loaded = False
            self._handle = None

    def ensure_ready(
        self,
        reporter: ProgressReporter | None = None,
        cancel: threading.Event | None = None,
    ) -> EngineHandle:
        """Return the loaded engine, bootstrapping it on first use.

        Callers arriving while another thread bootstraps wait for that
        result instead of starting a second initialization. Cancellation
        is per caller: a waiter stops on its own `cancel`, and if the
        bootstrapping caller is cancelled a waiter takes over.

        Raises:
            EngineUnavailable: Every candidate source failed.
            CompositionCancelled: Cancelled while bootstrapping.
        """
        while True:
            with self._lock:
                if self._handle is not None and self._handle.loaded:
                    return self._handle
                owner = self._inflight is None
                if owner:
                    self._inflight = Future()
                future = self._inflight
            if owner:
                break

            logger.debug("Waiting on in-flight engine initialization")
            try:
                return self._wait(future, cancel)
            except CompositionCancelled:
                if cancel is not None and cancel.is_set():
                    raise
                logger.debug("In-flight initialization was cancelled by its caller, retrying")

        try:
            handle = self._initialize(reporter, cancel)
        except BaseException as e:
            with self._lock:
                self._handle = None
                self._inflight = None
            future.set_exception(e)
            raise

        with self._lock:
            self._handle = handle
            self._inflight = None
        future.set_result(handle)
        return handle

    # ── Internals ──

    def _wait(self, future: Future, cancel: threading.Event | None) -> EngineHandle:
        while True:
            if cancel is not None and cancel.is_set():
                raise CompositionCancelled("Cancelled while waiting for the engine")
            try:
                return future.result(timeout=WAIT_POLL_INTERVAL)
            except FutureTimeout:
                continue

    def _emit(self, reporter, percent, message, **extra) -> None:
        if reporter is not None:
            reporter.emit(Stage.BOOTSTRAPPING, percent, message, **extra)

    def _initialize(self, reporter, cancel) -> EngineHandle:
        self.initializations += 1
        self._emit(reporter, PCT_STARTING, "Starting engine...")
        sources = self.sources()

        def _attempt(source) -> tuple[Path, str]:
            if isinstance(source, MirrorSource):
                executable = self._acquire_from_mirror(source, reporter, cancel)
            else:
                executable = self._acquire_local(source, reporter)
            self._emit(reporter, PCT_INITIALIZING, "Initializing engine...")
            return executable, probe_version(executable)

        try:
            (executable, version), source = first_success(
                sources,
                lambda s: (_attempt(s), s),
                name=lambda s: s.name,
                cancel=cancel,
            )
        except FetchCancelled:
            raise CompositionCancelled("Cancelled while loading the engine")
        except AllSourcesFailed as e:
            if not e.attempts:
                raise EngineUnavailable("Engine unavailable: no engine sources configured")
            raise EngineUnavailable(f"Engine unavailable: {e}", attempts=e.attempts)

        workdir = self._make_workdir()
        handle = EngineHandle(
            executable=Path(executable),
            version=version,
            source=source.name,
            workdir=workdir,
            threads=self.settings.threads,
        )
        logger.info("Engine ready: %s (%s) from %s", handle.executable, version, source.name)
        self._emit(reporter, PCT_READY, "Engine loaded")
        return handle

    def _acquire_local(self, source: LocalSource, reporter) -> Path:
        self._emit(reporter, PCT_CONTROL, f"Locating engine ({source.name})...")
        path = source.resolve()
        if not path:
            raise FileNotFoundError("no executable found")
        if not Path(path).is_file():
            raise FileNotFoundError(f"{path} does not exist")
        return Path(path)

    def _acquire_from_mirror(self, source: MirrorSource, reporter, cancel) -> Path:
        self._emit(reporter, PCT_CONTROL, "Downloading control module...")
        control = fetch_bytes(
            source.control_url,
            timeout=self.settings.control_timeout,
            cancel=cancel,
            session=self._session,
        )
        sums = parse_checksums(control.decode("utf-8", errors="replace"))
        expected = sums.get(source.binary_name)
        if not expected:
            raise ValueError(f"control module lists no checksum for {source.binary_name}")

        target = self.settings.cache_dir / expected[:16] / source.binary_name
        if target.is_file() and _sha256_file(target) == expected:
            logger.info("Using cached engine payload %s", target)
            return target

        label = "Downloading binary payload"
        self._emit(reporter, PCT_BINARY, f"{label}...")

        def _on_chunk(received: int, total: int) -> None:
            if reporter is None:
                return
            fraction = received / total if total else 0.0
            reporter.emit(
                Stage.BOOTSTRAPPING,
                scale_into(fraction, PCT_BINARY, PCT_INITIALIZING),
                f"{label}: {format_bytes(received)} / {format_bytes(total)}" if total
                else f"{label}: {format_bytes(received)}",
                downloaded_mb=round(received / (1024 * 1024), 1),
                total_mb=round(total / (1024 * 1024), 1) if total else None,
                download_label=label,
            )

        payload = fetch_bytes(
            source.binary_url,
            timeout=self.settings.binary_timeout,
            on_chunk=_on_chunk,
            cancel=cancel,
            session=self._session,
        )
        actual = hashlib.sha256(payload).hexdigest()
        if actual != expected:
            raise ValueError(f"checksum mismatch for {source.binary_name} ({actual[:12]} != {expected[:12]})")

        target.parent.mkdir(parents=True, exist_ok=True)
        partial = target.with_name(target.name + ".part")
        partial.write_bytes(payload)
        partial.chmod(0o755)
        os.replace(partial, target)
        return target

    def _make_workdir(self) -> Path:
        if self.settings.workdir is not None:
            workdir = Path(self.settings.workdir)
            workdir.mkdir(parents=True, exist_ok=True)
            return workdir
        workdir = Path(tempfile.mkdtemp(prefix="scenereel-"))
        atexit.register(shutil.rmtree, workdir, ignore_errors=True)
        return workdir


def _sha256_file(path: Path) -> str:
    digest = hashlib.sha256()
    with open(path, "rb") as f:
        for block in iter(lambda: f.read(1024 * 1024), b""):
            digest.update(block)
    return digest.hexdigest()


# ── Process-wide default ──────────────────────────────────────────

_default_bootstrapper: EngineBootstrapper | None = None
_default_lock = threading.Lock()


def default_bootstrapper() -> EngineBootstrapper:
    global _default_bootstrapper
    with _default_lock:
        if _default_bootstrapper is None:
            _default_bootstrapper = EngineBootstrapper()
        return _default_bootstrapper


def ensure_engine_ready(
    reporter: ProgressReporter | None = None,
    cancel: threading.Event | None = None,
) -> EngineHandle:
    """Load (once per process) and return the shared engine."""
    return default_bootstrapper().ensure_ready(reporter=reporter, cancel=cancel)
