"""Multi-source fetching: try candidates in order, first success wins.

Used for the engine artifacts (several mirrors, local fallbacks) and
reusable for any resource with more than one place to get it from.
Each HTTP attempt has its own timeout and honours a cancel event between
chunks, so a hung mirror cannot block the process indefinitely.
"""

import logging
import threading
from typing import Callable, Iterable, TypeVar

import requests

logger = logging.getLogger(__name__)

S = TypeVar("S")
R = TypeVar("R")

CHUNK_SIZE = 256 * 1024


class FetchCancelled(Exception):
    """Raised inside a fetch when the caller's cancel event is set."""


class AllSourcesFailed(Exception):
    """Every candidate failed. `attempts` lists (name, reason) in order."""

    def __init__(self, attempts: list[tuple[str, str]]):
        self.attempts = attempts
        detail = "; ".join(f"{name}: {reason}" for name, reason in attempts)
        super().__init__(f"all {len(attempts)} source(s) failed ({detail})")


def first_success(
    candidates: Iterable[S],
    attempt: Callable[[S], R],
    name: Callable[[S], str] = str,
    cancel: threading.Event | None = None,
) -> R:
    """Call `attempt` on each candidate until one returns.

    Any Exception from an attempt abandons that candidate and moves on;
    FetchCancelled propagates immediately.

    Raises:
        AllSourcesFailed: No candidate succeeded (also when there were none).
        FetchCancelled: The cancel event was set.
    """
    attempts: list[tuple[str, str]] = []
    for candidate in candidates:
        if cancel is not None and cancel.is_set():
            raise FetchCancelled()
        label = name(candidate)
        try:
            result = attempt(candidate)
        except FetchCancelled:
            raise
        except Exception as e:
            reason = str(e) or e.__class__.__name__
            logger.warning("Source %s failed: %s", label, reason)
            attempts.append((label, reason))
            continue
        logger.info("Source %s succeeded", label)
        return result
    raise AllSourcesFailed(attempts)


# ── HTTP ──────────────────────────────────────────────────────────


def fetch_bytes(
    url: str,
    timeout: float,
    on_chunk: Callable[[int, int], None] | None = None,
    cancel: threading.Event | None = None,
    session: requests.Session | None = None,
) -> bytes:
    """Download `url` fully into memory.

    Args:
        url: http(s) URL.
        timeout: Seconds allowed for connecting and between received bytes.
        on_chunk: Called with (received_bytes, total_bytes or 0) after
            each chunk.
        cancel: Checked between chunks.
        session: Optional requests session (connection reuse, tests).

    Raises:
        requests.RequestException: Network failure, timeout, non-2xx status.
        FetchCancelled: The cancel event was set mid-download.
    """
    http = session or requests
    with http.get(url, stream=True, timeout=timeout) as response:
        response.raise_for_status()
        total = int(response.headers.get("Content-Length") or 0)
        chunks = []
        received = 0
        for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
            if cancel is not None and cancel.is_set():
                raise FetchCancelled()
            if not chunk:
                continue
            chunks.append(chunk)
            received += len(chunk)
            if on_chunk:
                on_chunk(received, total)
    return b"".join(chunks)


def format_bytes(n: int) -> str:
    """Human-readable size: KB below one megabyte, MB with one decimal above."""
    if n < 1024 * 1024:
        return f"{n / 1024:.0f}KB"
    return f"{n / (1024 * 1024):.1f}MB"
