"""Shared test fixtures for scenereel tests."""

import io
from unittest.mock import MagicMock

import imageio_ffmpeg
import numpy as np
import pytest
import requests
from PIL import Image

from scenereel.config import EngineSettings
from scenereel.engine import EngineBootstrapper, LocalSource

_FFMPEG = imageio_ffmpeg.get_ffmpeg_exe()

_COLORS = [(200, 60, 60), (60, 200, 60), (60, 60, 200), (220, 200, 40)]


def make_image(color=(200, 60, 60), size=(96, 64), fmt="PNG") -> bytes:
    """Encode a small gradient image (so motion is visible) in `fmt`."""
    w, h = size
    ramp = np.linspace(0.5, 1.0, w, dtype=np.float32)[None, :, None]
    pixels = (np.ones((h, w, 3), dtype=np.float32) * np.array(color) * ramp).astype(np.uint8)
    out = io.BytesIO()
    Image.fromarray(pixels).save(out, format=fmt)
    return out.getvalue()


@pytest.fixture
def ffmpeg_exe():
    return _FFMPEG


@pytest.fixture
def png_bytes():
    return make_image()


@pytest.fixture
def jpeg_bytes():
    return make_image(fmt="JPEG")


@pytest.fixture
def bmp_bytes():
    return make_image(fmt="BMP")


@pytest.fixture
def image_files(tmp_path):
    """Four small PNG stills on disk, one color each."""
    paths = []
    for i, color in enumerate(_COLORS):
        p = tmp_path / f"scene_{i + 1:03d}.png"
        p.write_bytes(make_image(color))
        paths.append(p)
    return paths


@pytest.fixture
def settings(tmp_path):
    return EngineSettings(
        cache_dir=tmp_path / "cache",
        workdir=tmp_path / "work",
        use_system_ffmpeg=False,
        use_bundled_ffmpeg=True,
    )


@pytest.fixture
def bootstrapper(settings):
    """Bootstrapper that only uses the imageio-ffmpeg bundled binary."""
    return EngineBootstrapper(
        settings=settings,
        sources=[LocalSource("imageio-ffmpeg", imageio_ffmpeg.get_ffmpeg_exe)],
    )


def _fake_response(body: bytes, status: int = 200, chunk: int = 1024):
    resp = MagicMock()
    resp.__enter__.return_value = resp
    resp.__exit__.return_value = False
    resp.status_code = status
    resp.headers = {"Content-Length": str(len(body))}
    if status >= 400:
        resp.raise_for_status.side_effect = requests.HTTPError(f"{status} Error")
    resp.iter_content.side_effect = lambda chunk_size=chunk: [
        body[i:i + chunk] for i in range(0, len(body), chunk)
    ]
    return resp


@pytest.fixture
def fake_http():
    """Factory for a mocked requests session.

    routes maps URL → bytes (200), int (that HTTP status) or an exception
    instance (raised by get). Unknown URLs raise ConnectionError.
    """
    def _make(routes: dict, chunk: int = 1024):
        session = MagicMock()

        def _get(url, stream=False, timeout=None):
            if url not in routes:
                raise requests.ConnectionError(f"cannot reach {url}")
            value = routes[url]
            if isinstance(value, Exception):
                raise value
            if isinstance(value, int):
                return _fake_response(b"", status=value)
            return _fake_response(value, chunk=chunk)

        session.get.side_effect = _get
        return session

    return _make
