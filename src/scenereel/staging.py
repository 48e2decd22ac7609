"""Scene image resolution — turn any image reference into raw bytes.

Accepted references:
  - raw bytes
  - data URIs (data:image/png;base64,...)
  - http(s) URLs
  - filesystem paths (str or Path)

Bytes are sniffed with Pillow. JPEG and PNG pass through untouched;
anything else Pillow can decode (WebP, GIF, BMP, TIFF, ...) is
re-encoded to PNG so the engine's image demuxer always gets a format it
reads. Anything Pillow cannot decode is a StagingFailure.
"""

import base64
import binascii
import io
import threading
from pathlib import Path
from urllib.parse import unquote_to_bytes

import requests
from PIL import Image, UnidentifiedImageError

from .errors import StagingFailure
from .sources import FetchCancelled, fetch_bytes

FETCH_TIMEOUT = 30.0

PASSTHROUGH_FORMATS = {"JPEG": "jpg", "PNG": "png"}


def decode_data_uri(uri: str) -> bytes:
    """Decode a data: URI payload (base64 or percent-encoded)."""
    header, sep, payload = uri.partition(",")
    if not sep:
        raise ValueError("data URI has no ',' separator")
    if header.endswith(";base64"):
        try:
            return base64.b64decode(payload, validate=True)
        except binascii.Error as e:
            raise ValueError(f"invalid base64 payload: {e}")
    return unquote_to_bytes(payload)


def load_image_bytes(
    source: bytes | str | Path,
    timeout: float = FETCH_TIMEOUT,
    cancel: threading.Event | None = None,
    session: requests.Session | None = None,
) -> bytes:
    """Resolve an image reference to its raw bytes.

    Raises:
        ValueError: Malformed data URI or empty reference.
        OSError: Unreadable local file.
        requests.RequestException: Remote fetch failed.
    """
    if isinstance(source, (bytes, bytearray)):
        return bytes(source)
    if isinstance(source, Path):
        return source.read_bytes()

    ref = source.strip()
    if not ref:
        raise ValueError("empty image reference")
    if ref.startswith("data:"):
        return decode_data_uri(ref)
    if ref.startswith(("http://", "https://")):
        return fetch_bytes(ref, timeout=timeout, cancel=cancel, session=session)
    return Path(ref).expanduser().read_bytes()


def normalize_image(data: bytes) -> tuple[bytes, str]:
    """Validate image bytes, returning (bytes, file extension).

    Raises:
        ValueError: Not a decodable image.
    """
    if not data:
        raise ValueError("image is empty")
    try:
        with Image.open(io.BytesIO(data)) as img:
            fmt = img.format
            if fmt in PASSTHROUGH_FORMATS:
                img.verify()
                return data, PASSTHROUGH_FORMATS[fmt]
            img.load()
            if img.mode not in ("RGB", "RGBA", "L", "LA"):
                img = img.convert("RGBA" if "A" in img.getbands() else "RGB")
            out = io.BytesIO()
            img.save(out, format="PNG")
            return out.getvalue(), "png"
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, SyntaxError) as e:
        raise ValueError(f"not a decodable image ({e})")


def prepare_scene_image(
    scene_index: int,
    source: bytes | str | Path,
    cancel: threading.Event | None = None,
    session: requests.Session | None = None,
) -> tuple[bytes, str]:
    """Resolve and validate one scene image.

    Raises:
        StagingFailure: Reference could not be resolved or decoded.
        FetchCancelled: Cancelled during a remote fetch.
    """
    try:
        data = load_image_bytes(source, cancel=cancel, session=session)
        return normalize_image(data)
    except FetchCancelled:
        raise
    except (ValueError, OSError, requests.RequestException) as e:
        raise StagingFailure(
            f"Scene {scene_index}: could not load image: {e}",
            scene_index=scene_index,
        )
