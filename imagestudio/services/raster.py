from __future__ import annotations

import base64
import binascii
import logging
from dataclasses import dataclass
from io import BytesIO
from typing import Union
from urllib.parse import urlsplit

import cv2
import httpx
import numpy as np
from PIL import Image, ImageOps, UnidentifiedImageError
try:
    from pillow_heif import register_heif_opener
except Exception:  # pragma: no cover
    register_heif_opener = None

if register_heif_opener is not None:
    try:
        register_heif_opener()
    except Exception:
        pass

from imagestudio.config import ServiceSettings, load_service_settings
from imagestudio.errors import DecodeError, FetchError, ImageTooLargeError, UnsupportedFormatError

LOG = logging.getLogger("imagestudio.raster")

MAX_DIMENSION_PX = 4096
MAX_INLINE_BYTES = 6 * 1024 * 1024
MAX_FETCH_REDIRECTS = 5
Image.MAX_IMAGE_PIXELS = MAX_DIMENSION_PX * MAX_DIMENSION_PX

VECTOR_MIME_TYPES = {"image/svg+xml", "image/svg"}
ENCODE_FORMATS = {
    "jpeg": ("image/jpeg", ".jpg"),
    "jpg": ("image/jpeg", ".jpg"),
    "png": ("image/png", ".png"),
    "webp": ("image/webp", ".webp"),
}


@dataclass(frozen=True)
class RasterImage:
    """RGBA uint8 pixel buffer, shape ``(height, width, 4)``, row-major."""

    pixels: np.ndarray

    def __post_init__(self) -> None:
        pixels = self.pixels
        if pixels.ndim != 3 or pixels.shape[2] != 4:
            raise ValueError(f"RasterImage needs a (height, width, 4) buffer, got {pixels.shape}")
        if pixels.dtype != np.uint8:
            raise ValueError(f"RasterImage needs uint8 pixels, got {pixels.dtype}")

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])

    @classmethod
    def blank(cls, width: int, height: int, rgba: tuple[int, int, int, int] = (0, 0, 0, 255)) -> "RasterImage":
        pixels = np.empty((height, width, 4), dtype=np.uint8)
        pixels[:, :] = rgba
        return cls(pixels)

    @classmethod
    def from_pil(cls, pil_img: Image.Image) -> "RasterImage":
        return cls(np.array(pil_img.convert("RGBA"), dtype=np.uint8))

    def to_pil(self) -> Image.Image:
        return Image.fromarray(self.pixels)

    def copy(self) -> "RasterImage":
        return RasterImage(self.pixels.copy())


ImageSource = Union[RasterImage, bytes, bytearray, str]


def _looks_like_svg(data: bytes) -> bool:
    head = data[:512].lstrip().lower()
    if head.startswith(b"\xef\xbb\xbf"):
        head = head[3:].lstrip()
    return head.startswith(b"<svg") or (head.startswith(b"<?xml") and b"<svg" in data[:4096].lower())


def _split_data_url(source: str) -> tuple[str, bytes]:
    header, sep, payload = source.partition(",")
    if not sep:
        raise DecodeError("Malformed data URL: missing payload")
    meta = header[len("data:") :].split(";")
    mime = (meta[0] or "text/plain").strip().lower()
    if mime in VECTOR_MIME_TYPES:
        raise UnsupportedFormatError("SVG images are not supported for effects processing")
    if not mime.startswith("image/"):
        raise UnsupportedFormatError(f"Data URL is not an image ({mime})")
    if "base64" not in meta[1:]:
        raise DecodeError("Only base64 encoded data URLs are supported")

    approx_bytes = (len(payload) * 3) // 4
    if approx_bytes > MAX_INLINE_BYTES:
        raise ImageTooLargeError(
            f"Image too large for effects processing. Maximum size is {MAX_INLINE_BYTES // (1024 * 1024)}MB."
        )
    try:
        return mime, base64.b64decode(payload, validate=False)
    except (binascii.Error, ValueError) as exc:
        raise DecodeError("Data URL payload is not valid base64") from exc


def _check_host_allowed(url: str, settings: ServiceSettings) -> None:
    parts = urlsplit(url)
    if parts.scheme not in ("http", "https"):
        raise FetchError(f"Image URL must be http(s): {url}")
    if not settings.allowed_fetch_hosts:
        return
    host = (parts.hostname or "").lower()
    for allowed in settings.allowed_fetch_hosts:
        if host == allowed or host.endswith("." + allowed):
            return
    LOG.warning("fetch_blocked host=%s", host or "unknown")
    raise FetchError(f"Image host is not allowed: {host or 'unknown'}")


def _read_body_with_limit(response: httpx.Response, max_bytes: int) -> bytes:
    too_large = f"Remote image is too large. Maximum size is {max_bytes / (1024 * 1024):.1f}MB."
    declared = response.headers.get("content-length")
    if declared and declared.strip().isdigit() and int(declared) > max_bytes:
        raise ImageTooLargeError(too_large)

    chunks = bytearray()
    for chunk in response.iter_bytes():
        chunks.extend(chunk)
        if len(chunks) > max_bytes:
            raise ImageTooLargeError(too_large)
    return bytes(chunks)


def fetch_image_bytes(
    url: str,
    client: httpx.Client | None = None,
    settings: ServiceSettings | None = None,
) -> tuple[bytes, str | None]:
    """Downloads a remote image and returns its body and declared content type.

    One attempt, no retries. Redirects are followed by hand, up to
    ``MAX_FETCH_REDIRECTS``, and every hop must pass the host allow-list. The
    body is streamed and abandoned once it passes ``max_fetch_mb``. Transport
    failures, timeouts and non-2xx statuses are reported as ``FetchError``.
    """
    settings = settings or load_service_settings()
    max_bytes = int(settings.max_fetch_mb * 1024 * 1024)

    owns_client = client is None
    if client is None:
        client = httpx.Client(
            timeout=settings.fetch_timeout_seconds,
            proxy=settings.fetch_proxy,
            follow_redirects=False,
            headers={"User-Agent": settings.user_agent},
        )
    target = url
    try:
        for _ in range(MAX_FETCH_REDIRECTS + 1):
            _check_host_allowed(target, settings)
            with client.stream("GET", target, follow_redirects=False) as response:
                if response.is_redirect:
                    target = str(response.url.join(response.headers["location"]))
                    continue
                if not response.is_success:
                    LOG.warning("fetch_rejected url=%s status=%s", target, response.status_code)
                    raise FetchError(
                        f"Failed to fetch image (HTTP {response.status_code})",
                        status_code=response.status_code,
                    )
                content_type = response.headers.get("content-type")
                if content_type:
                    content_type = content_type.split(";")[0].strip().lower()
                return _read_body_with_limit(response, max_bytes), content_type
    except httpx.TimeoutException as exc:
        LOG.warning("fetch_timeout url=%s", target)
        raise FetchError(f"Timed out fetching image: {target}") from exc
    except httpx.HTTPError as exc:
        LOG.warning("fetch_failed url=%s error=%s", target, exc)
        raise FetchError(f"Failed to fetch image: {exc}") from exc
    finally:
        if owns_client:
            client.close()

    LOG.warning("fetch_rejected url=%s reason=too_many_redirects", url)
    raise FetchError(f"Too many redirects fetching image: {url}")


def decode_image_bytes(file_bytes: bytes, mime: str | None = None) -> RasterImage:
    if mime and mime.lower() in VECTOR_MIME_TYPES:
        raise UnsupportedFormatError("SVG images are not supported for effects processing")
    if not file_bytes:
        raise DecodeError("Image is empty")
    if _looks_like_svg(file_bytes):
        raise UnsupportedFormatError("SVG images are not supported for effects processing")

    try:
        pil_img = Image.open(BytesIO(file_bytes))
    except Image.DecompressionBombError as exc:
        raise ImageTooLargeError(
            f"Image dimensions too large. Maximum {MAX_DIMENSION_PX}x{MAX_DIMENSION_PX} pixels."
        ) from exc
    except (UnidentifiedImageError, OSError) as exc:
        raise DecodeError("Unable to decode image. Please provide a valid JPG/PNG/WEBP image.") from exc

    # Header dimensions are known before any pixel data is loaded.
    width, height = pil_img.size
    if width > MAX_DIMENSION_PX or height > MAX_DIMENSION_PX:
        raise ImageTooLargeError(
            f"Image dimensions too large ({width}x{height}). "
            f"Maximum {MAX_DIMENSION_PX}x{MAX_DIMENSION_PX} pixels."
        )

    try:
        pil_img = ImageOps.exif_transpose(pil_img)
        return RasterImage.from_pil(pil_img)
    except Image.DecompressionBombError as exc:
        raise ImageTooLargeError(
            f"Image dimensions too large. Maximum {MAX_DIMENSION_PX}x{MAX_DIMENSION_PX} pixels."
        ) from exc
    except (OSError, ValueError, SyntaxError) as exc:
        raise DecodeError("Image data is corrupt or truncated.") from exc


def decode(
    source: ImageSource,
    client: httpx.Client | None = None,
    settings: ServiceSettings | None = None,
) -> RasterImage:
    """Turns any supported source into a ``RasterImage``.

    Accepts an existing ``RasterImage`` (returned unchanged), raw encoded
    bytes, a ``data:image/...;base64`` URL or an ``http(s)`` URL.
    """
    if isinstance(source, RasterImage):
        return source

    if isinstance(source, (bytes, bytearray)):
        return decode_image_bytes(bytes(source))

    if isinstance(source, str):
        text = source.strip()
        lowered = text[:16].lower()
        if lowered.startswith("data:"):
            mime, data = _split_data_url(text)
            return decode_image_bytes(data, mime=mime)
        if lowered.startswith(("http://", "https://")):
            data, content_type = fetch_image_bytes(text, client=client, settings=settings)
            if content_type and content_type in VECTOR_MIME_TYPES:
                raise UnsupportedFormatError("SVG images are not supported for effects processing")
            return decode_image_bytes(data, mime=content_type)
        raise DecodeError("Image source must be bytes, a data URL or an http(s) URL")

    raise DecodeError(f"Unsupported image source type: {type(source).__name__}")


def normalize_format(output_format: str | None) -> str:
    fmt = (output_format or "jpeg").strip().lower()
    if fmt.startswith("image/"):
        fmt = fmt[len("image/") :]
    if fmt not in ENCODE_FORMATS:
        raise UnsupportedFormatError(f"Unsupported output format: {output_format}")
    return "jpeg" if fmt == "jpg" else fmt


def mime_for_format(output_format: str) -> str:
    return ENCODE_FORMATS[normalize_format(output_format)][0]


def encode(image: RasterImage, output_format: str = "jpeg", quality: float = 0.9) -> bytes:
    fmt = normalize_format(output_format)
    quality_pct = int(round(float(np.clip(quality, 0.0, 1.0)) * 100))
    _, ext = ENCODE_FORMATS[fmt]

    if fmt == "jpeg":
        bgr = cv2.cvtColor(image.pixels, cv2.COLOR_RGBA2BGR)
        ok, encoded = cv2.imencode(ext, bgr, [int(cv2.IMWRITE_JPEG_QUALITY), max(1, quality_pct)])
    elif fmt == "webp":
        bgra = cv2.cvtColor(image.pixels, cv2.COLOR_RGBA2BGRA)
        ok, encoded = cv2.imencode(ext, bgra, [int(cv2.IMWRITE_WEBP_QUALITY), max(1, quality_pct)])
    else:
        bgra = cv2.cvtColor(image.pixels, cv2.COLOR_RGBA2BGRA)
        ok, encoded = cv2.imencode(ext, bgra)
    if not ok:
        raise RuntimeError(f"Failed to encode image as {fmt}")
    return encoded.tobytes()


def encode_base64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def to_data_url(data: bytes, output_format: str = "jpeg") -> str:
    return f"data:{mime_for_format(output_format)};base64,{encode_base64(data)}"
