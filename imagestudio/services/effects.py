from __future__ import annotations

import math

import numpy as np

from imagestudio.services.catalog import (
    ChromaticAberrationParams,
    GaussianBlurParams,
    IntensityParams,
    MotionBlurParams,
    PosterizeParams,
    RadialBlurParams,
    SolarizeParams,
    VignetteParams,
)
from imagestudio.services.raster import RasterImage

RADIAL_SAMPLES = 20


# ---------- Helpers ----------
def _rgb(image: RasterImage) -> np.ndarray:
    return image.pixels[:, :, :3].astype(np.float64)


def _with_rgb(image: RasterImage, rgb: np.ndarray) -> RasterImage:
    """New image carrying ``rgb`` (rounded half-to-even, clamped) and the source alpha."""
    out = image.pixels.copy()
    out[:, :, :3] = np.clip(np.rint(rgb), 0, 255).astype(np.uint8)
    return RasterImage(out)


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _blend(original: np.ndarray, graded: np.ndarray, amount: float) -> np.ndarray:
    return original * (1.0 - amount) + graded * amount


def _accumulate_offset(src: np.ndarray, sums: np.ndarray, counts: np.ndarray, ox: int, oy: int) -> None:
    """Adds ``src[y + oy, x + ox]`` into ``sums[y, x]`` wherever the sample is in bounds."""
    h, w = src.shape[:2]
    y0, y1 = max(0, -oy), min(h, h - oy)
    x0, x1 = max(0, -ox), min(w, w - ox)
    if y0 >= y1 or x0 >= x1:
        return
    sums[y0:y1, x0:x1] += src[y0 + oy : y1 + oy, x0 + ox : x1 + ox]
    counts[y0:y1, x0:x1] += 1.0


# ---------- Neighborhood / geometry ----------
def motion_blur(image: RasterImage, params: MotionBlurParams) -> RasterImage:
    """Averages ``2 * intensity + 1`` samples on a line through each pixel.

    Samples falling outside the image are dropped from the average. Alpha is
    left untouched.
    """
    intensity = int(params.intensity)
    if intensity <= 0:
        return image.copy()

    angle = math.radians(params.direction)
    dx = math.cos(angle) * intensity
    dy = math.sin(angle) * intensity

    src = _rgb(image)
    sums = np.zeros_like(src)
    counts = np.zeros(src.shape[:2], dtype=np.float64)
    for i in range(-intensity, intensity + 1):
        ox = _round_half_up(dx * i / intensity)
        oy = _round_half_up(dy * i / intensity)
        _accumulate_offset(src, sums, counts, ox, oy)
    return _with_rgb(image, sums / counts[:, :, None])


def radial_blur(image: RasterImage, params: RadialBlurParams) -> RasterImage:
    """Blur that grows with distance from ``(center_x, center_y)``.

    The local radius is ``intensity * distance / half_diagonal``. Pixels whose
    radius is at most 1 are untouched; the rest average the in-bounds samples
    of a 20-point circle of that radius around themselves.
    """
    h, w = image.height, image.width
    cx = float(params.center_x) * w
    cy = float(params.center_y) * h
    half_diagonal = math.hypot(w / 2.0, h / 2.0)

    ys, xs = np.mgrid[0:h, 0:w].astype(np.float64)
    distance = np.hypot(xs - cx, ys - cy)
    radius = float(params.intensity) * distance / max(half_diagonal, 1e-9)
    active = radius > 1.0
    if not bool(active.any()):
        return image.copy()

    src = _rgb(image)
    sums = np.zeros_like(src)
    counts = np.zeros((h, w), dtype=np.float64)
    for k in range(RADIAL_SAMPLES):
        theta = 2.0 * math.pi * k / RADIAL_SAMPLES
        sx = np.floor(xs + radius * math.cos(theta) + 0.5).astype(np.int64)
        sy = np.floor(ys + radius * math.sin(theta) + 0.5).astype(np.int64)
        valid = active & (sx >= 0) & (sx < w) & (sy >= 0) & (sy < h)
        sample = src[np.clip(sy, 0, h - 1), np.clip(sx, 0, w - 1)]
        sums += sample * valid[:, :, None]
        counts += valid

    hit = counts > 0
    averaged = sums / np.maximum(counts, 1.0)[:, :, None]
    return _with_rgb(image, np.where(hit[:, :, None], averaged, src))


def gaussian_blur(image: RasterImage, params: GaussianBlurParams) -> RasterImage:
    """Box blur of side ``2 * intensity + 1``; out-of-bounds samples are excluded."""
    r = int(params.intensity)
    if r <= 0:
        return image.copy()

    h, w = image.height, image.width
    src = _rgb(image)
    # Summed-area table with a zero row/column in front.
    table = np.zeros((h + 1, w + 1, 3), dtype=np.float64)
    table[1:, 1:] = src.cumsum(axis=0).cumsum(axis=1)

    rows = np.arange(h)
    cols = np.arange(w)
    y0 = np.clip(rows - r, 0, h)
    y1 = np.clip(rows + r + 1, 0, h)
    x0 = np.clip(cols - r, 0, w)
    x1 = np.clip(cols + r + 1, 0, w)

    window = (
        table[np.ix_(y1, x1)]
        - table[np.ix_(y0, x1)]
        - table[np.ix_(y1, x0)]
        + table[np.ix_(y0, x0)]
    )
    counts = ((y1 - y0)[:, None] * (x1 - x0)[None, :]).astype(np.float64)
    return _with_rgb(image, window / counts[:, :, None])


def chromatic_aberration(image: RasterImage, params: ChromaticAberrationParams) -> RasterImage:
    """Red sampled from ``(+offset, +offset)``, blue from ``(-offset, -offset)``.

    Each shifted channel is blended with the original by ``strength``; green is
    untouched, as is any pixel whose shifted sample falls outside the image.
    """
    offset = int(params.offset)
    strength = float(params.strength)
    h, w = image.height, image.width
    src = _rgb(image)
    out = src.copy()

    if offset < h and offset < w:
        # Red: pixel (y, x) reads (y + offset, x + offset).
        out[: h - offset, : w - offset, 0] = (
            src[offset:, offset:, 0] * strength + src[: h - offset, : w - offset, 0] * (1.0 - strength)
        )
        # Blue: pixel (y, x) reads (y - offset, x - offset).
        out[offset:, offset:, 2] = (
            src[: h - offset, : w - offset, 2] * strength + src[offset:, offset:, 2] * (1.0 - strength)
        )
    return _with_rgb(image, out)


def vignette(image: RasterImage, params: VignetteParams) -> RasterImage:
    strength = float(params.strength)
    if strength <= 0.0:
        return image.copy()

    h, w = image.height, image.width
    cx, cy = w / 2.0, h / 2.0
    max_distance = max(math.hypot(cx, cy) * float(params.size), 1e-9)

    ys, xs = np.mgrid[0:h, 0:w].astype(np.float64)
    distance = np.hypot(xs - cx, ys - cy)
    factor = 1.0 - np.square(distance / max_distance) * strength
    return _with_rgb(image, np.maximum(0.0, _rgb(image) * factor[:, :, None]))


# ---------- Per-pixel color transforms ----------
SEPIA_MATRIX = np.array(
    [
        [0.393, 0.769, 0.189],
        [0.349, 0.686, 0.168],
        [0.272, 0.534, 0.131],
    ],
    dtype=np.float64,
)


def sepia(image: RasterImage, params: IntensityParams) -> RasterImage:
    intensity = float(params.intensity)
    src = _rgb(image)
    toned = np.minimum(255.0, src @ SEPIA_MATRIX.T)
    return _with_rgb(image, _blend(src, toned, intensity))


def posterize(image: RasterImage, params: PosterizeParams) -> RasterImage:
    levels = max(2, int(params.levels))
    step = 255.0 / (levels - 1)
    src = _rgb(image)
    return _with_rgb(image, np.floor(src / step + 0.5) * step)


def solarize(image: RasterImage, params: SolarizeParams) -> RasterImage:
    """Flips every channel strictly above ``threshold`` to ``255 - value``."""
    src = _rgb(image)
    return _with_rgb(image, np.where(src > float(params.threshold), 255.0 - src, src))


def invert(image: RasterImage, params: IntensityParams) -> RasterImage:
    src = _rgb(image)
    return _with_rgb(image, _blend(src, 255.0 - src, float(params.intensity)))
