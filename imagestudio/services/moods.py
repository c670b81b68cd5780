"""Fixed-coefficient color grades ("moods").

Every grade maps float RGB ``(h, w, 3)`` to graded float RGB. The coefficients
are part of the visual contract: changing one changes every rendered result,
so each mood keeps its own named function.
"""
from __future__ import annotations

from typing import Callable

import numpy as np

from imagestudio.services.catalog import EffectId, IntensityParams
from imagestudio.services.raster import RasterImage

LUMA_WEIGHTS = np.array([0.299, 0.587, 0.114], dtype=np.float64)

MoodGrade = Callable[[np.ndarray], np.ndarray]


def _mix(rgb: np.ndarray, matrix: list[list[float]], offset: list[float]) -> np.ndarray:
    return rgb @ np.asarray(matrix, dtype=np.float64).T + np.asarray(offset, dtype=np.float64)


def _contrast(values: np.ndarray, contrast: float) -> np.ndarray:
    return (values - 128.0) * contrast + 128.0


def _luma(rgb: np.ndarray) -> np.ndarray:
    return (rgb @ LUMA_WEIGHTS)[:, :, None]


def grade_cinematic(rgb: np.ndarray) -> np.ndarray:
    # Warm highlights, teal shadows.
    return _mix(
        rgb,
        [[1.10, 0.05, -0.05], [0.00, 1.00, 0.05], [-0.05, 0.10, 0.95]],
        [-6.0, -2.0, 10.0],
    )


def grade_dramatic(rgb: np.ndarray) -> np.ndarray:
    muted = rgb * 0.80 + _luma(rgb) * 0.20
    return _contrast(muted, 1.35)


def grade_moody(rgb: np.ndarray) -> np.ndarray:
    return _mix(
        rgb,
        [[0.80, 0.10, 0.05], [0.05, 0.80, 0.10], [0.05, 0.10, 0.85]],
        [-12.0, -10.0, 4.0],
    )


def grade_vintage_film(rgb: np.ndarray) -> np.ndarray:
    # Lifted blacks and a yellowed, faded blue channel.
    return _mix(
        rgb,
        [[0.90, 0.10, 0.05], [0.05, 0.85, 0.05], [0.05, 0.05, 0.70]],
        [18.0, 12.0, 24.0],
    )


def grade_noir(rgb: np.ndarray) -> np.ndarray:
    gray = _contrast(_luma(rgb), 1.40)
    return np.repeat(gray, 3, axis=2)


def grade_golden_hour(rgb: np.ndarray) -> np.ndarray:
    return _mix(
        rgb,
        [[1.10, 0.05, 0.00], [0.03, 1.05, 0.00], [0.00, 0.00, 0.85]],
        [15.0, 8.0, -10.0],
    )


def grade_blue_hour(rgb: np.ndarray) -> np.ndarray:
    return _mix(
        rgb,
        [[0.85, 0.00, 0.00], [0.00, 0.95, 0.05], [0.05, 0.05, 1.10]],
        [-10.0, 0.0, 20.0],
    )


def grade_high_contrast(rgb: np.ndarray) -> np.ndarray:
    return _contrast(rgb, 1.60)


def grade_dreamy(rgb: np.ndarray) -> np.ndarray:
    return rgb * 0.80 + _luma(rgb) * 0.10 + 40.0


MOOD_GRADES: dict[EffectId, MoodGrade] = {
    EffectId.CINEMATIC: grade_cinematic,
    EffectId.DRAMATIC: grade_dramatic,
    EffectId.MOODY: grade_moody,
    EffectId.VINTAGE_FILM: grade_vintage_film,
    EffectId.NOIR: grade_noir,
    EffectId.GOLDEN_HOUR: grade_golden_hour,
    EffectId.BLUE_HOUR: grade_blue_hour,
    EffectId.HIGH_CONTRAST: grade_high_contrast,
    EffectId.DREAMY: grade_dreamy,
}


def apply_mood(image: RasterImage, params: IntensityParams, grade: MoodGrade) -> RasterImage:
    """Grades the RGB channels, clamps, then blends with the original by ``intensity``."""
    amount = float(params.intensity)
    src = image.pixels[:, :, :3].astype(np.float64)
    graded = np.clip(grade(src), 0.0, 255.0)
    out = image.pixels.copy()
    out[:, :, :3] = np.clip(np.rint(src * (1.0 - amount) + graded * amount), 0, 255).astype(np.uint8)
    return RasterImage(out)
