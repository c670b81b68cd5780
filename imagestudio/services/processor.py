from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from functools import partial
from typing import Any, Callable, Mapping

import httpx

from imagestudio.services import effects, frames
from imagestudio.services.catalog import EffectId, EffectParams, get_effect, parse_effect_id, resolve_params
from imagestudio.services.moods import MOOD_GRADES, apply_mood
from imagestudio.services.raster import ImageSource, RasterImage, decode, encode

LOG = logging.getLogger("imagestudio.processor")

Transform = Callable[[RasterImage, Any], RasterImage]

TRANSFORMS: dict[EffectId, Transform] = {
    EffectId.MOTION_BLUR: effects.motion_blur,
    EffectId.RADIAL_BLUR: effects.radial_blur,
    EffectId.GAUSSIAN_BLUR: effects.gaussian_blur,
    EffectId.CHROMATIC_ABERRATION: effects.chromatic_aberration,
    EffectId.VIGNETTE: effects.vignette,
    EffectId.SEPIA: effects.sepia,
    EffectId.POSTERIZE: effects.posterize,
    EffectId.SOLARIZE: effects.solarize,
    EffectId.INVERT: effects.invert,
    EffectId.POLAROID: frames.polaroid_frame,
    EffectId.FILM_STRIP: frames.film_strip,
}
for _mood_id, _grade in MOOD_GRADES.items():
    TRANSFORMS[_mood_id] = partial(apply_mood, grade=_grade)

_missing = set(EffectId) - set(TRANSFORMS)
if _missing:
    raise RuntimeError(f"Effects without a transform: {sorted(e.value for e in _missing)}")


@dataclass
class EffectResult:
    effect_id: EffectId
    params: EffectParams
    image: RasterImage


def apply_effect(
    image: RasterImage,
    effect_id: str | EffectId,
    options: Mapping[str, Any] | None = None,
) -> EffectResult:
    """Runs one effect on ``image`` and returns a new buffer; ``image`` is not modified."""
    descriptor = get_effect(effect_id)
    params = resolve_params(descriptor.id, options)
    output = TRANSFORMS[descriptor.id](image, params)
    return EffectResult(effect_id=descriptor.id, params=params, image=output)


def process_image(
    source: ImageSource,
    effect_id: str | EffectId,
    options: Mapping[str, Any] | None = None,
    *,
    output_format: str = "jpeg",
    quality: float = 0.9,
    client: httpx.Client | None = None,
) -> bytes:
    """Decode, apply one effect, encode.

    The effect id is checked before the source is decoded or fetched, so an
    unknown id never costs a download. Decode and fetch errors propagate
    unchanged.
    """
    effect = parse_effect_id(effect_id)
    started = time.perf_counter()
    image = decode(source, client=client)
    result = apply_effect(image, effect, options)
    encoded = encode(result.image, output_format=output_format, quality=quality)
    LOG.info(
        "effect_applied effect=%s width=%s height=%s out_width=%s out_height=%s elapsed_ms=%.1f",
        effect.value,
        image.width,
        image.height,
        result.image.width,
        result.image.height,
        (time.perf_counter() - started) * 1000.0,
    )
    return encoded
