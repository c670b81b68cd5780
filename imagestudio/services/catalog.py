from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Literal, Mapping, Union

from pydantic import BaseModel, ConfigDict, Field

from imagestudio.errors import UnknownEffectError


class EffectId(str, Enum):
    MOTION_BLUR = "motion-blur"
    RADIAL_BLUR = "radial-blur"
    GAUSSIAN_BLUR = "gaussian-blur"
    CHROMATIC_ABERRATION = "chromatic-aberration"
    VIGNETTE = "vignette"
    SEPIA = "sepia"
    POSTERIZE = "posterize"
    SOLARIZE = "solarize"
    INVERT = "invert"
    CINEMATIC = "cinematic"
    DRAMATIC = "dramatic"
    MOODY = "moody"
    VINTAGE_FILM = "vintage-film"
    NOIR = "noir"
    GOLDEN_HOUR = "golden-hour"
    BLUE_HOUR = "blue-hour"
    HIGH_CONTRAST = "high-contrast"
    DREAMY = "dreamy"
    POLAROID = "polaroid"
    FILM_STRIP = "film-strip"


EffectFamily = Literal["color", "neighborhood", "composite"]
EffectCategory = Literal["blur", "color", "style", "mood", "frame"]


# ---------- Typed parameter sets ----------
@dataclass(frozen=True)
class MotionBlurParams:
    intensity: int
    direction: float


@dataclass(frozen=True)
class RadialBlurParams:
    intensity: float
    center_x: float
    center_y: float


@dataclass(frozen=True)
class GaussianBlurParams:
    intensity: int


@dataclass(frozen=True)
class ChromaticAberrationParams:
    offset: int
    strength: float


@dataclass(frozen=True)
class VignetteParams:
    strength: float
    size: float


@dataclass(frozen=True)
class IntensityParams:
    """Shared by sepia, invert and every mood grade."""

    intensity: float


@dataclass(frozen=True)
class PosterizeParams:
    levels: int


@dataclass(frozen=True)
class SolarizeParams:
    threshold: int


@dataclass(frozen=True)
class PolaroidParams:
    caption: str
    border_size: int


@dataclass(frozen=True)
class FilmStripParams:
    strip_count: int
    spacing: int


EffectParams = Union[
    MotionBlurParams,
    RadialBlurParams,
    GaussianBlurParams,
    ChromaticAberrationParams,
    VignetteParams,
    IntensityParams,
    PosterizeParams,
    SolarizeParams,
    PolaroidParams,
    FilmStripParams,
]


# ---------- Descriptors ----------
class NumericParam(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["number"] = "number"
    label: str
    field: str
    min: float
    max: float
    step: float
    default: float

    @property
    def integral(self) -> bool:
        return all(float(v).is_integer() for v in (self.min, self.max, self.step, self.default))

    def clamp(self, value: Any) -> float | int:
        try:
            number = float(value)
        except (TypeError, ValueError):
            number = float(self.default)
        if math.isnan(number):
            number = float(self.default)
        number = min(float(self.max), max(float(self.min), number))
        if self.integral:
            return int(round(number))
        return number


class TextParam(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["text"] = "text"
    label: str
    field: str
    max_length: int
    default: str

    def clamp(self, value: Any) -> str:
        if value is None:
            return self.default
        return str(value)[: self.max_length]


ParamSpec = Union[NumericParam, TextParam]


class EffectDescriptor(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: EffectId
    name: str
    description: str
    icon: str
    category: EffectCategory
    family: EffectFamily
    params: dict[str, ParamSpec] = Field(default_factory=dict)


PARAMS_TYPES: dict[EffectId, type] = {
    EffectId.MOTION_BLUR: MotionBlurParams,
    EffectId.RADIAL_BLUR: RadialBlurParams,
    EffectId.GAUSSIAN_BLUR: GaussianBlurParams,
    EffectId.CHROMATIC_ABERRATION: ChromaticAberrationParams,
    EffectId.VIGNETTE: VignetteParams,
    EffectId.SEPIA: IntensityParams,
    EffectId.POSTERIZE: PosterizeParams,
    EffectId.SOLARIZE: SolarizeParams,
    EffectId.INVERT: IntensityParams,
    EffectId.CINEMATIC: IntensityParams,
    EffectId.DRAMATIC: IntensityParams,
    EffectId.MOODY: IntensityParams,
    EffectId.VINTAGE_FILM: IntensityParams,
    EffectId.NOIR: IntensityParams,
    EffectId.GOLDEN_HOUR: IntensityParams,
    EffectId.BLUE_HOUR: IntensityParams,
    EffectId.HIGH_CONTRAST: IntensityParams,
    EffectId.DREAMY: IntensityParams,
    EffectId.POLAROID: PolaroidParams,
    EffectId.FILM_STRIP: FilmStripParams,
}


def _num(field: str, label: str, lo: float, hi: float, step: float, default: float) -> NumericParam:
    return NumericParam(field=field, label=label, min=lo, max=hi, step=step, default=default)


def _mood(effect_id: EffectId, name: str, icon: str, description: str, default: float) -> EffectDescriptor:
    return EffectDescriptor(
        id=effect_id,
        name=name,
        description=description,
        icon=icon,
        category="mood",
        family="color",
        params={"intensity": _num("intensity", "Intensity", 0.1, 1.0, 0.1, default)},
    )


_DESCRIPTORS: list[EffectDescriptor] = [
    EffectDescriptor(
        id=EffectId.MOTION_BLUR,
        name="Motion Blur",
        description="Add dynamic motion effects to your image",
        icon="🌪️",
        category="blur",
        family="neighborhood",
        params={
            "intensity": _num("intensity", "Intensity", 0, 30, 1, 10),
            "direction": _num("direction", "Direction", 0, 360, 1, 0),
        },
    ),
    EffectDescriptor(
        id=EffectId.RADIAL_BLUR,
        name="Radial Blur",
        description="Create a radial blur effect from a center point",
        icon="🌀",
        category="blur",
        family="neighborhood",
        params={
            "intensity": _num("intensity", "Intensity", 1, 30, 1, 15),
            "centerX": _num("center_x", "Center X", 0.0, 1.0, 0.1, 0.5),
            "centerY": _num("center_y", "Center Y", 0.0, 1.0, 0.1, 0.5),
        },
    ),
    EffectDescriptor(
        id=EffectId.GAUSSIAN_BLUR,
        name="Gaussian Blur",
        description="Apply smooth blur effect to your image",
        icon="💫",
        category="blur",
        family="neighborhood",
        params={"intensity": _num("intensity", "Radius", 0, 15, 1, 5)},
    ),
    EffectDescriptor(
        id=EffectId.CHROMATIC_ABERRATION,
        name="Chromatic Aberration",
        description="Create colorful fringe effects",
        icon="🌈",
        category="color",
        family="neighborhood",
        params={
            "offset": _num("offset", "Offset", 1, 20, 1, 5),
            "strength": _num("strength", "Strength", 0.0, 1.0, 0.1, 1.0),
        },
    ),
    EffectDescriptor(
        id=EffectId.VIGNETTE,
        name="Vignette",
        description="Add dark edges to focus attention",
        icon="🌙",
        category="style",
        family="neighborhood",
        params={
            "strength": _num("strength", "Strength", 0.0, 1.0, 0.1, 0.8),
            "size": _num("size", "Size", 0.0, 1.0, 0.1, 0.5),
        },
    ),
    EffectDescriptor(
        id=EffectId.SEPIA,
        name="Sepia",
        description="Apply vintage sepia tone",
        icon="📸",
        category="color",
        family="color",
        params={"intensity": _num("intensity", "Intensity", 0.0, 1.0, 0.1, 0.8)},
    ),
    EffectDescriptor(
        id=EffectId.POSTERIZE,
        name="Posterize",
        description="Reduce colors for a poster-like effect",
        icon="🎭",
        category="style",
        family="color",
        params={"levels": _num("levels", "Levels", 2, 256, 1, 8)},
    ),
    EffectDescriptor(
        id=EffectId.SOLARIZE,
        name="Solarize",
        description="Create a solarized effect with inverted highlights",
        icon="☀️",
        category="style",
        family="color",
        params={"threshold": _num("threshold", "Threshold", 0, 255, 1, 128)},
    ),
    EffectDescriptor(
        id=EffectId.INVERT,
        name="Invert",
        description="Turn the image into its color negative",
        icon="🔄",
        category="color",
        family="color",
        params={"intensity": _num("intensity", "Intensity", 0.0, 1.0, 0.1, 1.0)},
    ),
    _mood(EffectId.CINEMATIC, "Cinematic", "🎬", "Add dramatic cinematic color grading", 0.8),
    _mood(EffectId.DRAMATIC, "Dramatic", "⚡", "Create high-contrast dramatic lighting", 0.7),
    _mood(EffectId.MOODY, "Moody", "🌙", "Add dark, moody atmosphere", 0.6),
    _mood(EffectId.VINTAGE_FILM, "Vintage Film", "🎞️", "Classic faded film color grading", 0.8),
    _mood(EffectId.NOIR, "Film Noir", "🕶️", "Classic black and white noir style", 0.9),
    _mood(EffectId.GOLDEN_HOUR, "Golden Hour", "🌅", "Warm golden sunset lighting", 0.7),
    _mood(EffectId.BLUE_HOUR, "Blue Hour", "🌆", "Cool blue twilight atmosphere", 0.6),
    _mood(EffectId.HIGH_CONTRAST, "High Contrast", "💥", "Bold, high-contrast dramatic effect", 0.8),
    _mood(EffectId.DREAMY, "Dreamy", "✨", "Soft, ethereal dream-like effect", 0.7),
    EffectDescriptor(
        id=EffectId.POLAROID,
        name="Polaroid Frame",
        description="Add a classic polaroid frame with a caption",
        icon="📷",
        category="frame",
        family="composite",
        params={
            "caption": TextParam(field="caption", label="Caption", max_length=20, default="Polaroid"),
            "borderSize": _num("border_size", "Border Size", 20, 100, 5, 60),
        },
    ),
    EffectDescriptor(
        id=EffectId.FILM_STRIP,
        name="Film Strip",
        description="Create nostalgic film strip effect",
        icon="🎞️",
        category="frame",
        family="composite",
        params={
            "stripCount": _num("strip_count", "Strips", 1, 5, 1, 3),
            "spacing": _num("spacing", "Spacing", 10, 50, 5, 20),
        },
    ),
]

EFFECTS: dict[EffectId, EffectDescriptor] = {descriptor.id: descriptor for descriptor in _DESCRIPTORS}

EFFECT_CATEGORIES: list[dict[str, str]] = [
    {"id": "blur", "name": "Blur Effects", "icon": "🌪️"},
    {"id": "color", "name": "Color Effects", "icon": "🎨"},
    {"id": "style", "name": "Style Effects", "icon": "✨"},
    {"id": "mood", "name": "Mood Grades", "icon": "🎬"},
    {"id": "frame", "name": "Frames", "icon": "🖼️"},
]


def parse_effect_id(effect_id: str | EffectId) -> EffectId:
    if isinstance(effect_id, EffectId):
        return effect_id
    try:
        return EffectId((effect_id or "").strip().lower())
    except ValueError as exc:
        raise UnknownEffectError(str(effect_id)) from exc


def get_effect(effect_id: str | EffectId) -> EffectDescriptor:
    return EFFECTS[parse_effect_id(effect_id)]


def list_effects() -> list[EffectDescriptor]:
    return list(EFFECTS.values())


def effects_by_category(category: str) -> list[EffectDescriptor]:
    wanted = (category or "").strip().lower()
    return [descriptor for descriptor in EFFECTS.values() if descriptor.category == wanted]


def resolve_param_values(effect_id: str | EffectId, options: Mapping[str, Any] | None = None) -> dict[str, Any]:
    """Defaults merged with ``options``, every value clamped to its schema.

    Keys are the public (camelCase) parameter names. Unknown keys are ignored.
    """
    descriptor = get_effect(effect_id)
    options = options or {}
    resolved: dict[str, Any] = {}
    for name, param in descriptor.params.items():
        raw = options.get(name, param.default)
        resolved[name] = param.clamp(raw)
    return resolved


def resolve_params(effect_id: str | EffectId, options: Mapping[str, Any] | None = None) -> EffectParams:
    descriptor = get_effect(effect_id)
    values = resolve_param_values(descriptor.id, options)
    kwargs = {descriptor.params[name].field: value for name, value in values.items()}
    return PARAMS_TYPES[descriptor.id](**kwargs)
