from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from imagestudio.services.catalog import EffectDescriptor


class EffectCategoryInfo(BaseModel):
    id: str
    name: str
    icon: str


class EffectCatalogResponse(BaseModel):
    categories: list[EffectCategoryInfo] = Field(default_factory=list)
    effects: list[EffectDescriptor] = Field(default_factory=list)


class EffectDetailResponse(BaseModel):
    effect: EffectDescriptor
    quick_preset: dict[str, Any] | None = None


class ApplyEffectResponse(BaseModel):
    effect_id: str
    params: dict[str, Any]
    source_width: int
    source_height: int
    width: int
    height: int
    image_base64: str
    image_mime: str
