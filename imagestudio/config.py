from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field

BASE_DIR = Path(__file__).resolve().parent
PRESETS_CONFIG_PATH = BASE_DIR / "config" / "presets.yaml"

ENV_PREFIX = "IMAGESTUDIO_"
DEFAULT_FETCH_HOSTS = ("supabase.co", "supabase.in")


class ServiceSettings(BaseModel):
    fetch_timeout_seconds: float = 15.0
    fetch_proxy: str | None = None
    # Host suffixes; an empty list lets any host through.
    allowed_fetch_hosts: list[str] = Field(default_factory=lambda: list(DEFAULT_FETCH_HOSTS))
    max_fetch_mb: float = 6.0
    user_agent: str = "ImageStudioLab/1.0"
    default_output_format: str = "jpeg"
    default_quality: float = 0.9
    max_upload_mb: float = 20.0
    max_inflight_apply: int = 3


class QuickPreset(BaseModel):
    effect_id: str
    options: dict[str, Any] = Field(default_factory=dict)


class PresetSettings(BaseModel):
    presets: dict[str, dict[str, Any]] = Field(default_factory=dict)


def _env(name: str) -> str | None:
    value = os.getenv(ENV_PREFIX + name)
    if value is None or not value.strip():
        return None
    return value.strip()


@lru_cache(maxsize=1)
def load_service_settings() -> ServiceSettings:
    raw: dict[str, Any] = {}
    timeout = _env("FETCH_TIMEOUT_SECONDS")
    if timeout is not None:
        raw["fetch_timeout_seconds"] = max(0.5, float(timeout))
    proxy = _env("FETCH_PROXY")
    if proxy is not None:
        raw["fetch_proxy"] = proxy
    hosts = _env("ALLOWED_FETCH_HOSTS")
    if hosts == "*":
        raw["allowed_fetch_hosts"] = []
    elif hosts is not None:
        raw["allowed_fetch_hosts"] = [h.strip().lower() for h in hosts.split(",") if h.strip()]
    agent = _env("USER_AGENT")
    if agent is not None:
        raw["user_agent"] = agent
    fmt = _env("OUTPUT_FORMAT")
    if fmt is not None:
        raw["default_output_format"] = fmt.lower()
    quality = _env("QUALITY")
    if quality is not None:
        raw["default_quality"] = min(1.0, max(0.0, float(quality)))
    upload = _env("MAX_UPLOAD_MB")
    if upload is not None:
        raw["max_upload_mb"] = max(1.0, float(upload))
    fetch_limit = _env("MAX_FETCH_MB")
    if fetch_limit is not None:
        raw["max_fetch_mb"] = max(0.1, float(fetch_limit))
    inflight = _env("MAX_INFLIGHT")
    if inflight is not None:
        raw["max_inflight_apply"] = max(1, int(inflight))
    return ServiceSettings(**raw)


@lru_cache(maxsize=1)
def load_preset_settings() -> PresetSettings:
    with PRESETS_CONFIG_PATH.open("r", encoding="utf-8") as handle:
        raw = yaml.safe_load(handle) or {}
    return PresetSettings(**raw)


def get_quick_preset(effect_id: str) -> QuickPreset | None:
    options = load_preset_settings().presets.get((effect_id or "").strip().lower())
    if options is None:
        return None
    return QuickPreset(effect_id=effect_id, options=dict(options))
