from __future__ import annotations

import json
import logging
import threading
from typing import Any

from fastapi import FastAPI, File, Form, HTTPException, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from imagestudio.config import get_quick_preset, load_service_settings
from imagestudio.errors import (
    DecodeError,
    FetchError,
    ImageTooLargeError,
    UnknownEffectError,
    UnsupportedFormatError,
)
from imagestudio.schemas import (
    ApplyEffectResponse,
    EffectCatalogResponse,
    EffectCategoryInfo,
    EffectDetailResponse,
)
from imagestudio.services.catalog import (
    EFFECT_CATEGORIES,
    EffectId,
    effects_by_category,
    get_effect,
    list_effects,
    resolve_param_values,
)
from imagestudio.services.processor import apply_effect
from imagestudio.services.raster import decode, encode, encode_base64, mime_for_format, normalize_format

LOG = logging.getLogger("imagestudio.api")

app = FastAPI(title="ImageStudio Effects", version="0.1.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

SETTINGS = load_service_settings()
MAX_UPLOAD_BYTES = int(SETTINGS.max_upload_mb * 1024 * 1024)
UPLOAD_READ_CHUNK_BYTES = 1024 * 1024
INFLIGHT_APPLY_GUARD = threading.BoundedSemaphore(SETTINGS.max_inflight_apply)


def _content_length_exceeds_limit(request: Request, max_bytes: int) -> bool:
    header = request.headers.get("content-length")
    if not header:
        return False
    try:
        return int(header) > max_bytes
    except ValueError:
        return False


async def _read_upload_with_limit(photo: UploadFile, max_bytes: int, chunk_size: int) -> bytes:
    chunks = bytearray()
    total_bytes = 0
    while True:
        chunk = await photo.read(chunk_size)
        if not chunk:
            break
        total_bytes += len(chunk)
        if total_bytes > max_bytes:
            raise HTTPException(
                status_code=413,
                detail=f"Uploaded file is too large. Hard limit is {SETTINGS.max_upload_mb:.0f}MB.",
            )
        chunks.extend(chunk)
    return bytes(chunks)


def _parse_options(raw: str | None) -> dict[str, Any]:
    if raw is None or not raw.strip():
        return {}
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise HTTPException(status_code=400, detail="options must be a JSON object.") from exc
    if not isinstance(parsed, dict):
        raise HTTPException(status_code=400, detail="options must be a JSON object.")
    return parsed


def _lookup_effect(effect_id: str) -> EffectId:
    try:
        return get_effect(effect_id).id
    except UnknownEffectError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc


@app.get("/api/health")
def health() -> dict[str, Any]:
    return {
        "status": "ok",
        "effects": len(list_effects()),
        "limits": {
            "max_upload_mb": SETTINGS.max_upload_mb,
            "max_inflight": SETTINGS.max_inflight_apply,
            "fetch_timeout_seconds": SETTINGS.fetch_timeout_seconds,
        },
    }


@app.get("/api/effects", response_model=EffectCatalogResponse)
def effects(category: str | None = None) -> EffectCatalogResponse:
    items = effects_by_category(category) if category else list_effects()
    return EffectCatalogResponse(
        categories=[EffectCategoryInfo(**entry) for entry in EFFECT_CATEGORIES],
        effects=items,
    )


@app.get("/api/effects/{effect_id}", response_model=EffectDetailResponse)
def effect_detail(effect_id: str) -> EffectDetailResponse:
    effect = _lookup_effect(effect_id)
    preset = get_quick_preset(effect.value)
    return EffectDetailResponse(
        effect=get_effect(effect),
        quick_preset=preset.options if preset else None,
    )


@app.post("/api/effects/{effect_id}/apply", response_model=ApplyEffectResponse)
async def apply(
    request: Request,
    effect_id: str,
    photo: UploadFile | None = File(None),
    image_url: str | None = Form(None),
    options: str | None = Form(None),
    use_preset: bool = Form(False),
    output_format: str | None = Form(None),
    quality: float | None = Form(None),
) -> ApplyEffectResponse:
    effect = _lookup_effect(effect_id)

    if not INFLIGHT_APPLY_GUARD.acquire(blocking=False):
        LOG.warning("apply_rejected effect=%s reason=max_inflight", effect.value)
        return JSONResponse(
            status_code=429,
            content={"detail": "Server is busy applying other effects. Please retry shortly."},
            headers={"Retry-After": "5"},
        )

    try:
        if _content_length_exceeds_limit(request, MAX_UPLOAD_BYTES):
            raise HTTPException(
                status_code=413,
                detail=f"Request body is too large. Hard limit is {SETTINGS.max_upload_mb:.0f}MB.",
            )

        merged: dict[str, Any] = {}
        if use_preset:
            preset = get_quick_preset(effect.value)
            if preset is not None:
                merged.update(preset.options)
        merged.update(_parse_options(options))

        fmt = normalize_format(output_format or SETTINGS.default_output_format)
        q = SETTINGS.default_quality if quality is None else quality

        if photo is not None:
            if photo.content_type is not None and not photo.content_type.startswith("image/"):
                raise HTTPException(status_code=400, detail="Please upload a valid image file.")
            source: Any = await _read_upload_with_limit(
                photo,
                max_bytes=MAX_UPLOAD_BYTES,
                chunk_size=UPLOAD_READ_CHUNK_BYTES,
            )
            if not source:
                raise HTTPException(status_code=400, detail="Uploaded image is empty.")
            if photo.content_type in {"image/svg+xml", "image/svg"}:
                raise UnsupportedFormatError("SVG images are not supported for effects processing")
        elif image_url:
            source = image_url
        else:
            raise HTTPException(status_code=400, detail="Provide either a photo upload or an image_url.")

        image = await run_in_threadpool(decode, source)
        result = await run_in_threadpool(apply_effect, image, effect, merged)
        encoded = await run_in_threadpool(encode, result.image, fmt, q)
    except HTTPException:
        raise
    except UnsupportedFormatError as exc:
        raise HTTPException(status_code=415, detail=str(exc)) from exc
    except ImageTooLargeError as exc:
        raise HTTPException(status_code=413, detail=str(exc)) from exc
    except FetchError as exc:
        LOG.warning("apply_fetch_failed effect=%s status=%s", effect.value, exc.status_code)
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    except (DecodeError, ValueError) as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except Exception:  # pragma: no cover
        LOG.exception("apply_failed effect=%s", effect.value)
        return JSONResponse(status_code=500, content={"error": "effect_failed", "detail": "Internal error"})
    finally:
        if photo is not None:
            await photo.close()
        INFLIGHT_APPLY_GUARD.release()

    LOG.info(
        "effect_applied effect=%s width=%s height=%s out_width=%s out_height=%s format=%s",
        effect.value,
        image.width,
        image.height,
        result.image.width,
        result.image.height,
        fmt,
    )
    return ApplyEffectResponse(
        effect_id=effect.value,
        params=resolve_param_values(effect, merged),
        source_width=image.width,
        source_height=image.height,
        width=result.image.width,
        height=result.image.height,
        image_base64=encode_base64(encoded),
        image_mime=mime_for_format(fmt),
    )
