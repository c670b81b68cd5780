"""Composite effects that return a larger canvas than their input.

These are the only transforms allowed to change the output dimensions:

- polaroid: ``(width + border, height + border + CAPTION_BAND_PX)``
- film strip: ``(width + (strips - 1) * spacing, height)``
"""
from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from PIL import Image, ImageDraw, ImageFont

from imagestudio.services.catalog import FilmStripParams, PolaroidParams
from imagestudio.services.raster import RasterImage

CAPTION_BAND_PX = 40
CAPTION_FONT_PX = 20
CAPTION_BASELINE_OFFSET_PX = 20

FONT_CANDIDATES = [
    "/usr/share/fonts/truetype/msttcorefonts/Arial.ttf",
    "/Library/Fonts/Arial.ttf",
    "/System/Library/Fonts/Supplemental/Arial.ttf",
    "C:\\Windows\\Fonts\\arial.ttf",
    "/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf",
    "/usr/share/fonts/dejavu/DejaVuSans.ttf",
]


@lru_cache(maxsize=4)
def _load_caption_font(size: int) -> ImageFont.FreeTypeFont | ImageFont.ImageFont:
    for candidate in FONT_CANDIDATES:
        path = Path(candidate)
        if path.exists():
            try:
                return ImageFont.truetype(str(path), size=size)
            except OSError:
                continue
    return ImageFont.load_default(size=size)


def polaroid_frame(image: RasterImage, params: PolaroidParams) -> RasterImage:
    border = int(params.border_size)
    inset = border // 2
    width, height = image.width, image.height

    canvas = Image.new("RGBA", (width + border, height + border + CAPTION_BAND_PX), (255, 255, 255, 255))
    canvas.alpha_composite(image.to_pil(), dest=(inset, inset))

    caption = params.caption
    if caption:
        draw = ImageDraw.Draw(canvas)
        font = _load_caption_font(CAPTION_FONT_PX)
        baseline_y = height + inset + CAPTION_BASELINE_OFFSET_PX
        if isinstance(font, ImageFont.FreeTypeFont):
            draw.text((inset, baseline_y), caption, fill=(0, 0, 0, 255), font=font, anchor="ls")
        else:
            draw.text((inset, baseline_y - CAPTION_FONT_PX), caption, fill=(0, 0, 0, 255), font=font)
    return RasterImage.from_pil(canvas)


def film_strip(image: RasterImage, params: FilmStripParams) -> RasterImage:
    """Cuts the image into vertical strips laid side by side on black with ``spacing`` gaps."""
    count = max(1, int(params.strip_count))
    spacing = int(params.spacing)
    width, height = image.width, image.height

    canvas = Image.new("RGBA", (width + (count - 1) * spacing, height), (0, 0, 0, 255))
    source = image.to_pil()
    bounds = [round(i * width / count) for i in range(count + 1)]
    for i in range(count):
        left, right = bounds[i], bounds[i + 1]
        if right <= left:
            continue
        strip = source.crop((left, 0, right, height))
        canvas.alpha_composite(strip, dest=(left + i * spacing, 0))
    return RasterImage.from_pil(canvas)
