"""
Coverwall - Canvas Primitives

Stateless drawing helpers shared by every wallpaper style:

    - aspect-aware scaling (cover, fit, stretch, center)
    - blurred cover backgrounds
    - rounded-corner clipping and soft drop shadows
    - diagonal two-colour gradients
    - polaroid frames (used by the collage)
    - font loading and text fitting for typography

Scaling helpers return new images.  Drawing helpers composite into an RGBA
canvas supplied by the caller and never touch their image arguments.

Rectangles are ``(x, y, width, height)`` tuples in canvas pixels with the
origin at the top-left corner.
"""

from __future__ import annotations

import math
from functools import lru_cache
from io import BytesIO
from typing import Sequence, Tuple

import numpy as np
from loguru import logger
from PIL import (
    Image,
    ImageChops,
    ImageDraw,
    ImageFilter,
    ImageFont,
    UnidentifiedImageError,
)

RGB = Tuple[int, int, int]
Size = Tuple[int, int]
Rect = Tuple[float, float, float, float]

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------
SHADOW_OPACITY = 0.3
SHADOW_CORNER_RADIUS = 12

POLAROID_CORNER_RADIUS = 4
POLAROID_PHOTO_CORNER_RADIUS = 2
POLAROID_SHADOW = {
    # emphasized: (offset, blur, opacity)
    True: (8, 16, 0.4),
    False: (4, 8, 0.25),
}
AGING_TINT = (255, 204, 0, int(255 * 0.05))  # faint yellow wash
GLOW_SPREAD = 6
GLOW_CORNER_RADIUS = 8
GLOW_COLOR = (255, 255, 255, int(255 * 0.2))


class DecodeFailure(Exception):
    """Raised when image bytes cannot be decoded into a raster."""


def decode_image(data: bytes) -> Image.Image:
    """Decode raw image bytes (PNG, JPEG, ...) into an RGB image."""
    try:
        img = Image.open(BytesIO(data))
        img.load()
    except (UnidentifiedImageError, OSError, ValueError) as e:
        raise DecodeFailure(f"unreadable image data ({len(data)} bytes): {e}") from e
    return img.convert("RGB")


def new_canvas(size: Size, color: RGB = (0, 0, 0)) -> Image.Image:
    """Create an opaque RGBA canvas filled with *color*."""
    return Image.new("RGBA", size, (color[0], color[1], color[2], 255))


def _px(value: float) -> int:
    return max(1, int(round(value)))


# ---------------------------------------------------------------------------
# Scaling
# ---------------------------------------------------------------------------


def fit_size(image_size: Tuple[float, float], container: Tuple[float, float]) -> Tuple[float, float]:
    """Largest size with the image's aspect ratio that fits inside *container*."""
    image_aspect = image_size[0] / image_size[1]
    container_aspect = container[0] / container[1]

    if image_aspect > container_aspect:
        # Wider than the container - fit by width
        return container[0], container[0] / image_aspect
    return container[1] * image_aspect, container[1]


def scale_to_cover(image: Image.Image, target_size: Size) -> Image.Image:
    """Uniformly scale *image* to cover *target_size*, cropping the overflow
    symmetrically so the result is exactly the target size."""
    tw, th = target_size
    iw, ih = image.size
    scale = max(tw / iw, th / ih)
    new_w = max(tw, int(round(iw * scale)))
    new_h = max(th, int(round(ih * scale)))

    resized = image.resize((new_w, new_h), Image.Resampling.LANCZOS)
    left = (new_w - tw) // 2
    top = (new_h - th) // 2
    return resized.crop((left, top, left + tw, top + th))


def scale_to_fit(image: Image.Image, container: Size) -> Image.Image:
    """Uniformly scale *image* to fit entirely inside *container*.

    The returned image is usually smaller than the container on one axis;
    the caller is responsible for the surrounding background.
    """
    w, h = fit_size(image.size, container)
    return image.resize((_px(w), _px(h)), Image.Resampling.LANCZOS)


def stretch(image: Image.Image, target_size: Size) -> Image.Image:
    """Non-uniformly scale *image* to exactly *target_size*."""
    return image.resize(target_size, Image.Resampling.LANCZOS)


def paste_centered(canvas: Image.Image, image: Image.Image) -> None:
    """Paste *image* in the middle of *canvas*, cropping anything outside."""
    x = (canvas.width - image.width) // 2
    y = (canvas.height - image.height) // 2
    canvas.paste(image.convert(canvas.mode), (x, y))


def center_on(image: Image.Image, target_size: Size, background: RGB) -> Image.Image:
    """Draw *image* unscaled in the middle of a *background*-filled canvas."""
    canvas = new_canvas(target_size, background)
    paste_centered(canvas, image)
    return canvas


def blur_composite(image: Image.Image, target_size: Size, radius: float) -> Image.Image:
    """Cover-scale *image* to the target and blur it (gaussian, *radius* px)."""
    background = scale_to_cover(image, target_size)
    if radius <= 0:
        return background
    return background.filter(ImageFilter.GaussianBlur(radius=radius))


# ---------------------------------------------------------------------------
# Compositing helpers
# ---------------------------------------------------------------------------


def _rounded_mask(size: Size, radius: float) -> Image.Image:
    mask = Image.new("L", size, 0)
    ImageDraw.Draw(mask).rounded_rectangle(
        (0, 0, size[0] - 1, size[1] - 1), radius=radius, fill=255
    )
    return mask


def _clip_rounded(tile: Image.Image, radius: float) -> Image.Image:
    """Return an RGBA copy of *tile* with rounded, transparent corners."""
    tile = tile.convert("RGBA")
    mask = _rounded_mask(tile.size, radius)
    tile.putalpha(ImageChops.multiply(tile.getchannel("A"), mask))
    return tile


def _composite_at(canvas: Image.Image, tile: Image.Image, position: Tuple[float, float]) -> None:
    """Alpha-composite *tile* onto *canvas* with its top-left at *position*.

    Positions may be negative or run past the canvas edge; the tile is
    clipped to the canvas.
    """
    layer = Image.new("RGBA", canvas.size, (0, 0, 0, 0))
    layer.paste(tile, (int(round(position[0])), int(round(position[1]))))
    canvas.alpha_composite(layer)


def rounded_clipped_draw(
    canvas: Image.Image,
    image: Image.Image,
    rect: Rect,
    corner_radius: float,
) -> None:
    """Draw *image* scaled into *rect*, clipped to a rounded rectangle."""
    x, y, w, h = rect
    tile = image.convert("RGBA").resize((_px(w), _px(h)), Image.Resampling.LANCZOS)
    _composite_at(canvas, _clip_rounded(tile, corner_radius), (x, y))


def drop_shadow(
    canvas: Image.Image,
    rect: Rect,
    offset: float,
    blur_amount: float,
    offset_x: float = 0.0,
    corner_radius: float = SHADOW_CORNER_RADIUS,
    opacity: float = SHADOW_OPACITY,
) -> None:
    """Draw a soft black shadow for a rounded rectangle at *rect*.

    The shadow falls *offset* pixels downwards (and *offset_x* to the right)
    and is softened with a gaussian blur of roughly *blur_amount* pixels.
    """
    x, y, w, h = rect
    pad = int(math.ceil(blur_amount * 2 + abs(offset) + abs(offset_x)))
    tw, th = _px(w), _px(h)

    tile = Image.new("RGBA", (tw + pad * 2, th + pad * 2), (0, 0, 0, 0))
    ImageDraw.Draw(tile).rounded_rectangle(
        (pad, pad, pad + tw - 1, pad + th - 1),
        radius=corner_radius,
        fill=(0, 0, 0, int(255 * opacity)),
    )
    if blur_amount > 0:
        tile = tile.filter(ImageFilter.GaussianBlur(radius=blur_amount / 2))

    _composite_at(canvas, tile, (x - pad + offset_x, y - pad + offset))


def diagonal_gradient(colors: Sequence[RGB], size: Size) -> Image.Image:
    """Paint a gradient from the top-left corner (first colour) to the
    bottom-right corner (last colour).  A single colour gives a solid fill."""
    if not colors:
        raise ValueError("diagonal_gradient needs at least one colour")

    w, h = size
    start = np.array(colors[0], dtype=np.float64)
    end = np.array(colors[-1], dtype=np.float64)

    # Project every pixel onto the top-left -> bottom-right diagonal
    dx, dy = max(1, w - 1), max(1, h - 1)
    xs = np.arange(w, dtype=np.float64)[np.newaxis, :]
    ys = np.arange(h, dtype=np.float64)[:, np.newaxis]
    t = np.clip((xs * dx + ys * dy) / (dx * dx + dy * dy), 0.0, 1.0)

    pixels = start + (end - start) * t[..., np.newaxis]
    gradient = Image.fromarray(np.round(pixels).astype(np.uint8))
    return gradient.convert("RGBA")


def framed_polaroid(
    canvas: Image.Image,
    image: Image.Image,
    rect: Rect,
    rotation_degrees: float,
    frame_thickness: float,
    bottom_extra: float,
    emphasized: bool = False,
) -> None:
    """Composite a white polaroid frame holding *image* onto *canvas*.

    The frame fills *rect* before rotation and is rotated about the rect's
    centre (positive angles turn counter-clockwise).  Emphasized frames get a
    stronger shadow and a soft white halo; the others get a faint yellow
    tint over the photo.
    """
    x, y, w, h = rect
    fw, fh = _px(w), _px(h)
    shadow_offset, shadow_blur, shadow_opacity = POLAROID_SHADOW[emphasized]
    pad = int(math.ceil(shadow_blur * 2 + shadow_offset + GLOW_SPREAD))
    tile_size = (fw + pad * 2, fh + pad * 2)
    tile = Image.new("RGBA", tile_size, (0, 0, 0, 0))

    shadow = Image.new("RGBA", tile_size, (0, 0, 0, 0))
    sx = pad + shadow_offset * 0.3
    sy = pad + shadow_offset
    ImageDraw.Draw(shadow).rounded_rectangle(
        (sx, sy, sx + fw - 1, sy + fh - 1),
        radius=POLAROID_CORNER_RADIUS,
        fill=(0, 0, 0, int(255 * shadow_opacity)),
    )
    tile.alpha_composite(shadow.filter(ImageFilter.GaussianBlur(radius=shadow_blur / 2)))

    if emphasized:
        glow = Image.new("RGBA", tile_size, (0, 0, 0, 0))
        ImageDraw.Draw(glow).rounded_rectangle(
            (
                pad - GLOW_SPREAD,
                pad - GLOW_SPREAD,
                pad + fw - 1 + GLOW_SPREAD,
                pad + fh - 1 + GLOW_SPREAD,
            ),
            radius=GLOW_CORNER_RADIUS,
            fill=GLOW_COLOR,
        )
        tile.alpha_composite(glow)

    frame = Image.new("RGBA", tile_size, (0, 0, 0, 0))
    ImageDraw.Draw(frame).rounded_rectangle(
        (pad, pad, pad + fw - 1, pad + fh - 1),
        radius=POLAROID_CORNER_RADIUS,
        fill=(255, 255, 255, 255),
    )
    tile.alpha_composite(frame)

    # Photo area: even border, with the extra strip along the bottom edge
    border = int(round(frame_thickness))
    photo_w = fw - border * 2
    photo_h = fh - border * 2 - int(round(bottom_extra))
    if photo_w >= 1 and photo_h >= 1:
        photo = image.convert("RGBA").resize((photo_w, photo_h), Image.Resampling.LANCZOS)
        if not emphasized:
            photo = Image.alpha_composite(photo, Image.new("RGBA", photo.size, AGING_TINT))
        photo = _clip_rounded(photo, POLAROID_PHOTO_CORNER_RADIUS)
        tile.alpha_composite(photo, dest=(pad + border, pad + border))
    else:
        logger.debug("Polaroid {}x{} too small for its border; drawing frame only", fw, fh)

    if rotation_degrees:
        tile = tile.rotate(rotation_degrees, resample=Image.Resampling.BICUBIC, expand=True)

    cx, cy = x + w / 2, y + h / 2
    _composite_at(canvas, tile, (cx - tile.width / 2, cy - tile.height / 2))


# ---------------------------------------------------------------------------
# Text rendering
# ---------------------------------------------------------------------------

_BOLD_FONT_CANDIDATES = [
    # Linux (Debian/Ubuntu)
    "/usr/share/fonts/truetype/dejavu/DejaVuSans-Bold.ttf",
    "/usr/share/fonts/truetype/liberation/LiberationSans-Bold.ttf",
    "/usr/share/fonts/truetype/freefont/FreeSansBold.ttf",
    "/usr/share/fonts/truetype/noto/NotoSans-Bold.ttf",
    "/usr/share/fonts/TTF/DejaVuSans-Bold.ttf",
    # macOS
    "/System/Library/Fonts/Helvetica.ttc",
    "/Library/Fonts/Arial Bold.ttf",
    # Windows
    "C:/Windows/Fonts/arialbd.ttf",
    "C:/Windows/Fonts/segoeuib.ttf",
]

_REGULAR_FONT_CANDIDATES = [
    "/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf",
    "/usr/share/fonts/truetype/liberation/LiberationSans-Regular.ttf",
    "/usr/share/fonts/truetype/freefont/FreeSans.ttf",
    "/usr/share/fonts/truetype/noto/NotoSans-Regular.ttf",
    "/usr/share/fonts/TTF/DejaVuSans.ttf",
    "/System/Library/Fonts/Helvetica.ttc",
    "/Library/Fonts/Arial.ttf",
    "C:/Windows/Fonts/arial.ttf",
    "C:/Windows/Fonts/segoeui.ttf",
]


@lru_cache(maxsize=64)
def load_font(size: int, bold: bool = False) -> "ImageFont.FreeTypeFont | ImageFont.ImageFont":
    """
    Load a TrueType font at the given size.

    Tries several common system font paths, then font names, and finally
    falls back to Pillow's built-in font.
    """
    candidates = _BOLD_FONT_CANDIDATES if bold else _REGULAR_FONT_CANDIDATES
    for path in candidates:
        try:
            return ImageFont.truetype(path, size)
        except OSError:
            continue

    names = ["DejaVuSans-Bold", "Arial Bold"] if bold else ["DejaVuSans", "Arial"]
    for name in names:
        try:
            return ImageFont.truetype(name, size)
        except OSError:
            continue

    logger.debug("No TrueType font found; using Pillow's default font at {}px", size)
    return ImageFont.load_default(size=size)


def text_size(font: "ImageFont.FreeTypeFont | ImageFont.ImageFont", text: str) -> Tuple[int, int]:
    left, top, right, bottom = font.getbbox(text)
    return right - left, bottom - top


def fit_font(
    text: str,
    max_width: float,
    max_font_size: int,
    min_font_size: int = 12,
    bold: bool = False,
) -> "ImageFont.FreeTypeFont | ImageFont.ImageFont":
    """Largest font (stepping down by 2px) whose rendering of *text* fits *max_width*."""
    for size in range(max_font_size, min_font_size - 1, -2):
        font = load_font(size, bold)
        if text_size(font, text)[0] <= max_width:
            return font
    return load_font(min_font_size, bold)


def draw_text(
    canvas: Image.Image,
    position: Tuple[float, float],
    text: str,
    font: "ImageFont.FreeTypeFont | ImageFont.ImageFont",
    fill: Tuple[int, int, int, int],
) -> None:
    """Draw *text* so its visible bounding box starts at *position*.

    Text goes through a transparent layer so partially transparent fills
    blend with the canvas instead of replacing it.
    """
    layer = Image.new("RGBA", canvas.size, (0, 0, 0, 0))
    draw = ImageDraw.Draw(layer)
    left, top, _, _ = draw.textbbox((0, 0), text, font=font)
    draw.text((position[0] - left, position[1] - top), text, font=font, fill=fill)
    canvas.alpha_composite(layer)
