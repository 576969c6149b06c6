"""
Coverwall - Color Extractor

Derives colour palettes from album artwork.

    extract_palette         the two most frequent coarse colour bins of one
                            image (used for fill colours and gradients)
    harmonize               a readable two-colour background palette shared
                            by the current track and its history (collage)
    contrasting_text_color  light or dark text for a given background

Extraction never fails: unreadable input or an empty sample set yields a
fixed default palette flagged with ``fallback=True`` so callers can report
it.
"""

import colorsys
import math
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple, Union

import numpy as np
from loguru import logger
from PIL import Image

from coverwall.services.canvas import RGB, DecodeFailure, decode_image

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------
SAMPLE_SIZE = 100  # artwork is down-sampled to SAMPLE_SIZE x SAMPLE_SIZE
SAMPLE_STEP = max(1, SAMPLE_SIZE // 20)  # every 5th pixel -> 400 samples
BIN_STEP = 32  # per-channel quantisation

CURRENT_TRACK_WEIGHT = 5
HISTORY_WEIGHT = 1

SATURATION_RANGE = (0.2, 0.6)
BRIGHTNESS_RANGE = (0.7, 0.9)
ANALOGOUS_HUE_SHIFT = 0.0833  # +30 degrees

DEFAULT_COLORS: Tuple[RGB, RGB] = ((0, 122, 255), (175, 82, 222))  # blue, purple
WARM_COLORS: Tuple[RGB, RGB] = ((255, 217, 179), (242, 204, 166))  # peach

ImageSource = Union[Image.Image, bytes]


@dataclass(frozen=True)
class Palette:
    """Ranked colours, most dominant first.  Never empty."""

    colors: Tuple[RGB, ...]
    fallback: bool = False

    def __post_init__(self) -> None:
        if not self.colors:
            raise ValueError("a palette needs at least one colour")

    @property
    def primary(self) -> RGB:
        return self.colors[0]

    @property
    def secondary(self) -> RGB:
        return self.colors[1] if len(self.colors) > 1 else self.colors[0]


def default_palette() -> Palette:
    return Palette(DEFAULT_COLORS, fallback=True)


def warm_palette() -> Palette:
    return Palette(WARM_COLORS, fallback=True)


def _as_rgb_image(source: ImageSource) -> Image.Image:
    if isinstance(source, (bytes, bytearray)):
        return decode_image(bytes(source))
    return source.convert("RGB")


def extract_palette(source: ImageSource) -> Palette:
    """
    Return the two dominant colours of *source*.

    The image is resized to SAMPLE_SIZE x SAMPLE_SIZE, every SAMPLE_STEP-th
    pixel on both axes is quantised to BIN_STEP levels per channel and the
    bins are ranked by frequency (ties broken by bin value, so the result is
    deterministic).  Artwork with a single distinct bin gives a one-colour
    palette.
    """
    try:
        image = _as_rgb_image(source)
    except DecodeFailure as e:
        logger.warning("⚠️ Palette extraction fell back to defaults: {}", e)
        return default_palette()

    if image.width == 0 or image.height == 0:
        logger.warning("⚠️ Palette extraction found no pixels; using defaults")
        return default_palette()

    sample = np.asarray(
        image.resize((SAMPLE_SIZE, SAMPLE_SIZE), Image.Resampling.BOX), dtype=np.uint8
    )
    pixels = sample[::SAMPLE_STEP, ::SAMPLE_STEP].reshape(-1, 3)
    if len(pixels) == 0:
        logger.warning("⚠️ Palette extraction collected no samples; using defaults")
        return default_palette()

    binned = (pixels // BIN_STEP) * BIN_STEP
    bins, counts = np.unique(binned, axis=0, return_counts=True)
    ranked = np.argsort(-counts, kind="stable")[:2]

    colors = tuple(
        (int(bins[i][0]), int(bins[i][1]), int(bins[i][2])) for i in ranked
    )
    return Palette(colors)


def circular_mean_hue(hues: Sequence[float]) -> float:
    """Average hues (0.0-1.0) on the colour wheel rather than on a line.

    0.95 and 0.05 average to ~0.0, not 0.5.
    """
    sum_x = sum(math.cos(h * 2 * math.pi) for h in hues)
    sum_y = sum(math.sin(h * 2 * math.pi) for h in hues)
    angle = math.atan2(sum_y, sum_x)
    if angle < 0:
        angle += 2 * math.pi
    return (angle / (2 * math.pi)) % 1.0


def _clamp(value: float, bounds: Tuple[float, float]) -> float:
    return min(max(value, bounds[0]), bounds[1])


def _hsv_to_rgb(h: float, s: float, v: float) -> RGB:
    r, g, b = colorsys.hsv_to_rgb(h % 1.0, s, v)
    return (int(round(r * 255)), int(round(g * 255)), int(round(b * 255)))


def harmonize(
    images: Sequence[ImageSource],
    weights: Optional[Sequence[int]] = None,
) -> Palette:
    """
    Build a soft two-colour background palette from several images.

    By default the first image (the current track) counts CURRENT_TRACK_WEIGHT
    times and every other image once.  The top two colours of each image
    contribute hue / saturation / brightness samples, replicated by weight.
    Hue is averaged on the colour wheel; saturation and brightness are
    averaged and clamped to SATURATION_RANGE / BRIGHTNESS_RANGE so text and
    frames stay readable.  The second colour is the analogous hue 30 degrees
    further round.

    Images whose palette falls back to defaults contribute nothing; if no
    image contributes, the warm default palette is returned.
    """
    if not images:
        return warm_palette()
    if weights is None:
        weights = [CURRENT_TRACK_WEIGHT] + [HISTORY_WEIGHT] * (len(images) - 1)
    if len(weights) != len(images):
        raise ValueError(
            f"got {len(weights)} weights for {len(images)} images"
        )

    hues: List[float] = []
    saturations: List[float] = []
    brightnesses: List[float] = []

    for image, weight in zip(images, weights):
        palette = extract_palette(image)
        if palette.fallback:
            continue
        for r, g, b in palette.colors[:2]:
            h, s, v = colorsys.rgb_to_hsv(r / 255, g / 255, b / 255)
            hues.extend([h] * weight)
            saturations.extend([s] * weight)
            brightnesses.extend([v] * weight)

    if not hues:
        logger.warning("⚠️ No colours sampled from {} images; using warm defaults", len(images))
        return warm_palette()

    hue = circular_mean_hue(hues)
    saturation = _clamp(sum(saturations) / len(saturations), SATURATION_RANGE)
    brightness = _clamp(sum(brightnesses) / len(brightnesses), BRIGHTNESS_RANGE)

    logger.debug(
        "Harmonized {} images ({} weighted samples): h={:.3f} s={:.2f} v={:.2f}",
        len(images),
        len(hues),
        hue,
        saturation,
        brightness,
    )
    return Palette(
        (
            _hsv_to_rgb(hue, saturation, brightness),
            _hsv_to_rgb(hue + ANALOGOUS_HUE_SHIFT, saturation, brightness),
        )
    )


def relative_luminance(color: RGB) -> float:
    """Perceptual luminance (0.0-1.0) using the 0.299/0.587/0.114 weights."""
    r, g, b = color
    return (0.299 * r + 0.587 * g + 0.114 * b) / 255


def contrasting_text_color(
    background: RGB,
    light: RGB = (255, 255, 255),
    dark: RGB = (0, 0, 0),
) -> RGB:
    """Light text on dark backgrounds, dark text on light ones."""
    return light if relative_luminance(background) < 0.5 else dark
