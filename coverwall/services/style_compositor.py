"""
Coverwall - Style Compositor

Turns the current track's artwork into one finished wallpaper per display.

Every render first pushes the artwork into the track history (whatever the
style, so the collage has material as soon as the user switches to it),
then renders each target size with the selected style:

    cover                    scale to cover, crop overflow
    fit                      scale to fit over a fill colour
    stretch                  scale to exactly the target, ignoring aspect
    center                   native size over a fill colour
    blurredBackground        blurred cover background + sharp centred art
    gradientFromAlbumColors  album-colour gradient + off-centre art
    collageEffect            persistent polaroid collage of recent tracks
    minimalistArt            solid colour, typography and a thumbnail

Nothing in here is fatal.  Unreadable artwork, empty palettes and a full
collage grid fall back to defaults and are reported as ``RenderStatus``
entries on the result (and to any registered status listeners).
"""

from __future__ import annotations

import random
import threading
from dataclasses import dataclass, field
from enum import Enum
from io import BytesIO
from typing import Callable, Dict, List, Optional, Sequence, Tuple, Union

from loguru import logger
from PIL import Image

from coverwall.config import BLUR_RADIUS
from coverwall.services.cancellation import CancelToken
from coverwall.services.canvas import (
    RGB,
    Size,
    DecodeFailure,
    blur_composite,
    center_on,
    decode_image,
    diagonal_gradient,
    draw_text,
    drop_shadow,
    fit_font,
    fit_size,
    new_canvas,
    paste_centered,
    rounded_clipped_draw,
    scale_to_cover,
    scale_to_fit,
    stretch,
    text_size,
)
from coverwall.services.collage_layout import CollageLayoutEngine
from coverwall.services.color_extractor import (
    DEFAULT_COLORS,
    Palette,
    contrasting_text_color,
    extract_palette,
)
from coverwall.services.history_buffer import HistoryBuffer

PLACEHOLDER_SIZE = 300
DEFAULT_CUSTOM_COLOR: RGB = (0, 0, 0)


class WallpaperStyle(str, Enum):
    """Supported wallpaper styles."""

    COVER = "cover"
    FIT = "fit"
    STRETCH = "stretch"
    CENTER = "center"
    BLURRED_BACKGROUND = "blurredBackground"
    GRADIENT_FROM_ALBUM_COLORS = "gradientFromAlbumColors"
    COLLAGE_EFFECT = "collageEffect"
    MINIMALIST_ART = "minimalistArt"

    @property
    def display_name(self) -> str:
        return _STYLE_DISPLAY_NAMES[self]


_STYLE_DISPLAY_NAMES: Dict[WallpaperStyle, str] = {
    WallpaperStyle.COVER: "Cover",
    WallpaperStyle.FIT: "Fit",
    WallpaperStyle.STRETCH: "Stretch",
    WallpaperStyle.CENTER: "Center",
    WallpaperStyle.BLURRED_BACKGROUND: "Blurred Background + Center Art",
    WallpaperStyle.GRADIENT_FROM_ALBUM_COLORS: "Gradient from Album Colors",
    WallpaperStyle.COLLAGE_EFFECT: "Collage Effect with Previous Tracks",
    WallpaperStyle.MINIMALIST_ART: "Minimalist Art Mode",
}


class BackgroundFillMode(str, Enum):
    """Where the fill colour for ``fit`` and ``center`` comes from."""

    AUTO = "auto"  # dominant colour of the artwork
    CUSTOM = "custom"  # the request's custom colour


class RenderIssue(str, Enum):
    """Non-fatal problems a render recovered from."""

    DECODE_FAILURE = "decode_failure"
    PALETTE_EXTRACTION_EMPTY = "palette_extraction_empty"
    GRID_FULL = "grid_full"


@dataclass(frozen=True)
class RenderStatus:
    issue: RenderIssue
    message: str

    def __str__(self) -> str:
        return f"{self.issue.value}: {self.message}"


StatusListener = Callable[[RenderStatus], None]


@dataclass
class RenderRequest:
    """One render trigger: the current artwork plus display and style settings."""

    image: Union[Image.Image, bytes]
    style: WallpaperStyle = WallpaperStyle.COVER
    fill_mode: BackgroundFillMode = BackgroundFillMode.AUTO
    custom_color: Optional[RGB] = None
    target_sizes: List[Size] = field(default_factory=list)
    track_name: str = ""
    artist_name: str = ""


@dataclass
class RenderedWallpaper:
    display_index: int
    size: Size
    image: Image.Image

    def to_png(self) -> bytes:
        buffer = BytesIO()
        self.image.save(buffer, "PNG")
        return buffer.getvalue()


@dataclass
class RenderResult:
    wallpapers: List[RenderedWallpaper] = field(default_factory=list)
    issues: List[RenderStatus] = field(default_factory=list)
    cancelled: bool = False

    @property
    def ok(self) -> bool:
        return not self.cancelled and not self.issues


@dataclass
class _RenderContext:
    request: RenderRequest
    image: Image.Image
    decoded: bool
    result: RenderResult
    cancel_token: Optional[CancelToken]
    palette: Optional[Palette] = None


def _cancelled(token: Optional[CancelToken]) -> bool:
    return token is not None and token.cancelled


class StyleCompositor:
    """
    Renders wallpapers for every display and owns the state they depend on:
    the track history and one collage grid per display size.

    ``render`` is serialized; a render whose cancel token fires before it
    touches shared state returns a cancelled result without side effects.
    """

    def __init__(
        self,
        history: Optional[HistoryBuffer] = None,
        blur_radius: float = BLUR_RADIUS,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.history = history if history is not None else HistoryBuffer()
        self.blur_radius = blur_radius
        self._rng = rng or random.Random()
        self._collage_engines: Dict[Size, CollageLayoutEngine] = {}
        self._listeners: List[StatusListener] = []
        self._lock = threading.Lock()
        self._renderers: Dict[WallpaperStyle, Callable[[_RenderContext, Size], Image.Image]] = {
            WallpaperStyle.COVER: self._render_cover,
            WallpaperStyle.FIT: self._render_fit,
            WallpaperStyle.STRETCH: self._render_stretch,
            WallpaperStyle.CENTER: self._render_center,
            WallpaperStyle.BLURRED_BACKGROUND: self._render_blurred_background,
            WallpaperStyle.GRADIENT_FROM_ALBUM_COLORS: self._render_gradient,
            WallpaperStyle.COLLAGE_EFFECT: self._render_collage,
            WallpaperStyle.MINIMALIST_ART: self._render_minimalist,
        }

    # ------------------------------------------------------------------
    # Status reporting
    # ------------------------------------------------------------------

    def add_status_listener(self, listener: StatusListener) -> None:
        self._listeners.append(listener)

    def remove_status_listener(self, listener: StatusListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _report(self, result: RenderResult, issue: RenderIssue, message: str) -> None:
        status = RenderStatus(issue, message)
        logger.warning("⚠️ {}", status)
        result.issues.append(status)
        for listener in list(self._listeners):
            try:
                listener(status)
            except Exception as e:
                logger.error("❌ Status listener failed: {}", e)

    # ------------------------------------------------------------------
    # Collage session
    # ------------------------------------------------------------------

    def collage_engine(self, size: Size) -> Optional[CollageLayoutEngine]:
        return self._collage_engines.get((size[0], size[1]))

    def reset_collage(self) -> None:
        """Start a new collage session on every display."""
        with self._lock:
            for engine in self._collage_engines.values():
                engine.reset()

    def _prune_collage_engines(self, sizes: Sequence[Size]) -> None:
        wanted = {(s[0], s[1]) for s in sizes}
        for size in list(self._collage_engines):
            if size not in wanted:
                logger.debug("🧩 Dropping collage grid for {}x{} (display gone)", *size)
                del self._collage_engines[size]

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------

    def render(self, request: RenderRequest, cancel_token: Optional[CancelToken] = None) -> RenderResult:
        """Render one wallpaper per target size in *request*."""
        with self._lock:
            return self._render(request, cancel_token)

    def _render(self, request: RenderRequest, cancel_token: Optional[CancelToken]) -> RenderResult:
        result = RenderResult()
        if _cancelled(cancel_token):
            return RenderResult(cancelled=True)

        image, decoded = self._load_image(request, result)
        ctx = _RenderContext(
            request=request,
            image=image,
            decoded=decoded,
            result=result,
            cancel_token=cancel_token,
        )

        if _cancelled(cancel_token):
            return RenderResult(issues=result.issues, cancelled=True)

        if ctx.decoded:
            self.history.push(ctx.image)
        if request.style == WallpaperStyle.COLLAGE_EFFECT:
            self._prune_collage_engines(request.target_sizes)

        renderer = self._renderers[WallpaperStyle(request.style)]
        for index, size in enumerate(request.target_sizes):
            if _cancelled(cancel_token):
                result.cancelled = True
                return result
            size = (int(size[0]), int(size[1]))
            raster = renderer(ctx, size)
            result.wallpapers.append(RenderedWallpaper(index, size, raster.convert("RGB")))

        logger.info(
            "🖼️ Rendered {} wallpaper(s) in style '{}'{}",
            len(result.wallpapers),
            WallpaperStyle(request.style).value,
            f" with {len(result.issues)} fallback(s)" if result.issues else "",
        )
        return result

    def _load_image(self, request: RenderRequest, result: RenderResult) -> Tuple[Image.Image, bool]:
        """Decode the request's artwork; unreadable artwork becomes a placeholder."""
        source = request.image
        try:
            if isinstance(source, (bytes, bytearray)):
                image = decode_image(bytes(source))
            else:
                image = source.convert("RGB")
            if image.width == 0 or image.height == 0:
                raise DecodeFailure("artwork has no pixels")
            return image, True
        except DecodeFailure as e:
            self._report(result, RenderIssue.DECODE_FAILURE, f"{e}; using placeholder artwork")
            placeholder = diagonal_gradient(DEFAULT_COLORS, (PLACEHOLDER_SIZE, PLACEHOLDER_SIZE))
            return placeholder.convert("RGB"), False

    def _palette(self, ctx: _RenderContext) -> Palette:
        if ctx.palette is None:
            ctx.palette = extract_palette(ctx.image)
            if ctx.palette.fallback:
                self._report(
                    ctx.result,
                    RenderIssue.PALETTE_EXTRACTION_EMPTY,
                    "no colours sampled from artwork; using default palette",
                )
        return ctx.palette

    def _fill_color(self, ctx: _RenderContext) -> RGB:
        if ctx.request.fill_mode == BackgroundFillMode.CUSTOM:
            return ctx.request.custom_color or DEFAULT_CUSTOM_COLOR
        return self._palette(ctx).primary

    # ------------------------------------------------------------------
    # Styles
    # ------------------------------------------------------------------

    def _render_cover(self, ctx: _RenderContext, size: Size) -> Image.Image:
        return scale_to_cover(ctx.image, size)

    def _render_fit(self, ctx: _RenderContext, size: Size) -> Image.Image:
        canvas = new_canvas(size, self._fill_color(ctx))
        paste_centered(canvas, scale_to_fit(ctx.image, size))
        return canvas

    def _render_stretch(self, ctx: _RenderContext, size: Size) -> Image.Image:
        return stretch(ctx.image, size)

    def _render_center(self, ctx: _RenderContext, size: Size) -> Image.Image:
        return center_on(ctx.image, size, self._fill_color(ctx))

    def _render_blurred_background(self, ctx: _RenderContext, size: Size) -> Image.Image:
        width, height = size
        canvas = blur_composite(ctx.image, size, self.blur_radius).convert("RGBA")

        # Sharp art: about a third of the width, at most half the height
        art_w, art_h = fit_size(ctx.image.size, (width * 0.33, height * 0.5))
        rect = ((width - art_w) / 2, (height - art_h) / 2, art_w, art_h)
        drop_shadow(canvas, rect, offset=8, blur_amount=16)
        rounded_clipped_draw(canvas, ctx.image, rect, corner_radius=12)
        return canvas

    def _render_gradient(self, ctx: _RenderContext, size: Size) -> Image.Image:
        width, height = size
        canvas = diagonal_gradient(self._palette(ctx).colors, size)

        # Smaller art, pushed 10% right of centre
        art_w, art_h = fit_size(ctx.image.size, (width * 0.25, height * 0.4))
        rect = ((width - art_w) / 2 + width * 0.1, (height - art_h) / 2, art_w, art_h)
        drop_shadow(canvas, rect, offset=6, blur_amount=12)
        rounded_clipped_draw(canvas, ctx.image, rect, corner_radius=8)
        return canvas

    def _render_collage(self, ctx: _RenderContext, size: Size) -> Image.Image:
        engine = self._collage_engines.get(size)
        if engine is None:
            engine = CollageLayoutEngine(rng=self._rng)
            self._collage_engines[size] = engine

        # The artwork pushed by this render is the current track, not history
        previous = self.history.snapshot(previous_only=ctx.decoded)
        collage = engine.render(ctx.image, previous, size, cancel_token=ctx.cancel_token)
        if collage.dropped:
            self._report(
                ctx.result,
                RenderIssue.GRID_FULL,
                f"collage grid full; {collage.dropped} history image(s) left out",
            )
        return collage.image

    def _render_minimalist(self, ctx: _RenderContext, size: Size) -> Image.Image:
        width, height = size
        background = self._palette(ctx).primary
        canvas = new_canvas(size, background)
        text_rgb = contrasting_text_color(background)
        max_text_width = width * 0.9

        # Track name: large and bold, its bottom edge 20px above the middle
        track_name = ctx.request.track_name.strip()
        if track_name:
            font = fit_font(track_name, max_text_width, int(min(width * 0.08, 72)), bold=True)
            tw, th = text_size(font, track_name)
            draw_text(
                canvas,
                ((width - tw) / 2, height / 2 - 20 - th),
                track_name,
                font,
                fill=(*text_rgb, 255),
            )

        # Artist: smaller, 80% opacity, its bottom edge 40px below the middle
        artist_name = ctx.request.artist_name.strip()
        if artist_name:
            font = fit_font(artist_name, max_text_width, int(min(width * 0.04, 36)))
            aw, ah = text_size(font, artist_name)
            draw_text(
                canvas,
                ((width - aw) / 2, height / 2 + 40 - ah),
                artist_name,
                font,
                fill=(*text_rgb, int(255 * 0.8)),
            )

        # Thumbnail in the bottom-right corner
        thumb = min(width * 0.12, 120)
        rect = (width - thumb - 40, height - thumb - 40, thumb, thumb)
        drop_shadow(canvas, rect, offset=4, blur_amount=8)
        thumbnail = scale_to_cover(ctx.image, (max(1, int(round(thumb))), max(1, int(round(thumb)))))
        rounded_clipped_draw(canvas, thumbnail, rect, corner_radius=8)
        return canvas
