"""
Coverwall - Wallpaper Service

Glue between a track-change notification and the desktop: download the
artwork, render it through the scheduler, save one PNG per display and hand
the paths to the platform's wallpaper setter.
"""

import asyncio
import inspect
from dataclasses import dataclass
from pathlib import Path
from typing import Awaitable, Callable, List, Optional, Sequence, Union

import httpx
from loguru import logger

from coverwall.services.artwork_source import fetch_artwork
from coverwall.services.canvas import RGB, Size
from coverwall.services.render_scheduler import RenderScheduler
from coverwall.services.style_compositor import (
    BackgroundFillMode,
    RenderRequest,
    RenderResult,
    WallpaperStyle,
)
from coverwall.services.wallpaper_cache import WallpaperCache

# Receives (display_index, png_path) for each rendered display
WallpaperApplier = Callable[[int, Path], Union[None, Awaitable[None]]]


@dataclass
class TrackInfo:
    """The now-playing track as reported by the music player."""

    id: str
    name: str
    artist: str
    album_name: str = ""
    album_image_url: Optional[str] = None


class WallpaperService:
    def __init__(
        self,
        scheduler: RenderScheduler,
        cache: WallpaperCache,
        apply_wallpaper: Optional[WallpaperApplier] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.scheduler = scheduler
        self.cache = cache
        self.apply_wallpaper = apply_wallpaper
        self.http_client = http_client
        self.last_paths: List[Path] = []
        self._generation = 0

    def _superseded(self, generation: int) -> bool:
        return generation != self._generation

    async def update_wallpaper(
        self,
        track: TrackInfo,
        style: WallpaperStyle,
        display_sizes: Sequence[Size],
        fill_mode: BackgroundFillMode = BackgroundFillMode.AUTO,
        custom_color: Optional[RGB] = None,
    ) -> Optional[RenderResult]:
        """
        Render and apply a wallpaper for *track* on every display.

        Returns None, leaving the current wallpaper alone, when the track has
        no artwork, the download fails, or a newer update superseded this one.
        """
        # Claim the trigger before downloading so a slow download of an older
        # track can never land after a newer one
        self._generation += 1
        generation = self._generation
        self.scheduler.cancel_pending()

        if not track.album_image_url:
            logger.warning("⚠️ No album artwork for '{}' by {}", track.name, track.artist)
            return None

        try:
            artwork = await fetch_artwork(track.album_image_url, client=self.http_client)
        except httpx.HTTPError as e:
            logger.warning("⚠️ Artwork download failed for '{}': {}", track.name, e)
            return None
        if self._superseded(generation):
            logger.debug("⏭️ Artwork for '{}' arrived after a newer track; dropped", track.name)
            return None

        request = RenderRequest(
            image=artwork,
            style=style,
            fill_mode=fill_mode,
            custom_color=custom_color,
            target_sizes=list(display_sizes),
            track_name=track.name,
            artist_name=track.artist,
        )
        logger.info(
            "🎨 Updating wallpaper: '{}' by {} ({}, {} display(s))",
            track.name,
            track.artist,
            style.value,
            len(request.target_sizes),
        )

        task = self.scheduler.submit(request)
        try:
            result = await task
        except asyncio.CancelledError:
            # Our own cancellation propagates; a superseded render does not
            current = asyncio.current_task()
            if current is not None and current.cancelling():
                raise
            logger.debug("⏭️ Wallpaper update for '{}' superseded", track.name)
            return None
        if result.cancelled or self._superseded(generation):
            return None

        paths: List[Path] = []
        for wallpaper in result.wallpapers:
            if self._superseded(generation):
                logger.debug("⏭️ Wallpaper update for '{}' superseded while applying", track.name)
                return None
            path = self.cache.save(wallpaper.image, wallpaper.display_index)
            paths.append(path)
            if self.apply_wallpaper is not None:
                outcome = self.apply_wallpaper(wallpaper.display_index, path)
                if inspect.isawaitable(outcome):
                    await outcome

        self.last_paths = paths
        self.cache.cleanup()
        return result
