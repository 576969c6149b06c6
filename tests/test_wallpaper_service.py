"""
Coverwall - Wallpaper Service Tests

End-to-end track change: download (mocked), render, save and apply.
"""

import asyncio
import io
import random

import httpx
import pytest
from PIL import Image

from coverwall.services.render_scheduler import RenderScheduler
from coverwall.services.style_compositor import StyleCompositor, WallpaperStyle
from coverwall.services.wallpaper_service import TrackInfo, WallpaperService

DISPLAYS = [(320, 180), (180, 320)]


@pytest.fixture
def compositor(history):
    return StyleCompositor(history=history, rng=random.Random(5))


def _service(compositor, cache, handler, applied):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    scheduler = RenderScheduler(compositor, cache=cache)
    return WallpaperService(
        scheduler,
        cache,
        apply_wallpaper=lambda index, path: applied.append((index, path)),
        http_client=client,
    )


def _track(url="https://art.example/cover.png"):
    return TrackInfo(id="t1", name="Song", artist="Artist", album_image_url=url)


class TestUpdateWallpaper:
    def test_renders_saves_and_applies(self, compositor, wallpaper_cache, artwork_png):
        applied = []
        service = _service(
            compositor,
            wallpaper_cache,
            lambda request: httpx.Response(200, content=artwork_png),
            applied,
        )

        result = asyncio.run(service.update_wallpaper(_track(), WallpaperStyle.BLURRED_BACKGROUND, DISPLAYS))

        assert result is not None and result.ok
        assert [index for index, _ in applied] == [0, 1]
        assert service.last_paths == [path for _, path in applied]
        for (index, path), size in zip(applied, DISPLAYS):
            with Image.open(path) as saved:
                assert saved.size == size
        assert len(compositor.history) == 1

    def test_async_applier(self, compositor, wallpaper_cache, artwork_png):
        applied = []

        async def apply(index, path):
            applied.append(index)

        service = _service(
            compositor, wallpaper_cache, lambda request: httpx.Response(200, content=artwork_png), []
        )
        service.apply_wallpaper = apply
        asyncio.run(service.update_wallpaper(_track(), WallpaperStyle.COVER, DISPLAYS))
        assert applied == [0, 1]

    def test_missing_artwork_keeps_wallpaper(self, compositor, wallpaper_cache):
        applied = []
        service = _service(compositor, wallpaper_cache, lambda request: httpx.Response(500), applied)

        result = asyncio.run(service.update_wallpaper(_track(url=None), WallpaperStyle.COVER, DISPLAYS))

        assert result is None
        assert applied == []
        assert len(compositor.history) == 0

    def test_download_failure_keeps_wallpaper(self, compositor, wallpaper_cache):
        applied = []
        service = _service(compositor, wallpaper_cache, lambda request: httpx.Response(404), applied)

        result = asyncio.run(service.update_wallpaper(_track(), WallpaperStyle.COVER, DISPLAYS))

        assert result is None
        assert applied == []
        assert wallpaper_cache.files() == []

    def test_undecodable_download_still_applies(self, compositor, wallpaper_cache):
        applied = []
        service = _service(
            compositor,
            wallpaper_cache,
            lambda request: httpx.Response(200, content=b"<html>not art</html>"),
            applied,
        )

        result = asyncio.run(service.update_wallpaper(_track(), WallpaperStyle.GRADIENT_FROM_ALBUM_COLORS, DISPLAYS))

        assert result is not None
        assert not result.ok
        assert len(applied) == 2

    def test_cache_is_trimmed(self, compositor, wallpaper_cache, artwork_png):
        service = _service(
            compositor, wallpaper_cache, lambda request: httpx.Response(200, content=artwork_png), []
        )

        async def scenario():
            for _ in range(3):
                await service.update_wallpaper(_track(), WallpaperStyle.COVER, DISPLAYS)

        asyncio.run(scenario())
        assert len(wallpaper_cache.files()) == wallpaper_cache.max_files


# ---------------------------------------------------------------------------
# Overlapping track changes
# ---------------------------------------------------------------------------


def _png(image: Image.Image) -> bytes:
    buffer = io.BytesIO()
    image.save(buffer, "PNG")
    return buffer.getvalue()


class TestOverlappingUpdates:
    def test_slow_older_download_does_not_win(self, compositor, wallpaper_cache, solid_image):
        red = _png(solid_image((255, 0, 0)))
        blue = _png(solid_image((0, 0, 255)))

        async def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/old.png":
                await asyncio.sleep(0.3)
                return httpx.Response(200, content=red)
            return httpx.Response(200, content=blue)

        applied = []
        service = _service(compositor, wallpaper_cache, handler, applied)

        async def scenario():
            older = asyncio.create_task(
                service.update_wallpaper(
                    _track("https://art.example/old.png"), WallpaperStyle.COVER, [(64, 48)]
                )
            )
            await asyncio.sleep(0.05)
            newer = await service.update_wallpaper(
                _track("https://art.example/new.png"), WallpaperStyle.COVER, [(64, 48)]
            )
            return await older, newer

        older_result, newer_result = asyncio.run(scenario())

        assert older_result is None
        assert newer_result is not None
        assert len(applied) == 1
        with Image.open(applied[-1][1]) as saved:
            assert saved.convert("RGB").getpixel((32, 24)) == (0, 0, 255)
        assert len(compositor.history) == 1

    def test_new_track_cancels_render_in_flight(self, compositor, wallpaper_cache, artwork_png):
        applied = []
        service = _service(
            compositor, wallpaper_cache, lambda request: httpx.Response(200, content=artwork_png), applied
        )

        async def scenario():
            first = asyncio.create_task(service.update_wallpaper(_track(), WallpaperStyle.COVER, DISPLAYS))
            second = asyncio.create_task(service.update_wallpaper(_track(), WallpaperStyle.COVER, DISPLAYS))
            return await asyncio.gather(first, second)

        first_result, second_result = asyncio.run(scenario())

        assert first_result is None
        assert second_result is not None
        assert [index for index, _ in applied] == [0, 1]
