"""
Coverwall - Artwork Download Tests

Uses httpx.MockTransport so no network access is needed.
"""

import asyncio

import httpx
import pytest

from coverwall.services.artwork_source import fetch_artwork


def _client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler), follow_redirects=True)


async def _fetch(url, handler):
    async with _client(handler) as client:
        return await fetch_artwork(url, client=client)


class TestFetchArtwork:
    def test_returns_body(self, artwork_png):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, content=artwork_png, headers={"content-type": "image/png"})

        assert asyncio.run(_fetch("https://art.example/cover.png", handler)) == artwork_png

    def test_follows_redirects(self, artwork_png):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/old.png":
                return httpx.Response(302, headers={"location": "https://art.example/new.png"})
            return httpx.Response(200, content=artwork_png)

        assert asyncio.run(_fetch("https://art.example/old.png", handler)) == artwork_png

    def test_http_error_raises(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(404)

        with pytest.raises(httpx.HTTPStatusError):
            asyncio.run(_fetch("https://art.example/missing.png", handler))

    def test_transport_error_raises(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("offline", request=request)

        with pytest.raises(httpx.HTTPError):
            asyncio.run(_fetch("https://art.example/cover.png", handler))
