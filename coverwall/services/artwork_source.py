"""
Coverwall - Artwork Download

Downloads album artwork bytes for a track.  Decoding is left to the
compositor so unreadable downloads go through its fallback path.
"""

from typing import Optional

import httpx
from loguru import logger

from coverwall.config import ARTWORK_TIMEOUT


async def fetch_artwork(
    url: str,
    client: Optional[httpx.AsyncClient] = None,
    timeout: float = ARTWORK_TIMEOUT,
) -> bytes:
    """
    Download the artwork at *url* and return the raw bytes.

    Raises ``httpx.HTTPError`` (including ``HTTPStatusError`` for non-2xx
    responses) so callers can decide whether to keep the old wallpaper.
    """
    if client is None:
        async with httpx.AsyncClient(timeout=timeout, follow_redirects=True) as own_client:
            return await _download(own_client, url)
    return await _download(client, url)


async def _download(client: httpx.AsyncClient, url: str) -> bytes:
    resp = await client.get(url)
    resp.raise_for_status()
    logger.debug(
        "🎨 Downloaded artwork ({} bytes, {})",
        len(resp.content),
        resp.headers.get("content-type", "unknown type"),
    )
    return resp.content
