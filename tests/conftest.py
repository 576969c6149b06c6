"""
Coverwall - Pytest Configuration & Shared Fixtures

Provides reusable fixtures for:
- Solid and multi-colour artwork images
- Encoded (PNG) artwork bytes, as a download would deliver them
- Seeded random generators for repeatable collage layouts
- Isolated track history and wallpaper cache directories
"""

import random
from io import BytesIO
from pathlib import Path
from typing import Callable, Tuple

import pytest
from PIL import Image

from coverwall.services.history_buffer import HistoryBuffer
from coverwall.services.wallpaper_cache import WallpaperCache

RED = (255, 0, 0)
GREEN = (0, 255, 0)
BLUE = (0, 0, 255)

# ---------------------------------------------------------------------------
# Image fixtures
# ---------------------------------------------------------------------------


def make_solid(color: Tuple[int, int, int], size: Tuple[int, int] = (300, 300)) -> Image.Image:
    return Image.new("RGB", size, color)


def to_png(image: Image.Image) -> bytes:
    buffer = BytesIO()
    image.save(buffer, "PNG")
    return buffer.getvalue()


@pytest.fixture
def solid_image() -> Callable[..., Image.Image]:
    """Factory for single-colour artwork."""
    return make_solid


@pytest.fixture
def red_artwork() -> Image.Image:
    return make_solid(RED)


@pytest.fixture
def two_tone_artwork() -> Image.Image:
    """200x100 artwork: left 60% red, right 40% blue."""
    image = Image.new("RGB", (200, 100), BLUE)
    image.paste(RED, (0, 0, 120, 100))
    return image


@pytest.fixture
def banded_artwork() -> Image.Image:
    """100x100 artwork: red top band, green middle, blue bottom band."""
    image = Image.new("RGB", (100, 100), GREEN)
    image.paste(RED, (0, 0, 100, 25))
    image.paste(BLUE, (0, 75, 100, 100))
    return image


@pytest.fixture
def artwork_png(red_artwork: Image.Image) -> bytes:
    """Red artwork encoded as PNG bytes."""
    return to_png(red_artwork)


@pytest.fixture
def rainbow_history() -> list:
    """A run of distinct solid-colour thumbnails, oldest first."""
    return [make_solid(((i * 37) % 256, (i * 91) % 256, (i * 53) % 256), (60, 60)) for i in range(25)]


# ---------------------------------------------------------------------------
# State fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def rng() -> random.Random:
    """Seeded generator so collage layouts are repeatable."""
    return random.Random(1234)


@pytest.fixture
def history() -> HistoryBuffer:
    return HistoryBuffer(soft_cap=20, hard_cap=15, thumbnail_size=64)


@pytest.fixture
def wallpaper_cache(tmp_path: Path) -> WallpaperCache:
    return WallpaperCache(tmp_path / "wallpapers", max_files=3)
