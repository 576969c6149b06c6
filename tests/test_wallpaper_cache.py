"""
Coverwall - Wallpaper Cache Tests

Tests for the bounded directory of finished wallpaper PNGs.
"""

import os

from PIL import Image

from coverwall.services.wallpaper_cache import FILE_PREFIX, WallpaperCache


class TestWallpaperCache:
    def test_save_writes_png(self, wallpaper_cache, red_artwork):
        path = wallpaper_cache.save(red_artwork, display_index=1)
        assert path.exists()
        assert path.name.startswith(f"{FILE_PREFIX}1_")
        assert path.suffix == ".png"
        with Image.open(path) as saved:
            assert saved.size == red_artwork.size

    def test_empty_when_directory_missing(self, tmp_path):
        cache = WallpaperCache(tmp_path / "nope")
        assert cache.files() == []
        assert cache.cleanup() == 0

    def test_cleanup_keeps_newest(self, wallpaper_cache, red_artwork):
        paths = [wallpaper_cache.save(red_artwork, 0) for _ in range(5)]
        for age, path in enumerate(reversed(paths)):
            os.utime(path, ns=(1_000_000_000_000 - age * 1_000_000_000,) * 2)

        assert wallpaper_cache.cleanup() == 2
        assert wallpaper_cache.files() == list(reversed(paths[2:]))

    def test_ignores_unrelated_files(self, wallpaper_cache, red_artwork):
        wallpaper_cache.save(red_artwork, 0)
        other = wallpaper_cache.directory / "notes.txt"
        other.write_text("keep me")
        for _ in range(4):
            wallpaper_cache.save(red_artwork, 0)

        wallpaper_cache.cleanup()
        assert other.exists()
        assert len(wallpaper_cache.files()) == 3
