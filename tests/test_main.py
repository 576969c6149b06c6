"""
Coverwall - Command Line Tests
"""

import argparse
import sys

import pytest
from loguru import logger
from PIL import Image

from coverwall.main import build_parser, main, parse_color, parse_size
from coverwall.services.wallpaper_cache import WallpaperCache


@pytest.fixture(autouse=True)
def restore_logger():
    """main() swaps in its own stdout sink; put a plain stderr sink back."""
    yield
    logger.remove()
    logger.add(sys.stderr)


class TestArgumentParsing:
    def test_parse_size(self):
        assert parse_size("1920x1080") == (1920, 1080)
        assert parse_size("800X600") == (800, 600)

    @pytest.mark.parametrize("value", ["1920", "axb", "0x100", "-5x10", "1x2x3"])
    def test_parse_size_rejects(self, value):
        with pytest.raises(argparse.ArgumentTypeError):
            parse_size(value)

    def test_parse_color(self):
        assert parse_color("#FF8000") == (255, 128, 0)
        assert parse_color("10, 20, 30") == (10, 20, 30)

    @pytest.mark.parametrize("value", ["#FFF", "red", "1,2", "300,0,0", "#GG0000"])
    def test_parse_color_rejects(self, value):
        with pytest.raises(argparse.ArgumentTypeError):
            parse_color(value)

    def test_help_lists_styles(self):
        text = build_parser().format_help()
        assert any(
            "collageEffect" in line and "Collage Effect with Previous Tracks" in line
            for line in text.splitlines()
        )
        assert "Blurred Background + Center Art" in text


class TestMain:
    def test_renders_files(self, tmp_path, red_artwork, two_tone_artwork):
        first = tmp_path / "first.png"
        second = tmp_path / "second.png"
        red_artwork.save(first)
        two_tone_artwork.save(second)
        out = tmp_path / "out"

        code = main(
            [
                str(first),
                str(second),
                "--style",
                "collageEffect",
                "--size",
                "320x200",
                "--size",
                "200x320",
                "--seed",
                "7",
                "--output-dir",
                str(out),
            ]
        )

        assert code == 0
        files = WallpaperCache(out).files()
        assert len(files) == 2
        sizes = set()
        for path in files:
            with Image.open(path) as saved:
                sizes.add(saved.size)
        assert sizes == {(320, 200), (200, 320)}

    def test_custom_fill(self, tmp_path, red_artwork):
        source = tmp_path / "art.png"
        red_artwork.save(source)
        out = tmp_path / "out"

        code = main(
            [
                str(source),
                "--style",
                "fit",
                "--fill-mode",
                "custom",
                "--custom-color",
                "#0000FF",
                "--size",
                "300x100",
                "--output-dir",
                str(out),
            ]
        )

        assert code == 0
        with Image.open(WallpaperCache(out).files()[0]) as saved:
            assert saved.convert("RGB").getpixel((5, 50)) == (0, 0, 255)

    def test_missing_file(self, tmp_path):
        assert main([str(tmp_path / "missing.png"), "--output-dir", str(tmp_path)]) == 1

    def test_bad_style_exits(self, tmp_path):
        with pytest.raises(SystemExit):
            main(["art.png", "--style", "tiles"])
