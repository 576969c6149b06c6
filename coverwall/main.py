"""
Coverwall - Command Line Entry Point

Renders album-art wallpapers from local image files or artwork URLs.

Each input is treated as one track change, in order, so rendering several
inputs in collage style builds up the track history the same way a
listening session would.  The wallpapers of the last input are written to
the output directory, one PNG per ``--size``.

Usage:
  coverwall cover.jpg --style blurredBackground --size 2560x1440
  coverwall a.jpg b.jpg c.jpg d.jpg --style collageEffect --seed 7
  coverwall https://example.com/art.jpg --style minimalistArt \\
      --track-name "Song" --artist "Artist" --size 1920x1080 --size 1280x800
"""

import argparse
import asyncio
import random
import sys
from pathlib import Path
from typing import List, Optional, Sequence

import httpx
from loguru import logger

from coverwall.config import APP_VERSION, DEBUG, LOG_LEVEL, TEMP_DIR, ensure_directories
from coverwall.services.artwork_source import fetch_artwork
from coverwall.services.canvas import RGB, Size
from coverwall.services.render_scheduler import RenderScheduler
from coverwall.services.style_compositor import (
    BackgroundFillMode,
    RenderRequest,
    RenderResult,
    StyleCompositor,
    WallpaperStyle,
)
from coverwall.services.wallpaper_cache import WallpaperCache

DEFAULT_SIZE: Size = (1920, 1080)


# ---------------------------------------------------------------------------
# Logging setup (stdout only)
# ---------------------------------------------------------------------------
def configure_logging(debug: bool = DEBUG) -> None:
    logger.remove()
    logger.add(
        sys.stdout,
        level="DEBUG" if debug else LOG_LEVEL,
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>",
        colorize=True,
    )


# ---------------------------------------------------------------------------
# Argument parsing
# ---------------------------------------------------------------------------
def parse_size(value: str) -> Size:
    """Parse ``WIDTHxHEIGHT`` (e.g. ``1920x1080``)."""
    try:
        w, h = value.lower().split("x")
        size = (int(w), int(h))
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid size '{value}', expected WIDTHxHEIGHT")
    if size[0] <= 0 or size[1] <= 0:
        raise argparse.ArgumentTypeError(f"invalid size '{value}', dimensions must be positive")
    return size


def parse_color(value: str) -> RGB:
    """Parse ``#RRGGBB`` or ``R,G,B``."""
    text = value.strip()
    try:
        if text.startswith("#") and len(text) == 7:
            rgb = (int(text[1:3], 16), int(text[3:5], 16), int(text[5:7], 16))
        else:
            parts = [int(p) for p in text.split(",")]
            if len(parts) != 3:
                raise ValueError(text)
            rgb = (parts[0], parts[1], parts[2])
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid colour '{value}', expected #RRGGBB or R,G,B")
    if any(c < 0 or c > 255 for c in rgb):
        raise argparse.ArgumentTypeError(f"invalid colour '{value}', components must be 0-255")
    return rgb


def _style_listing() -> str:
    width = max(len(s.value) for s in WallpaperStyle)
    return "\n".join(f"  {s.value:<{width}}  {s.display_name}" for s in WallpaperStyle)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="coverwall",
        description=f"Render desktop wallpapers from album artwork.\n\nStyles:\n{_style_listing()}",
        epilog=__doc__,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("inputs", nargs="+", help="Artwork image files or http(s) URLs, oldest first")
    parser.add_argument(
        "--style",
        choices=[s.value for s in WallpaperStyle],
        default=WallpaperStyle.COVER.value,
        help="Wallpaper style (default: cover)",
    )
    parser.add_argument(
        "--fill-mode",
        choices=[m.value for m in BackgroundFillMode],
        default=BackgroundFillMode.AUTO.value,
        help="Fill colour source for fit and center (default: auto)",
    )
    parser.add_argument("--custom-color", type=parse_color, help="Fill colour for --fill-mode custom")
    parser.add_argument(
        "--size",
        dest="sizes",
        action="append",
        type=parse_size,
        help="Display size WIDTHxHEIGHT, repeat for several displays (default: 1920x1080)",
    )
    parser.add_argument("--track-name", default="", help="Track name for minimalistArt")
    parser.add_argument("--artist", default="", help="Artist name for minimalistArt")
    parser.add_argument("--output-dir", type=Path, default=TEMP_DIR, help="Where to write the PNGs")
    parser.add_argument("--seed", type=int, help="Seed the collage layout for repeatable output")
    parser.add_argument("--debug", action="store_true", help="Verbose logging")
    parser.add_argument("--version", action="version", version=f"%(prog)s {APP_VERSION}")
    return parser


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------
async def _load_input(source: str, client: httpx.AsyncClient) -> bytes:
    if source.startswith(("http://", "https://")):
        return await fetch_artwork(source, client=client)
    return Path(source).read_bytes()


async def render_inputs(args: argparse.Namespace) -> List[Path]:
    compositor = StyleCompositor(rng=random.Random(args.seed) if args.seed is not None else None)
    cache = WallpaperCache(args.output_dir)
    scheduler = RenderScheduler(compositor, cache=cache)
    sizes: List[Size] = args.sizes or [DEFAULT_SIZE]

    result: Optional[RenderResult] = None
    async with httpx.AsyncClient(follow_redirects=True) as client:
        for source in args.inputs:
            logger.info("🎵 Track: {}", source)
            artwork = await _load_input(source, client)
            request = RenderRequest(
                image=artwork,
                style=WallpaperStyle(args.style),
                fill_mode=BackgroundFillMode(args.fill_mode),
                custom_color=args.custom_color,
                target_sizes=sizes,
                track_name=args.track_name,
                artist_name=args.artist,
            )
            result = await scheduler.render(request)
    await scheduler.stop()

    if result is None:
        return []
    return [cache.save(w.image, w.display_index) for w in result.wallpapers]


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(debug=args.debug or DEBUG)
    ensure_directories()

    try:
        paths = asyncio.run(render_inputs(args))
    except (OSError, httpx.HTTPError) as e:
        logger.error("❌ Could not read artwork: {}", e)
        return 1

    for path in paths:
        print(path)
    logger.success("✅ Wrote {} wallpaper(s) to {}", len(paths), args.output_dir)
    return 0


if __name__ == "__main__":
    sys.exit(main())
