"""
Coverwall - Wallpaper Cache

Finished wallpapers are written as PNG files to a temp directory and handed
to the OS wallpaper collaborator by path.  The directory is a bounded
cache: ``cleanup`` keeps only the most recent files.
"""

import time
from pathlib import Path
from typing import List, Optional

from loguru import logger
from PIL import Image

from coverwall.config import MAX_TEMP_FILES, TEMP_DIR

FILE_PREFIX = "coverwall_wallpaper_"


class WallpaperCache:
    def __init__(self, directory: Optional[Path] = None, max_files: int = MAX_TEMP_FILES) -> None:
        self.directory = Path(directory) if directory is not None else TEMP_DIR
        self.max_files = max_files

    def save(self, image: Image.Image, display_index: int) -> Path:
        """Write *image* as a PNG for display *display_index* and return its path."""
        self.directory.mkdir(parents=True, exist_ok=True)
        path = self.directory / f"{FILE_PREFIX}{display_index}_{time.time_ns()}.png"
        image.save(path, "PNG")
        logger.info("💾 Saved wallpaper for display {}: {}", display_index, path.name)
        return path

    def files(self) -> List[Path]:
        """Cached wallpapers, newest first."""
        if not self.directory.exists():
            return []
        found = [p for p in self.directory.glob(f"{FILE_PREFIX}*.png") if p.is_file()]
        return sorted(found, key=lambda p: (p.stat().st_mtime_ns, p.name), reverse=True)

    def cleanup(self) -> int:
        """Delete all but the ``max_files`` most recent wallpapers."""
        stale = self.files()[self.max_files :]
        for path in stale:
            try:
                path.unlink()
                logger.debug("🧹 Removed old wallpaper file: {}", path.name)
            except FileNotFoundError:
                continue
        if stale:
            logger.debug("🧹 Kept {} most recent wallpaper files", self.max_files)
        return len(stale)
