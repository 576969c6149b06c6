"""
Coverwall - Configuration
All settings loaded from environment variables with sensible defaults.

The renderer keeps all of its state in memory (track history and collage
grids).  Local disk is used only for the bounded cache of finished
wallpaper PNGs handed to the OS wallpaper collaborator.
"""

import os
import tempfile
from pathlib import Path

from dotenv import load_dotenv

# Load environment variables from .env file
_ = load_dotenv()

# ---------------------------------------------------------------------------
# Application
# ---------------------------------------------------------------------------
APP_VERSION = os.getenv("APP_VERSION", "1.0.0")
DEBUG = os.getenv("DEBUG", "false").lower() == "true"

# ---------------------------------------------------------------------------
# Logging (stdout only)
# ---------------------------------------------------------------------------
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# ---------------------------------------------------------------------------
# Track history (collage source material)
# ---------------------------------------------------------------------------
# Soft cap is applied on every push, hard cap on the periodic cleanup tick
HISTORY_SOFT_CAP = int(os.getenv("HISTORY_SOFT_CAP", "20"))
HISTORY_HARD_CAP = int(os.getenv("HISTORY_HARD_CAP", "15"))
# Bounding box (square) history entries are down-scaled to
HISTORY_THUMBNAIL_SIZE = int(os.getenv("HISTORY_THUMBNAIL_SIZE", "300"))
# Seconds between periodic cleanup ticks
CLEANUP_INTERVAL = float(os.getenv("CLEANUP_INTERVAL", "10"))

# ---------------------------------------------------------------------------
# Collage grid
# ---------------------------------------------------------------------------
COLLAGE_COLUMNS = int(os.getenv("COLLAGE_COLUMNS", "5"))
COLLAGE_ROWS = int(os.getenv("COLLAGE_ROWS", "4"))
COLLAGE_OVERLAP = float(os.getenv("COLLAGE_OVERLAP", "0.4"))

# ---------------------------------------------------------------------------
# Styles
# ---------------------------------------------------------------------------
BLUR_RADIUS = float(os.getenv("BLUR_RADIUS", "25"))

# ---------------------------------------------------------------------------
# Paths: finished wallpapers are staged in the system temp directory
# ---------------------------------------------------------------------------
TEMP_DIR = Path(os.getenv("TEMP_DIR", os.path.join(tempfile.gettempdir(), "coverwall")))
MAX_TEMP_FILES = int(os.getenv("MAX_TEMP_FILES", "10"))

# ---------------------------------------------------------------------------
# Artwork download
# ---------------------------------------------------------------------------
ARTWORK_TIMEOUT = float(os.getenv("ARTWORK_TIMEOUT", "15"))


def ensure_directories() -> None:
    """Create the local temp directory used for finished wallpapers."""
    TEMP_DIR.mkdir(parents=True, exist_ok=True)
