"""
Coverwall - Track History

Bounded, order-preserving buffer of down-scaled artwork for recently seen
tracks (oldest first).  It feeds the collage style.

Two eviction thresholds apply:
    - the soft cap, enforced on every push
    - the lower hard cap, enforced on each periodic cleanup tick

Pushes come from the render worker thread while cleanup ticks run on the
event loop, so every access to the backing list holds a lock.
"""

import threading
from typing import List

from loguru import logger
from PIL import Image

from coverwall.config import HISTORY_HARD_CAP, HISTORY_SOFT_CAP, HISTORY_THUMBNAIL_SIZE
from coverwall.services.canvas import scale_to_cover


class HistoryBuffer:
    """FIFO history of artwork thumbnails with two-tier eviction."""

    def __init__(
        self,
        soft_cap: int = HISTORY_SOFT_CAP,
        hard_cap: int = HISTORY_HARD_CAP,
        thumbnail_size: int = HISTORY_THUMBNAIL_SIZE,
    ) -> None:
        if soft_cap < 1 or hard_cap < 1:
            raise ValueError("history caps must be at least 1")
        self.soft_cap = soft_cap
        self.hard_cap = hard_cap
        self.thumbnail_size = thumbnail_size
        self._entries: List[Image.Image] = []
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def push(self, image: Image.Image) -> Image.Image:
        """Append a thumbnail of *image*; evict from the front past the soft cap."""
        entry = scale_to_cover(
            image.convert("RGB"), (self.thumbnail_size, self.thumbnail_size)
        )
        with self._lock:
            self._entries.append(entry)
            overflow = len(self._entries) - self.soft_cap
            if overflow > 0:
                del self._entries[:overflow]
            count = len(self._entries)

        if overflow > 0:
            logger.debug("🗂️ Trimmed {} history entries on push (now {})", overflow, count)
        return entry

    def periodic_cleanup(self) -> int:
        """Trim to the hard cap.  Returns the number of entries removed."""
        with self._lock:
            overflow = len(self._entries) - self.hard_cap
            if overflow > 0:
                del self._entries[:overflow]
            count = len(self._entries)

        if overflow > 0:
            logger.debug("🧹 Trimmed track history by {} to {} entries", overflow, count)
            return overflow
        return 0

    def snapshot(self, previous_only: bool = False) -> List[Image.Image]:
        """
        Return the entries, oldest first.

        With *previous_only* the newest entry (the track that was just
        pushed) is left out.
        """
        with self._lock:
            entries = list(self._entries)
        if previous_only:
            return entries[:-1]
        return entries
