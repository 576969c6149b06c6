"""
Coverwall - Collage Layout Engine

Persistent polaroid collage of the current track and its history.

The canvas is split into a COLLAGE_COLUMNS x COLLAGE_ROWS grid.  Every
history image, once placed, keeps its cell, jittered centre and rotation
for the rest of the collage session; later renders only add frames for
history images that have not been placed yet, in random free cells.  The
current track always sits, unrotated and enlarged, on the centre cell.

State is kept per canvas size: asking for a different size starts a fresh
grid.  A render works on a copy of the grid and commits it in one step at
the end, so a cancelled render leaves the previous state untouched.

Layout invariants:
    - at most one placement carries ``is_current_track``
    - the occupied set is exactly the set of cells referenced by placements
"""

from __future__ import annotations

import random
from dataclasses import dataclass, field, replace
from typing import List, Optional, Sequence, Set, Tuple

from loguru import logger
from PIL import Image

from coverwall.config import COLLAGE_COLUMNS, COLLAGE_OVERLAP, COLLAGE_ROWS
from coverwall.services.canvas import Rect, Size, diagonal_gradient, framed_polaroid
from coverwall.services.cancellation import CancelToken
from coverwall.services.color_extractor import harmonize

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------
CURRENT_TRACK_INDEX = -1  # image_index sentinel for the current track

FRAME_THICKNESS = 12
BOTTOM_FRAME_EXTRA = 24
CURRENT_TRACK_FRAME_SCALE = 1.5  # thicker border on the current track
CURRENT_TRACK_SIZE_FACTOR = 1.4  # x cell size
HISTORY_SIZE_FACTOR = 1.1  # x cell size, plus the grid's overlap factor
POSITION_JITTER = 0.1  # x cell size, either direction
MAX_ROTATION = 20.0  # degrees, either direction

Cell = Tuple[int, int]


@dataclass(frozen=True)
class Placement:
    """Fixed position, rotation and size of one frame in the grid."""

    col: int
    row: int
    center_x: float
    center_y: float
    rotation: float
    width: float
    height: float
    is_current_track: bool = False
    image_index: int = CURRENT_TRACK_INDEX

    @property
    def cell(self) -> Cell:
        return (self.col, self.row)

    @property
    def frame_rect(self) -> Rect:
        return (
            self.center_x - self.width / 2,
            self.center_y - self.height / 2,
            self.width,
            self.height,
        )


@dataclass
class GridState:
    """Layout bookkeeping for one canvas size."""

    target_size: Size
    cols: int = COLLAGE_COLUMNS
    rows: int = COLLAGE_ROWS
    overlap_factor: float = COLLAGE_OVERLAP
    occupied: Set[Cell] = field(default_factory=set)
    placements: List[Placement] = field(default_factory=list)

    @property
    def cell_width(self) -> float:
        return self.target_size[0] / self.cols

    @property
    def cell_height(self) -> float:
        return self.target_size[1] / self.rows

    @property
    def center_cell(self) -> Cell:
        return (self.cols // 2, self.rows // 2)

    def cell_center(self, cell: Cell) -> Tuple[float, float]:
        col, row = cell
        return (
            col * self.cell_width + self.cell_width / 2,
            row * self.cell_height + self.cell_height / 2,
        )

    @property
    def current_track_placement(self) -> Optional[Placement]:
        return next((p for p in self.placements if p.is_current_track), None)

    @property
    def history_placement_count(self) -> int:
        return sum(1 for p in self.placements if not p.is_current_track)

    def next_available_cell(self, rng: random.Random) -> Optional[Cell]:
        """A uniformly random unoccupied cell, or None when the grid is full."""
        available = [
            (col, row)
            for row in range(self.rows)
            for col in range(self.cols)
            if (col, row) not in self.occupied
        ]
        if not available:
            return None
        return rng.choice(available)

    def place(self, placement: Placement) -> None:
        if placement.is_current_track and self.current_track_placement is not None:
            raise ValueError("grid already holds a current-track placement")
        self.occupied.add(placement.cell)
        self.placements.append(placement)

    def remove_current_track_placement(self) -> Optional[Placement]:
        """Drop the current-track placement, freeing its cell unless another
        placement shares it.  Returns the removed placement, if any."""
        current = self.current_track_placement
        if current is None:
            return None
        self.placements.remove(current)
        if all(p.cell != current.cell for p in self.placements):
            self.occupied.discard(current.cell)
        return current

    def reset(self) -> None:
        self.occupied.clear()
        self.placements.clear()

    def copy(self) -> GridState:
        return replace(self, occupied=set(self.occupied), placements=list(self.placements))


@dataclass
class CollageResult:
    """Outcome of one collage render."""

    image: Image.Image
    placed: int = 0  # history frames added this pass
    dropped: int = 0  # history images left out because the grid was full
    committed: bool = True


class CollageLayoutEngine:
    """Owns the persistent grid for one display and renders collages onto it."""

    def __init__(
        self,
        cols: int = COLLAGE_COLUMNS,
        rows: int = COLLAGE_ROWS,
        overlap_factor: float = COLLAGE_OVERLAP,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.cols = cols
        self.rows = rows
        self.overlap_factor = overlap_factor
        self._rng = rng or random.Random()
        self._state: Optional[GridState] = None

    @property
    def state(self) -> Optional[GridState]:
        return self._state

    def _new_grid(self, target_size: Size) -> GridState:
        logger.debug(
            "🧩 New {}x{} collage grid for {}x{}",
            self.cols,
            self.rows,
            target_size[0],
            target_size[1],
        )
        return GridState(
            target_size=(target_size[0], target_size[1]),
            cols=self.cols,
            rows=self.rows,
            overlap_factor=self.overlap_factor,
        )

    def _matches(self, target_size: Size) -> bool:
        return self._state is not None and self._state.target_size == (
            target_size[0],
            target_size[1],
        )

    def ensure_grid(self, target_size: Size) -> GridState:
        """Return the grid for *target_size*, starting a fresh one if the size changed."""
        if not self._matches(target_size):
            self._state = self._new_grid(target_size)
        return self._state

    def _require_state(self) -> GridState:
        if self._state is None:
            raise RuntimeError("no collage grid yet; call ensure_grid() or render() first")
        return self._state

    def next_available_cell(self) -> Optional[Cell]:
        return self._require_state().next_available_cell(self._rng)

    def place(self, placement: Placement) -> None:
        self._require_state().place(placement)

    def remove_current_track_placement(self) -> Optional[Placement]:
        return self._require_state().remove_current_track_placement()

    def reset(self) -> None:
        """Forget every placement (explicit start of a new collage session)."""
        if self._state is not None:
            self._state.reset()
            logger.debug("🧩 Collage grid reset for new session")

    def render(
        self,
        current_image: Image.Image,
        previous_images: Sequence[Image.Image],
        target_size: Size,
        cancel_token: Optional[CancelToken] = None,
    ) -> CollageResult:
        """
        Render the collage for *target_size*.

        1. Ensure a grid exists for the size.
        2. Paint a diagonal gradient of the colours harmonized across the
           current image (weighted 5x) and the previous images.
        3. Redraw every existing history frame exactly where it was placed.
        4. Place frames for previous images that have none yet, in random
           free cells, stopping early when the grid is full.
        5. Draw the current track enlarged and emphasized on the centre cell.
        6. Commit the grid, unless *cancel_token* was cancelled meanwhile.
        """
        # Work on a copy; a size change starts from an empty grid
        if self._matches(target_size):
            state = self._state.copy()
        else:
            state = self._new_grid(target_size)

        background = harmonize([current_image, *previous_images])
        canvas = diagonal_gradient(background.colors, state.target_size)

        # Step 3: existing frames keep their geometry.  The current track is
        # redrawn on top in step 5.
        for placement in state.placements:
            if placement.is_current_track:
                continue
            if 0 <= placement.image_index < len(previous_images):
                image = previous_images[placement.image_index]
            else:
                image = current_image
            framed_polaroid(
                canvas,
                image,
                placement.frame_rect,
                placement.rotation,
                FRAME_THICKNESS,
                BOTTOM_FRAME_EXTRA,
            )

        # Step 4: only history images without a frame yet
        placed_count = state.history_placement_count
        pending = max(0, len(previous_images) - placed_count)
        added = 0
        frame_w = state.cell_width * (HISTORY_SIZE_FACTOR + state.overlap_factor)
        frame_h = state.cell_height * (HISTORY_SIZE_FACTOR + state.overlap_factor)

        for offset in range(pending):
            cell = state.next_available_cell(self._rng)
            if cell is None:
                break

            image_index = placed_count + offset
            base_x, base_y = state.cell_center(cell)
            jitter_x = state.cell_width * POSITION_JITTER
            jitter_y = state.cell_height * POSITION_JITTER
            placement = Placement(
                col=cell[0],
                row=cell[1],
                center_x=base_x + self._rng.uniform(-jitter_x, jitter_x),
                center_y=base_y + self._rng.uniform(-jitter_y, jitter_y),
                rotation=self._rng.uniform(-MAX_ROTATION, MAX_ROTATION),
                width=frame_w,
                height=frame_h,
                is_current_track=False,
                image_index=image_index,
            )
            state.place(placement)
            logger.debug(
                "🧩 Placed history image {} at cell {} ({:.1f}°)",
                image_index,
                cell,
                placement.rotation,
            )
            framed_polaroid(
                canvas,
                previous_images[image_index],
                placement.frame_rect,
                placement.rotation,
                FRAME_THICKNESS,
                BOTTOM_FRAME_EXTRA,
            )
            added += 1

        dropped = pending - added
        if dropped:
            logger.warning("⚠️ Collage grid full; {} history images left out", dropped)

        # Step 5: current track, always re-placed on the centre cell
        center = state.center_cell
        center_x, center_y = state.cell_center(center)
        state.remove_current_track_placement()
        current = Placement(
            col=center[0],
            row=center[1],
            center_x=center_x,
            center_y=center_y,
            rotation=0.0,
            width=state.cell_width * CURRENT_TRACK_SIZE_FACTOR,
            height=state.cell_height * CURRENT_TRACK_SIZE_FACTOR,
            is_current_track=True,
            image_index=CURRENT_TRACK_INDEX,
        )
        state.place(current)
        framed_polaroid(
            canvas,
            current_image,
            current.frame_rect,
            0.0,
            FRAME_THICKNESS * CURRENT_TRACK_FRAME_SCALE,
            BOTTOM_FRAME_EXTRA * CURRENT_TRACK_FRAME_SCALE,
            emphasized=True,
        )

        # Step 6
        if cancel_token is not None and cancel_token.cancelled:
            logger.debug("Collage render superseded; grid left unchanged")
            return CollageResult(canvas, placed=added, dropped=dropped, committed=False)

        self._state = state
        logger.debug(
            "🧩 Collage rendered: {} frames ({} new, {} dropped)",
            len(state.placements),
            added,
            dropped,
        )
        return CollageResult(canvas, placed=added, dropped=dropped)
