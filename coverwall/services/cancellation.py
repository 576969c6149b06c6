"""
Coverwall - Cooperative cancellation for renders.

A newer render trigger cancels the token of the one in flight.  Render code
checks the token before it mutates shared state (track history, collage
grids) and bails out instead of committing.
"""

import threading


class CancelToken:
    """Thread-safe one-way cancellation flag."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()
