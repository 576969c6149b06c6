"""
Coverwall - Render Scheduler

Asyncio front end for the compositor.

Render triggers (track change, style or setting change) arrive on the event
loop.  Only one render is live at a time: submitting a new request cancels
the one in flight, both its cancel token (checked by the compositor before
it mutates history or collage state) and its asyncio task.  Renders run in
a worker thread so image processing never blocks the loop.

The scheduler also owns the periodic cleanup task that trims the track
history to its hard cap and evicts old wallpaper files.
"""

import asyncio
import inspect
from typing import Any, Awaitable, Callable, Optional, Union

from loguru import logger

from coverwall.config import CLEANUP_INTERVAL
from coverwall.services.cancellation import CancelToken
from coverwall.services.style_compositor import RenderRequest, RenderResult, StyleCompositor
from coverwall.services.wallpaper_cache import WallpaperCache

ResultCallback = Callable[[RenderResult], Union[None, Awaitable[None]]]


def _on_background_task_done(task: asyncio.Task) -> None:
    """Log errors from fire-and-forget background tasks."""
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.error("❌ Background task failed: {}", exc)


class RenderScheduler:
    """Serializes render triggers; a newer trigger supersedes a stale one."""

    def __init__(
        self,
        compositor: StyleCompositor,
        cache: Optional[WallpaperCache] = None,
        on_result: Optional[ResultCallback] = None,
        cleanup_interval: float = CLEANUP_INTERVAL,
    ) -> None:
        self.compositor = compositor
        self.cache = cache
        self.on_result = on_result
        self.cleanup_interval = cleanup_interval
        self._task: Optional["asyncio.Task[RenderResult]"] = None
        self._token: Optional[CancelToken] = None
        self._cleanup_task: Optional["asyncio.Task[Any]"] = None

    # ------------------------------------------------------------------
    # Render triggers
    # ------------------------------------------------------------------

    def submit(self, request: RenderRequest) -> "asyncio.Task[RenderResult]":
        """Start rendering *request*, cancelling any render still in flight.

        Must be called from a running event loop.
        """
        self.cancel_pending()
        token = CancelToken()
        self._token = token
        self._task = asyncio.create_task(self._run(request, token))
        return self._task

    def cancel_pending(self) -> None:
        if self._token is not None:
            self._token.cancel()
        if self._task is not None and not self._task.done():
            logger.debug("⏭️ Superseding in-flight render")
            self._task.cancel()

    async def render(self, request: RenderRequest) -> RenderResult:
        """Submit *request* and wait for its result."""
        return await self.submit(request)

    async def _run(self, request: RenderRequest, token: CancelToken) -> RenderResult:
        result = await asyncio.to_thread(self.compositor.render, request, token)
        if result.cancelled or token.cancelled:
            logger.debug("⏭️ Render superseded before it committed")
            result.cancelled = True
            return result

        if self.on_result is not None:
            outcome = self.on_result(result)
            if inspect.isawaitable(outcome):
                await outcome
        return result

    # ------------------------------------------------------------------
    # Periodic cleanup
    # ------------------------------------------------------------------

    def run_cleanup(self) -> None:
        """One cleanup tick: history hard cap, then the file cache."""
        self.compositor.history.periodic_cleanup()
        if self.cache is not None:
            self.cache.cleanup()

    async def _periodic_cleanup(self) -> None:
        """Background task that runs a cleanup tick every N seconds."""
        while True:
            try:
                await asyncio.sleep(self.cleanup_interval)
                self.run_cleanup()
            except asyncio.CancelledError:
                logger.debug("🧹 Periodic cleanup task cancelled")
                break
            except Exception as e:
                logger.error("❌ Periodic cleanup error: {}", e)
                # Keep running, try again next interval

    def start(self) -> None:
        """Start the periodic cleanup task (idempotent)."""
        if self._cleanup_task is None or self._cleanup_task.done():
            self._cleanup_task = asyncio.create_task(self._periodic_cleanup())
            self._cleanup_task.add_done_callback(_on_background_task_done)
            logger.info("🧹 Periodic cleanup started (every {}s)", self.cleanup_interval)

    async def stop(self) -> None:
        """Cancel the in-flight render and the cleanup task."""
        self.cancel_pending()
        tasks = [t for t in (self._task, self._cleanup_task) if t is not None]
        if self._cleanup_task is not None:
            self._cleanup_task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._cleanup_task = None
        self._task = None
