"""
Watch mode - periodic unattended capture.

WatchScheduler runs a single asyncio task that captures immediately and
then every `interval` seconds until stopped. Starting while already
watching does nothing, so at most one loop ever touches the store.
"""

import asyncio
import logging
from enum import Enum
from typing import Callable, List, Optional

from ..errors import CaptureFailure, PersistenceSaveFailure
from ..store.record_store import Record

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL = 30  # seconds


class WatchState(Enum):
    IDLE = "idle"
    WATCHING = "watching"


class WatchScheduler:
    """
    Drives periodic capture with start/stop semantics.

    The capture callable is blocking and runs in a worker thread. Stopping
    only prevents the next scheduled capture; one already running finishes.
    """

    def __init__(
        self,
        capture: Callable[[], Record],
        interval: float = DEFAULT_INTERVAL,
        lock: Optional[asyncio.Lock] = None,
        on_capture: Optional[Callable[[Record], None]] = None,
        on_error: Optional[Callable[[Exception], None]] = None,
    ):
        self._capture = capture
        self.interval = interval
        self.lock = lock or asyncio.Lock()
        self.on_capture = on_capture
        self.on_error = on_error
        self.state = WatchState.IDLE
        self.capture_count = 0
        self.error_count = 0
        self._stop_event: Optional[asyncio.Event] = None
        self._tasks: List[asyncio.Task] = []

    @property
    def watching(self) -> bool:
        return self.state is WatchState.WATCHING

    def start(self) -> bool:
        """
        Begin watching. Must be called from a running event loop.

        Returns:
            True if a loop was started, False if one was already running
        """
        if self.watching:
            logger.info("Watch mode already running")
            return False

        self._stop_event = asyncio.Event()
        # Loops stopped earlier may still be finishing a capture
        self._tasks = [task for task in self._tasks if not task.done()]
        self._tasks.append(asyncio.create_task(self._run(self._stop_event)))
        self.state = WatchState.WATCHING
        logger.info(f"Watch mode started (interval: {self.interval}s)")
        return True

    def stop(self) -> bool:
        """
        Stop watching.

        Returns:
            True if a running loop was signalled, False if already idle
        """
        if not self.watching:
            return False

        self._stop_event.set()
        self.state = WatchState.IDLE
        logger.info("Watch mode stop requested")
        return True

    async def wait(self) -> None:
        """Wait for every started loop, including any in-flight capture."""
        while self._tasks:
            await self._tasks.pop(0)

    async def _tick(self) -> None:
        async with self.lock:
            try:
                record = await asyncio.to_thread(self._capture)
            except (CaptureFailure, PersistenceSaveFailure) as e:
                self.error_count += 1
                logger.warning(f"Scheduled capture failed: {e}")
                if self.on_error:
                    self.on_error(e)
                return

        self.capture_count += 1
        if self.on_capture:
            self.on_capture(record)

    async def _run(self, stop_event: asyncio.Event) -> None:
        while not stop_event.is_set():
            try:
                await self._tick()
            except Exception as e:
                self.error_count += 1
                logger.error(f"Capture error ({self.error_count}): {e}", exc_info=True)
                if self.on_error:
                    self.on_error(e)

            try:
                await asyncio.wait_for(stop_event.wait(), timeout=self.interval)
            except asyncio.TimeoutError:
                pass

        logger.info(f"Watch loop stopped. Total captures: {self.capture_count}")
