"""Cycle-mode rotation: a periodic asyncio task advancing a cursor through the catalog.

The scheduler ticks once when started and then every `interval` seconds.
Each tick moves the cursor to the next catalog entry (wrapping around) and
pins that entry as the current icon. Ticks run on the event loop, so they
never overlap with status queries or catalog swaps.

The cursor is -1 while unset, otherwise a valid index into the live snapshot.
It is clamped again after every refresh.
"""

import asyncio

from loguru import logger

from .catalog import Catalog, CatalogSnapshot, IconEntry

DEFAULT_INTERVAL = 300


class RotationScheduler:
    """Owns the rotation cursor, the pinned icon and the single timer task."""

    def __init__(self, catalog: Catalog, interval: int = DEFAULT_INTERVAL):
        self.catalog = catalog
        self.interval = validate_interval(interval)
        self.cursor = -1
        self.current: IconEntry | None = None
        self._task: asyncio.Task | None = None
        catalog.listeners.append(self.clamp)

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def tick(self) -> IconEntry | None:
        """Advance the cursor by one and publish the entry under it."""
        snapshot = self.catalog.snapshot
        if not len(snapshot):
            self.cursor = -1
            self.current = None
            return None
        self.cursor = (self.cursor + 1) % len(snapshot)
        self.current = snapshot[self.cursor]
        logger.debug(f"Rotated to icon [{self.cursor}] {self.current.name}")
        return self.current

    def clamp(self, snapshot: CatalogSnapshot) -> None:
        """Bring the cursor back into range of `snapshot` and re-pin the current icon from it."""
        if not len(snapshot):
            self.cursor = -1
            self.current = None
        elif self.cursor >= len(snapshot):
            self.cursor = len(snapshot) - 1
        if self.cursor >= 0:
            self.current = snapshot[self.cursor]

    def start(self, interval: int | None = None) -> None:
        """Start (or restart) the rotation task. Ticks immediately, then every interval."""
        if interval is not None:
            self.interval = validate_interval(interval)
        self.stop()
        self._task = asyncio.get_running_loop().create_task(self._run(self.interval), name="icon-rotation")
        logger.info(f"Icon rotation started ({self.interval}s interval).")

    def stop(self) -> None:
        """Cancel the rotation task. No-op when not running."""
        if self._task is None:
            return
        self._task.cancel()
        self._task = None
        logger.debug("Icon rotation stopped.")

    async def _run(self, interval: int) -> None:
        while True:
            try:
                self.tick()
            except Exception as e:
                logger.error(f"Error during icon rotation: {e}")
            await asyncio.sleep(interval)


def validate_interval(seconds: int) -> int:
    """Check that `seconds` is a positive integer. Raises ValueError otherwise."""
    if isinstance(seconds, bool) or not isinstance(seconds, int):
        raise ValueError(f"Interval must be an integer number of seconds, got {seconds!r}")
    if seconds <= 0:
        raise ValueError("Interval must be positive.")
    return seconds
