"""Current position, once or continuously.

The tracker wraps a ``PositionSource``. A single fix is taken with
``get_once``; continuous tracking runs an asyncio polling task per watch.
Errors are reported to the caller and never stop a watch.
"""

import asyncio
import itertools
import logging
from abc import ABC, abstractmethod
from typing import Callable, Optional

from dashnav.errors import LocationError
from dashnav.models import LonLat


logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10.0
DEFAULT_POLL_INTERVAL = 5.0


class PositionSource(ABC):
    """Anything that can report where the vehicle is."""

    @abstractmethod
    async def read(self) -> LonLat:
        """Return the current position or raise LocationError."""


class FixedPositionSource(PositionSource):
    """A position set from configuration (``CURRENT_LOCATION``)."""

    def __init__(self, position: Optional[LonLat] = None):
        self.position = position

    async def read(self) -> LonLat:
        if self.position is None:
            raise LocationError(LocationError.POSITION_UNAVAILABLE, "Location information unavailable")
        return self.position


class LocationTracker:
    """One-shot and continuous position updates over a PositionSource."""

    def __init__(
        self,
        source: PositionSource,
        timeout: float = DEFAULT_TIMEOUT,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
    ):
        self.source = source
        self.timeout = timeout
        self.poll_interval = poll_interval
        self._watches: dict[int, asyncio.Task] = {}
        self._ids = itertools.count(1)

    async def get_once(self) -> LonLat:
        """Take a single fix. Raises LocationError on failure or timeout."""
        try:
            return await asyncio.wait_for(self.source.read(), timeout=self.timeout)
        except asyncio.TimeoutError as e:
            raise LocationError(LocationError.TIMEOUT, "Location request timed out") from e

    def watch(
        self,
        on_update: Callable[[LonLat], None],
        on_error: Optional[Callable[[LocationError], None]] = None,
    ) -> int:
        """Start continuous tracking. Must be called from a running event loop."""
        handle = next(self._ids)
        self._watches[handle] = asyncio.get_running_loop().create_task(
            self._poll(on_update, on_error)
        )
        logger.debug("Started location watch %d", handle)
        return handle

    def unwatch(self, handle: int) -> None:
        """Stop a watch. Unknown handles are ignored."""
        task = self._watches.pop(handle, None)
        if task is not None:
            task.cancel()
            logger.debug("Stopped location watch %d", handle)

    @property
    def watching(self) -> bool:
        return bool(self._watches)

    def close(self) -> None:
        for handle in list(self._watches):
            self.unwatch(handle)

    async def _poll(
        self,
        on_update: Callable[[LonLat], None],
        on_error: Optional[Callable[[LocationError], None]],
    ) -> None:
        while True:
            try:
                position = await self.get_once()
            except LocationError as e:
                logger.debug("Location watch error: %s", e.message)
                if on_error is not None:
                    self._deliver(on_error, e)
            else:
                self._deliver(on_update, position)
            await asyncio.sleep(self.poll_interval)

    @staticmethod
    def _deliver(callback: Callable, value) -> None:
        # A failing subscriber must not end the watch
        try:
            callback(value)
        except Exception:
            logger.exception("Location watch callback failed")
