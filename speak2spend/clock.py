"""Time sources used by the recording controller.

The controller never touches the event loop's timers directly; it asks an
injected clock for one-shot and repeating timers so tests can drive time by
hand.
"""

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class TimerHandle(ABC):
    """A scheduled callback that can be cancelled."""

    @abstractmethod
    def cancel(self) -> None:
        """Cancel the timer. Safe to call more than once."""
        pass

    @property
    @abstractmethod
    def cancelled(self) -> bool:
        pass


class AbstractClock(ABC):
    """Monotonic time plus timer scheduling."""

    @abstractmethod
    def now(self) -> float:
        """Current monotonic time in seconds."""
        pass

    @abstractmethod
    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        """Run ``callback`` once after ``delay`` seconds."""
        pass

    @abstractmethod
    def call_every(self, interval: float, callback: Callable[[], None]) -> TimerHandle:
        """Run ``callback`` every ``interval`` seconds until cancelled."""
        pass


class _AsyncioTimer(TimerHandle):
    """One-shot or repeating timer on an asyncio loop."""

    def __init__(self, loop: asyncio.AbstractEventLoop, delay: float,
                 callback: Callable[[], None], repeat: bool = False):
        self._loop = loop
        self._delay = delay
        self._callback = callback
        self._repeat = repeat
        self._cancelled = False
        self._handle: Optional[asyncio.TimerHandle] = self._loop.call_later(delay, self._fire)

    def _fire(self) -> None:
        if self._cancelled:
            return
        if self._repeat:
            # Reschedule before running so a slow callback does not stop the cadence
            self._handle = self._loop.call_later(self._delay, self._fire)
        else:
            self._handle = None
        try:
            self._callback()
        except Exception as e:
            logger.error(f"Timer callback failed: {e}", exc_info=True)

    def cancel(self) -> None:
        self._cancelled = True
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    @property
    def cancelled(self) -> bool:
        return self._cancelled


class AsyncioClock(AbstractClock):
    """Clock backed by the running asyncio event loop."""

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        self._loop = loop

    def _get_loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    def now(self) -> float:
        return time.monotonic()

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        return _AsyncioTimer(self._get_loop(), delay, callback)

    def call_every(self, interval: float, callback: Callable[[], None]) -> TimerHandle:
        if interval <= 0:
            raise ValueError(f"Timer interval must be positive, got {interval}")
        return _AsyncioTimer(self._get_loop(), interval, callback, repeat=True)
