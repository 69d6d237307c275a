import asyncio
import logging
import time
from typing import Callable, List, Optional, TypeVar

from engine.engine import Engine
from engine.model import Event
from .eventlog import EventLog

logger = logging.getLogger(__name__)

T = TypeVar("T")

class TickRunner:
    """Async driver that feeds wall-clock time to the engine on a fixed cadence.

    The runner is the only writer: ticks and requests both go through
    `_lock`, so they never interleave.
    """

    def __init__(self, engine: Engine, tick_ms: Optional[int] = None,
                 clock: Callable[[], float] = time.monotonic):
        self.engine = engine
        self.tick_ms = tick_ms or engine.config.realtime_interval_ms
        self._clock = clock
        self.events = EventLog()
        self._task: asyncio.Task | None = None
        self._lock = asyncio.Lock()
        self._last: float | None = None

    @property
    def running(self) -> bool:
        return self._task is not None

    async def start(self):
        """Start the tick loop."""
        if self._task:
            return
        self._last = self._clock()
        self._task = asyncio.create_task(self._loop())
        logger.info("Tick loop started (%d ms)", self.tick_ms)

    async def stop(self):
        """Stop the tick loop; an uncommitted real-time preview is simply dropped."""
        if not self._task:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Tick loop stopped")

    async def _loop(self):
        while True:
            now = self._clock()
            dt_ms = (now - self._last) * 1000.0 if self._last is not None else 0.0
            self._last = now
            await self.step(dt_ms)
            await asyncio.sleep(self.tick_ms / 1000.0)

    async def step(self, dt_ms: float) -> List[Event]:
        """Run one engine tick of `dt_ms` and record its events."""
        async with self._lock:
            evts = self.engine.tick(dt_ms)
        if evts:
            logger.debug("Tick produced %d events", len(evts))
            self.events.append_many(evts)
        return evts

    async def execute(self, request: Callable[[Engine], List[Event]]) -> List[Event]:
        """Apply a request to the engine between ticks and record its events."""
        async with self._lock:
            evts = request(self.engine)
        self.events.append_many(evts)
        return evts

    async def read(self, view: Callable[[Engine], T]) -> T:
        """Read from the engine without racing a tick."""
        async with self._lock:
            return view(self.engine)
