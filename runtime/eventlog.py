from collections import deque
from typing import Deque, List, Optional, Sequence, Tuple

from engine.model import Event

class EventLog:
    """Append-only event storage for polling clients.

    Offsets are absolute and keep counting when old events are dropped past
    `max_events`; a client polling from a dropped offset resumes at the
    oldest retained event.
    """

    def __init__(self, max_events: Optional[int] = 10000):
        self._log: Deque[Event] = deque(maxlen=max_events)
        self._dropped = 0

    def __len__(self) -> int:
        return len(self._log)

    @property
    def first_offset(self) -> int:
        return self._dropped

    @property
    def next_offset(self) -> int:
        return self._dropped + len(self._log)

    def append_many(self, evts: Sequence[Event]) -> Tuple[int, int]:
        """Append events and return (start_offset, end_offset)."""
        start = self.next_offset
        for e in evts:
            if self._log.maxlen is not None and len(self._log) == self._log.maxlen:
                self._dropped += 1
            self._log.append(e)
        return start, self.next_offset - 1

    def since(self, offset: int, limit: int = 1000) -> Tuple[List[Event], int]:
        """Return events starting from offset, up to limit, and the offset to poll next."""
        offset = max(offset, self._dropped)
        start = offset - self._dropped
        chunk = [self._log[i] for i in range(start, min(start + limit, len(self._log)))]
        return chunk, offset + len(chunk)
