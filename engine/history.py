import copy
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional, Sequence, Tuple

from .model import Unit

class NoPreviousState(LookupError):
    """Raised when reverting past the first snapshot."""

class NoNextState(LookupError):
    """Raised when redoing past the last snapshot."""

@dataclass(frozen=True)
class Snapshot:
    units: Tuple[Unit, ...]
    turn: Optional[int] = None
    current_time: Optional[datetime] = None

class History:
    """Linear undo/redo stack of full unit collections.

    Committing after a revert drops every snapshot past the cursor.
    """

    def __init__(self, units: Sequence[Unit] = (), turn: Optional[int] = None,
                 current_time: Optional[datetime] = None):
        self._snapshots: List[Snapshot] = []
        self._cursor = -1
        self.reset(units, turn=turn, current_time=current_time)

    def __len__(self) -> int:
        return len(self._snapshots)

    @property
    def cursor(self) -> int:
        return self._cursor

    @property
    def current(self) -> Snapshot:
        return self._snapshots[self._cursor]

    def can_revert(self) -> bool:
        return self._cursor > 0

    def can_redo(self) -> bool:
        return self._cursor < len(self._snapshots) - 1

    def _snapshot(self, units: Sequence[Unit], turn: Optional[int],
                  current_time: Optional[datetime]) -> Snapshot:
        return Snapshot(tuple(copy.deepcopy(list(units))), turn, current_time)

    def commit(self, units: Sequence[Unit], turn: Optional[int] = None,
               current_time: Optional[datetime] = None) -> Snapshot:
        if self._cursor < len(self._snapshots) - 1:
            del self._snapshots[self._cursor + 1:]
        snap = self._snapshot(units, turn, current_time)
        self._snapshots.append(snap)
        self._cursor = len(self._snapshots) - 1
        return snap

    def revert(self) -> Snapshot:
        if self._cursor <= 0:
            raise NoPreviousState("no previous state")
        self._cursor -= 1
        return self._snapshots[self._cursor]

    def redo(self) -> Snapshot:
        if not self.can_redo():
            raise NoNextState("no next state")
        self._cursor += 1
        return self._snapshots[self._cursor]

    def reset(self, units: Sequence[Unit], turn: Optional[int] = None,
              current_time: Optional[datetime] = None) -> Snapshot:
        """Replace the whole sequence with one snapshot (scenario load/import)."""
        snap = self._snapshot(units, turn, current_time)
        self._snapshots = [snap]
        self._cursor = 0
        return snap
