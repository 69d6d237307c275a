"""Test the undo/redo snapshot stack."""
from dataclasses import replace
from datetime import datetime, timezone

import pytest

from engine.history import History, NoNextState, NoPreviousState
from engine.model import Unit, UnitKind


def unit_at(lat: float) -> Unit:
    return Unit(id="U1", kind=UnitKind.SHIP, color="red", position=(lat, 0.0))


def test_initial_history_cannot_revert():
    h = History([unit_at(0)])
    assert len(h) == 1
    assert h.cursor == 0
    assert not h.can_revert()
    assert not h.can_redo()
    with pytest.raises(NoPreviousState, match="no previous state"):
        h.revert()


def test_commit_then_revert_restores_previous():
    h = History([unit_at(0)], turn=1)
    h.commit([unit_at(1)], turn=2)
    assert h.can_revert()
    snap = h.revert()
    assert snap.units == (unit_at(0),)
    assert snap.turn == 1
    assert h.cursor == 0


def test_revert_to_first_snapshot_then_fail():
    h = History([unit_at(1)])
    h.commit([unit_at(2)])
    h.commit([unit_at(3)])
    h.revert()
    assert h.revert().units == (unit_at(1),)
    with pytest.raises(NoPreviousState, match="no previous state"):
        h.revert()
    assert h.current.units == (unit_at(1),)
    assert h.cursor == 0


def test_commit_after_revert_truncates_future():
    h = History([unit_at(0)])
    h.commit([unit_at(1)])
    h.commit([unit_at(2)])
    h.revert()
    h.revert()
    h.commit([unit_at(9)])
    assert len(h) == 2
    assert h.current.units == (unit_at(9),)
    assert not h.can_redo()


def test_redo_walks_forward():
    h = History([unit_at(0)])
    h.commit([unit_at(1)])
    h.revert()
    assert h.can_redo()
    assert h.redo().units == (unit_at(1),)
    with pytest.raises(NoNextState):
        h.redo()


def test_snapshots_are_independent_copies():
    units = [unit_at(0)]
    h = History(units)
    units.append(unit_at(5))
    assert len(h.current.units) == 1


def test_reset_replaces_everything():
    when = datetime(2024, 1, 1, tzinfo=timezone.utc)
    h = History([unit_at(0)])
    h.commit([unit_at(1)])
    h.reset([replace(unit_at(3), name="loaded")], turn=7, current_time=when)
    assert len(h) == 1
    assert h.cursor == 0
    assert h.current.turn == 7
    assert h.current.current_time == when
    assert not h.can_revert()
