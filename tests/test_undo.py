from datetime import datetime, timedelta

from config import EngineConfig
from models import UndoActionType, UndoLedger
from undo import peek_undo, pop_undo, push_undo, remove_undo, sweep_undo

T0 = datetime(2024, 1, 15, 12, 0, 0)


def _push(ledger: UndoLedger, description: str, at: datetime = T0) -> UndoLedger:
    ledger, _ = push_undo(ledger, UndoActionType.TASK_DELETE, {"n": description}, description, at)
    return ledger


def test_pop_is_lifo() -> None:
    ledger = _push(_push(UndoLedger(), "first"), "second")
    ledger, action = pop_undo(ledger, T0)
    assert action.description == "second"
    ledger, action = pop_undo(ledger, T0)
    assert action.description == "first"
    assert pop_undo(ledger, T0)[1] is None


def test_capacity_evicts_oldest() -> None:
    ledger = UndoLedger()
    for i in range(12):
        ledger = _push(ledger, f"a{i}")
    assert len(ledger.entries) == 10
    assert ledger.entries[0].description == "a2"
    assert peek_undo(ledger, T0).description == "a11"


def test_entries_expire_after_window() -> None:
    ledger = _push(UndoLedger(), "late")
    assert ledger.entries[0].expires_at == T0 + timedelta(seconds=30)
    ledger, action = pop_undo(ledger, T0 + timedelta(seconds=31))
    assert action is None
    assert ledger.entries == []


def test_pop_skips_expired_entries() -> None:
    ledger = _push(UndoLedger(), "old")
    ledger = _push(ledger, "new", T0 + timedelta(seconds=20))
    ledger, action = pop_undo(ledger, T0 + timedelta(seconds=35))
    assert action.description == "new"
    assert ledger.entries == []


def test_window_follows_config() -> None:
    ledger, action = push_undo(
        UndoLedger(), UndoActionType.SKILL_UNLOCK, {}, "unlock", T0, EngineConfig(undo_window_seconds=5)
    )
    assert action.expires_at == T0 + timedelta(seconds=5)


def test_sweep_and_remove() -> None:
    ledger = _push(UndoLedger(), "x")
    assert sweep_undo(ledger, T0) is ledger
    assert sweep_undo(ledger, T0 + timedelta(minutes=1)).entries == []
    assert remove_undo(ledger, ledger.entries[0].id).entries == []


def test_eleven_pushes_keep_the_ten_most_recent() -> None:
    ledger = UndoLedger()
    for i in range(11):
        ledger = _push(ledger, f"a{i}")
    assert [a.description for a in ledger.entries] == [f"a{i}" for i in range(1, 11)]
    assert pop_undo(ledger, T0 + timedelta(seconds=31))[1] is None
