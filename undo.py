"""
Bounded LIFO of inverse actions, each valid for a short window.

Expired entries are dropped lazily on every read and by the periodic sweep.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any

from config import EngineConfig
from models import UndoAction, UndoActionType, UndoLedger


def _live(ledger: UndoLedger, now: datetime) -> list[UndoAction]:
    return [a for a in ledger.entries if a.expires_at > now]


def sweep_undo(ledger: UndoLedger, now: datetime) -> UndoLedger:
    live = _live(ledger, now)
    if len(live) == len(ledger.entries):
        return ledger
    return ledger.model_copy(update={"entries": live})


def push_undo(
    ledger: UndoLedger,
    action_type: UndoActionType,
    inverse_data: dict[str, Any],
    description: str,
    now: datetime,
    cfg: EngineConfig | None = None,
) -> tuple[UndoLedger, UndoAction]:
    if cfg is None:
        cfg = EngineConfig()
    action = UndoAction(
        type=action_type,
        inverse_data=inverse_data,
        description=description,
        timestamp=now,
        expires_at=now + timedelta(seconds=cfg.undo_window_seconds),
    )
    # Oldest entries fall off once the ledger is full.
    keep = max(0, cfg.undo_capacity - 1)
    live = _live(ledger, now)
    entries = (live[-keep:] if keep else []) + [action]
    return ledger.model_copy(update={"entries": entries}), action


def pop_undo(ledger: UndoLedger, now: datetime) -> tuple[UndoLedger, UndoAction | None]:
    """Remove and return the most recent live entry, or None."""
    live = _live(ledger, now)
    if not live:
        return ledger.model_copy(update={"entries": []}), None
    return ledger.model_copy(update={"entries": live[:-1]}), live[-1]


def peek_undo(ledger: UndoLedger, now: datetime) -> UndoAction | None:
    live = _live(ledger, now)
    return live[-1] if live else None


def remove_undo(ledger: UndoLedger, action_id: str) -> UndoLedger:
    return ledger.model_copy(update={
        "entries": [a for a in ledger.entries if a.id != action_id]
    })
