"""
Error taxonomy for the progression engine.

  - validation           → pydantic.ValidationError / ValueError at the boundary
  - precondition failure → structured result models (never raised)
  - invariant violation  → InvariantViolation in development, logged + clamped in production
"""

from __future__ import annotations

import logging

from config import EngineConfig

logger = logging.getLogger(__name__)


class EngineError(Exception):
    """Base class for engine-internal errors."""


class InvariantViolation(EngineError):
    """A state that correct callers can never produce."""


class LevelCapExceeded(EngineError):
    """Level lookup ran past the iteration cap."""


def guard_invariant(ok: bool, message: str, cfg: EngineConfig | None = None) -> bool:
    """
    Check an invariant.

    Raises in strict mode. Otherwise logs and returns False so the caller
    can clamp to a safe value.
    """
    if ok:
        return True
    if cfg is None:
        cfg = EngineConfig()
    if cfg.strict_invariants:
        raise InvariantViolation(message)
    logger.error(f"Invariant violated (clamping): {message}")
    return False
