import pytest

from config import EngineConfig
from errors import InvariantViolation, guard_invariant


def test_guard_passes_when_invariant_holds() -> None:
    assert guard_invariant(True, "fine") is True


def test_guard_raises_in_development() -> None:
    with pytest.raises(InvariantViolation, match="negative streak"):
        guard_invariant(False, "negative streak -1", EngineConfig(strict_invariants=True))


def test_guard_returns_false_in_production() -> None:
    assert guard_invariant(False, "negative streak -1", EngineConfig(strict_invariants=False)) is False


def test_config_from_dict_ignores_unknown_keys() -> None:
    cfg = EngineConfig.from_dict({"undo_window_seconds": 5, "bogus": 1})
    assert cfg.undo_window_seconds == 5
    assert not hasattr(cfg, "bogus")
    assert EngineConfig.from_dict(cfg.to_dict()) == cfg


def test_config_from_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("PIXELQUEST_ENV", "production")
    monkeypatch.setenv("PIXELQUEST_UNDO_WINDOW_SECONDS", "45")
    cfg = EngineConfig.from_env()
    assert cfg.strict_invariants is False
    assert cfg.undo_window_seconds == 45
