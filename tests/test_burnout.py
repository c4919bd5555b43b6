from datetime import datetime

import pytest

from burnout import burnout_level, compute_burnout, update_burnout
from models import BurnoutFactors, BurnoutReport

NOW = datetime(2024, 1, 15, 18, 0)


def _codes(report: BurnoutReport) -> list[str]:
    return [w.code for w in report.warnings]


def test_calm_day_has_no_warnings() -> None:
    report = compute_burnout(BurnoutFactors(), NOW)
    assert report.level == 0
    assert report.warnings == []
    assert report.last_checked == NOW


def test_overwork_alone_is_moderate() -> None:
    report = compute_burnout(BurnoutFactors(overwork=100))
    assert report.level == 40
    assert _codes(report) == ["moderate", "overwork"]


def test_everything_maxed_is_critical() -> None:
    report = compute_burnout(BurnoutFactors(
        overwork=100, missed_breaks=100, streak_pressure=100, deadline_density=100
    ))
    assert report.level == 100
    assert _codes(report) == ["critical", "overwork", "missed_breaks", "streak_pressure", "deadline_density"]


def test_factor_thresholds_are_strict() -> None:
    report = compute_burnout(BurnoutFactors(overwork=70, streak_pressure=50))
    assert report.level == 38
    assert report.warnings == []


def test_level_rounds_half_up() -> None:
    assert burnout_level(BurnoutFactors(overwork=1.25)) == 1


def test_partial_update_merges_factors() -> None:
    report = compute_burnout(BurnoutFactors(overwork=100))
    updated = update_burnout(report, NOW, missed_breaks=100)
    assert updated.factors.overwork == 100
    assert updated.level == 60
    assert _codes(updated)[0] == "high"


def test_unknown_factor_is_rejected() -> None:
    with pytest.raises(ValueError, match="sleep"):
        update_burnout(BurnoutReport(), NOW, sleep=20)
