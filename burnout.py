"""
Weighted burnout estimate over four stress factors. Pure math.

  level = round(0.4 × overwork + 0.2 × missed_breaks
                + 0.2 × streak_pressure + 0.2 × deadline_density)

Warnings: one level band (critical ≥80, high ≥60, moderate ≥40), then any
number of per-factor warnings in a fixed order.
"""

from __future__ import annotations

from datetime import datetime

from config import EngineConfig
from models import BurnoutFactors, BurnoutReport, BurnoutWarning
from rewards import round_half_up


# ── Level bands (highest first; only the first match fires) ──

LEVEL_BANDS = [
    (80, "critical", "Critical burnout risk - consider taking a break"),
    (60, "high", "High stress detected - pace yourself"),
    (40, "moderate", "Moderate stress - remember to take breaks"),
]

# ── Per-factor rules: (factor, strict threshold, code, message) ──

FACTOR_RULES = [
    ("overwork", 70, "overwork", "Working too many hours today"),
    ("missed_breaks", 60, "missed_breaks", "Missing regular breaks"),
    ("streak_pressure", 50, "streak_pressure", "Don't let streak pressure control you"),
    ("deadline_density", 60, "deadline_density", "Many deadlines approaching"),
]


def burnout_level(factors: BurnoutFactors, cfg: EngineConfig | None = None) -> int:
    if cfg is None:
        cfg = EngineConfig()
    raw = (
        factors.overwork * cfg.weight_overwork
        + factors.missed_breaks * cfg.weight_missed_breaks
        + factors.streak_pressure * cfg.weight_streak_pressure
        + factors.deadline_density * cfg.weight_deadline_density
    )
    return max(0, min(100, round_half_up(raw)))


def burnout_warnings(level: int, factors: BurnoutFactors) -> list[BurnoutWarning]:
    warnings: list[BurnoutWarning] = []

    for floor, code, message in LEVEL_BANDS:
        if level >= floor:
            warnings.append(BurnoutWarning(code=code, message=message))
            break

    for attr, threshold, code, message in FACTOR_RULES:
        if getattr(factors, attr) > threshold:
            warnings.append(BurnoutWarning(code=code, message=message))

    return warnings


def compute_burnout(
    factors: BurnoutFactors,
    now: datetime | None = None,
    cfg: EngineConfig | None = None,
) -> BurnoutReport:
    level = burnout_level(factors, cfg)
    return BurnoutReport(
        level=level,
        factors=factors,
        warnings=burnout_warnings(level, factors),
        last_checked=now,
    )


def update_burnout(
    report: BurnoutReport,
    now: datetime | None = None,
    cfg: EngineConfig | None = None,
    **factor_updates: float,
) -> BurnoutReport:
    """Merge a partial factor update (e.g. ``overwork=80``) and recompute."""
    unknown = set(factor_updates) - set(BurnoutFactors.model_fields)
    if unknown:
        raise ValueError(f"Unknown burnout factor(s): {', '.join(sorted(unknown))}")
    merged = BurnoutFactors(**{**report.factors.model_dump(), **factor_updates})
    return compute_burnout(merged, now, cfg)
