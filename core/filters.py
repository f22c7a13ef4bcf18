from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Literal, Optional

ComplianceMode = Literal["BONUS", "GIF"]
MODES: tuple[str, ...] = ("BONUS", "GIF")

REVENUE_RATE = 1500.0
BONUS_RATE = 50.0
OUT_OF_CIRCUIT = "FORA DO CIRCUITO"


@dataclass(frozen=True)
class Thresholds:
    bonus: float = 0.90
    gif: float = 0.95
    route_min: float = 0.40

    def for_mode(self, mode: ComplianceMode) -> float:
        return self.gif if mode == "GIF" else self.bonus


@dataclass(frozen=True)
class AnalyticsFilters:
    mode: ComplianceMode = "BONUS"
    reference_date: Optional[date] = None
    thresholds: Thresholds = field(default_factory=Thresholds)

    @property
    def threshold(self) -> float:
        return self.thresholds.for_mode(self.mode)


def _as_date(value: object) -> Optional[date]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value).strip()[:10])
    except ValueError:
        return None


def _as_float(value: object, default: float) -> float:
    try:
        out = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return default
    return out if 0.0 <= out <= 1.0 else default


def normalize_filters(raw: dict) -> AnalyticsFilters:
    mode = str(raw.get("mode") or "BONUS").strip().upper()
    if mode not in MODES:
        mode = "BONUS"

    t = raw.get("thresholds") or {}
    thresholds = Thresholds(
        bonus=_as_float(t.get("bonus", 0.90), 0.90),
        gif=_as_float(t.get("gif", 0.95), 0.95),
        route_min=_as_float(t.get("route_min", 0.40), 0.40),
    )
    return AnalyticsFilters(
        mode=mode,
        reference_date=_as_date(raw.get("reference_date")),
        thresholds=thresholds,
    )
