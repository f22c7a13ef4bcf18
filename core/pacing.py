from __future__ import annotations

import calendar
from dataclasses import dataclass
from datetime import date
from typing import Optional


@dataclass(frozen=True)
class DateFactor:
    current_day: int
    total_days: int
    factor: float
    formatted_date: str

    @property
    def progress_pct(self) -> float:
        return self.factor * 100


def get_date_factor(reference_date: Optional[date] = None) -> DateFactor:
    """Share of the calendar month elapsed at ``reference_date`` (today when omitted)."""
    ref = reference_date or date.today()
    total_days = calendar.monthrange(ref.year, ref.month)[1]
    factor = min(max(ref.day / total_days, 0.0), 1.0)
    return DateFactor(
        current_day=ref.day,
        total_days=total_days,
        factor=factor,
        formatted_date=ref.strftime("%d/%m/%Y"),
    )
