from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Tuple

UNASSIGNED_PROGRAMMER = "A Definir"


@dataclass(frozen=True)
class RouteContract:
    id: str
    origin: str
    destination: str
    contracted_volume: float = 0.0
    realized_volume: float = 0.0


@dataclass(frozen=True)
class OriginZone:
    id: str
    name: str
    programmer: str = UNASSIGNED_PROGRAMMER
    financial_revenue: float = 0.0
    financial_bonus: float = 0.0
    routes: Tuple[RouteContract, ...] = ()


@dataclass(frozen=True)
class NormalizedRow:
    """One accepted spreadsheet row; origin/destination are uppercased raw text."""

    circuit_id: str
    origin: str
    destination: str
    programmer: str
    contracted_volume: float
    realized_volume: float


@dataclass
class ZoneBuilder:
    name: str
    programmer: str = UNASSIGNED_PROGRAMMER
    financial_revenue: float = 0.0
    financial_bonus: float = 0.0
    routes: List[RouteContract] = field(default_factory=list)

    def build(self, zone_id: str) -> OriginZone:
        return OriginZone(
            id=zone_id,
            name=self.name,
            programmer=self.programmer,
            financial_revenue=self.financial_revenue,
            financial_bonus=self.financial_bonus,
            routes=tuple(self.routes),
        )
