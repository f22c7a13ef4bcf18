from __future__ import annotations

import math
from dataclasses import asdict, dataclass, field, replace
from datetime import date
from typing import Any, Dict, List, Optional, Sequence

import altair as alt
import pandas as pd

from core.charts import BEHIND_COLOR, REALIZED_COLOR, TARGET_COLOR, TREND_COLOR, to_vega_spec
from core.filters import AnalyticsFilters, ComplianceMode, Thresholds
from core.metrics_zone import STATUS_CRITICAL, STATUS_WARNING, analyze_route, classify_zone_network
from core.models import OriginZone
from core.pacing import DateFactor, get_date_factor


@dataclass(frozen=True)
class ZoneAnalytics:
    zone_id: str
    name: str
    programmer: str
    route_count: int
    contracted: float
    realized: float
    min_target: int
    proportional_min: int
    gap: float
    adherence: float
    failing_routes_count: int
    status: str
    financial_revenue: float
    financial_bonus: float


@dataclass(frozen=True)
class AggregateAnalytics:
    contracted: float = 0.0
    min_target: int = 0
    proportional_min: int = 0
    realized: float = 0.0
    gap: float = 0.0
    revenue: float = 0.0
    bonus: float = 0.0
    adherence: float = 0.0


@dataclass(frozen=True)
class RouteHealth:
    above: int = 0
    below: int = 0


@dataclass(frozen=True)
class SystemHealth:
    critical_zones: int = 0
    warning_zones: int = 0
    healthy_zones: int = 0


@dataclass(frozen=True)
class AnalyticsResult:
    mode: ComplianceMode
    threshold: float
    date: DateFactor
    per_zone: List[ZoneAnalytics] = field(default_factory=list)
    totals: AggregateAnalytics = field(default_factory=AggregateAnalytics)
    route_health: RouteHealth = field(default_factory=RouteHealth)
    system_health: SystemHealth = field(default_factory=SystemHealth)


def adherence_pct(realized: float, proportional_min: float) -> float:
    return realized / proportional_min * 100 if proportional_min > 0 else 0.0


def route_flags(zones: Sequence[OriginZone], route_min: float) -> pd.DataFrame:
    """One row per route with its zone position and minimum-ratio flags."""
    records = []
    for position, zone in enumerate(zones):
        for route in zone.routes:
            analysis = analyze_route(route, route_min)
            records.append(
                {
                    "zone_position": position,
                    "contracted_volume": float(analysis.contracted_volume),
                    "realized_volume": float(analysis.realized_volume),
                    "above": analysis.percentage >= route_min,
                    "below": analysis.is_below_threshold,
                }
            )
    return pd.DataFrame(
        records,
        columns=["zone_position", "contracted_volume", "realized_volume", "above", "below"],
    )


def _zone_analytics(zone: OriginZone, sums: Dict[str, Any], threshold: float, date_factor: float) -> ZoneAnalytics:
    contracted = float(sums.get("contracted", 0.0))
    realized = float(sums.get("realized", 0.0))
    failing = int(sums.get("failing", 0))

    min_target = math.floor(contracted * threshold)
    proportional_min = math.ceil(min_target * date_factor)
    return ZoneAnalytics(
        zone_id=zone.id,
        name=zone.name,
        programmer=zone.programmer,
        route_count=len(zone.routes),
        contracted=contracted,
        realized=realized,
        min_target=min_target,
        proportional_min=proportional_min,
        gap=realized - proportional_min,
        adherence=adherence_pct(realized, proportional_min),
        failing_routes_count=failing,
        status=classify_zone_network(failing),
        financial_revenue=float(zone.financial_revenue),
        financial_bonus=float(zone.financial_bonus),
    )


def compute_analytics(
    zones: Sequence[OriginZone],
    mode: ComplianceMode = "BONUS",
    reference_date: Optional[date] = None,
    *,
    thresholds: Thresholds = Thresholds(),
) -> AnalyticsResult:
    date_factor = get_date_factor(reference_date)
    threshold = thresholds.for_mode(mode)

    flags = route_flags(zones, thresholds.route_min)
    grouped: Dict[int, Dict[str, Any]] = {}
    if not flags.empty:
        agg = flags.groupby("zone_position").agg(
            contracted=("contracted_volume", "sum"),
            realized=("realized_volume", "sum"),
            failing=("below", "sum"),
        )
        grouped = agg.to_dict(orient="index")

    per_zone = [
        _zone_analytics(zone, grouped.get(position, {}), threshold, date_factor.factor)
        for position, zone in enumerate(zones)
    ]
    per_zone.sort(key=lambda z: z.contracted, reverse=True)

    totals = AggregateAnalytics(
        contracted=sum(z.contracted for z in per_zone),
        min_target=sum(z.min_target for z in per_zone),
        proportional_min=sum(z.proportional_min for z in per_zone),
        realized=sum(z.realized for z in per_zone),
        gap=sum(z.gap for z in per_zone),
        revenue=sum(z.financial_revenue for z in per_zone),
        bonus=sum(z.financial_bonus for z in per_zone),
    )
    totals = replace(totals, adherence=adherence_pct(totals.realized, totals.proportional_min))

    route_health = RouteHealth(
        above=int(flags["above"].sum()) if not flags.empty else 0,
        below=int(flags["below"].sum()) if not flags.empty else 0,
    )
    system_health = SystemHealth(
        critical_zones=sum(1 for z in per_zone if z.status == STATUS_CRITICAL),
        warning_zones=sum(1 for z in per_zone if z.status == STATUS_WARNING),
        healthy_zones=sum(1 for z in per_zone if z.status not in (STATUS_CRITICAL, STATUS_WARNING)),
    )
    return AnalyticsResult(
        mode=mode,
        threshold=threshold,
        date=date_factor,
        per_zone=per_zone,
        totals=totals,
        route_health=route_health,
        system_health=system_health,
    )


def _overview_chart(per_zone: List[ZoneAnalytics]) -> Optional[Dict[str, Any]]:
    if not per_zone:
        return None
    table = pd.DataFrame([asdict(z) for z in per_zone])
    order = table["name"].tolist()
    long_df = table.melt(
        id_vars=["name", "gap"],
        value_vars=["proportional_min", "realized"],
        var_name="series",
        value_name="volume",
    )
    long_df["series"] = long_df["series"].map({"proportional_min": "Meta Hoje", "realized": "Realizado"})
    long_df["behind"] = (long_df["series"] == "Realizado") & (long_df["gap"] < 0)

    bars = (
        alt.Chart(long_df)
        .mark_bar(cornerRadiusTopLeft=4, cornerRadiusTopRight=4)
        .encode(
            x=alt.X("name:N", sort=order, title=None, axis=alt.Axis(labelAngle=-15)),
            xOffset="series:N",
            y=alt.Y("volume:Q", title="Volume"),
            color=alt.condition(
                alt.datum.behind,
                alt.value(BEHIND_COLOR),
                alt.Color(
                    "series:N",
                    scale=alt.Scale(domain=["Meta Hoje", "Realizado"], range=[TARGET_COLOR, REALIZED_COLOR]),
                    title=None,
                ),
            ),
            tooltip=["name", "series", alt.Tooltip("volume:Q", format=",.0f"), alt.Tooltip("gap:Q", format="+,.0f")],
        )
    )
    trend = (
        alt.Chart(table)
        .mark_line(point=True, color=TREND_COLOR, strokeWidth=3)
        .encode(x=alt.X("name:N", sort=order), y="realized:Q")
    )
    return to_vega_spec(alt.layer(bars, trend).properties(height=360))


def compute_overview(filters: AnalyticsFilters, zones: Sequence[OriginZone]) -> Dict[str, Any]:
    result = compute_analytics(zones, filters.mode, filters.reference_date, thresholds=filters.thresholds)
    return {
        "filters": asdict(filters),
        "mode": result.mode,
        "threshold": result.threshold,
        "date": {**asdict(result.date), "progress_pct": result.date.progress_pct},
        "kpis": asdict(result.totals),
        "route_health": asdict(result.route_health),
        "system_health": asdict(result.system_health),
        "table": [asdict(z) for z in result.per_zone],
        "charts": {"realized_vs_target": _overview_chart(result.per_zone)},
    }
