from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional

import altair as alt
import pandas as pd

from core.charts import STATUS_COLORS, to_vega_spec
from core.filters import OUT_OF_CIRCUIT, AnalyticsFilters, Thresholds
from core.models import OriginZone, RouteContract

STATUS_CRITICAL = "CRITICAL"
STATUS_WARNING = "WARNING"
STATUS_GOOD = "GOOD"

ROUTE_MIN_THRESHOLD = Thresholds().route_min


@dataclass(frozen=True)
class RouteAnalysis:
    id: str
    origin: str
    destination: str
    contracted_volume: float
    realized_volume: float
    percentage: float
    is_out_of_circuit: bool
    is_below_threshold: bool


@dataclass(frozen=True)
class ZoneDetail:
    zone_id: str
    name: str
    programmer: str
    routes: List[RouteAnalysis] = field(default_factory=list)
    failing_routes_count: int = 0
    total_routes: int = 0
    health_percentage: float = 0.0
    status: str = STATUS_GOOD


def route_percentage(route: RouteContract) -> float:
    if route.contracted_volume > 0:
        return route.realized_volume / route.contracted_volume
    return 0.0


def is_out_of_circuit(route: RouteContract) -> bool:
    # Incremental capacity outside the contracted circuit has no minimum.
    return OUT_OF_CIRCUIT in route.destination


def analyze_route(route: RouteContract, route_min: float = ROUTE_MIN_THRESHOLD) -> RouteAnalysis:
    percentage = route_percentage(route)
    out_of_circuit = is_out_of_circuit(route)
    return RouteAnalysis(
        id=route.id,
        origin=route.origin,
        destination=route.destination,
        contracted_volume=route.contracted_volume,
        realized_volume=route.realized_volume,
        percentage=percentage,
        is_out_of_circuit=out_of_circuit,
        is_below_threshold=percentage < route_min and not out_of_circuit,
    )


def classify_zone_network(failing_routes: int) -> str:
    """Health used by the network overview: more than two failing routes is critical."""
    if failing_routes > 2:
        return STATUS_CRITICAL
    if failing_routes > 0:
        return STATUS_WARNING
    return STATUS_GOOD


def classify_zone_detail(failing_routes: int) -> str:
    """Health shown on the zone page: any failing route is a warning, never critical."""
    return STATUS_WARNING if failing_routes > 0 else STATUS_GOOD


def analyze_zone(zone: OriginZone, route_min: float = ROUTE_MIN_THRESHOLD) -> ZoneDetail:
    routes = [analyze_route(r, route_min) for r in zone.routes]
    routes.sort(key=lambda r: r.contracted_volume, reverse=True)

    failing = sum(1 for r in routes if r.is_below_threshold)
    total = len(routes)
    health_pct = (total - failing) / total * 100 if total else 0.0
    return ZoneDetail(
        zone_id=zone.id,
        name=zone.name,
        programmer=zone.programmer,
        routes=routes,
        failing_routes_count=failing,
        total_routes=total,
        health_percentage=health_pct,
        status=classify_zone_detail(failing),
    )


def _route_chart(detail: ZoneDetail, route_min: float) -> Optional[Dict[str, Any]]:
    if not detail.routes:
        return None
    df = pd.DataFrame([asdict(r) for r in detail.routes])
    df["label"] = df["id"] + " · " + df["destination"]
    df["state"] = df.apply(
        lambda r: "EXEMPT" if r["is_out_of_circuit"] else (STATUS_WARNING if r["is_below_threshold"] else STATUS_GOOD),
        axis=1,
    )
    order = df["label"].tolist()
    bars = (
        alt.Chart(df)
        .mark_bar()
        .encode(
            x=alt.X("percentage:Q", title="Realizado / Contrato", axis=alt.Axis(format="%")),
            y=alt.Y("label:N", sort=order, title=None),
            color=alt.Color(
                "state:N",
                scale=alt.Scale(domain=list(STATUS_COLORS), range=list(STATUS_COLORS.values())),
                legend=None,
            ),
            tooltip=[
                "id",
                "destination",
                alt.Tooltip("contracted_volume:Q", format=",.0f"),
                alt.Tooltip("realized_volume:Q", format=",.0f"),
                alt.Tooltip("percentage:Q", format=".1%"),
            ],
        )
    )
    rule = alt.Chart(pd.DataFrame({"minimum": [route_min]})).mark_rule(strokeDash=[4, 4]).encode(x="minimum:Q")
    return to_vega_spec(alt.layer(bars, rule).properties(height=max(120, 22 * len(order))))


def compute_zone_detail(filters: AnalyticsFilters, zone: OriginZone) -> Dict[str, Any]:
    detail = analyze_zone(zone, filters.thresholds.route_min)
    payload = asdict(detail)
    payload["filters"] = asdict(filters)
    payload["charts"] = {"routes": _route_chart(detail, filters.thresholds.route_min)}
    return payload
