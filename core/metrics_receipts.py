from __future__ import annotations

from dataclasses import asdict, dataclass, replace
from typing import Any, Collection, Dict, List, Optional, Sequence, Tuple

from core.filters import BONUS_RATE, REVENUE_RATE
from core.models import OriginZone, RouteContract


@dataclass(frozen=True)
class PdfReceipt:
    """A loading receipt already extracted from a PDF by an upstream OCR step."""

    id: str
    file_name: str
    extraction_id: str = ""
    extracted_origin_city: str = ""
    extracted_destination: str = ""
    mapped_zone_id: Optional[str] = None
    is_duplicate: bool = False

    @property
    def is_valid_load(self) -> bool:
        return bool(self.mapped_zone_id) and not self.is_duplicate


def filter_receipts(receipts: Sequence[PdfReceipt], q: str = "") -> List[PdfReceipt]:
    query = (q or "").strip().lower()
    if not query:
        return list(receipts)
    return [
        r
        for r in receipts
        if query in r.file_name.lower()
        or query in r.extraction_id.lower()
        or query in r.extracted_origin_city.lower()
    ]


def _target_route(routes: Sequence[RouteContract], destination: str) -> Optional[int]:
    if not routes:
        return None
    wanted = destination.strip().upper()
    if wanted:
        for idx, route in enumerate(routes):
            if wanted in route.destination:
                return idx
    return 0


def pending_receipts(
    receipts: Sequence[PdfReceipt],
    applied_ids: Optional[Collection[str]],
    sign: int = 1,
) -> List[PdfReceipt]:
    """Receipts an apply (sign=1) or remove (sign=-1) may still act on, given the ids already applied."""
    if applied_ids is None:
        return list(receipts)
    done = set(applied_ids)
    if sign >= 0:
        return [r for r in receipts if r.id not in done]
    return [r for r in receipts if r.id in done]


def apply_receipts(
    zones: Sequence[OriginZone],
    receipts: Sequence[PdfReceipt],
    sign: int = 1,
    *,
    applied_ids: Optional[Collection[str]] = None,
) -> Tuple[List[OriginZone], List[str]]:
    """Add (sign=1) or remove (sign=-1) one realized unit per valid receipt.

    Returns fresh zone records and the ids of the receipts that changed a route.
    When ``applied_ids`` is given, receipts already applied are not added again
    and only those receipts can be removed. Receipts whose zone is unknown are
    skipped. Realized volume never drops below zero.
    """
    step = 1 if sign >= 0 else -1
    by_id = {z.id: i for i, z in enumerate(zones)}
    routes: Dict[str, List[RouteContract]] = {z.id: list(z.routes) for z in zones}
    deltas: Dict[str, float] = {z.id: 0.0 for z in zones}
    changed: List[str] = []

    for receipt in pending_receipts(receipts, applied_ids, step):
        if not receipt.is_valid_load or receipt.mapped_zone_id not in by_id:
            continue
        zone_routes = routes[receipt.mapped_zone_id]
        idx = _target_route(zone_routes, receipt.extracted_destination)
        if idx is None:
            continue
        route = zone_routes[idx]
        realized = max(route.realized_volume + step, 0.0)
        if realized == route.realized_volume:
            continue
        deltas[receipt.mapped_zone_id] += realized - route.realized_volume
        zone_routes[idx] = replace(route, realized_volume=realized)
        changed.append(receipt.id)

    updated = [
        replace(
            zone,
            routes=tuple(routes[zone.id]),
            financial_revenue=zone.financial_revenue + deltas[zone.id] * REVENUE_RATE,
            financial_bonus=zone.financial_bonus + deltas[zone.id] * BONUS_RATE,
        )
        for zone in zones
    ]
    return updated, changed


def update_applied_ids(applied_ids: Optional[Collection[str]], changed: Sequence[str], sign: int = 1) -> List[str]:
    done = set(applied_ids or ())
    if sign >= 0:
        done.update(changed)
    else:
        done.difference_update(changed)
    return sorted(done)


def compute_receipts(receipts: Sequence[PdfReceipt], *, q: str = "") -> Dict[str, Any]:
    return {
        "kpis": {
            "total_uploads": len(receipts),
            "valid_loads": sum(1 for r in receipts if r.is_valid_load),
            "duplicates": sum(1 for r in receipts if r.is_duplicate),
        },
        "q": (q or "").strip(),
        "table": [asdict(r) for r in filter_receipts(receipts, q)],
    }
