from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict

from core.data import ImportResult, zones_frame
from core.models import UNASSIGNED_PROGRAMMER


def compute_import_debug(result: ImportResult) -> Dict[str, Any]:
    routes = zones_frame(result.zones)
    payload: Dict[str, Any] = {
        "row_counts": {
            "valid_rows": int(result.valid_row_count),
            "duplicate_rows": int(result.duplicate_row_count),
            "zones": len(result.zones),
            "routes": int(len(routes)),
        },
        "columns": asdict(result.columns),
        "header_found": bool(result.header_found),
        "zone_routes": [],
        "unassigned_zones": [],
        "zero_contract_routes": [],
    }
    if routes.empty:
        return payload

    per_zone = (
        routes.groupby("zone_name", sort=False)
        .agg(
            routes=("circuit_id", "count"),
            contracted=("contracted_volume", "sum"),
            realized=("realized_volume", "sum"),
        )
        .reset_index()
    )
    payload["zone_routes"] = per_zone.to_dict(orient="records")
    payload["unassigned_zones"] = [z.name for z in result.zones if z.programmer == UNASSIGNED_PROGRAMMER]

    zero = routes[routes["contracted_volume"] <= 0]
    if not zero.empty:
        payload["zero_contract_routes"] = zero[["zone_name", "circuit_id", "destination"]].to_dict(orient="records")
    return payload
