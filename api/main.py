from __future__ import annotations

from dataclasses import asdict
import logging
import math

import numpy as np
import pandas as pd
from fastapi import FastAPI, File, Query, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.responses import Response
from fastapi.encoders import jsonable_encoder

from api.schemas import (
    AnalyticsRequestModel,
    ModesResponse,
    ReceiptsRequestModel,
    ThresholdsModel,
    ZoneDetailRequestModel,
)
from core.data import ImportResult, load_sheet, zones_frame
from core.errors import EmptyResultError, MalformedSheetError, SheetImportError, UnsupportedFormatError
from core.filters import MODES, normalize_filters
from core.metrics_debug import compute_import_debug
from core.metrics_overview import compute_analytics, compute_overview
from core.metrics_receipts import apply_receipts, compute_receipts, update_applied_ids
from core.metrics_zone import compute_zone_detail


app = FastAPI(title="Circuit Contract Dashboard API", version="0.1.0")
logger = logging.getLogger(__name__)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000", "http://127.0.0.1:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _json(data: object, status_code: int = 200) -> JSONResponse:
    """Return JSON with safe encoding for pandas/numpy objects."""

    def _safe_float(value: object) -> float | None:
        try:
            out = float(value)  # type: ignore[arg-type]
        except (TypeError, ValueError):
            return None
        if math.isnan(out) or math.isinf(out):
            return None
        return out

    return JSONResponse(
        status_code=status_code,
        content=jsonable_encoder(
            data,
            custom_encoder={
                type(pd.NA): lambda _: None,
                np.integer: int,
                float: _safe_float,
                np.floating: _safe_float,
                np.bool_: bool,
                np.ndarray: lambda arr: arr.tolist(),
                pd.Timestamp: lambda ts: ts.isoformat(),
            },
        ),
    )


def _error(exc: Exception, status_code: int = 500) -> JSONResponse:
    content = {"error": str(exc), "type": type(exc).__name__}
    if isinstance(exc, EmptyResultError):
        content["valid_row_count"] = exc.valid_row_count
        content["duplicate_row_count"] = exc.duplicate_row_count
    return JSONResponse(status_code=status_code, content=content)


def _import_error(exc: SheetImportError) -> JSONResponse:
    if isinstance(exc, UnsupportedFormatError):
        return _error(exc, 415)
    if isinstance(exc, (EmptyResultError, MalformedSheetError)):
        return _error(exc, 422)
    return _error(exc, 400)


def _read_upload(file: UploadFile) -> ImportResult:
    content = file.file.read()
    return load_sheet(content, file.filename or "")


def _import_payload(result: ImportResult) -> dict:
    return {
        "valid_row_count": result.valid_row_count,
        "duplicate_row_count": result.duplicate_row_count,
        "route_count": result.route_count,
        "header_found": result.header_found,
        "columns": asdict(result.columns),
        "zones": [asdict(z) for z in result.zones],
    }


@app.get("/meta/modes")
def meta_modes():
    return ModesResponse(modes=list(MODES), thresholds=ThresholdsModel())


@app.post("/import")
def import_file(file: UploadFile = File(...)):
    try:
        return _json(_import_payload(_read_upload(file)))
    except SheetImportError as exc:
        logger.warning("import rejected: %s", exc)
        return _import_error(exc)
    except Exception as exc:
        logger.exception("import failed")
        return _error(exc)


@app.post("/overview")
def overview(request: AnalyticsRequestModel):
    try:
        f = normalize_filters(request.filters_raw())
        return _json(compute_overview(f, request.domain_zones()))
    except Exception as exc:
        logger.exception("overview failed")
        return _error(exc)


@app.post("/zone-detail")
def zone_detail(request: ZoneDetailRequestModel):
    try:
        f = normalize_filters({"thresholds": request.thresholds.model_dump()})
        return _json(compute_zone_detail(f, request.zone.to_domain()))
    except Exception as exc:
        logger.exception("zone_detail failed")
        return _error(exc)


@app.post("/receipts")
def receipts(request: ReceiptsRequestModel):
    try:
        docs = [r.to_domain() for r in request.receipts]
        zones = [z.to_domain() for z in request.zones]
        sign = 1 if request.action == "apply" else -1
        updated, changed = apply_receipts(zones, docs, sign, applied_ids=request.applied_ids)
        payload = compute_receipts(docs, q=request.q)
        payload["applied"] = len(changed)
        payload["applied_ids"] = update_applied_ids(request.applied_ids, changed, sign)
        payload["zones"] = [asdict(z) for z in updated]
        return _json(payload)
    except Exception as exc:
        logger.exception("receipts failed")
        return _error(exc)


@app.post("/debug")
def debug(file: UploadFile = File(...)):
    try:
        return _json(compute_import_debug(_read_upload(file)))
    except SheetImportError as exc:
        logger.warning("debug import rejected: %s", exc)
        return _import_error(exc)
    except Exception as exc:
        logger.exception("debug failed")
        return _error(exc)


@app.post("/export/{page}")
def export_page(page: str, request: AnalyticsRequestModel, sep: str = Query(default=",")):
    f = normalize_filters(request.filters_raw())
    zones = request.domain_zones()

    filename = f"{page}.csv"
    if page == "overview":
        result = compute_analytics(zones, f.mode, f.reference_date, thresholds=f.thresholds)
        export_df = pd.DataFrame([asdict(z) for z in result.per_zone])
    elif page == "routes":
        export_df = zones_frame(zones).drop(columns=["zone_position"])
    else:
        export_df = pd.DataFrame()

    csv_bytes = export_df.to_csv(index=False, sep=sep).encode("utf-8")
    return Response(content=csv_bytes, media_type="text/csv", headers={"Content-Disposition": f"attachment; filename={filename}"})
