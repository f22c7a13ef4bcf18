from __future__ import annotations

from datetime import date
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

from core.metrics_receipts import PdfReceipt
from core.models import UNASSIGNED_PROGRAMMER, OriginZone, RouteContract


class ThresholdsModel(BaseModel):
    bonus: float = Field(default=0.90, ge=0.0, le=1.0)
    gif: float = Field(default=0.95, ge=0.0, le=1.0)
    route_min: float = Field(default=0.40, ge=0.0, le=1.0)


class RouteContractModel(BaseModel):
    id: str
    origin: str
    destination: str
    contracted_volume: float = Field(default=0.0, ge=0.0)
    realized_volume: float = Field(default=0.0, ge=0.0)

    def to_domain(self) -> RouteContract:
        return RouteContract(**self.model_dump())


class OriginZoneModel(BaseModel):
    id: str
    name: str
    programmer: str = UNASSIGNED_PROGRAMMER
    financial_revenue: float = 0.0
    financial_bonus: float = 0.0
    routes: List[RouteContractModel] = Field(default_factory=list)

    def to_domain(self) -> OriginZone:
        return OriginZone(
            id=self.id,
            name=self.name,
            programmer=self.programmer,
            financial_revenue=self.financial_revenue,
            financial_bonus=self.financial_bonus,
            routes=tuple(r.to_domain() for r in self.routes),
        )


class AnalyticsRequestModel(BaseModel):
    zones: List[OriginZoneModel] = Field(default_factory=list)
    mode: Literal["BONUS", "GIF"] = "BONUS"
    reference_date: Optional[date] = None
    thresholds: ThresholdsModel = Field(default_factory=ThresholdsModel)

    def filters_raw(self) -> dict:
        return self.model_dump(include={"mode", "reference_date", "thresholds"})

    def domain_zones(self) -> List[OriginZone]:
        return [z.to_domain() for z in self.zones]


class ZoneDetailRequestModel(BaseModel):
    zone: OriginZoneModel
    thresholds: ThresholdsModel = Field(default_factory=ThresholdsModel)


class PdfReceiptModel(BaseModel):
    id: str
    file_name: str
    extraction_id: str = ""
    extracted_origin_city: str = ""
    extracted_destination: str = ""
    mapped_zone_id: Optional[str] = None
    is_duplicate: bool = False

    def to_domain(self) -> PdfReceipt:
        return PdfReceipt(**self.model_dump())


class ReceiptsRequestModel(BaseModel):
    zones: List[OriginZoneModel] = Field(default_factory=list)
    receipts: List[PdfReceiptModel] = Field(default_factory=list)
    action: Literal["apply", "remove"] = "apply"
    applied_ids: Optional[List[str]] = None
    q: str = ""


class ModesResponse(BaseModel):
    modes: List[str]
    thresholds: ThresholdsModel
