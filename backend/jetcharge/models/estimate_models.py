"""Request / result models for the estimation engine."""
from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from jetcharge.models.assumption_models import SiteType, coerce_site_type


class EstimateRequest(BaseModel):
    """Calculator inputs. Counts are non-negative; figures must be finite."""
    model_config = ConfigDict(populate_by_name=True, allow_inf_nan=False)

    site_type: Optional[SiteType] = Field(None, alias="siteType")
    ac_count: int = Field(0, ge=0, alias="acCount")
    dc_count: int = Field(0, ge=0, alias="dcCount")
    is_underground: bool = Field(False, alias="isUnderground")
    run_factor: float = Field(1.0, ge=0.5, le=2.0, alias="runFactor")

    @field_validator("site_type", mode="before")
    @classmethod
    def _parse_site_type(cls, v):
        return coerce_site_type(v)


class EstimateOverrides(BaseModel):
    """Direct numeric overrides; a set field replaces the derived value."""
    model_config = ConfigDict(populate_by_name=True)

    effective_run_m: Optional[int] = Field(None, ge=0, alias="effectiveRunM")
    ac_count: Optional[int] = Field(None, ge=0, alias="acCount")
    dc_count: Optional[int] = Field(None, ge=0, alias="dcCount")


class Estimate(BaseModel):
    """Itemised estimate. Fully derived from a request + coefficient table."""
    model_config = ConfigDict(populate_by_name=True, allow_inf_nan=False)

    effective_run_m: int = Field(0, alias="effectiveRunM")
    per_meter_rate: float = Field(0.0, alias="perMeterRate")
    cabling_cost: float = Field(0.0, alias="cablingCost")
    charger_cost: float = Field(0.0, alias="chargerCost")
    cost: float = Field(0.0, description="Subtotal before labour markup")
    final_price: float = Field(0.0, alias="finalPrice", description="Cost with labour markup")

    @classmethod
    def zero(cls) -> "Estimate":
        return cls()

    @property
    def markup_amount(self) -> float:
        return self.final_price - self.cost
