"""
Quote document models.

QuoteData is the partial, shareable state carried between pages in a query
string; QuoteDocument is the fully assembled, render-ready quote.
"""
from __future__ import annotations

from datetime import date
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from jetcharge import config
from jetcharge.models.assumption_models import SiteType, coerce_site_type
from jetcharge.models.estimate_models import Estimate


class QuoteCoefficients(BaseModel):
    """
    Business assumptions behind the comparison figures on a quote.
    These are placeholder point estimates, kept configurable on purpose.
    """
    model_config = ConfigDict(populate_by_name=True, allow_inf_nan=False)

    incumbent_multipliers: Dict[SiteType, float] = Field(
        default_factory=lambda: {
            SiteType.CAR_DEALERSHIP: 1.35,
            SiteType.PUBLIC_STATION: 1.42,
            SiteType.OFFICE_BUILDING: 1.28,
            SiteType.APARTMENT: 1.25,
            SiteType.HOUSE: 1.20,
        },
        alias="incumbentMultipliers",
    )
    # kg CO2 saved per year for every 1,000 currency units of charger hardware
    co2_kg_per_thousand: float = Field(2.5, ge=0, alias="co2KgPerThousand")
    validity_days: int = Field(config.QUOTE_VALIDITY_DAYS, ge=1, alias="validityDays")

    @field_validator("incumbent_multipliers")
    @classmethod
    def _complete(cls, v):
        missing = [s.value for s in SiteType if s not in v]
        if missing:
            raise ValueError(f"incumbentMultipliers missing site types: {', '.join(missing)}")
        if any(m <= 1 for m in v.values()):
            raise ValueError("incumbent multipliers must be greater than 1")
        return v


class LineItem(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    label: str
    qty: float
    unit: str
    unit_price: float = Field(..., alias="unitPrice")
    subtotal: float


class QuoteMetrics(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    one_off_cost: float = Field(..., alias="oneOffCost")
    operating_cost_pa: float = Field(..., alias="operatingCostPA")
    incumbent_annual_price: int = Field(..., alias="incumbentAnnualPrice")
    estimated_co2_savings_pa: int = Field(..., alias="estimatedCO2SavingsPA")


class QuoteData(BaseModel):
    """Shareable subset of a quote; every field may be absent."""
    model_config = ConfigDict(populate_by_name=True, allow_inf_nan=False)

    site_type: Optional[SiteType] = Field(None, alias="siteType")
    ac_count: Optional[int] = Field(None, alias="acCount")
    dc_count: Optional[int] = Field(None, alias="dcCount")
    is_underground: Optional[bool] = Field(None, alias="isUnderground")
    effective_run_m: Optional[int] = Field(None, alias="effectiveRunM")
    contact_name: Optional[str] = Field(None, alias="contactName")
    contact_email: Optional[str] = Field(None, alias="contactEmail")
    address: Optional[str] = None
    # Charger prices the estimate was priced with; line items fall back to
    # the current table when absent
    ac_unit_price: Optional[float] = Field(None, ge=0, alias="acUnitPrice")
    dc_unit_price: Optional[float] = Field(None, ge=0, alias="dcUnitPrice")
    estimate: Optional[Estimate] = None

    @field_validator("site_type", mode="before")
    @classmethod
    def _parse_site_type(cls, v):
        return coerce_site_type(v)


class QuoteDocument(BaseModel):
    """Everything the printable quote renders."""
    model_config = ConfigDict(populate_by_name=True)

    quote_number: str = Field(..., alias="quoteNumber")
    date_generated: date = Field(..., alias="dateGenerated")
    valid_until: date = Field(..., alias="validUntil")
    date_generated_display: str = Field(..., alias="dateGeneratedDisplay")
    valid_until_display: str = Field(..., alias="validUntilDisplay")

    site_type: SiteType = Field(..., alias="siteType")
    ac_count: int = Field(0, alias="acCount")
    dc_count: int = Field(0, alias="dcCount")
    is_underground: bool = Field(False, alias="isUnderground")
    install_method: str = Field(..., alias="installMethod")
    effective_run_m: int = Field(0, alias="effectiveRunM")

    contact_name: str = Field("", alias="contactName")
    contact_email: str = Field("", alias="contactEmail")
    address: str = ""

    estimate: Estimate
    metrics: QuoteMetrics
    line_items: List[LineItem] = Field(default_factory=list, alias="lineItems")
    savings: float
    monthly_equivalent: float = Field(..., alias="monthlyEquivalent")
    currency: str = "AUD"
