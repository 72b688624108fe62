"""
Pydantic models for the pricing coefficient table ("assumptions").

Python attributes are snake_case; the persisted / wire form uses the
camelCase aliases (``siteTypeMeters``, ``cableCostPerMeter`` ...), which is
also what the calculator front end sends and receives.
"""
from __future__ import annotations

from enum import Enum
from typing import Annotated, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class SiteType(str, Enum):
    """Installation site categories offered by the calculator."""
    CAR_DEALERSHIP = "Car Dealership"
    PUBLIC_STATION = "Public Station"
    OFFICE_BUILDING = "Office Building"
    APARTMENT = "Apartment"
    HOUSE = "House"

    @property
    def legacy_key(self) -> str:
        """Key used for this site type by the old ``siteDistances`` schema."""
        return _LEGACY_SITE_KEYS[self]

    @classmethod
    def parse(cls, value: str) -> "SiteType":
        """Resolve a display label or legacy key; raise ValueError otherwise."""
        text = (value or "").strip()
        for member in cls:
            if text == member.value or text == member.legacy_key:
                return member
        raise ValueError(f"Unknown site type '{value}'")


_LEGACY_SITE_KEYS: Dict[SiteType, str] = {
    SiteType.CAR_DEALERSHIP: "carDealership",
    SiteType.PUBLIC_STATION: "publicStation",
    SiteType.OFFICE_BUILDING: "officeBuilding",
    SiteType.APARTMENT: "apartment",
    SiteType.HOUSE: "house",
}


def coerce_site_type(value):
    """Validator helper: blank → None, labels / legacy keys → SiteType."""
    if value is None or isinstance(value, SiteType):
        return value
    if isinstance(value, str):
        if not value.strip():
            return None
        return SiteType.parse(value)
    return value


class ChargerClassRates(BaseModel):
    """A per-charger-class figure ($/m of copper, or $ per unit)."""
    model_config = ConfigDict(extra="forbid", allow_inf_nan=False)

    ac: float = Field(..., ge=0)
    dc: float = Field(..., ge=0)


class CarrierRates(BaseModel):
    """Physical carrier cost per meter, selected by install method."""
    model_config = ConfigDict(extra="forbid", allow_inf_nan=False)

    tray: float = Field(..., ge=0, description="Surface cable tray, $/m")
    trench: float = Field(..., ge=0, description="Underground trench, $/m")


def _check_site_meters(value: Dict[SiteType, float]) -> Dict[SiteType, float]:
    missing = [s.value for s in SiteType if s not in value]
    if missing:
        raise ValueError(f"siteTypeMeters missing site types: {', '.join(missing)}")
    negative = [s.value for s, m in value.items() if m < 0]
    if negative:
        raise ValueError(f"siteTypeMeters must be non-negative: {', '.join(negative)}")
    return {s: float(value[s]) for s in SiteType}


class Assumptions(BaseModel):
    """The complete coefficient table. Every field is always populated."""
    model_config = ConfigDict(populate_by_name=True, extra="forbid", allow_inf_nan=False)

    site_type_meters: Dict[SiteType, float] = Field(..., alias="siteTypeMeters")
    cable_cost_per_meter: ChargerClassRates = Field(..., alias="cableCostPerMeter")
    carrier_cost_per_meter: CarrierRates = Field(..., alias="carrierCostPerMeter")
    charger_unit_price: ChargerClassRates = Field(..., alias="chargerUnitPrice")
    labour_markup_percent: float = Field(..., ge=0, alias="labourMarkupPercent")

    @field_validator("site_type_meters")
    @classmethod
    def _complete_site_meters(cls, v):
        return _check_site_meters(v)

    def to_storage(self) -> str:
        return self.model_dump_json(by_alias=True)


class AssumptionsPatch(BaseModel):
    """
    Partial update of the coefficient table. Each supplied top-level field
    replaces the current value wholesale; sub-objects are not deep-merged.
    """
    model_config = ConfigDict(populate_by_name=True, extra="forbid", allow_inf_nan=False)

    site_type_meters: Optional[Dict[SiteType, float]] = Field(None, alias="siteTypeMeters")
    cable_cost_per_meter: Optional[ChargerClassRates] = Field(None, alias="cableCostPerMeter")
    carrier_cost_per_meter: Optional[CarrierRates] = Field(None, alias="carrierCostPerMeter")
    charger_unit_price: Optional[ChargerClassRates] = Field(None, alias="chargerUnitPrice")
    labour_markup_percent: Optional[float] = Field(None, ge=0, alias="labourMarkupPercent")

    @field_validator("site_type_meters")
    @classmethod
    def _complete_site_meters(cls, v):
        return _check_site_meters(v) if v is not None else v

    def supplied(self) -> Dict[str, object]:
        """Fields the caller actually provided (None means 'leave alone')."""
        return {
            name: getattr(self, name)
            for name in type(self).model_fields
            if getattr(self, name) is not None
        }


DEFAULT_ASSUMPTIONS = Assumptions(
    siteTypeMeters={
        SiteType.CAR_DEALERSHIP: 50,
        SiteType.PUBLIC_STATION: 40,
        SiteType.OFFICE_BUILDING: 40,
        SiteType.APARTMENT: 20,
        SiteType.HOUSE: 20,
    },
    cableCostPerMeter=ChargerClassRates(ac=50, dc=150),
    carrierCostPerMeter=CarrierRates(tray=50, trench=1000),
    chargerUnitPrice=ChargerClassRates(ac=2000, dc=25000),
    labourMarkupPercent=42.15,
)


# A single finite, non-negative figure from the old ``jetcharge-assumptions``
# record (``siteDistances``, ``cableCosts``, ``carrierCosts``,
# ``chargerPrices``, ``labourMarkup``).
LegacyAmount = Annotated[float, Field(ge=0, allow_inf_nan=False)]
