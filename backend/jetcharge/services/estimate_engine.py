"""
EstimationEngine — installed price of an EV-charging configuration.

Covers:
  - Cable run: site default distance × run factor, rounded to whole meters
  - Per-meter rate: copper per charger (AC / DC) + one shared carrier
    (surface tray or underground trench)
  - Charger hardware
  - Labour markup applied to the pre-markup subtotal
  - Presentation overrides for run length and charger counts

Pure functions only: no I/O, no hidden state. The coefficient table is
passed in by the caller (normally ``AssumptionsStore.get()``).
"""

import math
from typing import Optional, Sequence

from jetcharge.models.assumption_models import Assumptions, SiteType
from jetcharge.models.estimate_models import Estimate, EstimateOverrides, EstimateRequest


# ---------------------------------------------------------------------------
# Calculator run-length scale steps (slider positions)
# ---------------------------------------------------------------------------
RUN_FACTOR_STEPS: Sequence[float] = (0.75, 0.875, 1.0, 1.125, 1.25)
DEFAULT_RUN_FACTOR_STEP: int = 2          # 1.0×, reset whenever the site changes

RUN_FACTOR_MIN: float = 0.5
RUN_FACTOR_MAX: float = 2.0


def run_factor_for_step(index: int) -> float:
    """Clamp ``index`` onto the slider and return its factor."""
    index = min(max(int(index), 0), len(RUN_FACTOR_STEPS) - 1)
    return RUN_FACTOR_STEPS[index]


def round_half_up(value: float) -> int:
    """Nearest integer, .5 rounding up (Python's round() is banker's)."""
    return int(math.floor(value + 0.5))


def base_distance(assumptions: Assumptions, site_type: Optional[SiteType]) -> float:
    """Default cable run for the site; a site missing from the table is 0 m."""
    if site_type is None:
        return 0.0
    return float(assumptions.site_type_meters.get(site_type, 0.0))


def effective_run_meters(assumptions: Assumptions, site_type: Optional[SiteType], run_factor: float) -> int:
    return max(0, round_half_up(base_distance(assumptions, site_type) * run_factor))


# ---------------------------------------------------------------------------
# Core estimate
# ---------------------------------------------------------------------------

def compute_estimate(
    request: EstimateRequest,
    assumptions: Assumptions,
    overrides: Optional[EstimateOverrides] = None,
) -> Estimate:
    """
    Price ``request`` against ``assumptions``.

    Steps:
      1. base = siteTypeMeters[site]
      2. run  = max(0, round(base × runFactor))   (or the run override)
      3. carrier = trench if underground else tray
      4. perMeterRate = dc × dcCable + ac × acCable + carrier
      5. cablingCost = run × perMeterRate
      6. chargerCost = ac × acUnit + dc × dcUnit
      7. cost = cablingCost + chargerCost
      8. finalPrice = cost × (1 + markup% / 100)

    The carrier is added once: chargers sharing a tray / trench pay copper
    per charger but the carrier only once. Only the run length is rounded.
    Returns the all-zero estimate when no site type is selected or there
    are no chargers.
    """
    overrides = overrides or EstimateOverrides()

    ac_count = overrides.ac_count if overrides.ac_count is not None else request.ac_count
    dc_count = overrides.dc_count if overrides.dc_count is not None else request.dc_count

    if request.site_type is None or (ac_count == 0 and dc_count == 0):
        return Estimate.zero()

    if overrides.effective_run_m is not None:
        run_m = overrides.effective_run_m
    else:
        run_m = effective_run_meters(assumptions, request.site_type, request.run_factor)

    carrier = assumptions.carrier_cost_per_meter
    carrier_rate = carrier.trench if request.is_underground else carrier.tray

    cable = assumptions.cable_cost_per_meter
    per_meter_rate = dc_count * cable.dc + ac_count * cable.ac + carrier_rate

    cabling_cost = run_m * per_meter_rate

    unit = assumptions.charger_unit_price
    charger_cost = ac_count * unit.ac + dc_count * unit.dc

    cost = cabling_cost + charger_cost
    final_price = cost * (1 + assumptions.labour_markup_percent / 100)

    return Estimate(
        effectiveRunM=run_m,
        perMeterRate=per_meter_rate,
        cablingCost=cabling_cost,
        chargerCost=charger_cost,
        cost=cost,
        finalPrice=final_price,
    )


def format_money(amount: float, symbol: str = "$") -> str:
    """Whole-dollar display, e.g. 9950.5 → '$9,951'."""
    rounded = round_half_up(abs(amount))
    sign = "-" if amount < 0 and rounded else ""
    return f"{sign}{symbol}{rounded:,}"
