"""Estimate routes — price a calculator configuration."""
import logging
from typing import Optional

from fastapi import APIRouter, Depends

from jetcharge.api.deps import get_assumptions_store
from jetcharge.models.assumption_models import SiteType
from jetcharge.models.estimate_models import EstimateOverrides, EstimateRequest
from jetcharge.services.assumptions_store import AssumptionsStore
from jetcharge.services.estimate_engine import (
    DEFAULT_RUN_FACTOR_STEP,
    RUN_FACTOR_MAX,
    RUN_FACTOR_MIN,
    RUN_FACTOR_STEPS,
    base_distance,
    compute_estimate,
    format_money,
    run_factor_for_step,
)

router = APIRouter(prefix="/api/estimate", tags=["Estimate"])
logger = logging.getLogger("jetcharge-api")


class EstimatePayload(EstimateRequest):
    overrides: Optional[EstimateOverrides] = None


@router.post("")
async def create_estimate(
    payload: EstimatePayload,
    store: AssumptionsStore = Depends(get_assumptions_store),
):
    """Price the configuration against the current coefficient table."""
    assumptions = store.get()
    request = EstimateRequest.model_validate(payload.model_dump(exclude={"overrides"}))
    estimate = compute_estimate(request, assumptions, payload.overrides)
    return {
        "request": request.model_dump(mode="json", by_alias=True),
        "estimate": estimate.model_dump(mode="json", by_alias=True),
        "baseDistanceM": base_distance(assumptions, request.site_type),
        "formattedPrice": format_money(estimate.final_price),
    }


@router.get("/run-factors")
async def get_run_factors():
    return {
        "steps": list(RUN_FACTOR_STEPS),
        "defaultStep": DEFAULT_RUN_FACTOR_STEP,
        "defaultFactor": run_factor_for_step(DEFAULT_RUN_FACTOR_STEP),
        "min": RUN_FACTOR_MIN,
        "max": RUN_FACTOR_MAX,
    }


@router.get("/site-types")
async def get_site_types(store: AssumptionsStore = Depends(get_assumptions_store)):
    """Site types with their current default cable run."""
    assumptions = store.get()
    return [
        {"siteType": site.value, "defaultRunM": base_distance(assumptions, site)}
        for site in SiteType
    ]
