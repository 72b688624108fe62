"""
Quote routes

POST /api/quote/prepare — price a calculator configuration and return the
                          shareable query string for the quote page
POST /api/quote/encode  — encode already-known quote fields
GET  /api/quote?<query> — assemble the printable quote; 303 to the
                          calculator when site type or estimate is missing
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import RedirectResponse
from pydantic import Field

from jetcharge import config
from jetcharge.api.deps import get_assumptions_store, get_quote_coefficients
from jetcharge.api.estimate_routes import EstimatePayload
from jetcharge.models.estimate_models import EstimateRequest
from jetcharge.models.quote_models import QuoteCoefficients, QuoteData
from jetcharge.services.assumptions_store import AssumptionsStore
from jetcharge.services.estimate_engine import compute_estimate
from jetcharge.services.quote_engine import assemble_quote, serialize_quote_data

router = APIRouter(prefix="/api/quote", tags=["Quote"])
logger = logging.getLogger("jetcharge-api")


class QuotePreparePayload(EstimatePayload):
    contact_name: Optional[str] = Field(None, alias="contactName")
    contact_email: Optional[str] = Field(None, alias="contactEmail")
    address: Optional[str] = None


@router.post("/prepare")
async def prepare_quote(
    payload: QuotePreparePayload,
    store: AssumptionsStore = Depends(get_assumptions_store),
):
    request = EstimateRequest.model_validate(
        payload.model_dump(exclude={"overrides", "contact_name", "contact_email", "address"})
    )
    assumptions = store.get()
    estimate = compute_estimate(request, assumptions, payload.overrides)
    overrides = payload.overrides

    data = QuoteData(
        siteType=request.site_type,
        acCount=overrides.ac_count if overrides and overrides.ac_count is not None else request.ac_count,
        dcCount=overrides.dc_count if overrides and overrides.dc_count is not None else request.dc_count,
        isUnderground=request.is_underground,
        effectiveRunM=estimate.effective_run_m,
        contactName=payload.contact_name,
        contactEmail=payload.contact_email,
        address=payload.address,
        acUnitPrice=assumptions.charger_unit_price.ac,
        dcUnitPrice=assumptions.charger_unit_price.dc,
        estimate=estimate,
    )
    return {
        "query": serialize_quote_data(data),
        "estimate": estimate.model_dump(mode="json", by_alias=True),
    }


@router.post("/encode")
async def encode_quote(payload: QuoteData):
    return {"query": serialize_quote_data(payload)}


@router.get("")
async def get_quote(
    request: Request,
    store: AssumptionsStore = Depends(get_assumptions_store),
    coefficients: QuoteCoefficients = Depends(get_quote_coefficients),
):
    """
    Assemble the quote document from the query string. Charger rows use the
    unit prices carried in the query, so a table edited after /prepare does
    not change an issued quote; the current table only fills in when the
    query has none.
    """
    document = assemble_quote(
        request.url.query,
        coefficients=coefficients,
        assumptions=store.get(),
    )
    if document is None:
        return RedirectResponse(url=config.CALCULATOR_PATH, status_code=303)
    return document.model_dump(mode="json", by_alias=True)
