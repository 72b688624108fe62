"""Contact routes — prefill and lead submission."""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from jetcharge.api.deps import get_assumptions_store, get_contact_service
from jetcharge.models.contact_models import ContactDetails
from jetcharge.models.estimate_models import Estimate, EstimateRequest
from jetcharge.services.assumptions_store import AssumptionsStore
from jetcharge.services.contact_service import (
    ConfigurationRequiredError,
    ContactService,
    ContactValidationError,
    LeadSubmissionError,
)
from jetcharge.services.estimate_engine import compute_estimate

router = APIRouter(prefix="/api/contact", tags=["Contact"])
logger = logging.getLogger("jetcharge-api")


class LeadSubmitRequest(BaseModel):
    user: ContactDetails
    calculator: EstimateRequest
    estimate: Optional[Estimate] = None   # recomputed from current assumptions when absent


@router.get("/prefill")
async def get_prefill(service: ContactService = Depends(get_contact_service)):
    saved = service.load_saved_contact()
    return {"contact": saved.model_dump(by_alias=True) if saved else None}


@router.post("/submit")
async def submit_lead(
    payload: LeadSubmitRequest,
    service: ContactService = Depends(get_contact_service),
    store: AssumptionsStore = Depends(get_assumptions_store),
):
    estimate = payload.estimate or compute_estimate(payload.calculator, store.get())
    try:
        lead = await service.submit_lead(payload.user, payload.calculator, estimate)
    except ContactValidationError as e:
        raise HTTPException(status_code=422, detail={"errors": e.errors})
    except ConfigurationRequiredError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except LeadSubmissionError as e:
        raise HTTPException(status_code=502, detail=str(e))

    return {
        "status": "sent",
        "message": f"Price breakdown has been sent to {payload.user.email}",
        "lead": lead.model_dump(mode="json", by_alias=True),
    }
