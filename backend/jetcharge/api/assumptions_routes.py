"""Assumptions routes — read, patch and reset the pricing coefficient table."""
import logging

from fastapi import APIRouter, Depends

from jetcharge.api.deps import get_assumptions_store
from jetcharge.models.assumption_models import AssumptionsPatch, DEFAULT_ASSUMPTIONS
from jetcharge.services.assumptions_store import AssumptionsStore

router = APIRouter(prefix="/api/assumptions", tags=["Assumptions"])
logger = logging.getLogger("jetcharge-api")


def _table_response(store: AssumptionsStore, status: str = "ok") -> dict:
    return {
        "status": status,
        "assumptions": store.get().model_dump(mode="json", by_alias=True),
        # False when the last write only reached in-memory state
        "persisted": store.persisted,
    }


@router.get("")
async def get_assumptions(store: AssumptionsStore = Depends(get_assumptions_store)):
    """Return the current coefficient table."""
    return _table_response(store)


@router.get("/defaults")
async def get_default_assumptions():
    return {"assumptions": DEFAULT_ASSUMPTIONS.model_dump(mode="json", by_alias=True)}


@router.patch("")
async def patch_assumptions(
    payload: AssumptionsPatch,
    store: AssumptionsStore = Depends(get_assumptions_store),
):
    """Replace the supplied top-level fields; everything else is untouched."""
    store.patch(payload)
    return _table_response(store, status="updated")


@router.post("/reset")
async def reset_assumptions(store: AssumptionsStore = Depends(get_assumptions_store)):
    store.reset_to_defaults()
    return _table_response(store, status="reset")
