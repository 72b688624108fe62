"""FastAPI dependency injection — per-process services held on app.state."""
from fastapi import HTTPException, Request, status

from jetcharge.models.quote_models import QuoteCoefficients
from jetcharge.services.assumptions_store import AssumptionsStore
from jetcharge.services.contact_service import ContactService


def _state_attr(request: Request, name: str):
    value = getattr(request.app.state, name, None)
    if value is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Service not initialised",
        )
    return value


def get_assumptions_store(request: Request) -> AssumptionsStore:
    return _state_attr(request, "assumptions_store")


def get_contact_service(request: Request) -> ContactService:
    return _state_attr(request, "contact_service")


def get_quote_coefficients(request: Request) -> QuoteCoefficients:
    return _state_attr(request, "quote_coefficients")
