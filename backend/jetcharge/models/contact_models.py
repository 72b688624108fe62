"""Contact capture and lead-submission payload models."""
from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from jetcharge.models.estimate_models import Estimate, EstimateRequest


class ContactDetails(BaseModel):
    """Contact form fields; also the shape of the saved prefill record."""
    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    first_name: str = Field("", alias="firstName")
    last_name: str = Field("", alias="lastName")
    phone: str = ""
    email: str = ""

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


class LeadMeta(BaseModel):
    currency: str = "AUD"
    timestamp: str                  # ISO-8601, UTC
    version: str = "v1"


class LeadSubmission(BaseModel):
    """Payload handed to the external intake collaborator."""
    model_config = ConfigDict(populate_by_name=True)

    user: ContactDetails
    calculator: EstimateRequest
    estimate: Estimate
    meta: LeadMeta
