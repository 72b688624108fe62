"""
contact_service.py — Contact prefill and lead submission.

The intake round-trip is simulated with a fixed delay unless an intake
callable is supplied. A submission always resolves (no cancellation, no
retry); failures are surfaced to the caller and leave the saved contact
record untouched so the user can resubmit.
"""

import asyncio
import json
import logging
import re
from datetime import datetime, timezone
from typing import Awaitable, Callable, Dict, Optional

from pydantic import ValidationError

from jetcharge import config
from jetcharge.models.contact_models import ContactDetails, LeadMeta, LeadSubmission
from jetcharge.models.estimate_models import Estimate, EstimateRequest
from jetcharge.services.storage import KeyValueStorage, StorageError

logger = logging.getLogger("jetcharge-contact")

IntakeCallable = Callable[[LeadSubmission], Awaitable[None]]

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

_REQUIRED_MSG = "This field is required"
_EMAIL_MSG = "Please enter a valid email address"
_PHONE_MSG = f"Please include {config.PHONE_REQUIRED_PREFIX} followed by your mobile number"


class ContactValidationError(Exception):
    """One or more contact fields failed validation."""

    def __init__(self, errors: Dict[str, str]):
        super().__init__("; ".join(f"{k}: {v}" for k, v in errors.items()))
        self.errors = errors


class ConfigurationRequiredError(Exception):
    """The calculator has no site type selected yet."""


class LeadSubmissionError(Exception):
    """The intake collaborator could not accept the lead; safe to retry."""


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------

def is_valid_email(email: str) -> bool:
    return bool(_EMAIL_RE.match(email.strip()))


def is_valid_phone(phone: str, min_digits: int = config.PHONE_MIN_DIGITS) -> bool:
    digits = re.sub(r"\D", "", phone)
    return config.PHONE_REQUIRED_PREFIX in phone and len(digits) >= min_digits


def validate_contact(details: ContactDetails, min_phone_digits: int = config.PHONE_MIN_DIGITS) -> Dict[str, str]:
    """
    Return {field alias: message} for every failing field; empty when valid.
    All four fields are required.
    """
    errors: Dict[str, str] = {}
    for name, field in ContactDetails.model_fields.items():
        value = getattr(details, name).strip()
        key = field.alias or name
        if not value:
            errors[key] = _REQUIRED_MSG
        elif name == "email" and not is_valid_email(value):
            errors[key] = _EMAIL_MSG
        elif name == "phone" and not is_valid_phone(value, min_phone_digits):
            errors[key] = _PHONE_MSG
    return errors


# ---------------------------------------------------------------------------
# ContactService
# ---------------------------------------------------------------------------

class ContactService:
    def __init__(
        self,
        storage: KeyValueStorage,
        delay_s: float = config.LEAD_SUBMIT_DELAY_S,
        intake: Optional[IntakeCallable] = None,
        storage_key: str = config.CONTACT_STORAGE_KEY,
    ):
        self._storage = storage
        self._delay_s = delay_s
        self._intake = intake
        self._key = storage_key

    def load_saved_contact(self) -> Optional[ContactDetails]:
        """Prefill record from an earlier submission, or None."""
        try:
            text = self._storage.get(self._key)
        except StorageError as e:
            logger.warning(f"Failed to read saved contact details: {e}")
            return None
        if text is None:
            return None
        try:
            return ContactDetails.model_validate(json.loads(text))
        except (ValueError, ValidationError) as e:
            logger.warning(f"Failed to parse saved contact details: {e}")
            return None

    def save_contact(self, details: ContactDetails) -> bool:
        try:
            self._storage.set(self._key, details.model_dump_json(by_alias=True))
            return True
        except StorageError as e:
            logger.warning(f"Failed to save contact details: {e}")
            return False

    @staticmethod
    def build_lead_payload(
        contact: ContactDetails,
        calculator: EstimateRequest,
        estimate: Estimate,
        now: Optional[datetime] = None,
    ) -> LeadSubmission:
        now = now or datetime.now(timezone.utc)
        return LeadSubmission(
            user=contact,
            calculator=calculator,
            estimate=estimate,
            meta=LeadMeta(
                currency=config.CURRENCY,
                timestamp=now.isoformat(),
                version=config.LEAD_PAYLOAD_VERSION,
            ),
        )

    async def submit_lead(
        self,
        contact: ContactDetails,
        calculator: EstimateRequest,
        estimate: Estimate,
    ) -> LeadSubmission:
        """
        Validate, hand the lead to intake, then remember the contact for
        prefill. Raises ContactValidationError, ConfigurationRequiredError
        or LeadSubmissionError; nothing is cleared on failure.
        """
        errors = validate_contact(contact)
        if errors:
            raise ContactValidationError(errors)

        if calculator.site_type is None:
            raise ConfigurationRequiredError(
                "Please select a site type before requesting a price breakdown."
            )

        payload = self.build_lead_payload(contact, calculator, estimate)

        try:
            await asyncio.sleep(self._delay_s)
            if self._intake is not None:
                await self._intake(payload)
        except LeadSubmissionError:
            logger.error("Lead submission rejected by intake", exc_info=True)
            raise
        except Exception as e:
            logger.error(f"Lead submission error: {e}", exc_info=True)
            raise LeadSubmissionError(
                "Submission failed. Please try again or contact support if the problem persists."
            ) from e

        self.save_contact(contact)
        logger.info(f"Lead accepted for {contact.full_name}")
        logger.info(f"Lead submission payload: {payload.model_dump_json(by_alias=True)}")
        return payload
