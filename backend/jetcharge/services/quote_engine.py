"""
quote_engine.py — Quote assembly for the printable estimate document.

Covers:
  - Quote numbering (EV{YY}{MM}{DD}-{6 digits}) and the validity window
  - Comparison metrics: one-off cost, annualised markup, incumbent price,
    rough CO2 savings
  - Line items (AC units, DC units, cable install, installation & commissioning)
  - Flat query-string encoding of the shareable quote state
  - Full document assembly, or None when the caller must go back to the
    calculator to collect inputs

Monetary figures are left unrounded except where a display value is
explicitly rounded (line-item unit prices, incumbent price, CO2 figure).
"""

import logging
import math
from datetime import date, datetime, timedelta
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple, Union
from urllib.parse import parse_qs, urlencode

from jetcharge import config
from jetcharge.models.assumption_models import Assumptions, DEFAULT_ASSUMPTIONS, SiteType
from jetcharge.models.estimate_models import Estimate
from jetcharge.models.quote_models import (
    LineItem,
    QuoteCoefficients,
    QuoteData,
    QuoteDocument,
    QuoteMetrics,
)
from jetcharge.services.estimate_engine import round_half_up

logger = logging.getLogger("jetcharge-quote")

DEFAULT_QUOTE_COEFFICIENTS = QuoteCoefficients()

DISPLAY_DATE_FORMAT = "%d %b %Y"          # 19 Oct 2026


# ---------------------------------------------------------------------------
# Quote metadata
# ---------------------------------------------------------------------------

def generate_quote_number(now: Optional[datetime] = None) -> str:
    """
    Display identifier built from the local date plus the last six digits of
    the epoch-millisecond timestamp. Not a primary key: two calls in the
    same millisecond collide.
    """
    now = now or datetime.now()
    millis = str(int(now.timestamp() * 1000))[-6:].rjust(6, "0")
    return f"EV{now:%y}{now:%m}{now:%d}-{millis}"


def quote_dates(now: Optional[datetime] = None, validity_days: int = config.QUOTE_VALIDITY_DAYS) -> Tuple[date, date]:
    """(generated, valid_until) for a quote issued at ``now``."""
    now = now or datetime.now()
    generated = now.date()
    return generated, generated + timedelta(days=validity_days)


def format_display_date(value: date) -> str:
    return value.strftime(DISPLAY_DATE_FORMAT)


# ---------------------------------------------------------------------------
# Metrics & line items
# ---------------------------------------------------------------------------

def calculate_quote_metrics(
    estimate: Estimate,
    site_type: SiteType,
    coefficients: Optional[QuoteCoefficients] = None,
) -> QuoteMetrics:
    """
    oneOffCost            = pre-markup cost
    operatingCostPA       = markup amount, shown as an annual operating figure
    incumbentAnnualPrice  = round(finalPrice × incumbent multiplier for the site)
    estimatedCO2SavingsPA = round(chargerCost / 1000 × CO2 factor)
    """
    coefficients = coefficients or DEFAULT_QUOTE_COEFFICIENTS
    multiplier = coefficients.incumbent_multipliers[site_type]
    return QuoteMetrics(
        oneOffCost=estimate.cost,
        operatingCostPA=estimate.markup_amount,
        incumbentAnnualPrice=round_half_up(estimate.final_price * multiplier),
        estimatedCO2SavingsPA=round_half_up(
            (estimate.charger_cost / 1000) * coefficients.co2_kg_per_thousand
        ),
    )


def generate_line_items(
    estimate: Estimate,
    site_type: SiteType,
    ac_count: int,
    dc_count: int,
    is_underground: bool,
    assumptions: Optional[Assumptions] = None,
    ac_unit_price: Optional[float] = None,
    dc_unit_price: Optional[float] = None,
) -> List[LineItem]:
    """
    Ordered rows: AC units, DC units (only when present), cabling, markup lot.

    Charger unit prices default to ``assumptions``; pass the prices the
    estimate was built with so the rows keep summing to its final price
    after the table changes.
    """
    prices = (assumptions or DEFAULT_ASSUMPTIONS).charger_unit_price
    ac_price = prices.ac if ac_unit_price is None else ac_unit_price
    dc_price = prices.dc if dc_unit_price is None else dc_unit_price
    items: List[LineItem] = []

    if ac_count > 0:
        items.append(LineItem(
            label="AC Charging Units",
            qty=ac_count,
            unit="unit",
            unitPrice=ac_price,
            subtotal=ac_count * ac_price,
        ))

    if dc_count > 0:
        items.append(LineItem(
            label="DC Fast Charging Units",
            qty=dc_count,
            unit="unit",
            unitPrice=dc_price,
            subtotal=dc_count * dc_price,
        ))

    items.append(LineItem(
        label=f"Cable Installation ({install_method_label(is_underground)})",
        qty=estimate.effective_run_m,
        unit="m",
        unitPrice=round_half_up(estimate.per_meter_rate),
        subtotal=estimate.cabling_cost,
    ))

    markup = estimate.markup_amount
    items.append(LineItem(
        label="Installation & Commissioning",
        qty=1,
        unit="lot",
        unitPrice=round_half_up(markup),
        subtotal=markup,
    ))

    return items


def install_method_label(is_underground: bool) -> str:
    return "Underground" if is_underground else "Surface"


# ---------------------------------------------------------------------------
# Query-string encoding
# ---------------------------------------------------------------------------

_ESTIMATE_FIELDS = ("finalPrice", "cost", "cablingCost", "chargerCost")


def _format_number(value: Union[int, float]) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    if math.isfinite(value) and value.is_integer() and abs(value) < 1e15:
        return str(int(value))
    return repr(float(value))


def _parse_int(text: Optional[str]) -> Optional[int]:
    if text is None:
        return None
    try:
        return int(text.strip())
    except ValueError:
        return None


def _parse_float(text: Optional[str]) -> Optional[float]:
    if text is None:
        return None
    try:
        value = float(text.strip())
    except ValueError:
        return None
    return value if math.isfinite(value) else None


def _parse_price(text: Optional[str]) -> Optional[float]:
    value = _parse_float(text)
    return value if value is not None and value >= 0 else None


def _parse_bool(text: Optional[str]) -> Optional[bool]:
    if text == "true":
        return True
    if text == "false":
        return False
    return None


def serialize_quote_data(data: Union[QuoteData, Mapping[str, Any]]) -> str:
    """
    Encode the recognised quote fields as a URL query string.
    Absent (None) fields are omitted; unknown fields never appear.
    """
    if not isinstance(data, QuoteData):
        data = QuoteData.model_validate(data)

    params: List[Tuple[str, str]] = []
    if data.site_type is not None:
        params.append(("siteType", data.site_type.value))
    for key, value in (
        ("acCount", data.ac_count),
        ("dcCount", data.dc_count),
        ("isUnderground", data.is_underground),
        ("effectiveRunM", data.effective_run_m),
        ("acUnitPrice", data.ac_unit_price),
        ("dcUnitPrice", data.dc_unit_price),
    ):
        if value is not None:
            params.append((key, _format_number(value)))
    for key, value in (
        ("contactName", data.contact_name),
        ("contactEmail", data.contact_email),
        ("address", data.address),
    ):
        if value is not None:
            params.append((key, value))

    if data.estimate is not None:
        est = data.estimate
        params.extend([
            ("finalPrice", _format_number(est.final_price)),
            ("cost", _format_number(est.cost)),
            ("cablingCost", _format_number(est.cabling_cost)),
            ("chargerCost", _format_number(est.charger_cost)),
        ])

    return urlencode(params)


def deserialize_quote_data(encoded: Union[str, Mapping[str, Any]]) -> QuoteData:
    """
    Decode a query string (leading '?' allowed) or an already-parsed mapping.

    Numeric fields that are missing or unparsable come back as None. The
    estimate is rebuilt only when all four estimate fields parse; its
    per-meter rate is re-derived from cabling cost and run length.
    """
    params = _first_values(encoded)

    site_type = None
    raw_site = params.get("siteType")
    if raw_site:
        try:
            site_type = SiteType.parse(raw_site)
        except ValueError:
            logger.warning(f"Dropping unknown siteType in quote data: {raw_site!r}")

    effective_run_m = _parse_int(params.get("effectiveRunM"))

    estimate = None
    estimate_values = {key: _parse_float(params.get(key)) for key in _ESTIMATE_FIELDS}
    if all(v is not None for v in estimate_values.values()):
        run_m = effective_run_m or 0
        cabling = estimate_values["cablingCost"]
        estimate = Estimate(
            effectiveRunM=run_m,
            perMeterRate=cabling / run_m if run_m > 0 else 0.0,
            cablingCost=cabling,
            chargerCost=estimate_values["chargerCost"],
            cost=estimate_values["cost"],
            finalPrice=estimate_values["finalPrice"],
        )

    return QuoteData(
        siteType=site_type,
        acCount=_parse_int(params.get("acCount")),
        dcCount=_parse_int(params.get("dcCount")),
        isUnderground=_parse_bool(params.get("isUnderground")),
        effectiveRunM=effective_run_m,
        contactName=params.get("contactName"),
        contactEmail=params.get("contactEmail"),
        address=params.get("address"),
        acUnitPrice=_parse_price(params.get("acUnitPrice")),
        dcUnitPrice=_parse_price(params.get("dcUnitPrice")),
        estimate=estimate,
    )


def _first_values(encoded: Union[str, Mapping[str, Any]]) -> Dict[str, str]:
    if isinstance(encoded, str):
        parsed = parse_qs(encoded.lstrip("?"), keep_blank_values=True)
        return {key: values[0] for key, values in parsed.items() if values}
    result: Dict[str, str] = {}
    for key, value in encoded.items():
        if isinstance(value, (list, tuple)):
            if not value:
                continue
            value = value[0]
        if value is not None:
            result[key] = str(value)
    return result


# ---------------------------------------------------------------------------
# Document assembly
# ---------------------------------------------------------------------------

def assemble_quote(
    data: Union[QuoteData, str, Mapping[str, Any]],
    coefficients: Optional[QuoteCoefficients] = None,
    assumptions: Optional[Assumptions] = None,
    now: Optional[datetime] = None,
    number_factory: Callable[[Optional[datetime]], str] = generate_quote_number,
) -> Optional[QuoteDocument]:
    """
    Build the render-ready quote, or return None when the site type or the
    estimate is missing — the caller should send the user back to the
    calculator rather than synthesise a quote from partial data.
    """
    if not isinstance(data, QuoteData):
        data = deserialize_quote_data(data)

    if data.site_type is None or data.estimate is None:
        logger.info("Quote data incomplete; redirecting to input collection")
        return None

    coefficients = coefficients or DEFAULT_QUOTE_COEFFICIENTS
    now = now or datetime.now()
    generated, valid_until = quote_dates(now, coefficients.validity_days)

    ac_count = data.ac_count or 0
    dc_count = data.dc_count or 0
    is_underground = bool(data.is_underground)
    estimate = data.estimate

    metrics = calculate_quote_metrics(estimate, data.site_type, coefficients)
    line_items = generate_line_items(
        estimate, data.site_type, ac_count, dc_count, is_underground, assumptions,
        ac_unit_price=data.ac_unit_price, dc_unit_price=data.dc_unit_price,
    )

    quote_number = number_factory(now)
    logger.info("Quote assembled", extra={"quote_number": quote_number})

    return QuoteDocument(
        quoteNumber=quote_number,
        dateGenerated=generated,
        validUntil=valid_until,
        dateGeneratedDisplay=format_display_date(generated),
        validUntilDisplay=format_display_date(valid_until),
        siteType=data.site_type,
        acCount=ac_count,
        dcCount=dc_count,
        isUnderground=is_underground,
        installMethod=install_method_label(is_underground),
        effectiveRunM=data.effective_run_m or estimate.effective_run_m,
        contactName=data.contact_name or "",
        contactEmail=data.contact_email or "",
        address=data.address or "",
        estimate=estimate,
        metrics=metrics,
        lineItems=line_items,
        savings=metrics.incumbent_annual_price - estimate.final_price,
        monthlyEquivalent=estimate.final_price / 12,
        currency=config.CURRENCY,
    )
