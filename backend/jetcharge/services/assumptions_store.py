"""
assumptions_store.py — Persisted pricing coefficient table.

Lifecycle:
  1. On construction, a record stored under the legacy key (old
     ``siteDistances`` / ``cableCosts`` schema) is migrated once into the
     current schema and the legacy record is deleted.
  2. The current record is read and merged field-by-field over the
     defaults, so fields added to the default table always appear even when
     older persisted data lacks them.
  3. Every mutation (patch / reset) writes the full table back.

Storage failures never propagate: reads degrade to defaults, writes leave
the in-memory table authoritative for the rest of the session.
"""

import json
import logging
from typing import Any, Dict, Mapping, Optional, Tuple, Union

from pydantic import TypeAdapter, ValidationError

from jetcharge import config
from jetcharge.models.assumption_models import (
    Assumptions,
    AssumptionsPatch,
    CarrierRates,
    ChargerClassRates,
    DEFAULT_ASSUMPTIONS,
    LegacyAmount,
    SiteType,
)
from jetcharge.services.storage import KeyValueStorage, StorageError

logger = logging.getLogger("jetcharge-store")

_LEGACY_AMOUNT = TypeAdapter(LegacyAmount)


# ---------------------------------------------------------------------------
# Schema merge functions
# ---------------------------------------------------------------------------

def merge_assumptions(base: Assumptions, patch: AssumptionsPatch) -> Assumptions:
    """Shallow merge: each supplied top-level field replaces the base value."""
    merged = base.model_copy(update=patch.supplied())
    return merged.model_copy(deep=True)


def merge_current_schema(raw: Mapping[str, Any], defaults: Assumptions = DEFAULT_ASSUMPTIONS) -> Assumptions:
    """
    Merge a persisted current-schema dict over ``defaults``.

    Each top-level field is validated on its own: an invalid value falls back
    to the default for that field only. Unknown keys are ignored.
    """
    updates: Dict[str, Any] = {}
    known_aliases = set()
    for name, field in AssumptionsPatch.model_fields.items():
        alias = field.alias or name
        known_aliases.add(alias)
        if alias in raw:
            key = alias
        elif name in raw:
            key = name
        else:
            continue
        try:
            single = AssumptionsPatch.model_validate({alias: raw[key]})
        except ValidationError as e:
            logger.warning(f"Ignoring invalid persisted field '{alias}': {e.errors()[0]['msg']}")
            continue
        value = getattr(single, name)
        if value is not None:
            updates[name] = value

    unknown = [k for k in raw if k not in known_aliases and k not in AssumptionsPatch.model_fields]
    if unknown:
        logger.debug(f"Ignoring unknown persisted fields: {unknown}")

    merged = defaults.model_copy(update=updates)
    return merged.model_copy(deep=True)


def _legacy_amount(raw: Mapping[str, Any], path: Tuple[str, ...], fallback: float) -> float:
    """Read one legacy figure at ``path``; absent or invalid values take ``fallback``."""
    value: Any = raw
    for part in path:
        if not isinstance(value, Mapping) or value.get(part) is None:
            return fallback
        value = value[part]
    try:
        return _LEGACY_AMOUNT.validate_python(value)
    except ValidationError as e:
        logger.warning(f"Ignoring invalid legacy field '{'.'.join(path)}': {e.errors()[0]['msg']}")
        return fallback


def convert_legacy_schema(raw: Mapping[str, Any], defaults: Assumptions = DEFAULT_ASSUMPTIONS) -> Assumptions:
    """
    Translate the old schema field by field. A missing or invalid legacy
    value takes the current default for that field only; unknown keys are
    ignored.
    """
    cable = defaults.cable_cost_per_meter
    carrier = defaults.carrier_cost_per_meter
    unit = defaults.charger_unit_price
    return Assumptions(
        siteTypeMeters={
            site: _legacy_amount(raw, ("siteDistances", site.legacy_key), defaults.site_type_meters[site])
            for site in SiteType
        },
        cableCostPerMeter=ChargerClassRates(
            ac=_legacy_amount(raw, ("cableCosts", "ac"), cable.ac),
            dc=_legacy_amount(raw, ("cableCosts", "dc"), cable.dc),
        ),
        carrierCostPerMeter=CarrierRates(
            tray=_legacy_amount(raw, ("carrierCosts", "tray"), carrier.tray),
            trench=_legacy_amount(raw, ("carrierCosts", "trench"), carrier.trench),
        ),
        chargerUnitPrice=ChargerClassRates(
            ac=_legacy_amount(raw, ("chargerPrices", "ac"), unit.ac),
            dc=_legacy_amount(raw, ("chargerPrices", "dc"), unit.dc),
        ),
        labourMarkupPercent=_legacy_amount(raw, ("labourMarkup",), defaults.labour_markup_percent),
    )


def _parse_json_object(text: str) -> Optional[Dict[str, Any]]:
    try:
        data = json.loads(text)
    except (TypeError, ValueError):
        return None
    return data if isinstance(data, dict) else None


# ---------------------------------------------------------------------------
# AssumptionsStore
# ---------------------------------------------------------------------------

class AssumptionsStore:
    """
    Owner of the coefficient table for one process / session.

    Construct it explicitly and hand it to whatever needs it; tests create
    independent instances over their own storage.
    """

    def __init__(
        self,
        storage: KeyValueStorage,
        storage_key: str = config.ASSUMPTIONS_STORAGE_KEY,
        legacy_key: str = config.LEGACY_ASSUMPTIONS_STORAGE_KEY,
    ):
        self._storage = storage
        self._key = storage_key
        self._legacy_key = legacy_key
        self.last_error: Optional[str] = None
        self._assumptions: Optional[Assumptions] = None
        self.migrate_legacy()
        if self._assumptions is None:
            self._assumptions = self._load()

    # -- public API -----------------------------------------------------------

    def get(self) -> Assumptions:
        """Return a deep copy; mutating it does not touch the store."""
        return self._assumptions.model_copy(deep=True)

    def patch(self, partial: Union[AssumptionsPatch, Mapping[str, Any]]) -> None:
        """
        Merge ``partial`` per top-level key and persist.

        A mapping is validated first (camelCase or snake_case keys); an
        invalid mapping raises pydantic.ValidationError before any state
        changes.
        """
        if not isinstance(partial, AssumptionsPatch):
            partial = AssumptionsPatch.model_validate(partial)
        self._assumptions = merge_assumptions(self._assumptions, partial)
        logger.info(f"Assumptions patched: {sorted(partial.supplied())}")
        self._save()

    def reset_to_defaults(self) -> None:
        self._assumptions = DEFAULT_ASSUMPTIONS.model_copy(deep=True)
        logger.info("Assumptions reset to defaults")
        self._save()

    def base_distance(self, site_type: SiteType) -> float:
        return self._assumptions.site_type_meters.get(site_type, 0.0)

    @property
    def persisted(self) -> bool:
        """False when the most recent write did not reach storage."""
        return self.last_error is None

    def migrate_legacy(self) -> bool:
        """
        Move a legacy-schema record into the current key, then delete it.

        Returns True when a legacy record was found. Running it again is a
        no-op because the legacy record no longer exists. When a current
        record already exists it wins and the legacy record is discarded.
        When the migrated table cannot be written it becomes the in-memory
        table for this session, ``persisted`` turns False, and the legacy
        record is kept.
        """
        try:
            legacy_text = self._storage.get(self._legacy_key)
        except StorageError as e:
            logger.warning(f"Legacy assumptions read failed: {e}")
            return False
        if legacy_text is None:
            return False

        try:
            current_exists = self._storage.contains(self._key)
        except StorageError as e:
            logger.warning(f"Assumptions read failed during migration: {e}")
            return False

        if current_exists:
            logger.info("Current assumptions already stored; discarding legacy record")
        else:
            raw = _parse_json_object(legacy_text)
            if raw is None:
                logger.warning("Legacy assumptions record is not valid JSON; discarding")
            else:
                migrated = convert_legacy_schema(raw)
                try:
                    self._storage.set(self._key, migrated.to_storage())
                except StorageError as e:
                    # Keep the legacy record so the migration can retry next start
                    logger.error(f"Failed to write migrated assumptions: {e}")
                    self.last_error = str(e)
                    self._assumptions = migrated
                    return True
                logger.info("Migrated legacy assumptions to current schema")

        try:
            self._storage.delete(self._legacy_key)
        except StorageError as e:
            logger.error(f"Failed to delete legacy assumptions record: {e}")
        return True

    # -- persistence ----------------------------------------------------------

    def _load(self) -> Assumptions:
        try:
            text = self._storage.get(self._key)
        except StorageError as e:
            logger.warning(f"Failed to load assumptions from storage: {e}")
            return DEFAULT_ASSUMPTIONS.model_copy(deep=True)

        if text is None:
            return DEFAULT_ASSUMPTIONS.model_copy(deep=True)

        raw = _parse_json_object(text)
        if raw is None:
            logger.warning("Stored assumptions are not valid JSON; using defaults")
            return DEFAULT_ASSUMPTIONS.model_copy(deep=True)
        return merge_current_schema(raw)

    def _save(self) -> None:
        try:
            self._storage.set(self._key, self._assumptions.to_storage())
            self.last_error = None
        except StorageError as e:
            self.last_error = str(e)
            logger.warning(f"Failed to save assumptions to storage: {e}")
