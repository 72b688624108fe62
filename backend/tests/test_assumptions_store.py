"""
test_assumptions_store.py — AssumptionsStore persistence, merge and migration.

Tests cover:
  - Default table on empty storage
  - Patch: shallow per-key replace, persistence, validation of raw mappings
  - Reset to defaults
  - Loading: field-wise merge over defaults, invalid / unknown fields, corrupt JSON
  - Legacy schema migration (once, idempotent, current record wins,
    per-field fallback for invalid legacy values)
  - Storage failures: reads degrade to defaults, writes keep in-memory table
    (including a migrated table that could not be written)
"""

import json

import pytest
from pydantic import ValidationError

from jetcharge import config
from jetcharge.models.assumption_models import (
    AssumptionsPatch,
    ChargerClassRates,
    DEFAULT_ASSUMPTIONS,
    SiteType,
)
from jetcharge.services.assumptions_store import (
    AssumptionsStore,
    convert_legacy_schema,
    merge_assumptions,
    merge_current_schema,
)
from jetcharge.services.storage import InMemoryKeyValueStorage, StorageError

CURRENT_KEY = config.ASSUMPTIONS_STORAGE_KEY
LEGACY_KEY = config.LEGACY_ASSUMPTIONS_STORAGE_KEY


class FailingStorage(InMemoryKeyValueStorage):
    """Storage whose reads and/or writes raise StorageError."""

    def __init__(self, initial=None, fail_reads=False, fail_writes=False):
        super().__init__(initial)
        self.fail_reads = fail_reads
        self.fail_writes = fail_writes

    def get(self, key):
        if self.fail_reads:
            raise StorageError("disk unavailable")
        return super().get(key)

    def set(self, key, value):
        if self.fail_writes:
            raise StorageError("quota exceeded")
        super().set(key, value)


# ===========================================================================
# Class 1: Defaults and get()
# ===========================================================================

class TestDefaults:

    def test_empty_storage_gives_defaults(self, store):
        assert store.get() == DEFAULT_ASSUMPTIONS

    def test_default_values(self, store):
        table = store.get()
        assert table.site_type_meters[SiteType.CAR_DEALERSHIP] == 50
        assert table.site_type_meters[SiteType.HOUSE] == 20
        assert table.cable_cost_per_meter.dc == 150
        assert table.carrier_cost_per_meter.trench == 1000
        assert table.charger_unit_price.dc == 25000
        assert table.labour_markup_percent == pytest.approx(42.15)

    def test_construction_does_not_write(self, memory_storage):
        AssumptionsStore(memory_storage)
        assert memory_storage.snapshot() == {}

    def test_get_returns_copy(self, store):
        table = store.get()
        table.site_type_meters[SiteType.HOUSE] = 999
        table.cable_cost_per_meter.ac = 1
        assert store.get().site_type_meters[SiteType.HOUSE] == 20
        assert store.get().cable_cost_per_meter.ac == 50

    def test_base_distance(self, store):
        assert store.base_distance(SiteType.PUBLIC_STATION) == 40


# ===========================================================================
# Class 2: Patch and reset
# ===========================================================================

class TestPatch:

    def test_patch_replaces_sub_object(self, store):
        store.patch({"cableCostPerMeter": {"ac": 60, "dc": 170}})
        table = store.get()
        assert table.cable_cost_per_meter.ac == 60
        assert table.cable_cost_per_meter.dc == 170
        assert table.carrier_cost_per_meter == DEFAULT_ASSUMPTIONS.carrier_cost_per_meter

    def test_patch_round_trip_keeps_other_fields(self, store):
        """Set AC cable to 50, DC to 150; everything else unchanged."""
        store.patch({"labourMarkupPercent": 30})
        store.patch({"cableCostPerMeter": {"ac": 50, "dc": 150}})
        table = store.get()
        assert table.cable_cost_per_meter.ac == 50
        assert table.cable_cost_per_meter.dc == 150
        assert table.labour_markup_percent == 30
        assert table.site_type_meters == DEFAULT_ASSUMPTIONS.site_type_meters

    def test_patch_persists_full_table(self, memory_storage, store):
        store.patch(AssumptionsPatch(labourMarkupPercent=10))
        saved = json.loads(memory_storage.get(CURRENT_KEY))
        assert saved["labourMarkupPercent"] == 10
        assert set(saved) == {
            "siteTypeMeters", "cableCostPerMeter", "carrierCostPerMeter",
            "chargerUnitPrice", "labourMarkupPercent",
        }
        assert saved["siteTypeMeters"]["Car Dealership"] == 50

    def test_patch_survives_new_store(self, memory_storage, store):
        store.patch({"siteTypeMeters": {s.value: 10 for s in SiteType}})
        reloaded = AssumptionsStore(memory_storage)
        assert reloaded.get().site_type_meters[SiteType.APARTMENT] == 10

    def test_snake_case_keys_accepted(self, store):
        store.patch({"labour_markup_percent": 5})
        assert store.get().labour_markup_percent == 5

    @pytest.mark.parametrize("partial", [
        {"labourMarkupPercent": -1},
        {"cableCostPerMeter": {"ac": 50}},
        {"siteTypeMeters": {"House": 20}},
        {"colour": "blue"},
    ])
    def test_invalid_patch_rejected_without_change(self, memory_storage, store, partial):
        with pytest.raises(ValidationError):
            store.patch(partial)
        assert store.get() == DEFAULT_ASSUMPTIONS
        assert memory_storage.get(CURRENT_KEY) is None

    def test_reset_to_defaults(self, memory_storage, store):
        store.patch({"labourMarkupPercent": 99})
        store.reset_to_defaults()
        assert store.get() == DEFAULT_ASSUMPTIONS
        saved = json.loads(memory_storage.get(CURRENT_KEY))
        assert saved["labourMarkupPercent"] == pytest.approx(42.15)

    def test_reset_idempotent(self, memory_storage, store):
        store.reset_to_defaults()
        first = memory_storage.snapshot()
        store.reset_to_defaults()
        assert memory_storage.snapshot() == first
        assert store.get() == DEFAULT_ASSUMPTIONS

    def test_merge_assumptions_does_not_alias_patch(self):
        rates = ChargerClassRates(ac=1, dc=2)
        merged = merge_assumptions(DEFAULT_ASSUMPTIONS, AssumptionsPatch(chargerUnitPrice=rates))
        rates.ac = 500
        assert merged.charger_unit_price.ac == 1


# ===========================================================================
# Class 3: Loading persisted data
# ===========================================================================

class TestLoad:

    def test_missing_fields_take_defaults(self, memory_storage):
        memory_storage.set(CURRENT_KEY, json.dumps({"labourMarkupPercent": 20}))
        table = AssumptionsStore(memory_storage).get()
        assert table.labour_markup_percent == 20
        assert table.charger_unit_price == DEFAULT_ASSUMPTIONS.charger_unit_price

    def test_invalid_field_falls_back_per_field(self):
        raw = {
            "labourMarkupPercent": "lots",
            "carrierCostPerMeter": {"tray": 70, "trench": 800},
        }
        table = merge_current_schema(raw)
        assert table.labour_markup_percent == DEFAULT_ASSUMPTIONS.labour_markup_percent
        assert table.carrier_cost_per_meter.tray == 70

    def test_unknown_fields_ignored(self):
        table = merge_current_schema({"legacyFlag": True, "labourMarkupPercent": 12})
        assert table.labour_markup_percent == 12

    def test_non_finite_persisted_field_takes_default(self):
        table = merge_current_schema({
            "labourMarkupPercent": float("inf"),
            "cableCostPerMeter": {"ac": float("nan"), "dc": 1},
        })
        assert table.labour_markup_percent == pytest.approx(42.15)
        assert table.cable_cost_per_meter == DEFAULT_ASSUMPTIONS.cable_cost_per_meter

    @pytest.mark.parametrize("partial", [
        {"labourMarkupPercent": float("inf")},
        {"carrierCostPerMeter": {"tray": float("nan"), "trench": 1000}},
    ])
    def test_non_finite_patch_rejected(self, store, partial):
        with pytest.raises(ValidationError):
            store.patch(partial)
        assert store.get() == DEFAULT_ASSUMPTIONS

    @pytest.mark.parametrize("text", ["{not json", "[1, 2, 3]", "null", ""])
    def test_corrupt_record_gives_defaults(self, memory_storage, text):
        memory_storage.set(CURRENT_KEY, text)
        assert AssumptionsStore(memory_storage).get() == DEFAULT_ASSUMPTIONS


# ===========================================================================
# Class 4: Legacy migration
# ===========================================================================

class TestLegacyMigration:

    def test_legacy_values_migrated(self, memory_storage, legacy_record):
        memory_storage.set(LEGACY_KEY, legacy_record)
        table = AssumptionsStore(memory_storage).get()
        assert table.site_type_meters[SiteType.CAR_DEALERSHIP] == 60
        assert table.site_type_meters[SiteType.HOUSE] == 15
        assert table.cable_cost_per_meter.ac == 55
        assert table.carrier_cost_per_meter.trench == 900
        assert table.charger_unit_price.ac == 2100

    def test_legacy_gaps_take_defaults(self, memory_storage, legacy_record):
        memory_storage.set(LEGACY_KEY, legacy_record)
        table = AssumptionsStore(memory_storage).get()
        assert table.charger_unit_price.dc == 25000
        assert table.labour_markup_percent == pytest.approx(42.15)

    def test_legacy_record_deleted_and_current_written(self, memory_storage, legacy_record):
        memory_storage.set(LEGACY_KEY, legacy_record)
        AssumptionsStore(memory_storage)
        assert memory_storage.get(LEGACY_KEY) is None
        saved = json.loads(memory_storage.get(CURRENT_KEY))
        assert saved["siteTypeMeters"]["Public Station"] == 45

    def test_migration_idempotent(self, memory_storage, legacy_record):
        memory_storage.set(LEGACY_KEY, legacy_record)
        store = AssumptionsStore(memory_storage)
        first = memory_storage.snapshot()
        assert store.migrate_legacy() is False
        assert memory_storage.snapshot() == first

    def test_current_record_wins(self, memory_storage, legacy_record):
        memory_storage.set(CURRENT_KEY, json.dumps({"labourMarkupPercent": 18}))
        memory_storage.set(LEGACY_KEY, legacy_record)
        table = AssumptionsStore(memory_storage).get()
        assert table.labour_markup_percent == 18
        assert table.cable_cost_per_meter.ac == 50
        assert memory_storage.get(LEGACY_KEY) is None

    def test_corrupt_legacy_record_discarded(self, memory_storage):
        memory_storage.set(LEGACY_KEY, "{{{")
        store = AssumptionsStore(memory_storage)
        assert store.get() == DEFAULT_ASSUMPTIONS
        assert memory_storage.get(LEGACY_KEY) is None

    def test_convert_ignores_unknown_legacy_fields(self):
        table = convert_legacy_schema({"labourMarkup": 25, "theme": "dark"})
        assert table.labour_markup_percent == 25
        assert table.site_type_meters == DEFAULT_ASSUMPTIONS.site_type_meters

    def test_invalid_legacy_field_keeps_the_rest(self, memory_storage):
        memory_storage.set(LEGACY_KEY, json.dumps({
            "siteDistances": {"carDealership": 60, "house": "far"},
            "cableCosts": {"ac": 55, "dc": 160},
            "carrierCosts": "tray",
            "chargerPrices": {"ac": 2100, "dc": 24000},
            "labourMarkup": -1,
        }))
        table = AssumptionsStore(memory_storage).get()
        assert table.site_type_meters[SiteType.CAR_DEALERSHIP] == 60
        assert table.site_type_meters[SiteType.HOUSE] == 20
        assert table.cable_cost_per_meter.ac == 55
        assert table.cable_cost_per_meter.dc == 160
        assert table.carrier_cost_per_meter == DEFAULT_ASSUMPTIONS.carrier_cost_per_meter
        assert table.charger_unit_price.dc == 24000
        assert table.labour_markup_percent == pytest.approx(42.15)
        saved = json.loads(memory_storage.get(CURRENT_KEY))
        assert saved["siteTypeMeters"]["Car Dealership"] == 60

    def test_non_finite_legacy_value_takes_default(self):
        table = convert_legacy_schema({"labourMarkup": float("inf"), "cableCosts": {"ac": 55}})
        assert table.labour_markup_percent == pytest.approx(42.15)
        assert table.cable_cost_per_meter.ac == 55


# ===========================================================================
# Class 5: Storage failures
# ===========================================================================

class TestStorageFailures:

    def test_read_failure_gives_defaults(self, legacy_record):
        storage = FailingStorage({LEGACY_KEY: legacy_record}, fail_reads=True)
        store = AssumptionsStore(storage)
        assert store.get() == DEFAULT_ASSUMPTIONS
        assert store.persisted is True

    def test_write_failure_keeps_in_memory_table(self):
        storage = FailingStorage(fail_writes=True)
        store = AssumptionsStore(storage)
        store.patch({"labourMarkupPercent": 11})
        assert store.get().labour_markup_percent == 11
        assert store.persisted is False
        assert "quota exceeded" in store.last_error

    def test_persisted_recovers_after_successful_write(self):
        storage = FailingStorage(fail_writes=True)
        store = AssumptionsStore(storage)
        store.patch({"labourMarkupPercent": 11})
        storage.fail_writes = False
        store.reset_to_defaults()
        assert store.persisted is True

    def test_failed_migration_write_keeps_legacy_record(self, legacy_record):
        storage = FailingStorage({LEGACY_KEY: legacy_record}, fail_writes=True)
        AssumptionsStore(storage)
        assert storage.snapshot()[LEGACY_KEY] == legacy_record
        assert CURRENT_KEY not in storage.snapshot()

    def test_failed_migration_write_keeps_migrated_table_in_memory(self):
        legacy = json.dumps({"siteDistances": {"carDealership": 60}, "labourMarkup": 25})
        storage = FailingStorage({LEGACY_KEY: legacy}, fail_writes=True)
        store = AssumptionsStore(storage)
        table = store.get()
        assert table.labour_markup_percent == 25
        assert table.site_type_meters[SiteType.CAR_DEALERSHIP] == 60
        assert store.persisted is False
        assert "quota exceeded" in store.last_error

    def test_migration_retried_once_storage_recovers(self):
        legacy = json.dumps({"labourMarkup": 25})
        storage = FailingStorage({LEGACY_KEY: legacy}, fail_writes=True)
        AssumptionsStore(storage)
        storage.fail_writes = False
        store = AssumptionsStore(storage)
        assert store.get().labour_markup_percent == 25
        assert store.persisted is True
        assert LEGACY_KEY not in storage.snapshot()
