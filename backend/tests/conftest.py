"""
conftest.py — Shared pytest fixtures for the JetCharge estimator test suite.

Service tests run against InMemoryKeyValueStorage; only test_storage.py and
the API tests touch SQLAlchemy, and then only an in-memory SQLite database.

Import-path bootstrapping:
    The ``backend/`` directory is inserted into sys.path so that all
    ``jetcharge.*`` imports resolve correctly regardless of where pytest is invoked.
"""

import sys
import os
import pytest

# ---------------------------------------------------------------------------
# Ensure ``backend/`` is on the import path before any package imports occur.
# ---------------------------------------------------------------------------
_BACKEND_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if _BACKEND_DIR not in sys.path:
    sys.path.insert(0, _BACKEND_DIR)

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("LOG_FORMAT", "text")


# ---------------------------------------------------------------------------
# Storage / store fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def memory_storage():
    """Fresh, empty in-memory key-value storage."""
    from jetcharge.services.storage import InMemoryKeyValueStorage
    return InMemoryKeyValueStorage()


@pytest.fixture
def store(memory_storage):
    """AssumptionsStore over empty storage — starts at the default table."""
    from jetcharge.services.assumptions_store import AssumptionsStore
    return AssumptionsStore(memory_storage)


@pytest.fixture
def default_assumptions():
    """
    The hard-coded default table:
      sites: Car Dealership 50, Public Station 40, Office Building 40,
             Apartment 20, House 20 (m)
      cable $/m: ac 50, dc 150   carrier $/m: tray 50, trench 1000
      chargers: ac 2000, dc 25000   labour markup: 42.15 %
    """
    from jetcharge.models.assumption_models import DEFAULT_ASSUMPTIONS
    return DEFAULT_ASSUMPTIONS.model_copy(deep=True)


# ---------------------------------------------------------------------------
# Sample requests
# ---------------------------------------------------------------------------

@pytest.fixture
def dealership_ac_request():
    """Car Dealership, 1 AC, surface tray, 1.0× run."""
    from jetcharge.models.estimate_models import EstimateRequest
    return EstimateRequest(
        siteType="Car Dealership", acCount=1, dcCount=0, isUnderground=False, runFactor=1.0
    )


@pytest.fixture
def house_dc_request():
    """House, 1 DC, underground trench, 1.0× run."""
    from jetcharge.models.estimate_models import EstimateRequest
    return EstimateRequest(
        siteType="House", acCount=0, dcCount=1, isUnderground=True, runFactor=1.0
    )


@pytest.fixture
def legacy_record():
    """Old-schema assumptions JSON, missing chargerPrices.dc and labourMarkup."""
    import json
    return json.dumps({
        "siteDistances": {
            "carDealership": 60,
            "publicStation": 45,
            "officeBuilding": 35,
            "apartment": 25,
            "house": 15,
        },
        "cableCosts": {"ac": 55, "dc": 160},
        "carrierCosts": {"tray": 60, "trench": 900},
        "chargerPrices": {"ac": 2100},
    })
