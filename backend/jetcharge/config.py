"""
Runtime configuration — single source of truth for environment-driven values.

Import from here in routes and services rather than calling os.getenv()
directly. Values are read once at import time (after load_dotenv()).
"""
from __future__ import annotations

import os

from dotenv import load_dotenv

load_dotenv()


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name, "")
    try:
        return float(raw) if raw.strip() else default
    except ValueError:
        return default


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name, "")
    try:
        return int(raw) if raw.strip() else default
    except ValueError:
        return default


APP_VERSION: str = "1.0.0"

# ── Persistence ────────────────────────────────────────────────────────────────
DATABASE_URL: str = os.getenv("DATABASE_URL", "") or "sqlite:///./jetcharge.db"

# Storage keys (opaque text blobs)
ASSUMPTIONS_STORAGE_KEY: str = "ev-calculator-assumptions"
LEGACY_ASSUMPTIONS_STORAGE_KEY: str = "jetcharge-assumptions"
CONTACT_STORAGE_KEY: str = "ev-calculator-contact"

# ── Logging ────────────────────────────────────────────────────────────────────
LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
LOG_JSON: bool = os.getenv("LOG_FORMAT", "json").lower() != "text"

# ── HTTP surface ───────────────────────────────────────────────────────────────
_cors_default = "http://localhost:5173,http://localhost:8080"
CORS_ORIGINS: list[str] = [
    o.strip() for o in os.getenv("CORS_ORIGINS", _cors_default).split(",") if o.strip()
]

# Where the input-collection flow lives; quote assembly redirects here
CALCULATOR_PATH: str = os.getenv("CALCULATOR_PATH", "/calculator")

# ── Quote / lead behaviour ─────────────────────────────────────────────────────
CURRENCY: str = "AUD"
LEAD_PAYLOAD_VERSION: str = "v1"
QUOTE_VALIDITY_DAYS: int = _env_int("QUOTE_VALIDITY_DAYS", 30)

# Simulated intake round-trip (seconds)
LEAD_SUBMIT_DELAY_S: float = _env_float("LEAD_SUBMIT_DELAY_S", 1.5)

# Minimum digits in a contact phone number (after stripping non-digits)
PHONE_MIN_DIGITS: int = _env_int("PHONE_MIN_DIGITS", 9)
PHONE_REQUIRED_PREFIX: str = "+61"
