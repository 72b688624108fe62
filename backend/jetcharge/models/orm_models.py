"""ORM Models for the JetCharge estimator — SQLAlchemy 2.0"""
from datetime import datetime

from sqlalchemy import String, Text, DateTime
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from jetcharge.db import Base


# ── KEY-VALUE STORE ───────────────────────────────────────────────────────────
class KeyValueRecord(Base):
    """One opaque text blob per key (coefficient table, contact prefill, ...)."""
    __tablename__ = "kv_store"
    key: Mapped[str] = mapped_column(String(128), primary_key=True)
    value: Mapped[str] = mapped_column(Text, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )
