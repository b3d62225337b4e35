"""
db/models/devex_rate.py

Append-only history of the global DevEx conversion rate.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import CheckConstraint, DateTime, Index, Numeric, func
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from db.base import Base, CreatedAtMixin


class DevExRate(Base, CreatedAtMixin):
    """
    One version of the USD-per-Robux rate.

    The current rate is the row with the latest ``effective_at``. Rows are
    never updated; ingestion copies the current value onto each Transaction.
    """

    __tablename__ = "devex_rates"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    rate: Mapped[Decimal] = mapped_column(Numeric(12, 8), nullable=False)
    previous_rate: Mapped[Decimal | None] = mapped_column(Numeric(12, 8), nullable=True)
    effective_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )
    __table_args__ = (
        CheckConstraint("rate > 0", name="ck_devex_rates_rate_positive"),
        Index("ix_devex_rates_effective_at", "effective_at"),
    )
