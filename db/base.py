"""
db/base.py

Declarative base and the timestamp mixins shared by the revenue tables.

Append-only tables (transactions, DevEx rate versions) only carry
``created_at``. Tables whose rows change state after insert (uploads,
the subscription mirror and plan catalogue) also carry ``updated_at``.
"""

from datetime import datetime, timezone

from sqlalchemy import DateTime, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Metadata root for every table the service owns."""


class CreatedAtMixin:
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )


class TimestampMixin(CreatedAtMixin):
    """
    Insert time plus last-modified time.

    ``updated_at`` is refreshed on every flush that changes the row; the
    entitlement lookup picks the most recently updated subscription.
    """

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=lambda: datetime.now(timezone.utc),
    )
