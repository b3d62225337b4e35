"""
db/models/transaction.py

Normalized, persisted unit of Roblox revenue.
"""

from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Numeric,
    String,
    Text,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from db.base import Base, CreatedAtMixin


class ItemType:
    GAME_PASS = "GamePass"
    DEV_PRODUCT = "DevProduct"
    UGC = "UGC"
    PREMIUM_PAYOUT = "PremiumPayout"
    OTHER = "Other"

    ALL: tuple[str, ...] = (GAME_PASS, DEV_PRODUCT, UGC, PREMIUM_PAYOUT, OTHER)


class Transaction(Base, CreatedAtMixin):
    """
    One revenue line derived from a validated CSV row (or the demo seeder).

    ``devex_rate`` is the USD-per-Robux snapshot taken when the batch was
    ingested; the derived USD columns are computed from it at write time and
    never recomputed.
    """

    __tablename__ = "transactions"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        nullable=False,
    )
    upload_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("uploads.id", ondelete="SET NULL"),
        nullable=True,
    )
    transaction_date: Mapped[date] = mapped_column(Date, nullable=False)
    source: Mapped[str] = mapped_column(Text, nullable=False)
    item_name: Mapped[str] = mapped_column(Text, nullable=False)
    item_type: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        default=ItemType.OTHER,
        comment="GamePass, DevProduct, UGC, PremiumPayout, Other",
    )
    gross_robux: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False)
    ad_spend: Mapped[Decimal] = mapped_column(
        Numeric(14, 2),
        nullable=False,
        default=Decimal("0"),
        comment="Advertising spend in USD",
    )
    devex_rate: Mapped[Decimal] = mapped_column(
        Numeric(12, 8),
        nullable=False,
        comment="USD per Robux snapshotted at ingestion time",
    )
    marketplace_cut: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False)
    net_robux: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False)
    gross_usd: Mapped[Decimal] = mapped_column(Numeric(20, 4), nullable=False)
    net_usd: Mapped[Decimal] = mapped_column(Numeric(20, 4), nullable=False)
    demo_data: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        server_default="false",
    )
    expires_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        comment="Only set for demo rows",
    )
    __table_args__ = (
        CheckConstraint("gross_robux > 0", name="ck_transactions_gross_robux_positive"),
        CheckConstraint("ad_spend >= 0", name="ck_transactions_ad_spend_non_negative"),
        CheckConstraint("devex_rate > 0", name="ck_transactions_devex_rate_positive"),
        CheckConstraint(
            "item_type IN ('GamePass', 'DevProduct', 'UGC', 'PremiumPayout', 'Other')",
            name="ck_transactions_item_type",
        ),
        Index("ix_transactions_user_date", "user_id", "transaction_date"),
        Index("ix_transactions_upload_id", "upload_id"),
        Index("ix_transactions_demo_expires_at", "demo_data", "expires_at"),
    )
