"""create uploads, transactions, devex_rates and subscription tables

Revision ID: 20261019_0001
Revises:
Create Date: 2026-10-19 09:00:00
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "20261019_0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "uploads",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("filename", sa.String(length=255), nullable=False),
        sa.Column("total_transactions", sa.Integer(), nullable=False),
        sa.Column("processing_status", sa.String(length=32), nullable=False),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("upload_date", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.CheckConstraint(
            "processing_status IN ('processing', 'completed', 'failed')",
            name="ck_uploads_processing_status",
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_uploads_user_id", "uploads", ["user_id"], unique=False)
    op.create_index("ix_uploads_user_created_at", "uploads", ["user_id", "created_at"], unique=False)
    op.create_index("ix_uploads_processing_status", "uploads", ["processing_status"], unique=False)

    op.create_table(
        "transactions",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("upload_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("transaction_date", sa.Date(), nullable=False),
        sa.Column("source", sa.Text(), nullable=False),
        sa.Column("item_name", sa.Text(), nullable=False),
        sa.Column("item_type", sa.String(length=32), nullable=False),
        sa.Column("gross_robux", sa.Numeric(precision=18, scale=2), nullable=False),
        sa.Column("ad_spend", sa.Numeric(precision=14, scale=2), nullable=False),
        sa.Column("devex_rate", sa.Numeric(precision=12, scale=8), nullable=False),
        sa.Column("marketplace_cut", sa.Numeric(precision=18, scale=2), nullable=False),
        sa.Column("net_robux", sa.Numeric(precision=18, scale=2), nullable=False),
        sa.Column("gross_usd", sa.Numeric(precision=20, scale=4), nullable=False),
        sa.Column("net_usd", sa.Numeric(precision=20, scale=4), nullable=False),
        sa.Column("demo_data", sa.Boolean(), server_default=sa.text("false"), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.CheckConstraint("gross_robux > 0", name="ck_transactions_gross_robux_positive"),
        sa.CheckConstraint("ad_spend >= 0", name="ck_transactions_ad_spend_non_negative"),
        sa.CheckConstraint("devex_rate > 0", name="ck_transactions_devex_rate_positive"),
        sa.CheckConstraint(
            "item_type IN ('GamePass', 'DevProduct', 'UGC', 'PremiumPayout', 'Other')",
            name="ck_transactions_item_type",
        ),
        sa.ForeignKeyConstraint(["upload_id"], ["uploads.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_transactions_user_date", "transactions", ["user_id", "transaction_date"], unique=False)
    op.create_index("ix_transactions_upload_id", "transactions", ["upload_id"], unique=False)
    op.create_index(
        "ix_transactions_demo_expires_at",
        "transactions",
        ["demo_data", "expires_at"],
        unique=False,
    )

    op.create_table(
        "devex_rates",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("rate", sa.Numeric(precision=12, scale=8), nullable=False),
        sa.Column("previous_rate", sa.Numeric(precision=12, scale=8), nullable=True),
        sa.Column("effective_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.CheckConstraint("rate > 0", name="ck_devex_rates_rate_positive"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_devex_rates_effective_at", "devex_rates", ["effective_at"], unique=False)

    op.create_table(
        "subscription_products",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("product_id", sa.String(length=64), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("price", sa.Integer(), nullable=False, comment="Monthly price in cents"),
        sa.Column("stripe_price_id", sa.String(length=255), nullable=True),
        sa.Column("inventory_limit", sa.Integer(), nullable=True),
        sa.Column("trial_period_days", sa.Integer(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("metadata", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("product_id", name="uq_subscription_products_product_id"),
    )

    op.create_table(
        "subscriptions",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("product_id", sa.String(length=64), nullable=False),
        sa.Column("status", sa.String(length=32), nullable=False),
        sa.Column("stripe_customer_id", sa.String(length=255), nullable=True),
        sa.Column("stripe_subscription_id", sa.String(length=255), nullable=True),
        sa.Column("current_period_start", sa.DateTime(timezone=True), nullable=True),
        sa.Column("current_period_end", sa.DateTime(timezone=True), nullable=True),
        sa.Column("trial_end", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancel_at_period_end", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("stripe_subscription_id", name="uq_subscriptions_stripe_subscription_id"),
    )
    op.create_index("ix_subscriptions_user_status", "subscriptions", ["user_id", "status"], unique=False)
    op.create_index("ix_subscriptions_product_status", "subscriptions", ["product_id", "status"], unique=False)

    # Plan catalogue seed; prices in cents.
    products = sa.table(
        "subscription_products",
        sa.column("id", postgresql.UUID(as_uuid=True)),
        sa.column("product_id", sa.String()),
        sa.column("name", sa.String()),
        sa.column("price", sa.Integer()),
        sa.column("inventory_limit", sa.Integer()),
        sa.column("trial_period_days", sa.Integer()),
        sa.column("is_active", sa.Boolean()),
        sa.column("metadata", postgresql.JSONB()),
    )
    op.execute(
        products.insert().values(
            [
                {
                    "id": sa.text("gen_random_uuid()"),
                    "product_id": "early_bird",
                    "name": "Early Bird",
                    "price": 900,
                    "inventory_limit": 100,
                    "trial_period_days": 7,
                    "is_active": True,
                    "metadata": {"max_games": 1, "retention_days": 90, "auto_sync": False},
                },
                {
                    "id": sa.text("gen_random_uuid()"),
                    "product_id": "growth",
                    "name": "Growth",
                    "price": 1900,
                    "inventory_limit": None,
                    "trial_period_days": 7,
                    "is_active": True,
                    "metadata": {"max_games": -1, "retention_days": 365, "auto_sync": True},
                },
                {
                    "id": sa.text("gen_random_uuid()"),
                    "product_id": "studio",
                    "name": "Studio",
                    "price": 4900,
                    "inventory_limit": None,
                    "trial_period_days": 7,
                    "is_active": True,
                    "metadata": {"max_games": -1, "retention_days": -1, "auto_sync": True, "seats": 5},
                },
            ]
        )
    )


def downgrade() -> None:
    op.drop_index("ix_subscriptions_product_status", table_name="subscriptions")
    op.drop_index("ix_subscriptions_user_status", table_name="subscriptions")
    op.drop_table("subscriptions")
    op.drop_table("subscription_products")
    op.drop_index("ix_devex_rates_effective_at", table_name="devex_rates")
    op.drop_table("devex_rates")
    op.drop_index("ix_transactions_demo_expires_at", table_name="transactions")
    op.drop_index("ix_transactions_upload_id", table_name="transactions")
    op.drop_index("ix_transactions_user_date", table_name="transactions")
    op.drop_table("transactions")
    op.drop_index("ix_uploads_processing_status", table_name="uploads")
    op.drop_index("ix_uploads_user_created_at", table_name="uploads")
    op.drop_index("ix_uploads_user_id", table_name="uploads")
    op.drop_table("uploads")
