"""
app/repositories/transaction_repository.py

Persistence layer for normalized transactions.

All write methods run inside the caller's transaction. A failed statement
leaves nothing committed once the caller rolls back, which keeps one
upload's batch all-or-nothing even when it is split into several INSERTs.
"""

from __future__ import annotations

import uuid
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any

from sqlalchemy import delete, func, insert, select
from sqlalchemy.orm import Session

from app.domain.transactions import NormalizedTransaction
from db.models.transaction import Transaction

_DEFAULT_BATCH_SIZE = 1000


@dataclass(frozen=True)
class WindowTotals:
    """
    Non-demo sums for one user over a date window.
    """

    net_usd: float
    gross_robux: float
    ad_spend: float
    transaction_count: int


class TransactionRepository:
    """
    Repository for bulk transaction writes and per-user reads.
    """

    def __init__(self, session: Session, *, marketplace_cut_rate: float) -> None:
        self._session = session
        self._marketplace_cut_rate = marketplace_cut_rate

    # ------------------------------------------------------------------
    # Write
    # ------------------------------------------------------------------

    def bulk_insert(
        self,
        records: Sequence[NormalizedTransaction],
        *,
        batch_size: int = _DEFAULT_BATCH_SIZE,
    ) -> int:
        """
        Insert records with chunked multi-row INSERTs.

        Derived net columns are computed here from the configured
        marketplace cut and each record's DevEx snapshot.
        """

        if not records:
            return 0

        payloads = [self._to_payload(record) for record in records]
        size = max(1, batch_size)
        for start in range(0, len(payloads), size):
            self._session.execute(insert(Transaction), payloads[start : start + size])
        return len(payloads)

    def delete_demo_for_user(self, user_id: uuid.UUID) -> int:
        stmt = delete(Transaction).where(
            Transaction.user_id == user_id,
            Transaction.demo_data.is_(True),
        )
        return self._session.execute(stmt).rowcount or 0

    def delete_expired_demo(self, now: datetime) -> int:
        stmt = delete(Transaction).where(
            Transaction.demo_data.is_(True),
            Transaction.expires_at.is_not(None),
            Transaction.expires_at <= now,
        )
        return self._session.execute(stmt).rowcount or 0

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def list_for_user(
        self,
        user_id: uuid.UUID,
        *,
        start_date: date | None = None,
        end_date: date | None = None,
    ) -> list[Transaction]:
        """
        Return a user's transactions in insertion-stable date order.
        """

        stmt = select(Transaction).where(Transaction.user_id == user_id)
        if start_date is not None:
            stmt = stmt.where(Transaction.transaction_date >= start_date)
        if end_date is not None:
            stmt = stmt.where(Transaction.transaction_date <= end_date)
        stmt = stmt.order_by(Transaction.transaction_date, Transaction.created_at, Transaction.id)
        return list(self._session.scalars(stmt).all())

    def window_totals(
        self,
        user_id: uuid.UUID,
        *,
        start_date: date,
        end_date: date,
    ) -> WindowTotals:
        """
        Sum non-demo transactions with ``start_date <= transaction_date < end_date``.
        """

        stmt = select(
            func.coalesce(func.sum(Transaction.net_usd), 0),
            func.coalesce(func.sum(Transaction.gross_robux), 0),
            func.coalesce(func.sum(Transaction.ad_spend), 0),
            func.count(Transaction.id),
        ).where(
            Transaction.user_id == user_id,
            Transaction.demo_data.is_(False),
            Transaction.transaction_date >= start_date,
            Transaction.transaction_date < end_date,
        )
        net_usd, gross_robux, ad_spend, count = self._session.execute(stmt).one()
        return WindowTotals(
            net_usd=float(net_usd),
            gross_robux=float(gross_robux),
            ad_spend=float(ad_spend),
            transaction_count=int(count),
        )

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _to_payload(self, record: NormalizedTransaction) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "id": uuid.uuid4(),
            "user_id": record.user_id,
            "upload_id": record.upload_id,
            "transaction_date": record.transaction_date,
            "source": record.source,
            "item_name": record.item_name,
            "item_type": record.item_type,
            "gross_robux": record.gross_robux,
            "ad_spend": record.ad_spend,
            "devex_rate": record.devex_rate,
            "demo_data": record.demo_data,
            "expires_at": record.expires_at,
        }
        payload.update(record.derived_figures(self._marketplace_cut_rate))
        return payload
