"""
tests/conftest.py

In-memory fakes shared by service and API tests. No database is needed:
the fakes mimic the repositories' public methods and a Session's
commit/rollback contract closely enough to observe atomicity.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from decimal import Decimal
from types import SimpleNamespace
from typing import Any

import pytest
from sqlalchemy.exc import OperationalError

from app.domain.transactions import NormalizedTransaction
from db.models.upload import UploadStatus


def make_db_error(message: str = "connection reset") -> OperationalError:
    return OperationalError("INSERT INTO transactions", {}, Exception(message))


# ---------------------------------------------------------------------------
# Session
# ---------------------------------------------------------------------------


@dataclass
class FakeStore:
    """
    Committed rows live in ``transactions``; staged rows in ``pending`` until commit.
    """

    uploads: dict[uuid.UUID, SimpleNamespace] = field(default_factory=dict)
    transactions: list[dict[str, Any]] = field(default_factory=list)
    pending: list[dict[str, Any]] = field(default_factory=list)
    pending_deletes: list[Any] = field(default_factory=list)


class FakeSession:
    def __init__(self, store: FakeStore | None = None) -> None:
        self.store = store or FakeStore()
        self.commits = 0
        self.rollbacks = 0
        self.closed = False
        self.fail_next_commit: Exception | None = None

    def commit(self) -> None:
        if self.fail_next_commit is not None:
            exc, self.fail_next_commit = self.fail_next_commit, None
            raise exc
        for predicate in self.store.pending_deletes:
            self.store.transactions = [row for row in self.store.transactions if not predicate(row)]
        self.store.transactions.extend(self.store.pending)
        self.store.pending.clear()
        self.store.pending_deletes.clear()
        self.commits += 1

    def rollback(self) -> None:
        self.store.pending.clear()
        self.store.pending_deletes.clear()
        self.rollbacks += 1

    def close(self) -> None:
        self.closed = True


# ---------------------------------------------------------------------------
# Repositories
# ---------------------------------------------------------------------------


class FakeUploadRepository:
    def __init__(self, store: FakeStore, *, fail_create: bool = False, fail_mark_failed: bool = False) -> None:
        self._store = store
        self._fail_create = fail_create
        self._fail_mark_failed = fail_mark_failed

    def create_upload(self, *, user_id: uuid.UUID, filename: str, total_transactions: int) -> SimpleNamespace:
        if self._fail_create:
            raise make_db_error("uploads table unavailable")
        now = datetime.now(tz=timezone.utc)
        upload = SimpleNamespace(
            id=uuid.uuid4(),
            user_id=user_id,
            filename=filename,
            total_transactions=total_transactions,
            processing_status=UploadStatus.PROCESSING,
            error_message=None,
            upload_date=now,
            created_at=now,
        )
        self._store.uploads[upload.id] = upload
        return upload

    def get_upload(self, upload_id: uuid.UUID) -> SimpleNamespace | None:
        return self._store.uploads.get(upload_id)

    def list_uploads_for_user(self, user_id: uuid.UUID, *, limit: int = 50) -> list[SimpleNamespace]:
        owned = [upload for upload in self._store.uploads.values() if upload.user_id == user_id]
        return sorted(owned, key=lambda upload: upload.created_at, reverse=True)[:limit]

    def mark_completed(self, *, upload_id: uuid.UUID, total_transactions: int) -> SimpleNamespace | None:
        upload = self._store.uploads.get(upload_id)
        if upload is not None:
            upload.processing_status = UploadStatus.COMPLETED
            upload.total_transactions = total_transactions
        return upload

    def mark_failed(self, *, upload_id: uuid.UUID, error_message: str) -> SimpleNamespace | None:
        if self._fail_mark_failed:
            raise make_db_error("uploads table unavailable")
        upload = self._store.uploads.get(upload_id)
        if upload is not None:
            upload.processing_status = UploadStatus.FAILED
            upload.error_message = error_message
        return upload


class FakeTransactionRepository:
    """
    Stages rows in the store; ``fail_after_rows`` raises mid-batch after staging
    that many rows, like a later chunk of a multi-statement insert failing.
    """

    def __init__(
        self,
        store: FakeStore,
        *,
        marketplace_cut_rate: float = 0.30,
        fail_after_rows: int | None = None,
    ) -> None:
        self._store = store
        self._marketplace_cut_rate = marketplace_cut_rate
        self._fail_after_rows = fail_after_rows
        self.insert_calls = 0

    def bulk_insert(self, records: list[NormalizedTransaction], *, batch_size: int = 1000) -> int:
        self.insert_calls += 1
        for index, record in enumerate(records):
            if self._fail_after_rows is not None and index >= self._fail_after_rows:
                raise make_db_error("value too long for type character varying")
            row = {
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
            row.update(record.derived_figures(self._marketplace_cut_rate))
            self._store.pending.append(row)
        return len(records)

    def delete_demo_for_user(self, user_id: uuid.UUID) -> int:
        def predicate(row: dict[str, Any]) -> bool:
            return row["user_id"] == user_id and row["demo_data"]

        self._store.pending_deletes.append(predicate)
        return sum(1 for row in self._store.transactions if predicate(row))

    def delete_expired_demo(self, now: datetime) -> int:
        def predicate(row: dict[str, Any]) -> bool:
            return bool(row["demo_data"] and row["expires_at"] is not None and row["expires_at"] <= now)

        self._store.pending_deletes.append(predicate)
        return sum(1 for row in self._store.transactions if predicate(row))

    def list_for_user(
        self,
        user_id: uuid.UUID,
        *,
        start_date: date | None = None,
        end_date: date | None = None,
    ) -> list[SimpleNamespace]:
        rows = [row for row in self._store.transactions if row["user_id"] == user_id]
        if start_date is not None:
            rows = [row for row in rows if row["transaction_date"] >= start_date]
        if end_date is not None:
            rows = [row for row in rows if row["transaction_date"] <= end_date]
        return [SimpleNamespace(**row) for row in rows]


class FakeDevExRateRepository:
    def __init__(self, versions: list[SimpleNamespace] | None = None, *, fail: bool = False) -> None:
        self.versions = versions if versions is not None else []
        self._fail = fail

    def latest(self) -> SimpleNamespace | None:
        if self._fail:
            raise make_db_error("devex_rates unavailable")
        if not self.versions:
            return None
        return max(self.versions, key=lambda version: version.effective_at)

    def append(self, *, rate: float, previous_rate: float | None, effective_at: datetime) -> SimpleNamespace:
        version = SimpleNamespace(
            rate=Decimal(str(rate)),
            previous_rate=previous_rate,
            effective_at=effective_at,
        )
        self.versions.append(version)
        return version


# ---------------------------------------------------------------------------
# Row helpers
# ---------------------------------------------------------------------------


def make_row(**overrides: Any) -> dict[str, Any]:
    row: dict[str, Any] = {
        "Date": "2024-03-15",
        "Source": "Game Pass Sales",
        "Item": "VIP Gamepass",
        "Robux": "1000",
    }
    row.update(overrides)
    return row


def make_transaction(
    *,
    transaction_date: date,
    item_name: str = "Sword",
    gross_robux: float = 1000.0,
    ad_spend: float = 0.0,
    devex_rate: float = 0.0035,
    cut_rate: float = 0.30,
) -> SimpleNamespace:
    marketplace_cut = gross_robux * cut_rate
    net_robux = gross_robux - marketplace_cut
    return SimpleNamespace(
        transaction_date=transaction_date,
        item_name=item_name,
        gross_robux=Decimal(str(gross_robux)),
        marketplace_cut=Decimal(str(marketplace_cut)),
        ad_spend=Decimal(str(ad_spend)),
        net_robux=Decimal(str(net_robux)),
        net_usd=Decimal(str(round(net_robux * devex_rate, 4))),
        devex_rate=Decimal(str(devex_rate)),
    )


@pytest.fixture()
def store() -> FakeStore:
    return FakeStore()


@pytest.fixture()
def session(store: FakeStore) -> FakeSession:
    return FakeSession(store)


@pytest.fixture()
def user_id() -> uuid.UUID:
    return uuid.UUID("7f1c2e9a-5b4d-4c3e-9a8b-1d2e3f4a5b6c")
