"""
tests/test_csv_ingestion_service.py

Pytest tests for TransactionIngestionService.

Repositories and the session are in-memory fakes (see conftest.py); rows
become visible in ``store.transactions`` only after a commit, so the tests
observe the all-or-nothing contract directly.

Coverage
--------
- Mixed valid / invalid batch end to end
- Bulk-insert failure marks the upload failed and persists nothing
- Upload creation failure
- Zero accepted rows
- Error sample cap
- DevEx snapshot and lookup failure
"""

from __future__ import annotations

import logging
from decimal import Decimal
from types import SimpleNamespace

import pytest

from app.services.csv_ingestion_service import (
    DEFAULT_FILENAME,
    IngestionRepositories,
    TransactionIngestionService,
    TransactionPersistenceError,
    UploadCreationError,
)
from app.services.devex_rate_service import DevExRateService, DevExRateUnavailableError
from db.models.upload import UploadStatus
from tests.conftest import (
    FakeDevExRateRepository,
    FakeStore,
    FakeTransactionRepository,
    FakeUploadRepository,
    make_row,
)


def _build_service(
    store: FakeStore,
    *,
    devex_repository: FakeDevExRateRepository | None = None,
    fail_create: bool = False,
    fail_after_rows: int | None = None,
    fail_mark_failed: bool = False,
    max_error_sample: int = 10,
) -> tuple[TransactionIngestionService, dict[str, FakeTransactionRepository]]:
    created: dict[str, FakeTransactionRepository] = {}
    devex_repository = devex_repository or FakeDevExRateRepository()

    def factory(db, cut_rate: float) -> IngestionRepositories:
        transactions = FakeTransactionRepository(
            store,
            marketplace_cut_rate=cut_rate,
            fail_after_rows=fail_after_rows,
        )
        created["transactions"] = transactions
        return IngestionRepositories(
            uploads=FakeUploadRepository(
                store,
                fail_create=fail_create,
                fail_mark_failed=fail_mark_failed,
            ),
            transactions=transactions,
        )

    service = TransactionIngestionService(
        max_error_sample=max_error_sample,
        log_validation_errors=True,
        marketplace_cut_rate=0.30,
        devex_rate_service=DevExRateService(
            default_rate=0.0035,
            notify_threshold_percent=5.0,
            repository_factory=lambda db: devex_repository,
        ),
        repositories_factory=factory,
    )
    return service, created


def _five_rows_with_negative_third() -> list[dict[str, str]]:
    return [
        make_row(Item="Sword", Robux="100"),
        make_row(Item="Shield", Robux="200"),
        make_row(Item="Potion", Robux="-5"),
        make_row(Item="Helmet", Robux="400"),
        make_row(Item="Boots", Robux="500"),
    ]


# ---------------------------------------------------------------------------
# End to end
# ---------------------------------------------------------------------------


class TestProcessUpload:
    def test_mixed_batch_persists_valid_rows_only(self, store, session, user_id) -> None:
        service, _ = _build_service(store)

        summary = service.process_upload(
            session,
            user_id=user_id,
            filename="march.csv",
            rows=_five_rows_with_negative_third(),
        )

        assert summary.accepted == 4
        assert summary.rejected == 1
        assert summary.sample_errors == ["Row 3: Invalid Robux amount"]

        assert len(store.transactions) == 4
        assert all(row["upload_id"] == summary.upload_id for row in store.transactions)
        assert [row["item_name"] for row in store.transactions] == ["Sword", "Shield", "Helmet", "Boots"]

        upload = store.uploads[summary.upload_id]
        assert upload.processing_status == UploadStatus.COMPLETED
        assert upload.total_transactions == 4
        assert upload.filename == "march.csv"
        assert upload.error_message is None

    def test_bulk_insert_failure_marks_upload_failed(self, store, session, user_id) -> None:
        service, _ = _build_service(store, fail_after_rows=2)

        with pytest.raises(TransactionPersistenceError) as exc_info:
            service.process_upload(
                session,
                user_id=user_id,
                filename="march.csv",
                rows=[make_row(Robux="10"), make_row(Robux="20"), make_row(Robux="30")],
            )

        assert store.transactions == []
        assert store.pending == []
        upload = store.uploads[exc_info.value.upload_id]
        assert upload.processing_status == UploadStatus.FAILED
        assert upload.error_message == "value too long for type character varying"
        assert session.rollbacks >= 1

    def test_failure_to_mark_failed_still_raises_persistence_error(self, store, session, user_id) -> None:
        service, _ = _build_service(store, fail_after_rows=0, fail_mark_failed=True)

        with pytest.raises(TransactionPersistenceError):
            service.process_upload(session, user_id=user_id, filename="a.csv", rows=[make_row()])

        assert store.transactions == []

    def test_upload_creation_failure_writes_nothing(self, store, session, user_id) -> None:
        service, created = _build_service(store, fail_create=True)

        with pytest.raises(UploadCreationError):
            service.process_upload(session, user_id=user_id, filename="a.csv", rows=[make_row()])

        assert store.uploads == {}
        assert store.transactions == []
        assert created["transactions"].insert_calls == 0
        assert session.rollbacks == 1

    def test_devex_lookup_failure_aborts_before_upload_exists(self, store, session, user_id) -> None:
        service, _ = _build_service(store, devex_repository=FakeDevExRateRepository(fail=True))

        with pytest.raises(DevExRateUnavailableError):
            service.process_upload(session, user_id=user_id, filename="a.csv", rows=[make_row()])

        assert store.uploads == {}

    def test_missing_filename_uses_default(self, store, session, user_id) -> None:
        service, _ = _build_service(store)

        summary = service.process_upload(session, user_id=user_id, filename=None, rows=[make_row()])

        assert store.uploads[summary.upload_id].filename == DEFAULT_FILENAME

    def test_each_call_creates_a_new_upload(self, store, session, user_id) -> None:
        service, _ = _build_service(store)
        rows = [make_row()]

        first = service.process_upload(session, user_id=user_id, filename="a.csv", rows=rows)
        second = service.process_upload(session, user_id=user_id, filename="a.csv", rows=rows)

        assert first.upload_id != second.upload_id
        assert len(store.transactions) == 2


# ---------------------------------------------------------------------------
# ingest()
# ---------------------------------------------------------------------------


class TestIngest:
    def test_zero_accepted_rows_completes_without_insert(self, store, session, user_id) -> None:
        service, created = _build_service(store)
        upload_id = service.begin_upload(session, user_id=user_id, filename="bad.csv", row_count=2)

        summary = service.ingest(
            session,
            upload_id=upload_id,
            rows=[make_row(Robux="-1"), {"Date": "2024-01-01"}],
            devex_rate=0.0035,
            user_id=user_id,
        )

        assert summary.accepted == 0
        assert summary.rejected == 2
        assert summary.sample_errors == [
            "Row 1: Invalid Robux amount",
            "Row 2: Missing required fields",
        ]
        assert created["transactions"].insert_calls == 0
        assert store.uploads[upload_id].processing_status == UploadStatus.COMPLETED
        assert store.uploads[upload_id].total_transactions == 0

    def test_begin_upload_records_submitted_row_count(self, store, session, user_id) -> None:
        service, _ = _build_service(store)

        upload_id = service.begin_upload(session, user_id=user_id, filename="a.csv", row_count=7)

        upload = store.uploads[upload_id]
        assert upload.processing_status == UploadStatus.PROCESSING
        assert upload.total_transactions == 7
        assert session.commits == 1

    def test_error_sample_is_capped_but_count_is_not(self, store, session, user_id) -> None:
        service, _ = _build_service(store)
        upload_id = service.begin_upload(session, user_id=user_id, filename="a.csv", row_count=15)

        summary = service.ingest(
            session,
            upload_id=upload_id,
            rows=[make_row(Robux="0") for _ in range(15)],
            devex_rate=0.0035,
            user_id=user_id,
        )

        assert summary.rejected == 15
        assert len(summary.sample_errors) == 10
        assert summary.sample_errors[0] == "Row 1: Invalid Robux amount"
        assert summary.sample_errors[-1] == "Row 10: Invalid Robux amount"

    def test_devex_snapshot_and_derived_figures(self, store, session, user_id) -> None:
        service, _ = _build_service(store)
        upload_id = service.begin_upload(session, user_id=user_id, filename="a.csv", row_count=1)

        service.ingest(
            session,
            upload_id=upload_id,
            rows=[make_row(Robux="1000")],
            devex_rate=0.004,
            user_id=user_id,
        )

        (row,) = store.transactions
        assert row["devex_rate"] == 0.004
        assert row["marketplace_cut"] == 300.0
        assert row["net_robux"] == 700.0
        assert row["gross_usd"] == pytest.approx(4.0)
        assert row["net_usd"] == pytest.approx(2.8)

    def test_current_registry_rate_is_snapshotted(self, store, session, user_id) -> None:
        from datetime import datetime, timezone

        versions = [SimpleNamespace(rate=Decimal("0.0038"), effective_at=datetime(2024, 1, 1, tzinfo=timezone.utc))]
        service, _ = _build_service(store, devex_repository=FakeDevExRateRepository(versions))

        service.process_upload(session, user_id=user_id, filename="a.csv", rows=[make_row()])

        assert store.transactions[0]["devex_rate"] == pytest.approx(0.0038)

    def test_rejections_are_logged(self, store, session, user_id, caplog) -> None:
        service, _ = _build_service(store)
        upload_id = service.begin_upload(session, user_id=user_id, filename="a.csv", row_count=1)

        with caplog.at_level(logging.WARNING, logger="app.services.csv_ingestion_service"):
            service.ingest(
                session,
                upload_id=upload_id,
                rows=[make_row(Date="someday")],
                devex_rate=0.0035,
                user_id=user_id,
            )

        assert "Row 1: Invalid date format" in caplog.text
