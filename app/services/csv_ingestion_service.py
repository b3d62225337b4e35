"""
app/services/csv_ingestion_service.py

Service layer for transaction CSV ingestion.

Lifecycle of one submission:

    1. DevEx rate lookup       : snapshot taken once for the whole batch
    2. begin_upload()          : Upload row created in ``processing`` and committed
    3. ingest()                : every row validated, all accepted rows written
                                 with one bulk insert inside one transaction
    4. terminal status         : ``completed`` with the accepted count, or
                                 ``failed`` with the storage error message

Row-level problems never abort a batch; they are counted and a capped sample
of messages is returned. Storage problems abort the batch and leave no
partial set of transactions behind.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Callable, Sequence

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.config import get_ingestion_settings, get_revenue_settings
from app.domain.transactions import (
    AcceptedRow,
    IngestionSummary,
    NormalizedTransaction,
    RowRejection,
)
from app.repositories.transaction_repository import TransactionRepository
from app.repositories.upload_repository import UploadRepository
from app.services.devex_rate_service import DevExRateService, get_devex_rate_service
from app.validators.transaction_validator import TransactionRowValidator

logger = logging.getLogger(__name__)

DEFAULT_FILENAME = "unknown.csv"


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class UploadCreationError(RuntimeError):
    """
    Raised when the Upload tracking row cannot be created.
    """


class TransactionPersistenceError(RuntimeError):
    """
    Raised when accepted rows cannot be persisted. The Upload is marked failed.
    """

    def __init__(self, message: str, *, upload_id: uuid.UUID) -> None:
        super().__init__(message)
        self.upload_id = upload_id


# ---------------------------------------------------------------------------
# Repository wiring
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class IngestionRepositories:
    uploads: UploadRepository
    transactions: TransactionRepository


def build_repositories(db: Session, marketplace_cut_rate: float) -> IngestionRepositories:
    return IngestionRepositories(
        uploads=UploadRepository(db),
        transactions=TransactionRepository(db, marketplace_cut_rate=marketplace_cut_rate),
    )


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------


class TransactionIngestionService:
    """
    Coordinates upload tracking, row validation, and bulk persistence.
    """

    def __init__(
        self,
        *,
        max_error_sample: int,
        log_validation_errors: bool,
        marketplace_cut_rate: float,
        batch_size: int = 1000,
        devex_rate_service: DevExRateService | None = None,
        validator: TransactionRowValidator | None = None,
        repositories_factory: Callable[[Session, float], IngestionRepositories] = build_repositories,
    ) -> None:
        self._max_error_sample = max(1, max_error_sample)
        self._log_validation_errors = log_validation_errors
        self._marketplace_cut_rate = marketplace_cut_rate
        self._batch_size = max(1, batch_size)
        self._devex_rate_service = devex_rate_service or get_devex_rate_service()
        self._validator = validator or TransactionRowValidator()
        self._repositories_factory = repositories_factory

    def process_upload(
        self,
        db: Session,
        *,
        user_id: uuid.UUID,
        filename: str | None,
        rows: Sequence[Any],
    ) -> IngestionSummary:
        """
        Run a full submission: rate snapshot, Upload creation, ingestion.

        ``DevExRateUnavailableError`` propagates before any Upload exists.
        """

        devex_rate = self._devex_rate_service.get_current_rate(db).rate
        upload_id = self.begin_upload(
            db,
            user_id=user_id,
            filename=filename or DEFAULT_FILENAME,
            row_count=len(rows),
        )
        return self.ingest(
            db,
            upload_id=upload_id,
            rows=rows,
            devex_rate=devex_rate,
            user_id=user_id,
        )

    def begin_upload(
        self,
        db: Session,
        *,
        user_id: uuid.UUID,
        filename: str,
        row_count: int,
    ) -> uuid.UUID:
        repositories = self._repositories_factory(db, self._marketplace_cut_rate)
        try:
            upload = repositories.uploads.create_upload(
                user_id=user_id,
                filename=filename,
                total_transactions=row_count,
            )
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            raise UploadCreationError("Failed to create upload record.") from exc

        logger.info(
            "Upload started upload_id=%s user_id=%s filename=%r rows=%d",
            upload.id,
            user_id,
            filename,
            row_count,
        )
        return upload.id

    def ingest(
        self,
        db: Session,
        *,
        upload_id: uuid.UUID,
        rows: Sequence[Any],
        devex_rate: float,
        user_id: uuid.UUID,
    ) -> IngestionSummary:
        """
        Validate every row, persist accepted rows atomically, finish the Upload.
        """

        repositories = self._repositories_factory(db, self._marketplace_cut_rate)
        accepted: list[NormalizedTransaction] = []
        rejections: list[RowRejection] = []

        for row_number, raw_row in enumerate(rows, start=1):
            outcome = self._validator.validate_row(
                raw_row=raw_row,
                row_number=row_number,
                devex_rate=devex_rate,
                user_id=user_id,
                upload_id=upload_id,
            )
            if isinstance(outcome, AcceptedRow):
                accepted.append(outcome.record)
            else:
                self._record_rejection(rejections, outcome.rejection)

        if accepted:
            self._persist(db, repositories=repositories, upload_id=upload_id, records=accepted)
        else:
            self._complete(db, repositories=repositories, upload_id=upload_id, accepted=0)

        logger.info(
            "Upload finished upload_id=%s accepted=%d rejected=%d",
            upload_id,
            len(accepted),
            len(rejections),
        )
        return IngestionSummary(
            upload_id=upload_id,
            accepted=len(accepted),
            rejected=len(rejections),
            sample_errors=[rejection.message for rejection in rejections[: self._max_error_sample]],
        )

    # ------------------------------------------------------------------
    # Persistence internals
    # ------------------------------------------------------------------

    def _persist(
        self,
        db: Session,
        *,
        repositories: IngestionRepositories,
        upload_id: uuid.UUID,
        records: list[NormalizedTransaction],
    ) -> None:
        try:
            inserted = repositories.transactions.bulk_insert(records, batch_size=self._batch_size)
            repositories.uploads.mark_completed(upload_id=upload_id, total_transactions=inserted)
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            error_message = str(getattr(exc, "orig", None) or exc)
            logger.error(
                "Bulk insert failed upload_id=%s rows=%d: %s",
                upload_id,
                len(records),
                error_message,
            )
            self._fail(db, repositories=repositories, upload_id=upload_id, error_message=error_message)
            raise TransactionPersistenceError(
                "Failed to insert transactions.",
                upload_id=upload_id,
            ) from exc

    def _complete(
        self,
        db: Session,
        *,
        repositories: IngestionRepositories,
        upload_id: uuid.UUID,
        accepted: int,
    ) -> None:
        try:
            repositories.uploads.mark_completed(upload_id=upload_id, total_transactions=accepted)
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            raise TransactionPersistenceError(
                "Failed to finalize upload.",
                upload_id=upload_id,
            ) from exc

    def _fail(
        self,
        db: Session,
        *,
        repositories: IngestionRepositories,
        upload_id: uuid.UUID,
        error_message: str,
    ) -> None:
        try:
            repositories.uploads.mark_failed(upload_id=upload_id, error_message=error_message)
            db.commit()
        except SQLAlchemyError as exc:
            # The upload stays in processing; the original storage error is still raised.
            db.rollback()
            logger.error("Unable to mark upload failed upload_id=%s: %s", upload_id, exc)

    def _record_rejection(self, rejections: list[RowRejection], rejection: RowRejection) -> None:
        if self._log_validation_errors:
            logger.warning("Transaction row rejected: %s", rejection.message)
        rejections.append(rejection)


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------


@lru_cache(maxsize=1)
def get_transaction_ingestion_service() -> TransactionIngestionService:
    """
    Build and cache the ingestion service with env-driven settings.
    """
    ingestion = get_ingestion_settings()
    revenue = get_revenue_settings()
    return TransactionIngestionService(
        max_error_sample=ingestion.max_error_sample,
        log_validation_errors=ingestion.log_validation_errors,
        marketplace_cut_rate=revenue.marketplace_cut_rate,
        batch_size=ingestion.batch_size,
    )
