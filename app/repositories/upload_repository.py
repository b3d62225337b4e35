"""
app/repositories/upload_repository.py

Persistence for upload lifecycle tracking.

The caller controls commit/rollback; this repository only flushes.
"""

from __future__ import annotations

import uuid

from sqlalchemy import select
from sqlalchemy.orm import Session

from db.models.upload import Upload, UploadStatus


class UploadRepository:
    def __init__(self, session: Session) -> None:
        self._session = session

    def create_upload(
        self,
        *,
        user_id: uuid.UUID,
        filename: str,
        total_transactions: int,
    ) -> Upload:
        upload = Upload(
            user_id=user_id,
            filename=filename,
            total_transactions=total_transactions,
            processing_status=UploadStatus.PROCESSING,
        )
        self._session.add(upload)
        self._session.flush()
        self._session.refresh(upload)
        return upload

    def get_upload(self, upload_id: uuid.UUID) -> Upload | None:
        return self._session.get(Upload, upload_id)

    def list_uploads_for_user(self, user_id: uuid.UUID, *, limit: int = 50) -> list[Upload]:
        stmt = (
            select(Upload)
            .where(Upload.user_id == user_id)
            .order_by(Upload.created_at.desc())
            .limit(max(1, limit))
        )
        return list(self._session.scalars(stmt).all())

    def mark_completed(self, *, upload_id: uuid.UUID, total_transactions: int) -> Upload | None:
        upload = self.get_upload(upload_id)
        if upload is None:
            return None
        upload.processing_status = UploadStatus.COMPLETED
        upload.total_transactions = total_transactions
        upload.error_message = None
        self._session.flush()
        return upload

    def mark_failed(self, *, upload_id: uuid.UUID, error_message: str) -> Upload | None:
        upload = self.get_upload(upload_id)
        if upload is None:
            return None
        upload.processing_status = UploadStatus.FAILED
        upload.error_message = error_message
        self._session.flush()
        return upload
