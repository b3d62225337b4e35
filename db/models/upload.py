"""
db/models/upload.py

Upload model: one ingestion attempt for a single submitted CSV file.
"""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, Index, Integer, String, Text, func
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from db.base import Base, TimestampMixin


class UploadStatus:
    """Upload lifecycle: processing, then completed or failed."""

    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    TERMINAL = frozenset({COMPLETED, FAILED})


class Upload(Base, TimestampMixin):
    """
    Tracks status and counts for one submitted file.

    ``total_transactions`` starts as the submitted row count and is rewritten
    to the accepted count when the upload completes.
    """

    __tablename__ = "uploads"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        nullable=False,
        comment="Owning user id issued by the auth platform",
    )
    filename: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )
    total_transactions: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
    )
    processing_status: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        default=UploadStatus.PROCESSING,
        comment="processing, then completed or failed",
    )
    error_message: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
    )
    upload_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    __table_args__ = (
        CheckConstraint(
            "processing_status IN ('processing', 'completed', 'failed')",
            name="ck_uploads_processing_status",
        ),
        Index("ix_uploads_user_id", "user_id"),
        Index("ix_uploads_user_created_at", "user_id", "created_at"),
        Index("ix_uploads_processing_status", "processing_status"),
    )

    def __repr__(self) -> str:
        return (
            f"<Upload id={self.id} filename={self.filename!r} "
            f"status={self.processing_status!r} total={self.total_transactions}>"
        )
