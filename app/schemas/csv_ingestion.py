"""
app/schemas/csv_ingestion.py

Request and response schemas for transaction CSV ingestion endpoints.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class ProcessCSVRequest(BaseModel):
    """
    Rows already parsed client-side. ``csvData`` is checked for list shape
    in the router so a malformed payload yields a 400 rather than a 422.
    """

    model_config = ConfigDict(populate_by_name=True)

    csv_data: Any = Field(default=None, alias="csvData")
    filename: str | None = None


class ProcessCSVResponse(BaseModel):
    """
    API response model for one ingestion run.
    """

    message: str
    processed_count: int = Field(..., ge=0)
    error_count: int = Field(..., ge=0)
    errors: list[str] = Field(default_factory=list)
    upload_id: UUID


class UploadResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_id: UUID
    filename: str
    total_transactions: int
    processing_status: str
    error_message: str | None = None
    upload_date: datetime
    created_at: datetime


class UploadListResponse(BaseModel):
    uploads: list[UploadResponse] = Field(default_factory=list)
