"""
app/api/routers/csv_ingestion.py

Transaction CSV ingestion and upload history endpoints.
"""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.api.dependencies import get_current_user_id
from app.repositories.upload_repository import UploadRepository
from app.schemas.csv_ingestion import (
    ProcessCSVRequest,
    ProcessCSVResponse,
    UploadListResponse,
    UploadResponse,
)
from app.services.csv_ingestion_service import (
    TransactionIngestionService,
    TransactionPersistenceError,
    UploadCreationError,
    get_transaction_ingestion_service,
)
from app.services.devex_rate_service import DevExRateUnavailableError
from db.session import get_db

router = APIRouter(tags=["ingestion"])


def get_upload_repository(db: Session = Depends(get_db)) -> UploadRepository:
    return UploadRepository(db)


@router.post("/process-csv", response_model=ProcessCSVResponse)
def process_csv(
    payload: ProcessCSVRequest,
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    ingestion_service: TransactionIngestionService = Depends(get_transaction_ingestion_service),
) -> ProcessCSVResponse:
    """
    Validate and store one batch of parsed CSV rows for the caller.
    """

    if not isinstance(payload.csv_data, list):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid CSV data",
        )

    try:
        summary = ingestion_service.process_upload(
            db,
            user_id=user_id,
            filename=payload.filename,
            rows=payload.csv_data,
        )
    except DevExRateUnavailableError as exc:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Unable to read the current DevEx rate.",
        ) from exc
    except UploadCreationError as exc:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to create upload record",
        ) from exc
    except TransactionPersistenceError as exc:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to insert transactions",
        ) from exc

    return ProcessCSVResponse(
        message=f"Successfully processed {summary.accepted} transactions",
        processed_count=summary.accepted,
        error_count=summary.rejected,
        errors=summary.sample_errors,
        upload_id=summary.upload_id,
    )


@router.get("/uploads", response_model=UploadListResponse)
def list_uploads(
    limit: int = Query(default=50, ge=1, le=200),
    user_id: uuid.UUID = Depends(get_current_user_id),
    repository: UploadRepository = Depends(get_upload_repository),
) -> UploadListResponse:
    """
    The caller's uploads, newest first.
    """

    try:
        uploads = repository.list_uploads_for_user(user_id, limit=limit)
    except SQLAlchemyError as exc:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to fetch uploads.",
        ) from exc
    return UploadListResponse(uploads=[UploadResponse.model_validate(upload) for upload in uploads])
