"""
app/api/routers/devex_rate_router.py

DevEx rate registry and demo data endpoints.
"""

from __future__ import annotations

import logging
import uuid

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from app.api.dependencies import get_current_user_id, require_admin_token
from app.schemas.devex_rate import (
    DemoSeedResponse,
    DevExRateResponse,
    DevExRateUpdateRequest,
    DevExRateUpdateResponse,
)
from app.services.demo_data_service import DemoDataError, DemoDataService, get_demo_data_service
from app.services.devex_rate_service import (
    DevExRateService,
    DevExRateUnavailableError,
    DevExRateUpdateError,
    get_devex_rate_service,
)
from db.session import get_db

logger = logging.getLogger(__name__)

router = APIRouter(tags=["devex"])


@router.get("/devex-rate", response_model=DevExRateResponse)
def get_devex_rate(
    db: Session = Depends(get_db),
    service: DevExRateService = Depends(get_devex_rate_service),
) -> DevExRateResponse:
    try:
        current = service.get_current_rate(db)
    except DevExRateUnavailableError as exc:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=str(exc),
        ) from exc
    return DevExRateResponse(
        rate=current.rate,
        effective_at=current.effective_at,
        is_default=current.is_default,
    )


@router.post(
    "/devex-rate",
    response_model=DevExRateUpdateResponse,
    dependencies=[Depends(require_admin_token)],
)
def update_devex_rate(
    body: DevExRateUpdateRequest,
    db: Session = Depends(get_db),
    service: DevExRateService = Depends(get_devex_rate_service),
) -> DevExRateUpdateResponse:
    """
    Append a new rate version. Existing transactions keep their snapshot.
    """

    try:
        result = service.update_rate(db, new_rate=body.rate)
    except (DevExRateUnavailableError, DevExRateUpdateError) as exc:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=str(exc),
        ) from exc

    if result.notify:
        logger.warning(
            "DevEx rate moved %.2f%% (%s -> %s); subscribers should be notified",
            result.change_percent,
            result.previous_rate,
            result.new_rate,
        )
    return DevExRateUpdateResponse(
        previous_rate=result.previous_rate,
        new_rate=result.new_rate,
        change_percent=result.change_percent,
        notify=result.notify,
        effective_at=result.effective_at,
    )


@router.post("/demo/seed", response_model=DemoSeedResponse)
def seed_demo(
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    service: DemoDataService = Depends(get_demo_data_service),
) -> DemoSeedResponse:
    try:
        result = service.seed_demo(db, user_id=user_id)
    except DemoDataError as exc:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=str(exc),
        ) from exc
    return DemoSeedResponse(
        message="Demo data created successfully",
        transaction_count=result.transaction_count,
        expires_at=result.expires_at,
    )
