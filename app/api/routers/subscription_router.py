"""
app/api/routers/subscription_router.py

Subscription status, seat counter, and payment-processor webhook endpoints.
"""

from __future__ import annotations

import logging
import uuid

from fastapi import APIRouter, Depends, Header, HTTPException, Request, status
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.orm import Session

from app.api.dependencies import get_current_user_id
from app.schemas.subscriptions import (
    SeatCounterResponse,
    SubscriptionStatusResponse,
    WebhookAckResponse,
)
from app.services.subscription_service import (
    StripeWebhookVerifier,
    SubscriptionLookupError,
    SubscriptionService,
    WebhookConfigurationError,
    WebhookProcessingError,
    WebhookSignatureError,
    get_subscription_service,
    get_webhook_verifier,
)
from db.session import get_db

logger = logging.getLogger(__name__)

router = APIRouter(tags=["subscriptions"])


@router.get("/subscription", response_model=SubscriptionStatusResponse)
def check_subscription(
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    service: SubscriptionService = Depends(get_subscription_service),
) -> SubscriptionStatusResponse:
    try:
        snapshot = service.check_subscription(db, user_id=user_id)
    except SubscriptionLookupError as exc:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=str(exc),
        ) from exc
    return SubscriptionStatusResponse.model_validate(snapshot)


@router.get("/seat-counter", response_model=SeatCounterResponse)
def seat_counter(
    db: Session = Depends(get_db),
    service: SubscriptionService = Depends(get_subscription_service),
) -> SeatCounterResponse:
    try:
        counts = service.seat_counter(db)
    except SubscriptionLookupError as exc:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=str(exc),
        ) from exc
    return SeatCounterResponse.model_validate(counts)


@router.post("/stripe-webhook", response_model=WebhookAckResponse)
async def stripe_webhook(
    request: Request,
    stripe_signature: str | None = Header(default=None),
    db: Session = Depends(get_db),
    verifier: StripeWebhookVerifier = Depends(get_webhook_verifier),
    service: SubscriptionService = Depends(get_subscription_service),
) -> WebhookAckResponse:
    """
    Verify and apply one processor event. The raw body is needed for the signature.
    """

    payload = await request.body()
    try:
        event = verifier.verify(payload=payload, signature=stripe_signature)
    except WebhookSignatureError as exc:
        logger.warning("Webhook rejected: %s", exc)
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc
    except WebhookConfigurationError as exc:
        logger.error("Webhook rejected: %s", exc)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=str(exc),
        ) from exc

    try:
        await run_in_threadpool(service.apply_webhook_event, db, event=event)
    except WebhookProcessingError as exc:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=str(exc),
        ) from exc
    return WebhookAckResponse()
