"""
app/services/subscription_service.py

Read-side subscription gate and payment-processor webhook mapping.

The local ``subscriptions`` table mirrors the processor's view. Webhooks
keep it current; the dashboard reads it through ``check_subscription`` and
``seat_counter``. Checkout and billing flows are handled by the processor.
"""

from __future__ import annotations

import json
import logging
import math
import uuid
from datetime import datetime, timezone
from functools import lru_cache
from typing import Any, Callable, Mapping

import stripe
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.config import get_stripe_settings
from app.repositories.subscription_repository import SubscriptionRepository
from db.models.subscription import PlanProduct, Subscription, SubscriptionStatus

logger = logging.getLogger(__name__)

DEFAULT_EARLY_BIRD_SEATS = 100
SEAT_COUNTED_PRODUCTS: tuple[str, ...] = (
    PlanProduct.EARLY_BIRD,
    PlanProduct.GROWTH,
    PlanProduct.STUDIO,
)

SUBSCRIPTION_EVENTS = frozenset(
    {
        "customer.subscription.created",
        "customer.subscription.updated",
        "customer.subscription.deleted",
    }
)
CHECKOUT_COMPLETED_EVENT = "checkout.session.completed"


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class SubscriptionLookupError(RuntimeError):
    """
    Raised when subscription state cannot be read.
    """


class WebhookSignatureError(ValueError):
    """
    Raised when a webhook payload is unsigned, tampered, or not JSON.
    """


class WebhookConfigurationError(RuntimeError):
    """
    Raised when no webhook signing secret is configured.
    """


class WebhookProcessingError(RuntimeError):
    """
    Raised when a verified event cannot be applied to the mirror.
    """


# ---------------------------------------------------------------------------
# Signature verification
# ---------------------------------------------------------------------------


class StripeWebhookVerifier:
    """
    Verifies the ``Stripe-Signature`` header and decodes the event body.
    """

    def __init__(self, *, secret: str | None, tolerance_seconds: int) -> None:
        self._secret = secret
        self._tolerance_seconds = tolerance_seconds

    def verify(self, *, payload: bytes, signature: str | None) -> dict[str, Any]:
        if not self._secret:
            raise WebhookConfigurationError("Webhook signing secret is not configured.")
        if not signature:
            raise WebhookSignatureError("No Stripe signature found")

        body = payload.decode("utf-8")
        try:
            stripe.WebhookSignature.verify_header(
                body,
                signature,
                self._secret,
                self._tolerance_seconds,
            )
        except stripe.SignatureVerificationError as exc:
            raise WebhookSignatureError("Webhook signature verification failed") from exc

        try:
            event = json.loads(body)
        except ValueError as exc:
            raise WebhookSignatureError("Webhook payload is not valid JSON") from exc
        if not isinstance(event, dict):
            raise WebhookSignatureError("Webhook payload is not an event object")
        return event


@lru_cache(maxsize=1)
def get_webhook_verifier() -> StripeWebhookVerifier:
    settings = get_stripe_settings()
    return StripeWebhookVerifier(
        secret=settings.webhook_secret,
        tolerance_seconds=settings.signature_tolerance_seconds,
    )


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------


def _from_epoch(value: Any) -> datetime | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        return datetime.fromtimestamp(int(value), tz=timezone.utc)
    except (TypeError, ValueError, OverflowError):
        return None


def _parse_uuid(value: Any) -> uuid.UUID | None:
    if not value:
        return None
    try:
        return uuid.UUID(str(value))
    except ValueError:
        return None


class SubscriptionService:
    def __init__(
        self,
        *,
        clock: Callable[[], datetime] | None = None,
        repository_factory: Callable[[Session], SubscriptionRepository] = SubscriptionRepository,
    ) -> None:
        self._clock = clock or (lambda: datetime.now(tz=timezone.utc))
        self._repository_factory = repository_factory

    # ------------------------------------------------------------------
    # Read side
    # ------------------------------------------------------------------

    def check_subscription(self, db: Session, *, user_id: uuid.UUID) -> dict[str, Any]:
        """
        Entitlement snapshot for one user.

        ``active`` and ``trialing`` both count as entitled.
        """

        repository = self._repository_factory(db)
        try:
            subscription = repository.get_entitled_for_user(user_id)
            product = repository.get_product(subscription.product_id) if subscription else None
        except SQLAlchemyError as exc:
            raise SubscriptionLookupError("Failed to fetch subscription.") from exc

        if subscription is None:
            logger.info("No active subscription user_id=%s", user_id)
            return {
                "has_active_subscription": False,
                "subscription": None,
                "plan_features": None,
            }

        return {
            "has_active_subscription": True,
            "subscription": {
                "id": str(subscription.id),
                "product_id": subscription.product_id,
                "status": subscription.status,
                "current_period_end": subscription.current_period_end,
                "trial_end": subscription.trial_end,
                "trial_days_remaining": self.trial_days_remaining(subscription.trial_end),
                "cancel_at_period_end": subscription.cancel_at_period_end,
                "plan_name": product.name if product else None,
            },
            "plan_features": dict(product.plan_metadata or {}) if product else {},
        }

    def trial_days_remaining(self, trial_end: datetime | None) -> int:
        if trial_end is None:
            return 0
        if trial_end.tzinfo is None:
            trial_end = trial_end.replace(tzinfo=timezone.utc)
        remaining = (trial_end - self._clock()).total_seconds() / 86400
        return max(0, math.ceil(remaining))

    def seat_counter(self, db: Session) -> dict[str, Any]:
        repository = self._repository_factory(db)
        try:
            counts = repository.count_active_by_product()
            early_bird = repository.get_product(PlanProduct.EARLY_BIRD)
        except SQLAlchemyError as exc:
            raise SubscriptionLookupError("Failed to fetch seat counts.") from exc

        current = counts.get(PlanProduct.EARLY_BIRD, 0)
        maximum = (early_bird.inventory_limit if early_bird else None) or DEFAULT_EARLY_BIRD_SEATS
        remaining = max(0, maximum - current)
        return {
            "early_bird": {
                "current": current,
                "max": maximum,
                "remaining": remaining,
                "available": remaining > 0,
            },
            "seat_counts": {product: counts.get(product, 0) for product in SEAT_COUNTED_PRODUCTS},
        }

    # ------------------------------------------------------------------
    # Webhook
    # ------------------------------------------------------------------

    def apply_webhook_event(self, db: Session, *, event: Mapping[str, Any]) -> bool:
        """
        Apply one verified processor event. Returns True when the mirror changed.
        """

        event_type = str(event.get("type") or "")
        obj = (event.get("data") or {}).get("object") or {}
        logger.info("Webhook event received type=%s id=%s", event_type, event.get("id"))

        if event_type == CHECKOUT_COMPLETED_EVENT:
            # The subscription itself arrives as customer.subscription.created.
            logger.info(
                "Checkout session completed session_id=%s subscription=%s",
                obj.get("id"),
                obj.get("subscription"),
            )
            return False
        if event_type not in SUBSCRIPTION_EVENTS:
            logger.info("Unhandled webhook event type=%s", event_type)
            return False

        stripe_subscription_id = obj.get("id")
        if not stripe_subscription_id:
            logger.warning("Subscription event without id type=%s", event_type)
            return False

        repository = self._repository_factory(db)
        try:
            existing = repository.get_by_stripe_subscription_id(stripe_subscription_id)
            values = self._subscription_values(repository, obj, existing=existing)
            if values is None:
                return False
            repository.upsert_from_processor(
                stripe_subscription_id=stripe_subscription_id,
                values=values,
            )
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            raise WebhookProcessingError("Failed to update subscription.") from exc

        logger.info(
            "Subscription mirrored stripe_subscription_id=%s status=%s",
            stripe_subscription_id,
            values.get("status"),
        )
        return True

    def _subscription_values(
        self,
        repository: SubscriptionRepository,
        obj: Mapping[str, Any],
        *,
        existing: Subscription | None,
    ) -> dict[str, Any] | None:
        values: dict[str, Any] = {
            "status": str(obj.get("status") or SubscriptionStatus.INCOMPLETE),
            "current_period_start": _from_epoch(obj.get("current_period_start")),
            "current_period_end": _from_epoch(obj.get("current_period_end")),
            "trial_end": _from_epoch(obj.get("trial_end")),
            "cancel_at_period_end": bool(obj.get("cancel_at_period_end", False)),
        }
        if obj.get("customer"):
            values["stripe_customer_id"] = str(obj["customer"])

        if existing is not None:
            return values

        metadata = obj.get("metadata") or {}
        user_id = _parse_uuid(metadata.get("user_id"))
        product_id = metadata.get("product_id") or self._product_from_items(repository, obj)
        if user_id is None or not product_id:
            logger.warning(
                "Cannot mirror new subscription id=%s: user_id or product_id missing",
                obj.get("id"),
            )
            return None

        values["user_id"] = user_id
        values["product_id"] = str(product_id)
        return values

    @staticmethod
    def _product_from_items(repository: SubscriptionRepository, obj: Mapping[str, Any]) -> str | None:
        items = (obj.get("items") or {}).get("data") or []
        if not items:
            return None
        price_id = (items[0].get("price") or {}).get("id")
        if not price_id:
            return None
        product = repository.get_product_by_price_id(price_id)
        return product.product_id if product else None


@lru_cache(maxsize=1)
def get_subscription_service() -> SubscriptionService:
    return SubscriptionService()
