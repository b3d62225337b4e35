"""
tests/test_subscription_service.py

Pytest tests for the subscription gate, seat counter, webhook event mapping
and webhook signature verification.

Signed payloads are built with the processor's documented scheme
(``t=<ts>,v1=<hmac-sha256(secret, "<ts>.<body>")>``) so verification runs
through the real ``stripe`` library.
"""

from __future__ import annotations

import hashlib
import hmac
import json
import time
import uuid
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from typing import Any

import pytest

from app.services.subscription_service import (
    DEFAULT_EARLY_BIRD_SEATS,
    StripeWebhookVerifier,
    SubscriptionLookupError,
    SubscriptionService,
    WebhookConfigurationError,
    WebhookProcessingError,
    WebhookSignatureError,
)
from db.models.subscription import PlanProduct, SubscriptionStatus
from tests.conftest import FakeSession, make_db_error

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)
SECRET = "whsec_test_secret"


class FakeSubscriptionRepository:
    def __init__(
        self,
        *,
        subscriptions: list[SimpleNamespace] | None = None,
        products: list[SimpleNamespace] | None = None,
        fail: bool = False,
    ) -> None:
        self.subscriptions = subscriptions or []
        self.products = products or []
        self._fail = fail

    def _check(self) -> None:
        if self._fail:
            raise make_db_error()

    def get_entitled_for_user(self, user_id: uuid.UUID) -> SimpleNamespace | None:
        self._check()
        for subscription in self.subscriptions:
            if subscription.user_id == user_id and subscription.status in SubscriptionStatus.ENTITLED:
                return subscription
        return None

    def get_product(self, product_id: str) -> SimpleNamespace | None:
        self._check()
        return next((product for product in self.products if product.product_id == product_id), None)

    def get_product_by_price_id(self, stripe_price_id: str) -> SimpleNamespace | None:
        self._check()
        return next((product for product in self.products if product.stripe_price_id == stripe_price_id), None)

    def count_active_by_product(self) -> dict[str, int]:
        self._check()
        counts: dict[str, int] = {}
        for subscription in self.subscriptions:
            if subscription.status == SubscriptionStatus.ACTIVE and subscription.product_id != PlanProduct.LIFETIME_PRO:
                counts[subscription.product_id] = counts.get(subscription.product_id, 0) + 1
        return counts

    def get_by_stripe_subscription_id(self, stripe_subscription_id: str) -> SimpleNamespace | None:
        self._check()
        return next(
            (row for row in self.subscriptions if row.stripe_subscription_id == stripe_subscription_id),
            None,
        )

    def upsert_from_processor(self, *, stripe_subscription_id: str, values: dict[str, Any]) -> SimpleNamespace:
        self._check()
        existing = self.get_by_stripe_subscription_id(stripe_subscription_id)
        if existing is None:
            existing = SimpleNamespace(id=uuid.uuid4(), stripe_subscription_id=stripe_subscription_id)
            self.subscriptions.append(existing)
        for key, value in values.items():
            setattr(existing, key, value)
        return existing


def _product(product_id: str, *, name: str, limit: int | None = None, price_id: str | None = None):
    return SimpleNamespace(
        product_id=product_id,
        name=name,
        inventory_limit=limit,
        stripe_price_id=price_id,
        plan_metadata={"max_games": 1, "retention_days": 30},
    )


def _subscription(user_id: uuid.UUID, *, status: str = "active", product_id: str = PlanProduct.EARLY_BIRD, **extra):
    fields = {
        "id": uuid.uuid4(),
        "user_id": user_id,
        "product_id": product_id,
        "status": status,
        "stripe_subscription_id": f"sub_{uuid.uuid4().hex[:8]}",
        "current_period_end": NOW + timedelta(days=30),
        "trial_end": None,
        "cancel_at_period_end": False,
    }
    fields.update(extra)
    return SimpleNamespace(**fields)


def _service(repository: FakeSubscriptionRepository) -> SubscriptionService:
    return SubscriptionService(clock=lambda: NOW, repository_factory=lambda db: repository)


def _event(event_type: str, obj: dict[str, Any]) -> dict[str, Any]:
    return {"id": "evt_1", "type": event_type, "data": {"object": obj}}


# ---------------------------------------------------------------------------
# check_subscription
# ---------------------------------------------------------------------------


class TestCheckSubscription:
    def test_no_subscription(self, user_id) -> None:
        result = _service(FakeSubscriptionRepository()).check_subscription(FakeSession(), user_id=user_id)

        assert result == {"has_active_subscription": False, "subscription": None, "plan_features": None}

    def test_active_subscription_with_plan(self, user_id) -> None:
        repository = FakeSubscriptionRepository(
            subscriptions=[_subscription(user_id)],
            products=[_product(PlanProduct.EARLY_BIRD, name="Early Bird")],
        )

        result = _service(repository).check_subscription(FakeSession(), user_id=user_id)

        assert result["has_active_subscription"] is True
        assert result["subscription"]["plan_name"] == "Early Bird"
        assert result["subscription"]["trial_days_remaining"] == 0
        assert result["plan_features"] == {"max_games": 1, "retention_days": 30}

    def test_trialing_counts_as_entitled(self, user_id) -> None:
        repository = FakeSubscriptionRepository(
            subscriptions=[_subscription(user_id, status="trialing", trial_end=NOW + timedelta(days=2, hours=1))]
        )

        result = _service(repository).check_subscription(FakeSession(), user_id=user_id)

        assert result["has_active_subscription"] is True
        assert result["subscription"]["trial_days_remaining"] == 3
        assert result["plan_features"] == {}

    def test_canceled_is_not_entitled(self, user_id) -> None:
        repository = FakeSubscriptionRepository(subscriptions=[_subscription(user_id, status="canceled")])

        result = _service(repository).check_subscription(FakeSession(), user_id=user_id)

        assert result["has_active_subscription"] is False

    def test_storage_failure(self, user_id) -> None:
        with pytest.raises(SubscriptionLookupError):
            _service(FakeSubscriptionRepository(fail=True)).check_subscription(FakeSession(), user_id=user_id)


class TestTrialDaysRemaining:
    def test_partial_day_rounds_up(self) -> None:
        service = _service(FakeSubscriptionRepository())
        assert service.trial_days_remaining(NOW + timedelta(hours=1)) == 1

    def test_past_trial_is_zero(self) -> None:
        service = _service(FakeSubscriptionRepository())
        assert service.trial_days_remaining(NOW - timedelta(days=3)) == 0

    def test_naive_datetime_treated_as_utc(self) -> None:
        service = _service(FakeSubscriptionRepository())
        assert service.trial_days_remaining(datetime(2024, 6, 8, 12, 0)) == 7


# ---------------------------------------------------------------------------
# seat_counter
# ---------------------------------------------------------------------------


class TestSeatCounter:
    def test_counts_active_early_bird_seats(self) -> None:
        users = [uuid.uuid4() for _ in range(4)]
        repository = FakeSubscriptionRepository(
            subscriptions=[
                _subscription(users[0]),
                _subscription(users[1]),
                _subscription(users[2], status="canceled"),
                _subscription(users[3], product_id=PlanProduct.GROWTH),
            ],
            products=[_product(PlanProduct.EARLY_BIRD, name="Early Bird", limit=3)],
        )

        result = _service(repository).seat_counter(FakeSession())

        assert result["early_bird"] == {"current": 2, "max": 3, "remaining": 1, "available": True}
        assert result["seat_counts"] == {"early_bird": 2, "growth": 1, "studio": 0}

    def test_defaults_limit_when_product_missing(self) -> None:
        result = _service(FakeSubscriptionRepository()).seat_counter(FakeSession())

        assert result["early_bird"]["max"] == DEFAULT_EARLY_BIRD_SEATS
        assert result["early_bird"]["available"] is True

    def test_sold_out(self) -> None:
        repository = FakeSubscriptionRepository(
            subscriptions=[_subscription(uuid.uuid4()) for _ in range(2)],
            products=[_product(PlanProduct.EARLY_BIRD, name="Early Bird", limit=1)],
        )

        early_bird = _service(repository).seat_counter(FakeSession())["early_bird"]

        assert early_bird["remaining"] == 0
        assert early_bird["available"] is False


# ---------------------------------------------------------------------------
# apply_webhook_event
# ---------------------------------------------------------------------------


class TestApplyWebhookEvent:
    def test_created_event_inserts_mirror_row(self, user_id) -> None:
        repository = FakeSubscriptionRepository()
        session = FakeSession()
        event = _event(
            "customer.subscription.created",
            {
                "id": "sub_123",
                "customer": "cus_9",
                "status": "trialing",
                "current_period_start": 1717243200,
                "current_period_end": 1719835200,
                "trial_end": 1717848000,
                "metadata": {"user_id": str(user_id), "product_id": PlanProduct.EARLY_BIRD},
            },
        )

        changed = _service(repository).apply_webhook_event(session, event=event)

        assert changed is True
        assert session.commits == 1
        (row,) = repository.subscriptions
        assert row.user_id == user_id
        assert row.product_id == PlanProduct.EARLY_BIRD
        assert row.status == "trialing"
        assert row.stripe_customer_id == "cus_9"
        assert row.current_period_start == datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)

    def test_product_resolved_from_price_id(self, user_id) -> None:
        repository = FakeSubscriptionRepository(
            products=[_product(PlanProduct.GROWTH, name="Growth", price_id="price_growth")]
        )
        event = _event(
            "customer.subscription.created",
            {
                "id": "sub_456",
                "status": "active",
                "metadata": {"user_id": str(user_id)},
                "items": {"data": [{"price": {"id": "price_growth"}}]},
            },
        )

        assert _service(repository).apply_webhook_event(FakeSession(), event=event) is True
        assert repository.subscriptions[0].product_id == PlanProduct.GROWTH

    def test_updated_event_changes_existing_row(self, user_id) -> None:
        existing = _subscription(user_id, stripe_subscription_id="sub_789")
        repository = FakeSubscriptionRepository(subscriptions=[existing])
        event = _event(
            "customer.subscription.updated",
            {"id": "sub_789", "status": "past_due", "cancel_at_period_end": True},
        )

        assert _service(repository).apply_webhook_event(FakeSession(), event=event) is True
        assert existing.status == "past_due"
        assert existing.cancel_at_period_end is True
        assert existing.user_id == user_id

    def test_deleted_event_marks_canceled(self, user_id) -> None:
        existing = _subscription(user_id, stripe_subscription_id="sub_del")
        repository = FakeSubscriptionRepository(subscriptions=[existing])

        _service(repository).apply_webhook_event(
            FakeSession(),
            event=_event("customer.subscription.deleted", {"id": "sub_del", "status": "canceled"}),
        )

        assert existing.status == "canceled"

    def test_new_subscription_without_user_is_ignored(self) -> None:
        repository = FakeSubscriptionRepository()
        session = FakeSession()
        event = _event("customer.subscription.created", {"id": "sub_x", "status": "active", "metadata": {}})

        assert _service(repository).apply_webhook_event(session, event=event) is False
        assert repository.subscriptions == []
        assert session.commits == 0

    @pytest.mark.parametrize("event_type", ["checkout.session.completed", "invoice.paid"])
    def test_other_events_acknowledged_without_change(self, event_type: str) -> None:
        repository = FakeSubscriptionRepository()

        assert _service(repository).apply_webhook_event(FakeSession(), event=_event(event_type, {"id": "x"})) is False
        assert repository.subscriptions == []

    def test_storage_failure_raises(self, user_id) -> None:
        session = FakeSession()
        event = _event("customer.subscription.updated", {"id": "sub_1", "status": "active"})

        with pytest.raises(WebhookProcessingError):
            _service(FakeSubscriptionRepository(fail=True)).apply_webhook_event(session, event=event)

        assert session.rollbacks == 1


# ---------------------------------------------------------------------------
# StripeWebhookVerifier
# ---------------------------------------------------------------------------


def _sign(body: str, *, secret: str = SECRET, timestamp: int | None = None) -> str:
    timestamp = int(time.time()) if timestamp is None else timestamp
    digest = hmac.new(secret.encode("utf-8"), f"{timestamp}.{body}".encode("utf-8"), hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={digest}"


class TestStripeWebhookVerifier:
    def _verifier(self, secret: str | None = SECRET) -> StripeWebhookVerifier:
        return StripeWebhookVerifier(secret=secret, tolerance_seconds=300)

    def test_valid_signature_returns_event(self) -> None:
        body = json.dumps({"id": "evt_1", "type": "invoice.paid", "data": {"object": {}}})

        event = self._verifier().verify(payload=body.encode("utf-8"), signature=_sign(body))

        assert event["type"] == "invoice.paid"

    def test_missing_signature(self) -> None:
        with pytest.raises(WebhookSignatureError, match="No Stripe signature found"):
            self._verifier().verify(payload=b"{}", signature=None)

    def test_wrong_secret(self) -> None:
        body = json.dumps({"id": "evt_1"})

        with pytest.raises(WebhookSignatureError, match="verification failed"):
            self._verifier().verify(payload=body.encode("utf-8"), signature=_sign(body, secret="whsec_other"))

    def test_tampered_body(self) -> None:
        signature = _sign(json.dumps({"amount": 1}))

        with pytest.raises(WebhookSignatureError):
            self._verifier().verify(payload=json.dumps({"amount": 1000}).encode("utf-8"), signature=signature)

    def test_stale_timestamp(self) -> None:
        body = json.dumps({"id": "evt_1"})
        signature = _sign(body, timestamp=int(time.time()) - 3600)

        with pytest.raises(WebhookSignatureError):
            self._verifier().verify(payload=body.encode("utf-8"), signature=signature)

    def test_signed_non_object_payload(self) -> None:
        body = json.dumps(["not", "an", "event"])

        with pytest.raises(WebhookSignatureError, match="not an event object"):
            self._verifier().verify(payload=body.encode("utf-8"), signature=_sign(body))

    def test_unconfigured_secret(self) -> None:
        with pytest.raises(WebhookConfigurationError):
            self._verifier(secret=None).verify(payload=b"{}", signature="t=1,v1=abc")
