"""
app/repositories/subscription_repository.py

Persistence for the local subscription mirror and the plan catalogue.
"""

from __future__ import annotations

import uuid
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from db.models.subscription import PlanProduct, Subscription, SubscriptionProduct, SubscriptionStatus


class SubscriptionRepository:
    def __init__(self, session: Session) -> None:
        self._session = session

    def get_entitled_for_user(self, user_id: uuid.UUID) -> Subscription | None:
        """
        Most recently updated active or trialing subscription for one user.
        """

        stmt = (
            select(Subscription)
            .where(
                Subscription.user_id == user_id,
                Subscription.status.in_(SubscriptionStatus.ENTITLED),
            )
            .order_by(Subscription.updated_at.desc())
            .limit(1)
        )
        return self._session.scalars(stmt).first()

    def get_product(self, product_id: str) -> SubscriptionProduct | None:
        stmt = select(SubscriptionProduct).where(SubscriptionProduct.product_id == product_id)
        return self._session.scalars(stmt).first()

    def get_product_by_price_id(self, stripe_price_id: str) -> SubscriptionProduct | None:
        stmt = select(SubscriptionProduct).where(SubscriptionProduct.stripe_price_id == stripe_price_id)
        return self._session.scalars(stmt).first()

    def count_active_by_product(self) -> dict[str, int]:
        """
        Active subscription counts per product, lifetime plans excluded.
        """

        stmt = (
            select(Subscription.product_id, func.count(Subscription.id))
            .where(
                Subscription.status == SubscriptionStatus.ACTIVE,
                Subscription.product_id != PlanProduct.LIFETIME_PRO,
            )
            .group_by(Subscription.product_id)
        )
        return {product_id: int(count) for product_id, count in self._session.execute(stmt).all()}

    def get_by_stripe_subscription_id(self, stripe_subscription_id: str) -> Subscription | None:
        stmt = select(Subscription).where(
            Subscription.stripe_subscription_id == stripe_subscription_id
        )
        return self._session.scalars(stmt).first()

    def upsert_from_processor(
        self,
        *,
        stripe_subscription_id: str,
        values: dict[str, Any],
    ) -> Subscription:
        """
        Create or update the mirror row keyed by the processor subscription id.

        Keys missing from ``values`` keep their stored value.
        """

        subscription = self.get_by_stripe_subscription_id(stripe_subscription_id)
        if subscription is None:
            subscription = Subscription(stripe_subscription_id=stripe_subscription_id)
            self._session.add(subscription)

        for key, value in values.items():
            setattr(subscription, key, value)
        self._session.flush()
        return subscription

    def list_active_subscribers(self) -> list[tuple[uuid.UUID, str]]:
        """
        Distinct (user_id, product_id) pairs with an ``active`` subscription.
        """

        stmt = (
            select(Subscription.user_id, Subscription.product_id)
            .where(Subscription.status == SubscriptionStatus.ACTIVE)
            .distinct()
        )
        return [(user_id, product_id) for user_id, product_id in self._session.execute(stmt).all()]
