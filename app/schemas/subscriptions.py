"""
Schemas for subscription status, seat counter, and webhook endpoints.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


class SubscriptionDetail(BaseModel):
    id: str
    product_id: str
    status: str
    current_period_end: datetime | None = None
    trial_end: datetime | None = None
    trial_days_remaining: int = 0
    cancel_at_period_end: bool = False
    plan_name: str | None = None


class SubscriptionStatusResponse(BaseModel):
    has_active_subscription: bool
    subscription: SubscriptionDetail | None = None
    plan_features: dict[str, Any] | None = None


class EarlyBirdSeats(BaseModel):
    current: int
    max: int
    remaining: int
    available: bool


class SeatCounterResponse(BaseModel):
    early_bird: EarlyBirdSeats
    seat_counts: dict[str, int] = Field(default_factory=dict)


class WebhookAckResponse(BaseModel):
    received: bool = True
