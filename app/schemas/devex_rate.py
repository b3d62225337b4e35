"""
Schemas for the DevEx rate registry and demo data endpoints.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


class DevExRateResponse(BaseModel):
    rate: float
    effective_at: datetime | None = None
    is_default: bool


class DevExRateUpdateRequest(BaseModel):
    rate: float = Field(..., gt=0)


class DevExRateUpdateResponse(BaseModel):
    previous_rate: float
    new_rate: float
    change_percent: float
    notify: bool
    effective_at: datetime


class DemoSeedResponse(BaseModel):
    success: bool = True
    message: str
    transaction_count: int
    expires_at: datetime
