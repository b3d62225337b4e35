"""
app/repositories/devex_rate_repository.py

Read and append DevEx rate versions.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import select
from sqlalchemy.orm import Session

from db.models.devex_rate import DevExRate


class DevExRateRepository:
    def __init__(self, session: Session) -> None:
        self._session = session

    def latest(self) -> DevExRate | None:
        stmt = (
            select(DevExRate)
            .order_by(DevExRate.effective_at.desc(), DevExRate.created_at.desc())
            .limit(1)
        )
        return self._session.scalars(stmt).first()

    def append(
        self,
        *,
        rate: float,
        previous_rate: float | None,
        effective_at: datetime,
    ) -> DevExRate:
        version = DevExRate(
            rate=rate,
            previous_rate=previous_rate,
            effective_at=effective_at,
        )
        self._session.add(version)
        self._session.flush()
        return version

    def history(self, *, limit: int = 20) -> list[DevExRate]:
        stmt = select(DevExRate).order_by(DevExRate.effective_at.desc()).limit(max(1, limit))
        return list(self._session.scalars(stmt).all())
