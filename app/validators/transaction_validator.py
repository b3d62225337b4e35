"""
app/validators/transaction_validator.py

Row-level validation and field derivation for transaction CSV ingestion.

The validator performs no I/O: it maps one raw row plus the batch context
(DevEx snapshot, owner, upload) to either an accepted record or a rejection.
"""

from __future__ import annotations

import math
import re
import uuid
from datetime import date, datetime
from typing import Any, Mapping

from app.domain.transactions import (
    AcceptedRow,
    NormalizedTransaction,
    RejectedRow,
    RowOutcome,
    RowRejection,
)
from db.models.transaction import ItemType

MISSING_FIELDS_REASON = "Missing required fields"
INVALID_AMOUNT_REASON = "Invalid Robux amount"
INVALID_DATE_REASON = "Invalid date format"

DATE_FORMATS: tuple[str, ...] = (
    "%Y/%m/%d",
    "%m/%d/%Y",
    "%m/%d/%Y %H:%M:%S",
    "%m/%d/%Y %H:%M",
    "%Y/%m/%d %H:%M:%S",
    "%d %b %Y",
    "%b %d, %Y",
    "%B %d, %Y",
)

# Logical field -> normalized header aliases, most specific first.
FIELD_ALIASES: dict[str, tuple[str, ...]] = {
    "ad_spend": ("adspend",),
    "date": ("date",),
    "source": ("source",),
    "item": ("item",),
    "robux": ("robux", "amount"),
}

REQUIRED_FIELDS: tuple[str, ...] = ("date", "source", "item", "robux")

# Checked in order; the first keyword found wins.
ITEM_TYPE_KEYWORDS: tuple[tuple[str, str], ...] = (
    ("gamepass", ItemType.GAME_PASS),
    ("devproduct", ItemType.DEV_PRODUCT),
    ("ugc", ItemType.UGC),
    ("premium", ItemType.PREMIUM_PAYOUT),
)

AD_SPEND_PATTERN = re.compile(
    r"ads?(?:\s*spend)?\s*[:\-]?\s*\$?\s*(\d+(?:\.\d+)?)",
    re.IGNORECASE,
)

# Exclusive upper bounds of the numeric(p, 2) columns the amounts are stored in.
MAX_GROSS_ROBUX = 1e12
MAX_AD_SPEND = 1e12

_AMOUNT_STRIP = re.compile(r"[^0-9.\-]")
_HEADER_STRIP = re.compile(r"[\s_\-]")


class TransactionRowValidator:
    """
    Validates one raw CSV row and converts it into a normalized transaction.
    """

    def validate_row(
        self,
        *,
        raw_row: Any,
        row_number: int,
        devex_rate: float,
        user_id: uuid.UUID,
        upload_id: uuid.UUID | None,
    ) -> RowOutcome:
        """
        Return ``AcceptedRow`` or ``RejectedRow`` for one submitted row.

        Checks run in a fixed order and the first failure decides the
        reason: required fields, then amount, then date.
        """

        if not isinstance(raw_row, Mapping):
            return self._reject(row_number, MISSING_FIELDS_REASON)

        fields = self.resolve_fields(raw_row)
        if any(self._is_blank(fields.get(name)) for name in REQUIRED_FIELDS):
            return self._reject(row_number, MISSING_FIELDS_REASON)

        gross_robux = self.parse_amount(fields["robux"])
        if gross_robux is None:
            return self._reject(row_number, INVALID_AMOUNT_REASON)
        # Stored at two decimals; anything that rounds to 0 would fail the column check.
        gross_robux = round(gross_robux, 2)
        if gross_robux <= 0 or gross_robux >= MAX_GROSS_ROBUX:
            return self._reject(row_number, INVALID_AMOUNT_REASON)

        transaction_date = self.parse_date(fields["date"])
        if transaction_date is None:
            return self._reject(row_number, INVALID_DATE_REASON)

        source = str(fields["source"]).strip()
        item_name = str(fields["item"]).strip()

        return AcceptedRow(
            NormalizedTransaction(
                user_id=user_id,
                upload_id=upload_id,
                transaction_date=transaction_date,
                source=source,
                item_name=item_name,
                item_type=self.classify_item_type(item_name=item_name, source=source),
                gross_robux=gross_robux,
                ad_spend=self.extract_ad_spend(
                    explicit_value=fields.get("ad_spend"),
                    source=source,
                    item_name=item_name,
                ),
                devex_rate=devex_rate,
            )
        )

    def resolve_fields(self, raw_row: Mapping[str, Any]) -> dict[str, Any]:
        """
        Map logical field names to row values using case-insensitive headers.

        Exact alias matches are preferred over substring matches, and a header
        claimed by one field is not reused by another.
        """

        normalized = [(self._normalize_header(key), key) for key in raw_row.keys()]
        claimed: set[str] = set()
        resolved: dict[str, Any] = {}

        for field_name, aliases in FIELD_ALIASES.items():
            match = self._match_header(normalized, aliases, claimed)
            if match is None:
                continue
            claimed.add(match)
            resolved[field_name] = raw_row[match]

        return resolved

    def parse_amount(self, value: Any) -> float | None:
        """
        Parse a Robux amount, stripping currency symbols and separators.
        """

        if isinstance(value, bool):
            return None
        if isinstance(value, (int, float)):
            parsed = float(value)
        else:
            cleaned = _AMOUNT_STRIP.sub("", str(value))
            try:
                parsed = float(cleaned)
            except ValueError:
                return None
        if math.isnan(parsed) or math.isinf(parsed):
            return None
        return parsed

    def parse_date(self, value: Any) -> date | None:
        """
        Parse a calendar date; time of day and timezone are dropped.
        """

        if isinstance(value, datetime):
            return value.date()
        if isinstance(value, date):
            return value

        raw = str(value).strip()
        if not raw:
            return None

        normalized = raw[:-1] + "+00:00" if raw.endswith("Z") else raw
        try:
            return datetime.fromisoformat(normalized).date()
        except ValueError:
            pass

        for fmt in DATE_FORMATS:
            try:
                return datetime.strptime(raw, fmt).date()
            except ValueError:
                continue
        return None

    def extract_ad_spend(
        self,
        *,
        explicit_value: Any,
        source: str,
        item_name: str,
    ) -> float:
        """
        Explicit column, then source text, then item text, then 0.

        A value too large to store is skipped like an unparseable one.
        """

        explicit = self._bounded_ad_spend(self._parse_explicit_ad_spend(explicit_value))
        if explicit is not None:
            return explicit

        for text in (source, item_name):
            match = AD_SPEND_PATTERN.search(text)
            if not match:
                continue
            candidate = self._bounded_ad_spend(float(match.group(1)))
            if candidate is not None:
                return candidate
        return 0.0

    def classify_item_type(self, *, item_name: str, source: str) -> str:
        haystacks = (self._compact(item_name), self._compact(source))
        for keyword, item_type in ITEM_TYPE_KEYWORDS:
            if any(keyword in haystack for haystack in haystacks):
                return item_type
        return ItemType.OTHER

    def _parse_explicit_ad_spend(self, value: Any) -> float | None:
        if self._is_blank(value) or isinstance(value, bool):
            return None
        if isinstance(value, (int, float)):
            parsed = float(value)
        else:
            cleaned = str(value).replace("$", "").replace(",", "").strip()
            try:
                parsed = float(cleaned)
            except ValueError:
                return None
        if math.isnan(parsed) or math.isinf(parsed) or parsed < 0:
            return None
        return parsed

    @staticmethod
    def _bounded_ad_spend(value: float | None) -> float | None:
        if value is None:
            return None
        rounded = round(value, 2)
        return rounded if rounded < MAX_AD_SPEND else None

    @staticmethod
    def _match_header(
        normalized_headers: list[tuple[str, str]],
        aliases: tuple[str, ...],
        claimed: set[str],
    ) -> str | None:
        for alias in aliases:
            for normalized, original in normalized_headers:
                if original not in claimed and normalized == alias:
                    return original
        for alias in aliases:
            for normalized, original in normalized_headers:
                if original not in claimed and alias in normalized:
                    return original
        return None

    @staticmethod
    def _normalize_header(header: Any) -> str:
        return _HEADER_STRIP.sub("", str(header).lower())

    @staticmethod
    def _compact(text: str) -> str:
        return _HEADER_STRIP.sub("", text.lower())

    @staticmethod
    def _reject(row_number: int, reason: str) -> RejectedRow:
        return RejectedRow(RowRejection(row_number=row_number, reason=reason))

    @staticmethod
    def _is_blank(value: Any) -> bool:
        if value is None:
            return True
        if isinstance(value, float) and math.isnan(value):
            return True
        return str(value).strip() == ""
