"""
app/schemas package marker.
"""

from app.schemas.csv_ingestion import (
    ProcessCSVRequest,
    ProcessCSVResponse,
    UploadListResponse,
    UploadResponse,
)
from app.schemas.devex_rate import (
    DemoSeedResponse,
    DevExRateResponse,
    DevExRateUpdateRequest,
    DevExRateUpdateResponse,
)
from app.schemas.metrics import (
    GroupTotalsResponse,
    MetricsSummaryResponse,
    MonthlyMetricsResponse,
    TopItemsResponse,
)
from app.schemas.subscriptions import (
    SeatCounterResponse,
    SubscriptionStatusResponse,
    WebhookAckResponse,
)

__all__ = [
    "DemoSeedResponse",
    "DevExRateResponse",
    "DevExRateUpdateRequest",
    "DevExRateUpdateResponse",
    "GroupTotalsResponse",
    "MetricsSummaryResponse",
    "MonthlyMetricsResponse",
    "ProcessCSVRequest",
    "ProcessCSVResponse",
    "SeatCounterResponse",
    "SubscriptionStatusResponse",
    "TopItemsResponse",
    "UploadListResponse",
    "UploadResponse",
    "WebhookAckResponse",
]
