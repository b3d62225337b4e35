"""
app/services package marker.
"""

from app.services.csv_ingestion_service import (
    TransactionIngestionService,
    TransactionPersistenceError,
    UploadCreationError,
    get_transaction_ingestion_service,
)
from app.services.devex_rate_service import (
    DevExRateService,
    DevExRateUnavailableError,
    get_devex_rate_service,
)
from app.services.metrics_service import MetricsService, roi, trend

__all__ = [
    "DevExRateService",
    "DevExRateUnavailableError",
    "get_devex_rate_service",
    "MetricsService",
    "roi",
    "trend",
    "TransactionIngestionService",
    "TransactionPersistenceError",
    "UploadCreationError",
    "get_transaction_ingestion_service",
]
