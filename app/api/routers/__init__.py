"""
app/api/routers package marker.
"""

from app.api.routers.csv_ingestion import router as csv_ingestion_router
from app.api.routers.devex_rate_router import router as devex_rate_router
from app.api.routers.metrics_router import router as metrics_router
from app.api.routers.subscription_router import router as subscription_router

__all__ = [
    "csv_ingestion_router",
    "devex_rate_router",
    "metrics_router",
    "subscription_router",
]
