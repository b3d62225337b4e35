"""
app/api/app_factory.py

Builds the FastAPI application without touching the environment or database.

``app.main`` adds startup validation and the lifespan; tests call
``build_api()`` directly and override dependencies.
"""

from __future__ import annotations

from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.api.routers import (
    csv_ingestion_router,
    devex_rate_router,
    metrics_router,
    subscription_router,
)


async def _http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail},
        headers=getattr(exc, "headers", None),
    )


# Body problems on /process-csv share the message of a non-list csvData.
_VALIDATION_MESSAGES = {"/process-csv": "Invalid CSV data"}


async def _validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    message = _VALIDATION_MESSAGES.get(request.url.path, "Invalid request body")
    return JSONResponse(status_code=400, content={"error": message})


def build_api(*, lifespan: Any = None) -> FastAPI:
    application = FastAPI(
        title="Roblox Profit Radar API",
        version="1.0.0",
        lifespan=lifespan,
    )
    application.add_exception_handler(StarletteHTTPException, _http_exception_handler)
    application.add_exception_handler(RequestValidationError, _validation_exception_handler)

    application.include_router(csv_ingestion_router)
    application.include_router(metrics_router)
    application.include_router(devex_rate_router)
    application.include_router(subscription_router)

    @application.get("/health")
    def healthcheck() -> dict[str, str]:
        return {"status": "ok"}

    return application
