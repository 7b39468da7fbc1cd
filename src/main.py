"""FastAPI application entry point for the fraud risk engine."""

import time
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from src.api.middleware.error_handler import (
    fraud_engine_exception_handler,
    global_exception_handler,
)
from src.api.middleware.logging import StructuredLoggingMiddleware
from src.api.routes.fraud import router as fraud_router
from src.api.routes.health import router as health_router
from src.config import settings
from src.domains.fraud.exceptions import FraudEngineError
from src.shared.logging import setup_logging

logger = structlog.get_logger()

# Track app start time for uptime calculation
APP_START_TIME: float = 0.0


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan: startup and shutdown logic."""
    global APP_START_TIME
    APP_START_TIME = time.time()
    setup_logging(settings.log_level, settings.log_json)

    logger.info(
        "fraud_engine_starting",
        app_name=settings.app_name,
        version=settings.app_version,
        debug=settings.debug,
    )

    from src.db.database import dispose_db, init_db

    await init_db()

    yield

    logger.info("fraud_engine_shutting_down")
    await dispose_db()


app = FastAPI(
    title="Fraud Risk Engine",
    description="Transaction risk scoring with configurable rules and behavioral anomaly detection",
    version=settings.app_version,
    lifespan=lifespan,
)

# CORS for local development
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"] if settings.debug else [],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Structured logging middleware
app.add_middleware(StructuredLoggingMiddleware)

app.add_exception_handler(FraudEngineError, fraud_engine_exception_handler)
app.add_exception_handler(Exception, global_exception_handler)

app.include_router(health_router)
app.include_router(fraud_router)


def get_uptime() -> int:
    """Get application uptime in seconds."""
    if APP_START_TIME == 0.0:
        return 0
    return int(time.time() - APP_START_TIME)
