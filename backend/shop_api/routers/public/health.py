"""
Health check endpoints.
Basic liveness plus a detailed check of the database and the circuit
breakers guarding Paymob and the SMS gateway.
"""

import time

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from shared.config.logging import get_logger
from shared.config.settings import settings
from shared.infrastructure.db import get_db
from shop_api.services.payments import get_all_breaker_stats

logger = get_logger(__name__)

router = APIRouter(prefix="/api", tags=["health"])

SERVICE_NAME = "shop-api"


@router.get("/health")
def health_check():
    """Service status without checking dependencies."""
    return {
        "status": "healthy",
        "service": SERVICE_NAME,
        "environment": settings.environment,
    }


@router.get("/health/detailed")
def detailed_health_check(db: Session = Depends(get_db)):
    """
    Verifies database connectivity and reports circuit breaker state.
    Returns 503 Service Unavailable when the database is down.
    """
    start = time.perf_counter()
    try:
        db.execute(text("SELECT 1"))
        database = {
            "status": "healthy",
            "latency_ms": round((time.perf_counter() - start) * 1000, 2),
        }
    except SQLAlchemyError as e:
        logger.error("Database health check failed", error=str(e))
        database = {"status": "unhealthy", "error": str(e)}

    checks = {
        "service": SERVICE_NAME,
        "environment": settings.environment,
        "status": database["status"],
        "dependencies": {"database": database},
        "circuit_breakers": get_all_breaker_stats(),
    }

    if database["status"] != "healthy":
        return JSONResponse(content=checks, status_code=503)
    return checks
