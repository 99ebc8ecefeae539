"""
eTuition Backend - Health Check Routes
======================================

What:  Liveness text at `/` and a dependency health report at `/health`.
Who:   Docker health checks, load balancers and uptime monitors.

Status levels:
    - healthy:   database reachable and payments available (HTTP 200)
    - degraded:  database fine, payments unconfigured or circuit open (HTTP 200)
    - unhealthy: database unreachable (HTTP 503, stop routing traffic)
"""

import logging
import time

from fastapi import APIRouter, Depends, Response
from fastapi.responses import PlainTextResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from etuition import __version__
from etuition.database import get_db_session
from etuition.schemas.common import HealthResponse
from etuition.services.payment_base import PaymentGateway
from etuition.services.stripe_gateway import get_payment_gateway

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])

# Initialized once when the module loads, for uptime reporting
_start_time = time.time()


@router.get("/", response_class=PlainTextResponse, summary="Liveness probe")
async def root() -> str:
    return "eTuition server is running!"


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Service health check",
    description=(
        "Reports database connectivity and payment provider status. Returns 503 "
        "when the database is unreachable."
    ),
)
async def health_check(
    response: Response,
    db: AsyncSession = Depends(get_db_session),
    gateway: PaymentGateway = Depends(get_payment_gateway),
) -> HealthResponse:
    """
    Check details:
        Database: SELECT 1 on the request session
        Payments: gateway.health_check(), which only inspects configuration
                  and circuit breaker state and never calls Stripe
    """
    db_status = "connected"
    overall = "healthy"

    try:
        await db.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        db_status = "disconnected"
        overall = "unhealthy"
        logger.warning("Health check: database unreachable: %s", str(e))

    payments_status = await gateway.health_check()
    if payments_status != "available" and overall != "unhealthy":
        overall = "degraded"

    if overall == "unhealthy":
        response.status_code = 503

    return HealthResponse(
        status=overall,
        version=__version__,
        database=db_status,
        payments=payments_status,
        uptime_seconds=round(time.time() - _start_time, 2),
    )
