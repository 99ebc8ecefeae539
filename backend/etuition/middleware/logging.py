"""
eTuition Backend - Access Log Middleware
========================================

What:  Writes one `etuition.access` line per HTTP request once the response
       is ready.

Line format:
    PATCH /tuition/{tuition_id} 200 12.4ms [a1b2c3d4] Student from 10.0.0.7

Emails travel in many paths (/payments/{email}, /revenue/{tutorEmail}), so
the line carries the matched route template, never the raw path. The caller
is logged by role only ("anonymous" on public routes). Bodies, query strings
and the Authorization header are never logged.
"""

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from etuition.middleware.request_id import request_id_var

logger = logging.getLogger("etuition.access")

# Liveness and health probes
QUIET_PATHS = {"/", "/health"}


def _route_template(request: Request) -> str:
    # Set on the shared scope by the router once a route matched
    route = request.scope.get("route")
    return getattr(route, "path", None) or "<unmatched>"


def _caller_role(request: Request) -> str:
    principal = getattr(request.state, "principal", None)
    return principal.role.value if principal is not None else "anonymous"


def _level_for(status: int) -> int:
    if status >= 500:
        return logging.ERROR
    if status >= 400:
        return logging.WARNING
    return logging.INFO


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        if request.url.path in QUIET_PATHS:
            return await call_next(request)

        started = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - started) * 1000

        route = _route_template(request)
        role = _caller_role(request)
        rid = request_id_var.get("")
        client_ip = request.client.host if request.client else "unknown"

        logger.log(
            _level_for(response.status_code),
            "%s %s %d %.1fms [%s] %s from %s",
            request.method,
            route,
            response.status_code,
            elapsed_ms,
            rid,
            role,
            client_ip,
            extra={
                "request_id": rid,
                "route": route,
                "caller_role": role,
                "status": response.status_code,
                "duration_ms": round(elapsed_ms, 2),
            },
        )
        return response
