"""
FastAPI middleware for automatic Prometheus metrics collection.

Requests are labelled with the matched route template
(``/api/v1/avatar/{user_id}``) rather than the raw path, so user ids never
become label values.
"""

import logging
import time
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from progression.observability.metrics import (
    http_request_duration_seconds,
    http_requests_total,
)

logger = logging.getLogger(__name__)


class PrometheusMiddleware(BaseHTTPMiddleware):
    """Record request count and latency per method, route and status"""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        start_time = time.perf_counter()
        status_code = 500

        try:
            response = await call_next(request)
            status_code = response.status_code
            return response
        finally:
            endpoint = _route_template(request)
            http_requests_total.labels(
                method=request.method, endpoint=endpoint, status=status_code
            ).inc()
            http_request_duration_seconds.labels(
                method=request.method, endpoint=endpoint
            ).observe(time.perf_counter() - start_time)


def _route_template(request: Request) -> str:
    route = request.scope.get("route")
    path = getattr(route, "path", None)
    return path or "unmatched"


def setup_metrics_middleware(app) -> None:
    """Add Prometheus metrics middleware to a FastAPI application"""
    from progression.config import ENABLE_PROMETHEUS

    if not ENABLE_PROMETHEUS:
        logger.info("Metrics collection is disabled (ENABLE_PROMETHEUS=false)")
        return

    app.add_middleware(PrometheusMiddleware)
    logger.info("Prometheus metrics middleware added to FastAPI")
