"""
Request logging for the booking API and provider webhooks.

Every response carries a correlation id (propagated from the caller when
one is supplied) and its processing time. One log line per request is
written to the `parcel_backend.requests` logger.
"""

import time
import uuid
import logging
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

logger = logging.getLogger("parcel_backend.requests")

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

CORRELATION_HEADER = "X-Correlation-ID"
PROCESS_TIME_HEADER = "X-Process-Time"

# Provider callbacks, tagged so their traffic can be filtered out of booking logs
WEBHOOK_PREFIX = "/v1/webhooks/"


def configure_logging(level: str = "INFO") -> None:
    """Configure the `parcel_backend` logger once at startup."""
    root = logging.getLogger("parcel_backend")
    if not root.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(handler)
    root.setLevel(level.upper())


class ObservabilityMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next) -> Response:
        correlation_id = request.headers.get(CORRELATION_HEADER) or str(uuid.uuid4())
        started = time.perf_counter()

        response = await call_next(request)

        duration_ms = (time.perf_counter() - started) * 1000
        response.headers[CORRELATION_HEADER] = correlation_id
        response.headers[PROCESS_TIME_HEADER] = f"{duration_ms:.2f}"

        path = request.url.path
        source = "webhook" if path.startswith(WEBHOOK_PREFIX) else "api"
        log_data = {
            "correlation_id": correlation_id,
            "source": source,
            "method": request.method,
            "path": path,
            "status_code": response.status_code,
            "duration_ms": round(duration_ms, 2),
        }
        message = "%s %s %s -> %d (%.2fms)"
        args = (source, request.method, path, response.status_code, duration_ms)

        if response.status_code >= 500:
            logger.error(message, *args, extra=log_data)
        elif response.status_code >= 400:
            logger.warning(message, *args, extra=log_data)
        else:
            logger.info(message, *args, extra=log_data)

        return response
