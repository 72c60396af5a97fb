"""
backend/app/middleware/logging.py

Purpose:
    Access logging for the wagering API. Emits one JSON line per request on
    the "wagerline.access" logger and stamps every response with a request id
    that callers can quote when a placement is disputed.
"""

import hashlib
import json
import logging
import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from app.config import settings

access_logger = logging.getLogger("wagerline.access")

REQUEST_ID_HEADER = "X-Request-ID"


def anonymize(value: str | None) -> str | None:
    """Stable, non-reversible tag for user ids and client addresses."""
    if not value:
        return None
    return hashlib.sha256(value.encode()).hexdigest()[:12]


def _access_level(status_code: int) -> int:
    if status_code >= 500:
        return logging.ERROR
    if status_code >= 400:
        return logging.WARNING
    return logging.INFO


class StructuredLoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex[:12]
        request.state.request_id = request_id
        started = time.perf_counter()

        response = await call_next(request)

        entry = {
            "request_id": request_id,
            "method": request.method,
            "path": request.url.path,
            "status": response.status_code,
            "duration_ms": round((time.perf_counter() - started) * 1000, 2),
            "user": anonymize(request.headers.get(settings.USER_ID_HEADER)),
            "client": anonymize(request.client.host if request.client else None),
        }
        if "Idempotency-Key" in request.headers:
            entry["idempotent"] = True

        access_logger.log(_access_level(response.status_code), json.dumps(entry))
        response.headers[REQUEST_ID_HEADER] = request_id
        return response


def setup_logging() -> None:
    """Configure root logging once at startup from LOG_LEVEL."""
    logging.basicConfig(
        level=settings.LOG_LEVEL.upper(),
        format="%(asctime)s %(levelname)-7s [%(name)s] %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S%z",
    )
