from __future__ import annotations

import logging
import time
from typing import Iterable, Mapping

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

logger = logging.getLogger(__name__)

REDACTED = "[REDACTED]"
SENSITIVE_HEADERS: tuple[str, ...] = ("auth-apikey", "authorization", "cookie")


def redact_headers(
    headers: Mapping[str, str], sensitive: Iterable[str] = SENSITIVE_HEADERS
) -> dict[str, str]:
    hidden = {name.lower() for name in sensitive}
    return {
        name: (REDACTED if name.lower() in hidden else value)
        for name, value in headers.items()
    }


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Logs one line per request plus the request headers, with credentials
    replaced by ``[REDACTED]``.
    """

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        started = time.monotonic()
        logger.info(
            f"Request: {request.method} {request.url.path} "
            f"Headers: {redact_headers(request.headers)}"
        )

        response = await call_next(request)

        elapsed_ms = (time.monotonic() - started) * 1000
        logger.info(
            f"Response: {request.method} {request.url.path} "
            f"status={response.status_code} duration_ms={elapsed_ms:.1f}"
        )
        return response
