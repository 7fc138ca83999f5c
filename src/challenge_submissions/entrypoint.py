from __future__ import annotations

import logging

from .config import get_settings
from .index import app as _app
from .middleware.request_logging import RequestLoggingMiddleware

logger = logging.getLogger(__name__)

# Wrap the application built in index with the optional middleware
app = _app

settings = get_settings()
if settings.enable_request_logging:
    app.add_middleware(RequestLoggingMiddleware)
else:
    logger.warning("Request logging is DISABLED.")


def main() -> None:
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=settings.port)


if __name__ == "__main__":
    main()
