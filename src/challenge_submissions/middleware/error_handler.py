from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.responses import PlainTextResponse

from ..errors import SubmissionError

logger = logging.getLogger(__name__)


def error_response(error: SubmissionError) -> PlainTextResponse:
    """Render a classified failure as the plain-text body clients expect."""
    return PlainTextResponse(str(error), status_code=error.status_code)


async def submission_error_handler(request: Request, exc: SubmissionError) -> PlainTextResponse:
    logger.warning(f"{request.method} {request.url.path} failed ({exc.kind}): {exc}")
    return error_response(exc)


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(SubmissionError, submission_error_handler)
