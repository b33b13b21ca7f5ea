"""
Exception handlers - render domain errors as HTTP responses.

Every RegistrationError becomes {"error": <code>, "message": <text>} with
the status code the error class declares. CooldownActive adds retryAfter
to the body and a Retry-After header in seconds.
"""

import logging
import math

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from src.api.models import ErrorResponse
from src.domain.exceptions import CooldownActive, RegistrationError
from src.domain.models import utcnow

logger = logging.getLogger(__name__)


async def registration_error_handler(request: Request, exc: RegistrationError) -> JSONResponse:
    """Convert a domain error to its JSON error body."""
    body = ErrorResponse(error=exc.code.value, message=exc.message)
    headers = None
    if isinstance(exc, CooldownActive):
        body.retry_after = exc.retry_after
        # Header carries delta-seconds; the body keeps the ISO timestamp
        wait = math.ceil((exc.retry_after - utcnow()).total_seconds())
        headers = {"Retry-After": str(max(0, wait))}

    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.code.value)
    else:
        logger.warning("%s %s rejected: %s", request.method, request.url.path, exc.code.value)

    return JSONResponse(
        status_code=exc.status_code,
        content=body.model_dump(mode="json", by_alias=True, exclude_none=True),
        headers=headers,
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(RegistrationError, registration_error_handler)
