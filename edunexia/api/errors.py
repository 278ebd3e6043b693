# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Domain error to HTTP response mapping.

Routes let domain exceptions propagate; the handlers registered here turn
them into JSON bodies with a stable shape:

- ValidationError -> 422 with the offending field
- AuthorizationError -> 403
- NotFoundError -> 404
- InvalidTransitionError -> 409 with the observed status
- GatewayError -> 502 with the record id and whether a retry may help
"""

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from edunexia.core.exceptions import (
    AuthorizationError,
    GatewayError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from edunexia.infrastructure.database import DatabaseError

logger = logging.getLogger(__name__)


def _body(exc: Exception, detail: str, **extra: object) -> dict:
    body = {"detail": detail, "error": type(exc).__name__}
    body.update(extra)
    return body


async def validation_error_handler(request: Request, exc: ValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=422,
        content=_body(exc, exc.message, field=exc.field, details=exc.details),
    )


async def authorization_error_handler(request: Request, exc: AuthorizationError) -> JSONResponse:
    logger.info("Authorization denied: path=%s, reason=%s", request.url.path, exc.message)
    return JSONResponse(status_code=403, content=_body(exc, exc.message, details=exc.details))


async def not_found_error_handler(request: Request, exc: NotFoundError) -> JSONResponse:
    return JSONResponse(status_code=404, content=_body(exc, exc.message))


async def invalid_transition_error_handler(request: Request, exc: InvalidTransitionError) -> JSONResponse:
    return JSONResponse(
        status_code=409,
        content=_body(
            exc,
            exc.message,
            record_id=exc.record_id,
            current_status=exc.current_status,
            event=exc.event,
        ),
    )


async def gateway_error_handler(request: Request, exc: GatewayError) -> JSONResponse:
    """Surface the provider's message verbatim with the record it concerns."""
    return JSONResponse(
        status_code=502,
        content=_body(
            exc,
            exc.message,
            retryable=exc.retryable,
            details=exc.details,
            **{f"{exc.resource}_id": exc.record_id},
        ),
    )


async def database_error_handler(request: Request, exc: DatabaseError) -> JSONResponse:
    logger.error("Database error: path=%s, error=%s", request.url.path, str(exc))
    return JSONResponse(
        status_code=503,
        content=_body(exc, "Database unavailable"),
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Attach the domain exception handlers to an application."""
    app.add_exception_handler(ValidationError, validation_error_handler)
    app.add_exception_handler(AuthorizationError, authorization_error_handler)
    app.add_exception_handler(NotFoundError, not_found_error_handler)
    app.add_exception_handler(InvalidTransitionError, invalid_transition_error_handler)
    app.add_exception_handler(GatewayError, gateway_error_handler)
    app.add_exception_handler(DatabaseError, database_error_handler)
