# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Rate limiting using slowapi.

Limits are applied per client: tenant plus user when authenticated,
otherwise the remote address.

Example:
    @router.post("")
    @limiter.limit(RATE_LIMIT_CHARGES)
    async def create_enrollment(request: Request, ...):
        ...
"""

import logging

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from edunexia.core.config import get_settings

logger = logging.getLogger(__name__)

# Endpoints that create gateway charges
RATE_LIMIT_CHARGES = "30/minute"


def get_client_identifier(request: Request) -> str:
    """Get a unique identifier for the client.

    Args:
        request: HTTP request.

    Returns:
        "tenant:<id>:user:<id>" for authenticated users, else "ip:<addr>".
    """
    user = getattr(request.state, "user", None)
    if user is not None:
        return f"tenant:{user.tenant_id}:user:{user.id}"
    return f"ip:{get_remote_address(request)}"


settings = get_settings()
limiter = Limiter(
    key_func=get_client_identifier,
    default_limits=[f"{settings.rate_limit.requests_per_minute}/minute"],
    storage_uri=settings.rate_limit.storage_uri,
    enabled=settings.rate_limit.enabled,
)


async def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> Response:
    """Return 429 Too Many Requests with retry information."""
    logger.warning(
        "Rate limit exceeded: %s for %s",
        exc.detail,
        get_client_identifier(request),
    )
    return JSONResponse(
        status_code=429,
        content={"detail": "Too many requests. Please try again later.", "error": "RateLimitExceeded"},
        headers={"Retry-After": "60"},
    )
