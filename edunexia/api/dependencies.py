# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""FastAPI dependency injection.

Every protected endpoint goes through require_route_access, which asks
the access guard for a decision on the request path. There is no other
role check in the API.

Example:
    @router.get("/enrollments")
    async def list_enrollments(
        user: SessionUser = Depends(require_operator),
        service: EnrollmentService = Depends(get_enrollment_service),
    ):
        ...
"""

from collections.abc import AsyncGenerator, Callable

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from edunexia.api.middleware.auth import get_current_user
from edunexia.core.config import get_settings
from edunexia.domains.access import AuthorizationContext, RouteDecision, authorize_route
from edunexia.domains.enrollment import EnrollmentService
from edunexia.domains.enrollment.repository import SqlEnrollmentStore
from edunexia.domains.identity import OPERATOR_ROLES, Identity, Role, SessionUser
from edunexia.infrastructure.database import get_session
from edunexia.services.payments import PaymentGateway

# Header carrying the portal the client last selected
PORTAL_HEADER = "X-Portal-Id"


# =============================================================================
# Infrastructure
# =============================================================================


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Get a database session for the request."""
    async with get_session() as session:
        yield session


def get_payment_gateway(request: Request) -> PaymentGateway:
    """Get the payment gateway created at application startup.

    Raises:
        HTTPException: 503 if the gateway has not been initialized.
    """
    gateway = getattr(request.app.state, "payment_gateway", None)
    if gateway is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Payment gateway not initialized",
        )
    return gateway


def get_enrollment_service(
    db: AsyncSession = Depends(get_db),
    gateway: PaymentGateway = Depends(get_payment_gateway),
) -> EnrollmentService:
    return EnrollmentService(SqlEnrollmentStore(db), gateway, get_settings().pricing)


# =============================================================================
# Identity and access
# =============================================================================


def get_identity(request: Request) -> Identity:
    """Resolve the request's identity.

    The middleware has already run, so the identity is never loading.
    """
    return Identity.from_user(get_current_user(request))


def get_authorization_context(request: Request) -> AuthorizationContext:
    """Build the session's authorization context from the request."""
    return AuthorizationContext(
        identity=get_identity(request),
        current_portal_id=request.headers.get(PORTAL_HEADER),
        fallback_to_student=get_settings().portal.fallback_to_student,
    )


def require_route_access(*allowed_roles: str) -> Callable[[Request], SessionUser]:
    """Create a dependency that gates an endpoint through the access guard.

    Args:
        allowed_roles: Roles allowed on the endpoint; none means any
            authenticated user.

    Returns:
        Dependency returning the authenticated user.
    """

    def dependency(request: Request) -> SessionUser:
        identity = get_identity(request)
        decision = authorize_route(identity, request.url.path, allowed_roles)

        if decision == RouteDecision.REDIRECT_TO_LOGIN:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Authentication required",
                headers={"WWW-Authenticate": "Bearer"},
            )
        if decision != RouteDecision.RENDER:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Role not allowed on this route",
            )
        return identity.user

    return dependency


require_auth = require_route_access()
require_operator = require_route_access(*sorted(OPERATOR_ROLES))
require_admin = require_route_access(Role.ADMIN.value)
