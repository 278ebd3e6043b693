# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Portal switcher and access decision endpoints.

Endpoints:
    GET /portals - Portals the user may select
    POST /portals/select - Validate a portal selection
    POST /access/decisions - Ask the access guard about a client route

The selected portal is client state (sent back in the X-Portal-Id header);
selecting one never widens what the access guard allows.
"""

import logging

from fastapi import APIRouter, Depends

from edunexia.api.dependencies import get_authorization_context, require_auth
from edunexia.domains.access import AuthorizationContext, navigation_correction, redirect_target
from edunexia.domains.identity import SessionUser
from edunexia.models.portal import (
    AccessDecisionRequest,
    AccessDecisionResponse,
    PortalListResponse,
    PortalResponse,
    SelectPortalRequest,
    SelectPortalResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get(
    "/portals",
    response_model=PortalListResponse,
    summary="List available portals",
    description="All portals for admins, otherwise the portal matching the user's role.",
)
async def list_portals(
    current_user: SessionUser = Depends(require_auth),
    context: AuthorizationContext = Depends(get_authorization_context),
) -> PortalListResponse:
    portals = context.available_portals()
    current = context.current_portal
    return PortalListResponse(
        portals=[PortalResponse.model_validate(p) for p in portals],
        current_portal_id=current.id if current else None,
    )


@router.post(
    "/portals/select",
    response_model=SelectPortalResponse,
    summary="Select portal",
    description="Validate that the user may switch to a portal; 403 otherwise.",
)
async def select_portal(
    data: SelectPortalRequest,
    current_user: SessionUser = Depends(require_auth),
    context: AuthorizationContext = Depends(get_authorization_context),
) -> SelectPortalResponse:
    selected = context.with_portal(data.portal_id).current_portal
    logger.info("Portal selected: user=%s, portal=%s", current_user.id, selected.id)
    return SelectPortalResponse(
        portal=PortalResponse.model_validate(selected),
        redirect_to=selected.base_route,
    )


@router.post(
    "/access/decisions",
    response_model=AccessDecisionResponse,
    summary="Decide route access",
    description=(
        "Return the access guard's decision for a client route. Anonymous "
        "callers get a redirect to the login page."
    ),
)
async def decide_access(
    data: AccessDecisionRequest,
    context: AuthorizationContext = Depends(get_authorization_context),
) -> AccessDecisionResponse:
    decision = context.authorize(data.route, data.allowed_roles)
    return AccessDecisionResponse(
        decision=decision,
        redirect_to=redirect_target(decision),
        navigation_redirect=navigation_correction(context, data.route),
    )
