# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Portal and access API schemas.

The portal switcher reads the user's entitled portals and validates a
selection; the access decision endpoint lets clients ask the guard
whether a route may be rendered.
"""

from pydantic import BaseModel, ConfigDict, Field

from edunexia.domains.access import RouteDecision


class CurrentUserResponse(BaseModel):
    """The authenticated session user."""

    id: str
    role: str
    tenant_id: str
    name: str | None = None
    email: str | None = None
    is_operator: bool


class PortalResponse(BaseModel):
    """Portal catalog entry."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    description: str
    base_route: str
    required_role: str


class PortalListResponse(BaseModel):
    """Portals the user may select, plus the currently selected one."""

    portals: list[PortalResponse]
    current_portal_id: str | None = Field(
        default=None,
        description="Selected portal; the first entitled portal when none was chosen",
    )


class SelectPortalRequest(BaseModel):
    portal_id: str = Field(min_length=1, description="Portal to switch to")


class SelectPortalResponse(BaseModel):
    portal: PortalResponse
    redirect_to: str = Field(description="Portal base route the client should navigate to")


class AccessDecisionRequest(BaseModel):
    """Route the client is about to render."""

    route: str = Field(min_length=1, description="Route path, e.g. /admin/courses")
    allowed_roles: list[str] = Field(
        default_factory=list,
        description="Roles allowed on the route; empty means any authenticated user",
    )


class AccessDecisionResponse(BaseModel):
    decision: RouteDecision
    redirect_to: str | None = Field(
        default=None,
        description="Path to navigate to instead, when the route is not rendered",
    )
    navigation_redirect: str | None = Field(
        default=None,
        description="Where to send the user when the route lies outside the selected portal",
    )
