# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Route authorization decisions.

authorize_route is the single enforcement point for page and API access.
It is a pure function of the resolved identity and the route's allowed
roles, so it can be tested over every role/route combination.

AuthorizationContext carries the session-scoped state (identity and
selected portal) explicitly instead of reading it from ambient storage.

Example:
    >>> identity = Identity.authenticated(SessionUser("1", "teacher", "t1"))
    >>> authorize_route(identity, "/admin/courses", ["admin"])
    <RouteDecision.REDIRECT_TO_HOME: 'redirect_to_home'>
"""

from collections.abc import Iterable
from dataclasses import dataclass, replace
from enum import Enum

from edunexia.domains.identity import Identity, IdentityState
from edunexia.domains.portal import Portal, get_portal, resolve_available_portals, select_portal

LOGIN_ROUTE = "/auth"
HOME_ROUTE = "/"


class RouteDecision(str, Enum):
    """Outcome of a route authorization check."""

    DEFER = "defer"
    RENDER = "render"
    REDIRECT_TO_LOGIN = "redirect_to_login"
    REDIRECT_TO_HOME = "redirect_to_home"


def authorize_route(
    identity: Identity,
    route: str,
    allowed_roles: Iterable[str] | None = None,
) -> RouteDecision:
    """Decide whether the current identity may reach a route.

    Args:
        identity: Resolved (or still loading) session identity.
        route: Route being navigated to.
        allowed_roles: Roles allowed on the route. Empty or None means any
            authenticated user.

    Returns:
        DEFER while the identity is loading, REDIRECT_TO_LOGIN without a
        user, RENDER for admins, for open routes and for member roles,
        otherwise REDIRECT_TO_HOME.
    """
    if identity.state == IdentityState.LOADING:
        return RouteDecision.DEFER

    user = identity.user
    if user is None:
        return RouteDecision.REDIRECT_TO_LOGIN

    if user.is_admin:
        return RouteDecision.RENDER

    roles = frozenset(allowed_roles or ())
    if not roles or user.role in roles:
        return RouteDecision.RENDER

    return RouteDecision.REDIRECT_TO_HOME


def redirect_target(decision: RouteDecision) -> str | None:
    """Map a decision to the path the client should navigate to."""
    if decision == RouteDecision.REDIRECT_TO_LOGIN:
        return LOGIN_ROUTE
    if decision == RouteDecision.REDIRECT_TO_HOME:
        return HOME_ROUTE
    return None


@dataclass(frozen=True)
class AuthorizationContext:
    """Session-scoped authorization state.

    Attributes:
        identity: Resolved session identity.
        current_portal_id: Portal the user last selected. Advisory only,
            typically restored from client-local storage.
        fallback_to_student: Legacy fallback for roles without a portal.
    """

    identity: Identity
    current_portal_id: str | None = None
    fallback_to_student: bool = False

    def available_portals(self) -> list[Portal]:
        """List the portals the session's user may select."""
        if self.identity.user is None:
            return []
        return resolve_available_portals(self.identity.user, self.fallback_to_student)

    @property
    def current_portal(self) -> Portal | None:
        """The selected portal, or the first entitled one.

        A stored id the user is no longer entitled to is ignored.
        """
        available = self.available_portals()
        if not available:
            return None
        selected = get_portal(self.current_portal_id) if self.current_portal_id else None
        if selected is not None and selected in available:
            return selected
        return available[0]

    def with_portal(self, portal_id: str) -> "AuthorizationContext":
        """Return a copy of the context with a new portal selected.

        Raises:
            PortalNotAvailableError: If the user may not use the portal.
        """
        if self.identity.user is None:
            raise ValueError("Cannot select a portal without an authenticated user")
        portal = select_portal(self.identity.user, portal_id, self.fallback_to_student)
        return replace(self, current_portal_id=portal.id)

    def authorize(
        self,
        route: str,
        allowed_roles: Iterable[str] | None = None,
    ) -> RouteDecision:
        """Shortcut for authorize_route with this context's identity."""
        return authorize_route(self.identity, route, allowed_roles)


def navigation_correction(context: AuthorizationContext, path: str) -> str | None:
    """Return where to send the user when path is outside their portal.

    This keeps the navigation consistent with the selected portal. It is
    not an access control: authorize_route must still gate every route.

    Args:
        context: Current authorization context.
        path: Path the user is on.

    Returns:
        HOME_ROUTE when the path lies outside the current portal's base
        route (and is not the root itself), otherwise None.
    """
    if path == HOME_ROUTE or not context.identity.is_authenticated:
        return None

    portal = context.current_portal
    if portal is None or portal.owns_path(path):
        return None
    return HOME_ROUTE
