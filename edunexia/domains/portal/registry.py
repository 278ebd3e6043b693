# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Portal catalog and role entitlement.

Each portal is a role-scoped view of the application with its own base
route. The catalog is fixed for the process lifetime.

Entitlement rules:
- admin may use every portal
- every other role may use exactly the portal whose required role matches

A role without a portal is rejected with UnmappedRoleError unless the
caller opts into the legacy fallback to the student portal.
"""

import logging
from dataclasses import dataclass

from edunexia.core.exceptions import PortalNotAvailableError, UnmappedRoleError
from edunexia.domains.identity import Role, SessionUser

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Portal:
    """Portal catalog entry.

    Attributes:
        id: Portal identifier.
        name: Display name.
        description: Short description shown in the portal switcher.
        base_route: Route prefix every page of the portal lives under.
        required_role: Role entitled to the portal (admin is entitled to all).
    """

    id: str
    name: str
    description: str
    base_route: str
    required_role: str

    def owns_path(self, path: str) -> bool:
        """Check whether a route path belongs to this portal."""
        return path == self.base_route or path.startswith(self.base_route + "/")


PORTALS: tuple[Portal, ...] = (
    Portal(
        id="admin",
        name="Portal Administrativo",
        description="Gerenciamento completo do ambiente educacional",
        base_route="/admin",
        required_role=Role.ADMIN.value,
    ),
    Portal(
        id="student",
        name="Portal do Aluno",
        description="Acesso a cursos, avaliações e material didático",
        base_route="/student",
        required_role=Role.STUDENT.value,
    ),
    Portal(
        id="teacher",
        name="Portal do Professor",
        description="Gerenciamento de turmas, conteúdo e avaliações",
        base_route="/teacher",
        required_role=Role.TEACHER.value,
    ),
    Portal(
        id="hub",
        name="Portal do Polo",
        description="Gerenciamento de unidades educacionais",
        base_route="/hub",
        required_role=Role.HUB.value,
    ),
    Portal(
        id="partner",
        name="Portal do Parceiro",
        description="Gerenciamento de certificações e parcerias",
        base_route="/partner",
        required_role=Role.PARTNER.value,
    ),
)

_PORTALS_BY_ID = {portal.id: portal for portal in PORTALS}

STUDENT_PORTAL = _PORTALS_BY_ID["student"]


def get_portal(portal_id: str) -> Portal | None:
    """Look up a portal by id.

    Args:
        portal_id: Portal identifier.

    Returns:
        The portal, or None if the id is not in the catalog.
    """
    return _PORTALS_BY_ID.get(portal_id)


def resolve_available_portals(
    user: SessionUser,
    fallback_to_student: bool = False,
) -> list[Portal]:
    """List the portals a user is entitled to.

    Args:
        user: Authenticated user.
        fallback_to_student: Grant the student portal to roles that have
            no portal of their own instead of raising.

    Returns:
        All portals for admins, otherwise the single matching portal.

    Raises:
        UnmappedRoleError: If the role has no portal and the fallback is off.
    """
    if user.is_admin:
        return list(PORTALS)

    matches = [portal for portal in PORTALS if portal.required_role == user.role]
    if matches:
        return matches

    if fallback_to_student:
        logger.warning(
            "Role without portal, falling back to student portal: user=%s, role=%s",
            user.id,
            user.role,
        )
        return [STUDENT_PORTAL]

    raise UnmappedRoleError(user.role)


def select_portal(
    user: SessionUser,
    requested_id: str,
    fallback_to_student: bool = False,
) -> Portal:
    """Validate a portal selection.

    The result is advisory UI state; route access is decided by the
    access guard alone.

    Args:
        user: Authenticated user.
        requested_id: Portal the user wants to switch to.
        fallback_to_student: See resolve_available_portals.

    Returns:
        The selected portal.

    Raises:
        PortalNotAvailableError: If the portal is unknown or not entitled.
        UnmappedRoleError: If the role has no portal and the fallback is off.
    """
    portal = get_portal(requested_id)
    if portal is None:
        raise PortalNotAvailableError(requested_id, user.role)

    if user.is_admin:
        return portal

    available = resolve_available_portals(user, fallback_to_student)
    if portal not in available:
        raise PortalNotAvailableError(requested_id, user.role)
    return portal
