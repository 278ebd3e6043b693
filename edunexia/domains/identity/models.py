# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Session identity as seen by the authorization core.

Users are owned by the external identity service; this module only models
what the core reads from it: the user's id, role and tenant, plus the
three-valued resolution state of the "who am I" query.

Example:
    >>> user = SessionUser(id="7", role="partner", tenant_id="1")
    >>> Identity.authenticated(user).is_authenticated
    True
    >>> Identity.loading().user is None
    True
"""

from dataclasses import dataclass
from enum import Enum


class Role(str, Enum):
    """Roles issued by the identity service."""

    ADMIN = "admin"
    STUDENT = "student"
    TEACHER = "teacher"
    HUB = "hub"
    PARTNER = "partner"


# Roles allowed to submit enrollments on behalf of a student
OPERATOR_ROLES = frozenset({Role.ADMIN.value, Role.PARTNER.value, Role.HUB.value})


class IdentityState(str, Enum):
    """Resolution state of the current-user query.

    LOADING must never be treated as UNAUTHENTICATED: redirecting to the
    login page before the query resolves logs valid users out.
    """

    LOADING = "loading"
    AUTHENTICATED = "authenticated"
    UNAUTHENTICATED = "unauthenticated"


@dataclass(frozen=True)
class SessionUser:
    """Authenticated user.

    Attributes:
        id: User identifier in the identity service.
        role: Role code. Kept as a string so unknown roles from the
            identity service can be detected instead of failing to parse.
        tenant_id: Institution the user belongs to.
        name: Display name, if the identity service sent one.
        email: E-mail address, if the identity service sent one.
    """

    id: str
    role: str
    tenant_id: str
    name: str | None = None
    email: str | None = None

    @property
    def is_admin(self) -> bool:
        """Check if user is an admin."""
        return self.role == Role.ADMIN.value

    @property
    def is_operator(self) -> bool:
        """Check if user may submit enrollments for students."""
        return self.role in OPERATOR_ROLES


@dataclass(frozen=True)
class Identity:
    """Result of resolving the current session.

    Attributes:
        state: Resolution state.
        user: The user when state is AUTHENTICATED, otherwise None.
    """

    state: IdentityState
    user: SessionUser | None = None

    def __post_init__(self) -> None:
        if (self.state == IdentityState.AUTHENTICATED) != (self.user is not None):
            raise ValueError("An authenticated identity needs a user, and only it")

    @classmethod
    def loading(cls) -> "Identity":
        return cls(IdentityState.LOADING)

    @classmethod
    def anonymous(cls) -> "Identity":
        return cls(IdentityState.UNAUTHENTICATED)

    @classmethod
    def authenticated(cls, user: SessionUser) -> "Identity":
        return cls(IdentityState.AUTHENTICATED, user)

    @classmethod
    def from_user(cls, user: SessionUser | None) -> "Identity":
        """Build a resolved identity from an optional user."""
        return cls.authenticated(user) if user is not None else cls.anonymous()

    @property
    def is_authenticated(self) -> bool:
        return self.state == IdentityState.AUTHENTICATED
