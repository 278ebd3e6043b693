# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Session identity package."""

from edunexia.domains.identity.models import (
    OPERATOR_ROLES,
    Identity,
    IdentityState,
    Role,
    SessionUser,
)

__all__ = [
    "Role",
    "OPERATOR_ROLES",
    "IdentityState",
    "Identity",
    "SessionUser",
]
