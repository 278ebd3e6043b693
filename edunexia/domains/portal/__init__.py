# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Portal registry package.

Provides the fixed catalog of portals (admin, student, teacher, hub,
partner) and the role entitlement rules used by the access guard.
"""

from edunexia.domains.portal.registry import (
    PORTALS,
    STUDENT_PORTAL,
    Portal,
    get_portal,
    resolve_available_portals,
    select_portal,
)

__all__ = [
    "Portal",
    "PORTALS",
    "STUDENT_PORTAL",
    "get_portal",
    "resolve_available_portals",
    "select_portal",
]
