# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Access guard package.

Route authorization is decided here and nowhere else; portal selection and
navigation correction only shape the UI.
"""

from edunexia.domains.access.guard import (
    HOME_ROUTE,
    LOGIN_ROUTE,
    AuthorizationContext,
    RouteDecision,
    authorize_route,
    navigation_correction,
    redirect_target,
)

__all__ = [
    "RouteDecision",
    "authorize_route",
    "redirect_target",
    "AuthorizationContext",
    "navigation_correction",
    "LOGIN_ROUTE",
    "HOME_ROUTE",
]
