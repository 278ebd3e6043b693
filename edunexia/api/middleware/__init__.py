# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""API middleware."""

from edunexia.api.middleware.auth import PUBLIC_PATHS, AuthMiddleware, get_current_user
from edunexia.api.middleware.rate_limit import limiter, rate_limit_exceeded_handler

__all__ = [
    "AuthMiddleware",
    "PUBLIC_PATHS",
    "get_current_user",
    "limiter",
    "rate_limit_exceeded_handler",
]
