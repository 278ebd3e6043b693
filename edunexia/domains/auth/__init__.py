# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Authentication domain package.

Verifies the session tokens minted by the external identity service.
"""

from edunexia.domains.auth.jwt import (
    InvalidTokenError,
    JWTError,
    JWTManager,
    TokenClaims,
    TokenExpiredError,
)

__all__ = [
    "JWTManager",
    "TokenClaims",
    "JWTError",
    "TokenExpiredError",
    "InvalidTokenError",
]
