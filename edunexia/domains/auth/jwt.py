# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""JWT verification for session tokens issued by the identity service.

Login, logout and registration live in the external identity service. It
signs short-lived access tokens with a secret shared with this API; this
module decodes them into the session user the authorization core reads.

create_access_token exists so tests and local tooling can mint tokens in
the same shape the identity service does.

Example:
    >>> from edunexia.core.config import get_settings
    >>> jwt_manager = JWTManager(get_settings().jwt)
    >>> token = jwt_manager.create_access_token("42", role="partner", tenant_id="1")
    >>> jwt_manager.decode_token(token).to_session_user().role
    'partner'
"""

import logging
import secrets
from datetime import datetime, timedelta, timezone

from jose import ExpiredSignatureError, JWTError as JoseJWTError, jwt
from pydantic import BaseModel

from edunexia.core.config.settings import JWTSettings
from edunexia.domains.identity import SessionUser

logger = logging.getLogger(__name__)


class TokenClaims(BaseModel):
    """Access token claims.

    Attributes:
        sub: Subject (user ID).
        role: Role code.
        tenant_id: Tenant the user belongs to.
        name: Optional display name.
        email: Optional e-mail address.
        exp: Expiration timestamp.
        iat: Issued at timestamp.
        jti: JWT ID for token tracking.
    """

    sub: str
    role: str
    tenant_id: str
    name: str | None = None
    email: str | None = None
    exp: int
    iat: int
    jti: str

    def to_session_user(self) -> SessionUser:
        """Convert the claims into the user seen by the authorization core."""
        return SessionUser(
            id=self.sub,
            role=self.role,
            tenant_id=self.tenant_id,
            name=self.name,
            email=self.email,
        )


class JWTError(Exception):
    """Base exception for JWT operations."""

    pass


class TokenExpiredError(JWTError):
    """Raised when a token has expired."""

    pass


class InvalidTokenError(JWTError):
    """Raised when a token is invalid."""

    pass


class JWTManager:
    """JWT access token verification.

    Attributes:
        _settings: JWT configuration settings.
    """

    def __init__(self, settings: JWTSettings) -> None:
        """Initialize the JWT manager.

        Args:
            settings: JWT configuration settings.
        """
        self._settings = settings

    def create_access_token(
        self,
        user_id: str,
        role: str,
        tenant_id: str,
        name: str | None = None,
        email: str | None = None,
        expires_in: timedelta | None = None,
    ) -> str:
        """Create an access token.

        Args:
            user_id: User identifier.
            role: Role code.
            tenant_id: Tenant identifier.
            name: Optional display name.
            email: Optional e-mail address.
            expires_in: Lifetime override; defaults to the configured one.

        Returns:
            JWT access token string.
        """
        now = datetime.now(timezone.utc)
        exp = now + (expires_in or timedelta(minutes=self._settings.access_token_expire_minutes))

        payload = {
            "sub": str(user_id),
            "role": role,
            "tenant_id": str(tenant_id),
            "name": name,
            "email": email,
            "exp": int(exp.timestamp()),
            "iat": int(now.timestamp()),
            "jti": secrets.token_urlsafe(16),
        }

        return jwt.encode(
            payload,
            self._settings.secret_key.get_secret_value(),
            algorithm=self._settings.algorithm,
        )

    def decode_token(self, token: str) -> TokenClaims:
        """Decode and validate an access token.

        Args:
            token: JWT token string.

        Returns:
            TokenClaims with decoded claims.

        Raises:
            TokenExpiredError: If the token has expired.
            InvalidTokenError: If the token is invalid or lacks claims.
        """
        try:
            payload = jwt.decode(
                token,
                self._settings.secret_key.get_secret_value(),
                algorithms=[self._settings.algorithm],
            )
        except ExpiredSignatureError as e:
            raise TokenExpiredError("Token has expired") from e
        except JoseJWTError as e:
            logger.warning("Token decode failed: %s", str(e))
            raise InvalidTokenError(f"Invalid token: {str(e)}") from e

        missing = [claim for claim in ("sub", "role", "tenant_id") if not payload.get(claim)]
        if missing:
            raise InvalidTokenError(f"Token is missing claims: {', '.join(missing)}")

        return TokenClaims(
            sub=str(payload["sub"]),
            role=payload["role"],
            tenant_id=str(payload["tenant_id"]),
            name=payload.get("name"),
            email=payload.get("email"),
            exp=payload["exp"],
            iat=payload["iat"],
            jti=payload.get("jti", ""),
        )

    def verify_token(self, token: str) -> bool:
        """Verify if a token is valid.

        Args:
            token: JWT token string.

        Returns:
            True if token is valid, False otherwise.
        """
        try:
            self.decode_token(token)
            return True
        except (TokenExpiredError, InvalidTokenError):
            return False
