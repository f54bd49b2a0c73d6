# ============================================================
# SPDX-License-Identifier: GPL-3.0-or-later
# This program was generated as part of the AgentFoundry project.
# Copyright (C) 2025  John Brosnihan
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.
#
# This program is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
# GNU General Public License for more details.
#
# You should have received a copy of the GNU General Public License
# along with this program.  If not, see <https://www.gnu.org/licenses/>.
# ============================================================
"""Authentication utilities for the Money Monitoring Identity Service.

This module provides authentication utilities including:
- Authorization header parsing
- Session token validation with user lookup
- A FastAPI dependency for injecting the authenticated user
"""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import TYPE_CHECKING

import structlog
from fastapi import Header, HTTPException, status

from mm_identity_service.logging import provider_ctx, user_id_ctx
from mm_identity_service.models.user import LocalUser
from mm_identity_service.security.jwt import (
    JWTExpiredError,
    JWTValidationError,
    SessionTokenClaims,
    validate_session_token,
)

if TYPE_CHECKING:
    from mm_identity_service.stores.user_store import LocalUserRepository

logger = structlog.get_logger(__name__)


class AuthenticationError(Exception):
    """Base exception for authentication errors.

    Attributes:
        error_code: A machine-readable error code.
        message: A human-readable error message safe for clients.
    """

    def __init__(self, error_code: str, message: str) -> None:
        super().__init__(message)
        self.error_code = error_code
        self.message = message


class InvalidTokenError(AuthenticationError):
    """Raised when token validation fails."""

    def __init__(self, message: str = "Invalid or expired token") -> None:
        super().__init__("invalid_token", message)


class MissingAuthorizationError(AuthenticationError):
    """Raised when the Authorization header is missing or malformed."""

    def __init__(self, message: str = "Authorization header required") -> None:
        super().__init__("missing_authorization", message)


@dataclass
class AuthenticatedContext:
    """The authenticated user and the claims of the token they presented."""

    user: LocalUser
    claims: SessionTokenClaims


def parse_authorization_header(authorization: str | None) -> str:
    """Parse a "Bearer <token>" Authorization header.

    Args:
        authorization: The Authorization header value.

    Returns:
        The extracted token string.

    Raises:
        MissingAuthorizationError: If the header is missing or malformed.
    """
    if not authorization:
        raise MissingAuthorizationError("Authorization header required")

    parts = authorization.split(" ", 1)
    if len(parts) != 2:
        raise MissingAuthorizationError("Invalid authorization header format")

    scheme, token = parts
    if scheme.lower() != "bearer":
        raise MissingAuthorizationError("Invalid authorization scheme")

    if not token or not token.strip():
        raise MissingAuthorizationError("Token is required")

    return token.strip()


async def authenticate_request(
    authorization: str | None,
    jwt_secret: str,
    user_repository: "LocalUserRepository",
    now: datetime | None = None,
) -> AuthenticatedContext:
    """Authenticate a request from its bearer token.

    Args:
        authorization: The Authorization header value.
        jwt_secret: The secret for token signature verification.
        user_repository: The repository the token subject is loaded from.
        now: Optional current time for validation. Defaults to UTC now.

    Returns:
        AuthenticatedContext with the user and validated claims.

    Raises:
        MissingAuthorizationError: If the Authorization header is missing or malformed.
        InvalidTokenError: If the token is invalid, expired, or its user is gone.
    """
    if now is None:
        now = datetime.now(timezone.utc)

    token = parse_authorization_header(authorization)

    try:
        claims = validate_session_token(token, jwt_secret, now)
    except JWTExpiredError:
        logger.debug("auth.token.expired")
        raise InvalidTokenError("Token has expired")
    except JWTValidationError:
        logger.debug("auth.token.invalid")
        raise InvalidTokenError("Invalid or expired token")

    user = await user_repository.get_by_id(claims.user_id)
    if user is None:
        logger.warning("auth.user.not_found", user_id=str(claims.user_id))
        raise InvalidTokenError("Invalid token")

    logger.debug("auth.success", user_id=str(user.id), provider=user.provider)
    return AuthenticatedContext(user=user, claims=claims)


AuthRequired = Callable[..., Awaitable[AuthenticatedContext]]


def create_auth_dependency(
    jwt_secret: str,
    user_repository: "LocalUserRepository",
) -> AuthRequired:
    """Create a FastAPI dependency that requires a valid session token.

    Authentication failures are raised as 401 HTTPExceptions with a
    structured {error, message} detail.

    Args:
        jwt_secret: The secret for token signature verification.
        user_repository: The repository the token subject is loaded from.

    Returns:
        An async dependency callable returning AuthenticatedContext.
    """

    async def auth_required(
        authorization: str | None = Header(default=None),
    ) -> AuthenticatedContext:
        try:
            auth = await authenticate_request(
                authorization=authorization,
                jwt_secret=jwt_secret,
                user_repository=user_repository,
            )
        except AuthenticationError as e:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail={"error": e.error_code, "message": e.message},
                headers={"WWW-Authenticate": "Bearer"},
            )

        user_id_ctx.set(str(auth.user.id))
        provider_ctx.set(auth.user.provider)
        return auth

    return auth_required
