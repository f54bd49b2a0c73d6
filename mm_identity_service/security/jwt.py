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
"""Session token minting and validation for the Money Monitoring Identity Service.

This module provides functions to mint and validate the HS256 bearer
tokens issued to users after a successful sign-in.
"""

import base64
import hmac
import json
from datetime import datetime, timezone
from uuid import UUID

import structlog

logger = structlog.get_logger(__name__)

MIN_SECRET_LENGTH = 32


class JWTMintError(Exception):
    """Raised when token minting fails."""

    pass


class JWTValidationError(Exception):
    """Raised when token validation fails.

    This exception is raised for any token validation failure including:
    - Malformed tokens
    - Invalid signature
    - Missing required claims

    The error message is designed to be safe for client consumption
    and does not leak cryptographic details.
    """

    pass


class JWTExpiredError(JWTValidationError):
    """Raised when a token has expired."""

    pass


def _base64url_decode(data: str) -> bytes:
    padding = 4 - len(data) % 4
    if padding != 4:
        data += "=" * padding

    try:
        return base64.urlsafe_b64decode(data)
    except (ValueError, TypeError):
        raise JWTValidationError("Invalid token format")


def _base64url_encode(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def _sign(signing_input: str, secret: str) -> str:
    signature = hmac.new(
        secret.encode("utf-8"),
        signing_input.encode("utf-8"),
        "sha256",
    ).digest()
    return _base64url_encode(signature)


def _encode_segment(data: dict) -> str:
    return _base64url_encode(json.dumps(data, separators=(",", ":")).encode("utf-8"))


def mint_session_token(
    secret: str,
    user_id: UUID,
    email: str,
    provider: str,
    expires_at: datetime,
    issued_at: datetime | None = None,
) -> str:
    """Mint a session token for a local user.

    Creates a token with claims {sub, email, provider, exp, iat} signed
    using HMAC-SHA256.

    Args:
        secret: The IDENTITY_JWT_SECRET for signing tokens.
        user_id: The local user's UUID (becomes 'sub' claim).
        email: The user's email address.
        provider: The provider the user signed in with.
        expires_at: When the token expires (timezone-aware UTC).
        issued_at: When the token was issued (defaults to now).

    Returns:
        A signed token string.

    Raises:
        JWTMintError: If the secret is too short or expiry precedes issue time.
    """
    if not secret or len(secret) < MIN_SECRET_LENGTH:
        raise JWTMintError(f"Secret must be at least {MIN_SECRET_LENGTH} characters")

    if issued_at is None:
        issued_at = datetime.now(timezone.utc)
    if expires_at.tzinfo is None:
        expires_at = expires_at.replace(tzinfo=timezone.utc)
    if issued_at.tzinfo is None:
        issued_at = issued_at.replace(tzinfo=timezone.utc)
    if expires_at <= issued_at:
        raise JWTMintError("Token expiry must be after issue time")

    header = {"alg": "HS256", "typ": "JWT"}
    payload = {
        "sub": str(user_id),
        "email": email,
        "provider": provider,
        "exp": int(expires_at.timestamp()),
        "iat": int(issued_at.timestamp()),
    }

    signing_input = f"{_encode_segment(header)}.{_encode_segment(payload)}"
    token = f"{signing_input}.{_sign(signing_input, secret)}"

    logger.debug(
        "session_token.minted",
        user_id=str(user_id),
        provider=provider,
        expires_at=expires_at.isoformat(),
    )
    return token


class SessionTokenClaims:
    """Validated session token claims.

    Attributes:
        user_id: The user's UUID from the 'sub' claim.
        email: The email claim.
        provider: The provider claim.
        exp: The expiration timestamp.
        iat: The issued-at timestamp.
    """

    def __init__(self, user_id: UUID, email: str, provider: str, exp: int, iat: int) -> None:
        self.user_id = user_id
        self.email = email
        self.provider = provider
        self.exp = exp
        self.iat = iat


def validate_session_token(
    token: str,
    secret: str,
    now: datetime | None = None,
) -> SessionTokenClaims:
    """Validate a session token.

    Verifies the signature, checks expiration and extracts claims.

    Args:
        token: The token string to validate.
        secret: The IDENTITY_JWT_SECRET used for signature verification.
        now: Optional current time for the expiration check.

    Returns:
        SessionTokenClaims with the validated claims.

    Raises:
        JWTValidationError: If the token is malformed or has an invalid signature.
        JWTExpiredError: If the token has expired.
    """
    if now is None:
        now = datetime.now(timezone.utc)

    parts = token.split(".")
    if len(parts) != 3:
        raise JWTValidationError("Invalid token format")

    header_b64, payload_b64, signature_b64 = parts

    # Signature first, constant-time
    expected_signature = _sign(f"{header_b64}.{payload_b64}", secret)
    if not hmac.compare_digest(signature_b64.encode("utf-8"), expected_signature.encode("utf-8")):
        raise JWTValidationError("Invalid token")

    try:
        header = json.loads(_base64url_decode(header_b64))
        payload = json.loads(_base64url_decode(payload_b64))
    except (json.JSONDecodeError, UnicodeDecodeError):
        raise JWTValidationError("Invalid token format")

    if not isinstance(header, dict) or header.get("alg") != "HS256":
        raise JWTValidationError("Unsupported token algorithm")
    if not isinstance(payload, dict):
        raise JWTValidationError("Invalid token claims")

    try:
        sub = payload.get("sub")
        email = payload.get("email")
        provider = payload.get("provider")
        exp = payload.get("exp")
        iat = payload.get("iat")

        if not all([sub, email, provider, exp is not None, iat is not None]):
            raise JWTValidationError("Missing required claims")

        user_id = UUID(sub)
        exp_int = int(exp)
        iat_int = int(iat)
    except (ValueError, TypeError):
        raise JWTValidationError("Invalid token claims")

    if now >= datetime.fromtimestamp(exp_int, tz=timezone.utc):
        raise JWTExpiredError("Token has expired")

    return SessionTokenClaims(
        user_id=user_id,
        email=str(email),
        provider=str(provider),
        exp=exp_int,
        iat=iat_int,
    )
