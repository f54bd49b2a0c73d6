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
"""Google OAuth provider with PKCE and ID token verification.

Google is the canonical flow: the authorization URL carries an S256 code
challenge and the token exchange presents the matching verifier. The
identity is taken from the signed ID token in the token response, which
is verified against Google's published JWKS. When no ID token is
returned, the userinfo endpoint is used instead.
"""

import asyncio

import httpx
import jwt
import structlog
from jwt import PyJWKClient
from jwt.exceptions import PyJWKClientConnectionError
from pydantic import ValidationError

from mm_identity_service.models.identity import (
    ExternalIdentity,
    GoogleIdTokenClaims,
    GoogleUserInfo,
    ProviderTokens,
)
from mm_identity_service.providers.base import (
    IdentityVerificationError,
    OAuthProvider,
    ProviderUnavailableError,
)

logger = structlog.get_logger(__name__)

GOOGLE_AUTHORIZE_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
GOOGLE_USERINFO_URL = "https://www.googleapis.com/oauth2/v2/userinfo"
GOOGLE_JWKS_URL = "https://www.googleapis.com/oauth2/v3/certs"
GOOGLE_ISSUERS = ("accounts.google.com", "https://accounts.google.com")

REQUIRED_ID_TOKEN_CLAIMS = ["exp", "iat", "iss", "sub", "aud"]


class GoogleIdTokenVerifier:
    """Verifies Google-signed ID tokens.

    Checks the RS256 signature against Google's JWKS, the audience
    (our client id), the issuer and the expiry. Fails closed: any
    mismatch raises IdentityVerificationError.

    The JWKS fetch is blocking, so it runs in a worker thread bounded by
    the provider timeout.
    """

    def __init__(
        self,
        client_id: str,
        jwks_client: PyJWKClient | None = None,
        timeout_seconds: float = 10.0,
    ) -> None:
        self._client_id = client_id
        self._timeout = timeout_seconds
        self._jwks_client = jwks_client or PyJWKClient(
            GOOGLE_JWKS_URL,
            cache_keys=True,
            timeout=int(timeout_seconds),
        )

    async def verify(self, id_token: str) -> ExternalIdentity:
        """Verify an ID token and return the identity it asserts.

        Args:
            id_token: The compact-serialized ID token.

        Returns:
            ExternalIdentity with email_verified=True.

        Raises:
            IdentityVerificationError: If the token is invalid or the email
                is missing or unverified.
            ProviderUnavailableError: If the signing keys cannot be fetched.
        """
        try:
            signing_key = await asyncio.wait_for(
                asyncio.to_thread(self._jwks_client.get_signing_key_from_jwt, id_token),
                timeout=self._timeout,
            )
        except asyncio.TimeoutError as e:
            raise ProviderUnavailableError("google", "Timed out fetching Google signing keys") from e
        except PyJWKClientConnectionError as e:
            raise ProviderUnavailableError("google", "Could not fetch Google signing keys") from e
        except jwt.PyJWTError as e:
            logger.warning("google.id_token.invalid", reason=type(e).__name__)
            raise IdentityVerificationError("google", "ID token signing key not found") from e

        try:
            payload = jwt.decode(
                id_token,
                signing_key.key,
                algorithms=["RS256"],
                audience=self._client_id,
                options={"require": REQUIRED_ID_TOKEN_CLAIMS},
            )
        except jwt.ExpiredSignatureError as e:
            logger.warning("google.id_token.expired")
            raise IdentityVerificationError("google", "ID token has expired") from e
        except jwt.InvalidTokenError as e:
            logger.warning("google.id_token.invalid", reason=type(e).__name__)
            raise IdentityVerificationError("google", f"ID token rejected: {type(e).__name__}") from e

        if payload.get("iss") not in GOOGLE_ISSUERS:
            logger.warning("google.id_token.invalid", reason="issuer")
            raise IdentityVerificationError("google", "ID token issuer is not Google")

        try:
            claims = GoogleIdTokenClaims.model_validate(payload)
        except ValidationError as e:
            logger.warning("google.id_token.invalid", reason="claims")
            raise IdentityVerificationError("google", "ID token claims are malformed") from e

        if not claims.email:
            raise IdentityVerificationError("google", "ID token carries no email")
        if not claims.email_verified:
            raise IdentityVerificationError("google", "Google email is not verified")

        return ExternalIdentity(
            provider="google",
            provider_user_id=claims.sub,
            email=claims.email,
            display_name=claims.name,
            avatar_url=claims.picture,
            email_verified=True,
        )


class GoogleProvider(OAuthProvider):
    """Google OAuth 2.0 provider (authorization code + PKCE)."""

    name = "google"
    authorize_url = GOOGLE_AUTHORIZE_URL
    token_url = GOOGLE_TOKEN_URL
    scopes = ("openid", "email", "profile")
    requires_pkce = True
    authorize_params = {"access_type": "offline", "prompt": "consent"}

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        http_client: httpx.AsyncClient | None = None,
        id_token_verifier: GoogleIdTokenVerifier | None = None,
        timeout_seconds: float = 10.0,
    ) -> None:
        super().__init__(client_id, client_secret, http_client)
        self._verifier = id_token_verifier or GoogleIdTokenVerifier(
            client_id, timeout_seconds=timeout_seconds
        )

    async def fetch_identity(self, tokens: ProviderTokens) -> ExternalIdentity:
        if tokens.id_token:
            return await self._verifier.verify(tokens.id_token)
        logger.info("google.id_token.absent", fallback="userinfo")
        return await self.fetch_userinfo(tokens.access_token)

    async def verify_access_token(
        self,
        access_token: str,
        id_token: str | None = None,
    ) -> ExternalIdentity:
        """Verify a client-held Google sign-in.

        Only the ID token proves the sign-in was issued to our client id.
        A bare access token is accepted by userinfo whichever client it
        was issued to, so it is refused.

        Raises:
            IdentityVerificationError: If no ID token is given or it is invalid.
        """
        if not id_token:
            logger.warning("google.id_token.absent", path="legacy_login")
            raise IdentityVerificationError("google", "Google sign-in requires an ID token")
        return await self._verifier.verify(id_token)

    async def fetch_userinfo(self, access_token: str) -> ExternalIdentity:
        """Look up the token holder on Google's userinfo endpoint.

        Raises:
            IdentityVerificationError: If the email is missing or unverified.
        """
        response = await self._get_json(GOOGLE_USERINFO_URL, access_token)
        info = self._parse(GoogleUserInfo, response)

        if not info.email:
            raise IdentityVerificationError("google", "Google profile has no email")
        if not info.verified_email:
            raise IdentityVerificationError("google", "Google email is not verified")

        return ExternalIdentity(
            provider="google",
            provider_user_id=info.id,
            email=info.email,
            display_name=info.name,
            avatar_url=info.picture,
            email_verified=True,
        )
