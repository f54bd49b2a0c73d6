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
"""Stub OAuth provider for development.

This provider does NOT make real provider API calls. It builds
authorization URLs shaped like the real provider's and accepts any code
or access token, deriving a deterministic identity from it.

WARNING: This provider should NEVER be used in production. It does not
perform real authentication and accepts any input as valid.
"""

import hashlib

import structlog

from mm_identity_service.logging import secret_prefix
from mm_identity_service.models.identity import ExternalIdentity, ProviderTokens
from mm_identity_service.providers.base import OAuthProvider
from mm_identity_service.providers.discord import DiscordProvider
from mm_identity_service.providers.facebook import FacebookProvider
from mm_identity_service.providers.google import GoogleProvider

logger = structlog.get_logger(__name__)

PROVIDER_CLASSES: dict[str, type[OAuthProvider]] = {
    "google": GoogleProvider,
    "facebook": FacebookProvider,
    "discord": DiscordProvider,
}

STUB_EMAIL_DOMAIN = "example.com"


class StubOAuthProvider(OAuthProvider):
    """Stub implementation of OAuthProvider for development.

    The stub:
    - Mirrors the real provider's endpoints, scopes and PKCE requirement
    - Returns the code itself inside a fake access token
    - Derives a stable identity from the code or token. A value that
      contains '@' is used as the email, so a developer can sign in as
      a chosen address.
    """

    def __init__(self, name: str, client_id: str = "stub-client-id") -> None:
        if name not in PROVIDER_CLASSES:
            raise ValueError(f"Unknown provider: {name}")

        template = PROVIDER_CLASSES[name]
        self.name = name
        self.authorize_url = template.authorize_url
        self.token_url = template.token_url
        self.scopes = template.scopes
        self.scope_separator = template.scope_separator
        self.requires_pkce = template.requires_pkce
        self.authorize_params = dict(template.authorize_params)
        super().__init__(client_id, "stub-client-secret", http_client=None)

        logger.warning(
            "Initialized stub OAuth provider (dev-only, NOT for production)",
            provider=name,
        )

    def _token_prefix(self) -> str:
        return f"stub-{self.name}-"

    async def exchange_code(
        self,
        code: str,
        redirect_uri: str,
        code_verifier: str | None = None,
    ) -> ProviderTokens:
        if self.requires_pkce and not code_verifier:
            raise ValueError(f"{self.name} requires a PKCE code verifier")

        logger.info("Stub: exchanging code for tokens", provider=self.name, code_prefix=secret_prefix(code))
        return ProviderTokens(
            access_token=f"{self._token_prefix()}{code}",
            token_type="Bearer",
            expires_in=3600,
        )

    async def fetch_identity(self, tokens: ProviderTokens) -> ExternalIdentity:
        seed = tokens.access_token.removeprefix(self._token_prefix())
        return self._identity_for(seed)

    async def verify_access_token(
        self,
        access_token: str,
        id_token: str | None = None,
    ) -> ExternalIdentity:
        return self._identity_for(access_token.removeprefix(self._token_prefix()))

    def _identity_for(self, seed: str) -> ExternalIdentity:
        digest = hashlib.sha256(f"{self.name}:{seed}".encode("utf-8")).hexdigest()[:12]

        if "@" in seed:
            email = seed.strip().lower()
            display_name = email.split("@", 1)[0]
        else:
            email = f"{self.name}-{digest}@{STUB_EMAIL_DOMAIN}"
            display_name = f"Stub {self.name.title()} User"

        identity = ExternalIdentity(
            provider=self.name,
            provider_user_id=f"stub-{digest}",
            email=email,
            display_name=display_name,
            avatar_url=None,
            email_verified=True,
        )
        logger.info("Stub: identity resolved", provider=self.name, provider_user_id=identity.provider_user_id)
        return identity
