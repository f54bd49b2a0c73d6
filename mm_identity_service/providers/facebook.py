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
"""Facebook Login provider.

Facebook is a confidential-client code exchange against the Graph API:
no PKCE, the app secret authenticates the exchange, and the identity
comes from the /me endpoint.
"""

import structlog

from mm_identity_service.models.identity import (
    ExternalIdentity,
    FacebookProfile,
    ProviderTokens,
)
from mm_identity_service.providers.base import IdentityVerificationError, OAuthProvider

logger = structlog.get_logger(__name__)

GRAPH_API_VERSION = "v18.0"
FACEBOOK_AUTHORIZE_URL = f"https://www.facebook.com/{GRAPH_API_VERSION}/dialog/oauth"
FACEBOOK_TOKEN_URL = f"https://graph.facebook.com/{GRAPH_API_VERSION}/oauth/access_token"
FACEBOOK_ME_URL = f"https://graph.facebook.com/{GRAPH_API_VERSION}/me"
FACEBOOK_PROFILE_FIELDS = "id,name,email,picture"


class FacebookProvider(OAuthProvider):
    """Facebook Login provider (authorization code, no PKCE)."""

    name = "facebook"
    authorize_url = FACEBOOK_AUTHORIZE_URL
    token_url = FACEBOOK_TOKEN_URL
    scopes = ("public_profile", "email")
    scope_separator = ","

    async def fetch_profile(self, access_token: str) -> FacebookProfile:
        """Fetch the token holder's Graph API profile.

        Raises:
            ProviderRejectedError: If the Graph API rejects the token.
            ProviderResponseError: If the profile does not parse.
        """
        response = await self._get_json(
            FACEBOOK_ME_URL,
            access_token,
            params={"fields": FACEBOOK_PROFILE_FIELDS},
        )
        return self._parse(FacebookProfile, response)

    async def fetch_identity(self, tokens: ProviderTokens) -> ExternalIdentity:
        return self._to_identity(await self.fetch_profile(tokens.access_token))

    async def verify_access_token(
        self,
        access_token: str,
        id_token: str | None = None,
    ) -> ExternalIdentity:
        return self._to_identity(await self.fetch_profile(access_token))

    def _to_identity(self, profile: FacebookProfile) -> ExternalIdentity:
        # Graph only returns confirmed emails
        if not profile.email:
            logger.warning("facebook.profile.no_email", provider_user_id=profile.id)
            raise IdentityVerificationError("facebook", "Facebook profile has no email")

        return ExternalIdentity(
            provider="facebook",
            provider_user_id=profile.id,
            email=profile.email,
            display_name=profile.name,
            avatar_url=profile.picture_url,
            email_verified=True,
        )
