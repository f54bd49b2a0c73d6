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
"""Discord OAuth2 provider.

Discord is a confidential-client code exchange: no PKCE, the client
secret authenticates the exchange, and the identity comes from
/users/@me. Accounts without a verified email are rejected.
"""

import structlog

from mm_identity_service.models.identity import (
    DiscordProfile,
    ExternalIdentity,
    ProviderTokens,
)
from mm_identity_service.providers.base import IdentityVerificationError, OAuthProvider

logger = structlog.get_logger(__name__)

DISCORD_AUTHORIZE_URL = "https://discord.com/oauth2/authorize"
DISCORD_TOKEN_URL = "https://discord.com/api/oauth2/token"
DISCORD_ME_URL = "https://discord.com/api/users/@me"
DISCORD_AVATAR_URL = "https://cdn.discordapp.com/avatars/{user_id}/{avatar}.png"


def avatar_url(profile: DiscordProfile) -> str | None:
    """Expand a Discord avatar hash into a CDN URL."""
    if not profile.avatar:
        return None
    return DISCORD_AVATAR_URL.format(user_id=profile.id, avatar=profile.avatar)


class DiscordProvider(OAuthProvider):
    """Discord OAuth2 provider (authorization code, no PKCE)."""

    name = "discord"
    authorize_url = DISCORD_AUTHORIZE_URL
    token_url = DISCORD_TOKEN_URL
    scopes = ("identify", "email")

    async def fetch_profile(self, access_token: str) -> DiscordProfile:
        """Fetch the token holder's Discord profile.

        Raises:
            ProviderRejectedError: If Discord rejects the token.
            ProviderResponseError: If the profile does not parse.
        """
        response = await self._get_json(DISCORD_ME_URL, access_token)
        return self._parse(DiscordProfile, response)

    async def fetch_identity(self, tokens: ProviderTokens) -> ExternalIdentity:
        return self._to_identity(await self.fetch_profile(tokens.access_token))

    async def verify_access_token(
        self,
        access_token: str,
        id_token: str | None = None,
    ) -> ExternalIdentity:
        return self._to_identity(await self.fetch_profile(access_token))

    def _to_identity(self, profile: DiscordProfile) -> ExternalIdentity:
        if not profile.email:
            logger.warning("discord.profile.no_email", provider_user_id=profile.id)
            raise IdentityVerificationError("discord", "Discord profile has no email")
        if not profile.verified:
            logger.warning("discord.profile.unverified_email", provider_user_id=profile.id)
            raise IdentityVerificationError("discord", "Discord email is not verified")

        return ExternalIdentity(
            provider="discord",
            provider_user_id=profile.id,
            email=profile.email,
            display_name=profile.global_name or profile.username,
            avatar_url=avatar_url(profile),
            email_verified=True,
        )
