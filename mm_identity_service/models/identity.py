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
"""OAuth provider payload models.

Every JSON document received from Google, Facebook or Discord is parsed
into one of these models right after the HTTP call. Documents that do not
validate are rejected at the provider boundary, so only typed values reach
account resolution.

- ProviderTokens: token endpoint response (all providers)
- ProviderErrorBody: OAuth error response (all providers)
- GoogleIdTokenClaims / GoogleUserInfo: Google identity payloads
- FacebookProfile: Graph API /me response
- DiscordProfile: Discord /users/@me response
- ExternalIdentity: the verified, provider-neutral identity
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from mm_identity_service.models.user import OAuthProviderName


class ProviderTokens(BaseModel):
    """Token endpoint response.

    Attributes:
        access_token: The provider access token.
        token_type: Token type, normally 'Bearer'.
        expires_in: Access token lifetime in seconds, if reported.
        refresh_token: Refresh token, if issued. Never stored.
        id_token: OpenID Connect ID token (Google only).
        scope: Granted scopes, if reported.
    """

    model_config = ConfigDict(extra="ignore")

    access_token: str = Field(..., min_length=1)
    token_type: str = "Bearer"
    expires_in: int | None = None
    refresh_token: str | None = None
    id_token: str | None = None
    scope: str | None = None


class ProviderErrorBody(BaseModel):
    """Error body returned by a provider endpoint.

    Google and Discord use the RFC 6749 shape
    ``{"error": "...", "error_description": "..."}``; Facebook nests the
    details in an object ``{"error": {"message": ..., "type": ..., "code": ...}}``.
    """

    model_config = ConfigDict(extra="ignore")

    error: str | dict[str, Any] | None = None
    error_description: str | None = None

    @property
    def code(self) -> str | None:
        """Machine-readable error code."""
        if isinstance(self.error, dict):
            error_type = self.error.get("type")
            return str(error_type) if error_type is not None else None
        return self.error

    @property
    def description(self) -> str | None:
        """Human-readable error description (server-side logging only)."""
        if isinstance(self.error, dict):
            message = self.error.get("message")
            return str(message) if message is not None else None
        return self.error_description


class GoogleIdTokenClaims(BaseModel):
    """Claims of a verified Google ID token."""

    model_config = ConfigDict(extra="ignore")

    sub: str = Field(..., min_length=1)
    email: str | None = None
    email_verified: bool = False
    name: str | None = None
    picture: str | None = None


class GoogleUserInfo(BaseModel):
    """Response of Google's v2 userinfo endpoint."""

    model_config = ConfigDict(extra="ignore")

    id: str = Field(..., min_length=1)
    email: str | None = None
    verified_email: bool = False
    name: str | None = None
    picture: str | None = None


class _FacebookPictureData(BaseModel):
    model_config = ConfigDict(extra="ignore")

    url: str | None = None


class _FacebookPicture(BaseModel):
    model_config = ConfigDict(extra="ignore")

    data: _FacebookPictureData | None = None


class FacebookProfile(BaseModel):
    """Graph API ``/me?fields=id,name,email,picture`` response."""

    model_config = ConfigDict(extra="ignore")

    id: str = Field(..., min_length=1)
    name: str | None = None
    email: str | None = None
    picture: _FacebookPicture | None = None

    @property
    def picture_url(self) -> str | None:
        if self.picture is None or self.picture.data is None:
            return None
        return self.picture.data.url


class DiscordProfile(BaseModel):
    """Discord ``/users/@me`` response (requires the 'email' scope for email fields)."""

    model_config = ConfigDict(extra="ignore")

    id: str = Field(..., min_length=1)
    username: str
    global_name: str | None = None
    email: str | None = None
    verified: bool = False
    avatar: str | None = None


class ExternalIdentity(BaseModel):
    """A provider identity that has been verified by the service.

    Attributes:
        provider: The provider that asserted the identity.
        provider_user_id: The provider's stable user id (Google 'sub').
        email: The provider-asserted email address. Always present.
        display_name: Display name, if the provider shared one.
        avatar_url: Avatar URL, if the provider shared one.
        email_verified: Whether the provider vouches for the email.
    """

    provider: OAuthProviderName
    provider_user_id: str = Field(..., min_length=1)
    email: str = Field(..., min_length=3)
    display_name: str | None = None
    avatar_url: str | None = None
    email_verified: bool = False
