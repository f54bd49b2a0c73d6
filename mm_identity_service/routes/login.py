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
"""Legacy provider-token login route.

POST /login/{provider} accepts a provider access token the client
obtained on its own, together with the profile it claims. Deprecated in
favor of the callback and PKCE flows.
"""

from fastapi import APIRouter
from pydantic import Field

from mm_identity_service.models.oauth import AuthSession, ClaimedProfile
from mm_identity_service.routes.auth_oauth import CamelModel, ErrorResponse, flow_error_to_http
from mm_identity_service.services.oauth import AuthFlowError, OAuthService


class LegacyLoginRequest(CamelModel):
    """Request body for POST /login/{provider}."""

    access_token: str | None = Field(None, description="Provider access token.")
    id_token: str | None = Field(None, description="Google ID token, if the client has one.")
    user: ClaimedProfile | None = Field(None, description="The profile the client claims.")


def create_login_router(oauth_service: OAuthService) -> APIRouter:
    """Create the legacy login router."""
    router = APIRouter(prefix="/login", tags=["auth"])

    @router.post(
        "/{provider}",
        response_model=AuthSession,
        response_model_by_alias=True,
        deprecated=True,
        responses={
            400: {"description": "Invalid request", "model": ErrorResponse},
            401: {"description": "Claimed profile does not match", "model": ErrorResponse},
            404: {"description": "Unknown provider", "model": ErrorResponse},
        },
        summary="Sign in with a provider access token",
    )
    async def login(provider: str, request: LegacyLoginRequest) -> AuthSession:
        try:
            return await oauth_service.login_with_provider_token(
                provider,
                access_token=request.access_token,
                claimed=request.user,
                id_token=request.id_token,
            )
        except AuthFlowError as e:
            raise flow_error_to_http(e)

    return router
