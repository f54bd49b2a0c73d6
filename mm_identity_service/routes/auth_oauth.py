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
"""OAuth routes for the Money Monitoring Identity Service.

This module provides:
- GET  /auth/{provider}/url       authorization URL (+ PKCE verifier for mobile)
- GET  /auth/{provider}/callback  browser callback, answered with a redirect
- POST /auth/google/token         mobile PKCE code exchange
"""

import structlog
from fastapi import APIRouter, HTTPException, Query
from fastapi.responses import RedirectResponse
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from mm_identity_service.models.oauth import AuthSession
from mm_identity_service.services.oauth import AuthFlowError, OAuthService

logger = structlog.get_logger(__name__)


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class AuthUrlResponse(CamelModel):
    """Response body for GET /auth/{provider}/url."""

    auth_url: str = Field(..., description="The provider authorization URL to open.")
    state: str = Field(..., description="The state token bound to this authorization.")
    code_verifier: str | None = Field(
        None,
        description="PKCE verifier, only for mobile flows where the client exchanges the code.",
    )


class TokenExchangeRequest(CamelModel):
    """Request body for POST /auth/google/token.

    All fields are optional at the schema level so that a missing field
    is reported as invalid_request rather than a validation error.
    """

    code: str | None = Field(None, description="The authorization code from Google.")
    code_verifier: str | None = Field(None, description="The PKCE verifier from /auth/google/url.")
    redirect_uri: str | None = Field(None, description="The redirect URI used to obtain the code.")
    state: str | None = Field(None, description="The state from /auth/google/url.")


class ErrorResponse(BaseModel):
    """Standard error response."""

    error: str = Field(..., description="Error type.")
    message: str = Field(..., description="Human-readable error message.")


def flow_error_to_http(error: AuthFlowError) -> HTTPException:
    """Translate an AuthFlowError into a JSON HTTPException."""
    return HTTPException(
        status_code=error.status_code,
        detail={"error": error.error_code, "message": error.message},
    )


def create_auth_router(oauth_service: OAuthService) -> APIRouter:
    """Create the OAuth router.

    Args:
        oauth_service: The OAuth service for handling authentication.

    Returns:
        A FastAPI APIRouter with the OAuth endpoints.
    """
    router = APIRouter(prefix="/auth", tags=["auth"])

    @router.post(
        "/google/token",
        response_model=AuthSession,
        response_model_by_alias=True,
        responses={
            200: {"description": "Authentication successful"},
            400: {"description": "Invalid request or session", "model": ErrorResponse},
            401: {"description": "Identity could not be verified", "model": ErrorResponse},
            502: {"description": "Google rejected the exchange", "model": ErrorResponse},
            503: {"description": "Google is unavailable", "model": ErrorResponse},
        },
        summary="Exchange a Google authorization code (mobile PKCE)",
    )
    async def google_token(request: TokenExchangeRequest) -> AuthSession:
        """Exchange a code obtained by a mobile client for a session.

        The client presents the PKCE verifier it received from
        /auth/google/url. When state is sent, it must match a pending
        authorization issued with that same verifier.
        """
        try:
            return await oauth_service.exchange_mobile_code(
                code=request.code,
                code_verifier=request.code_verifier,
                redirect_uri=request.redirect_uri,
                state=request.state,
            )
        except AuthFlowError as e:
            raise flow_error_to_http(e)

    @router.get(
        "/{provider}/url",
        response_model=AuthUrlResponse,
        response_model_by_alias=True,
        response_model_exclude_none=True,
        responses={
            200: {"description": "Authorization URL generated successfully"},
            400: {"description": "Invalid redirect URI", "model": ErrorResponse},
            404: {"description": "Unknown provider", "model": ErrorResponse},
        },
        summary="Start an OAuth flow",
    )
    async def authorization_url(
        provider: str,
        redirect_uri: str | None = Query(default=None, alias="redirectUri"),
    ) -> AuthUrlResponse:
        """Generate an authorization URL and register the pending session.

        With a mobile redirectUri (Google only), the PKCE verifier is
        returned so the app can complete the exchange itself.
        """
        try:
            result = await oauth_service.start(provider, mobile_redirect_uri=redirect_uri)
        except AuthFlowError as e:
            raise flow_error_to_http(e)

        return AuthUrlResponse(
            auth_url=result.auth_url,
            state=result.state,
            code_verifier=result.code_verifier,
        )

    @router.get(
        "/{provider}/callback",
        response_class=RedirectResponse,
        status_code=302,
        responses={302: {"description": "Redirect to the client with the session or an error code"}},
        summary="Handle the provider callback",
    )
    async def callback(
        provider: str,
        code: str | None = None,
        state: str | None = None,
        error: str | None = None,
    ) -> RedirectResponse:
        """Complete the flow and redirect the browser back to the client.

        Success carries the token and user in the query string; failure
        carries only a coarse error code.
        """
        try:
            result = await oauth_service.handle_callback(provider, code=code, state=state, error=error)
        except AuthFlowError as e:
            return RedirectResponse(oauth_service.error_redirect(e), status_code=302)

        return RedirectResponse(oauth_service.success_redirect(result), status_code=302)

    return router
