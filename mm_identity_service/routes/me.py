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
"""User profile route for the Money Monitoring Identity Service.

This module provides the GET /auth/me endpoint for authenticated users
to retrieve their profile.
"""

import structlog
from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from mm_identity_service.models.user import PublicUser
from mm_identity_service.routes.auth_oauth import ErrorResponse
from mm_identity_service.security.auth import AuthenticatedContext, create_auth_dependency
from mm_identity_service.stores.user_store import LocalUserRepository

logger = structlog.get_logger(__name__)


class MeResponse(BaseModel):
    """Response body for GET /auth/me."""

    user: PublicUser = Field(..., description="The authenticated user.")


def create_me_router(jwt_secret: str, user_repository: LocalUserRepository) -> APIRouter:
    """Create the user profile router.

    Args:
        jwt_secret: The secret for token validation.
        user_repository: The user repository for user retrieval.

    Returns:
        A FastAPI APIRouter with the /auth/me endpoint.
    """
    router = APIRouter(prefix="/auth", tags=["user"])

    auth_required = create_auth_dependency(
        jwt_secret=jwt_secret,
        user_repository=user_repository,
    )

    @router.get(
        "/me",
        response_model=MeResponse,
        response_model_by_alias=True,
        responses={
            200: {"description": "User profile retrieved successfully"},
            401: {"description": "Invalid or expired token", "model": ErrorResponse},
        },
        summary="Get current user profile",
    )
    async def get_me(auth: AuthenticatedContext = Depends(auth_required)) -> MeResponse:
        logger.info("user.profile.retrieved", user_id=str(auth.user.id), provider=auth.user.provider)
        return MeResponse(user=auth.user.to_public())

    return router
