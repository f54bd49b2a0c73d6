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
"""Money Monitoring Identity Security.

This module exports PKCE generation, session token minting and
validation, and request authentication.
"""

from mm_identity_service.security.auth import (
    AuthenticatedContext,
    AuthenticationError,
    AuthRequired,
    InvalidTokenError,
    MissingAuthorizationError,
    authenticate_request,
    create_auth_dependency,
    parse_authorization_header,
)
from mm_identity_service.security.jwt import (
    JWTExpiredError,
    JWTMintError,
    JWTValidationError,
    SessionTokenClaims,
    mint_session_token,
    validate_session_token,
)
from mm_identity_service.security.pkce import (
    compute_code_challenge,
    generate_pkce,
    generate_state,
    is_valid_code_verifier,
)

__all__ = [
    # PKCE
    "compute_code_challenge",
    "generate_pkce",
    "generate_state",
    "is_valid_code_verifier",
    # Session tokens
    "JWTExpiredError",
    "JWTMintError",
    "JWTValidationError",
    "SessionTokenClaims",
    "mint_session_token",
    "validate_session_token",
    # Authentication
    "AuthenticatedContext",
    "AuthenticationError",
    "AuthRequired",
    "InvalidTokenError",
    "MissingAuthorizationError",
    "authenticate_request",
    "create_auth_dependency",
    "parse_authorization_header",
]
