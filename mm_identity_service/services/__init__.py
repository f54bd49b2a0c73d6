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
"""Money Monitoring Identity Services.

This module exports the account resolver, session issuer and the OAuth
orchestrator with its error taxonomy.
"""

from mm_identity_service.services.accounts import AccountResolutionError, AccountResolver
from mm_identity_service.services.oauth import (
    AccessDeniedError,
    AuthFlowError,
    FlowTracker,
    IdentityMismatchError,
    InternalFailureError,
    InvalidRequestError,
    OAuthService,
    ProviderRejectedFlowError,
    ReplayOrExpiredError,
    UnknownProviderError,
    UpstreamUnavailableError,
    ensure_claim_matches,
)
from mm_identity_service.services.session_issuer import SessionIssuer

__all__ = [
    "AccessDeniedError",
    "AccountResolutionError",
    "AccountResolver",
    "AuthFlowError",
    "FlowTracker",
    "IdentityMismatchError",
    "InternalFailureError",
    "InvalidRequestError",
    "OAuthService",
    "ProviderRejectedFlowError",
    "ReplayOrExpiredError",
    "SessionIssuer",
    "UnknownProviderError",
    "UpstreamUnavailableError",
    "ensure_claim_matches",
]
