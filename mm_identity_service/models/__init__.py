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
"""Money Monitoring Identity Models.

This module exports the identity-related models that define the data
contracts for the identity service. All datetime fields use
timezone-aware UTC timestamps.
"""

from mm_identity_service.models.identity import (
    DiscordProfile,
    ExternalIdentity,
    FacebookProfile,
    GoogleIdTokenClaims,
    GoogleUserInfo,
    ProviderErrorBody,
    ProviderTokens,
)
from mm_identity_service.models.oauth import (
    AuthorizationStart,
    AuthSession,
    CallbackResult,
    ClaimedProfile,
    FlowState,
    PKCEPair,
    PKCESession,
)
from mm_identity_service.models.user import LocalUser, PublicUser

__all__ = [
    "AuthorizationStart",
    "AuthSession",
    "CallbackResult",
    "ClaimedProfile",
    "DiscordProfile",
    "ExternalIdentity",
    "FacebookProfile",
    "FlowState",
    "GoogleIdTokenClaims",
    "GoogleUserInfo",
    "LocalUser",
    "PKCEPair",
    "PKCESession",
    "ProviderErrorBody",
    "ProviderTokens",
    "PublicUser",
]
