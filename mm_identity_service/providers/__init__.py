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
"""Money Monitoring OAuth Providers.

This module exports the provider capability interface, the Google,
Facebook and Discord implementations, the dev-only stub, and the
provider-layer error types.
"""

from mm_identity_service.providers.base import (
    IdentityVerificationError,
    OAuthProvider,
    ProviderError,
    ProviderRejectedError,
    ProviderResponseError,
    ProviderUnavailableError,
)
from mm_identity_service.providers.discord import DiscordProvider
from mm_identity_service.providers.facebook import FacebookProvider
from mm_identity_service.providers.google import GoogleIdTokenVerifier, GoogleProvider
from mm_identity_service.providers.stub import StubOAuthProvider

__all__ = [
    "DiscordProvider",
    "FacebookProvider",
    "GoogleIdTokenVerifier",
    "GoogleProvider",
    "IdentityVerificationError",
    "OAuthProvider",
    "ProviderError",
    "ProviderRejectedError",
    "ProviderResponseError",
    "ProviderUnavailableError",
    "StubOAuthProvider",
]
