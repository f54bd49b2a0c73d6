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
"""Tests for the development stub provider."""

import pytest

from mm_identity_service.models.identity import ProviderTokens
from mm_identity_service.providers.stub import StubOAuthProvider


class TestStubOAuthProvider:
    """Tests for StubOAuthProvider."""

    def test_mirrors_real_provider_shape(self) -> None:
        google = StubOAuthProvider("google")
        facebook = StubOAuthProvider("facebook")

        assert google.requires_pkce is True
        assert google.authorize_url == "https://accounts.google.com/o/oauth2/v2/auth"
        assert facebook.requires_pkce is False
        assert facebook.scope == "public_profile,email"

    def test_unknown_provider_rejected(self) -> None:
        with pytest.raises(ValueError):
            StubOAuthProvider("github")

    @pytest.mark.asyncio
    async def test_pkce_stub_requires_verifier(self) -> None:
        with pytest.raises(ValueError):
            await StubOAuthProvider("google").exchange_code("code", "http://localhost/cb")

    @pytest.mark.asyncio
    async def test_email_code_signs_in_as_that_email(self) -> None:
        provider = StubOAuthProvider("discord")

        tokens = await provider.exchange_code("Nelly@Example.com", "http://localhost/cb")
        identity = await provider.fetch_identity(tokens)

        assert identity.email == "nelly@example.com"
        assert identity.provider == "discord"
        assert identity.email_verified is True

    @pytest.mark.asyncio
    async def test_identity_is_deterministic(self) -> None:
        provider = StubOAuthProvider("facebook")

        first = await provider.fetch_identity(ProviderTokens(access_token="stub-facebook-abc"))
        second = await provider.verify_access_token("abc")

        assert first == second
        assert first.email.endswith("@example.com")

    @pytest.mark.asyncio
    async def test_identity_differs_per_provider(self) -> None:
        google = await StubOAuthProvider("google").verify_access_token("abc")
        discord = await StubOAuthProvider("discord").verify_access_token("abc")

        assert google.provider_user_id != discord.provider_user_id
