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
"""Tests for PKCE generation."""

import re

import pytest

from mm_identity_service.security.pkce import (
    compute_code_challenge,
    generate_pkce,
    generate_state,
    is_valid_code_verifier,
)

UNRESERVED = re.compile(r"^[A-Za-z0-9\-._~]+$")


class TestComputeCodeChallenge:
    """Tests for the S256 transform."""

    def test_matches_rfc7636_appendix_b(self) -> None:
        """Test the worked example from RFC 7636 Appendix B."""
        verifier = "dBjftJeZ4CVP-mB92K27uhbUJU1p1r_wW1gFWFOEjXk"

        assert compute_code_challenge(verifier) == "E9Melhoa2OwvFrEMTJguCHaoeK1t8URWbuGJSstw-cM"

    def test_challenge_is_unpadded_base64url(self) -> None:
        challenge = compute_code_challenge(generate_pkce().code_verifier)

        assert len(challenge) == 43
        assert "=" not in challenge
        assert UNRESERVED.match(challenge)


class TestGeneratePkce:
    """Tests for generate_pkce."""

    def test_challenge_is_derived_from_verifier(self) -> None:
        """Every generated pair satisfies challenge == S256(verifier)."""
        for _ in range(200):
            pair = generate_pkce()
            assert pair.code_challenge == compute_code_challenge(pair.code_verifier)

    def test_verifier_is_43_unreserved_characters(self) -> None:
        for _ in range(50):
            verifier = generate_pkce().code_verifier
            assert len(verifier) == 43
            assert UNRESERVED.match(verifier)
            assert is_valid_code_verifier(verifier)

    def test_values_are_fresh_on_every_call(self) -> None:
        pairs = [generate_pkce() for _ in range(100)]

        assert len({p.code_verifier for p in pairs}) == 100
        assert len({p.state for p in pairs}) == 100

    def test_state_is_independent_of_verifier(self) -> None:
        pair = generate_pkce()

        assert pair.state != pair.code_verifier
        assert pair.state not in pair.code_verifier

    def test_pair_is_immutable(self) -> None:
        pair = generate_pkce()

        with pytest.raises(AttributeError):
            pair.state = "other"


class TestGenerateState:
    """Tests for generate_state."""

    def test_state_is_url_safe(self) -> None:
        state = generate_state()

        assert len(state) >= 22
        assert UNRESERVED.match(state)


class TestIsValidCodeVerifier:
    """Tests for verifier format validation."""

    @pytest.mark.parametrize(
        "verifier",
        [
            "a" * 43,
            "A-b.c_d~" * 16,
            "0" * 128,
        ],
    )
    def test_accepts_valid_verifiers(self, verifier: str) -> None:
        assert is_valid_code_verifier(verifier)

    @pytest.mark.parametrize(
        "verifier",
        [
            "",
            "a" * 42,
            "a" * 129,
            "a" * 42 + "!",
            "a" * 42 + " ",
            "a" * 43 + "\n",
        ],
    )
    def test_rejects_invalid_verifiers(self, verifier: str) -> None:
        assert not is_valid_code_verifier(verifier)
