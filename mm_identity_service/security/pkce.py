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
"""PKCE (RFC 7636) generation for the Money Monitoring Identity Service.

The verifier is 32 bytes of CSPRNG output encoded as unpadded base64url,
which gives 43 characters from the unreserved set [A-Za-z0-9-._~]. The
challenge is the S256 transform of the verifier. The anti-replay state
token is generated independently of the verifier.
"""

import base64
import hashlib
import re
import secrets

from mm_identity_service.models.oauth import PKCEPair

VERIFIER_BYTES = 32
STATE_BYTES = 16
CODE_CHALLENGE_METHOD = "S256"

_VERIFIER_PATTERN = re.compile(r"^[A-Za-z0-9\-._~]{43,128}$")


def compute_code_challenge(code_verifier: str) -> str:
    """Compute the S256 code challenge for a verifier.

    Args:
        code_verifier: The PKCE code verifier.

    Returns:
        BASE64URL(SHA256(code_verifier)) without padding.
    """
    digest = hashlib.sha256(code_verifier.encode("ascii")).digest()
    return base64.urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")


def is_valid_code_verifier(code_verifier: str) -> bool:
    """Check that a verifier is 43-128 characters from the unreserved set."""
    return bool(_VERIFIER_PATTERN.fullmatch(code_verifier))


def generate_state() -> str:
    """Generate an opaque anti-CSRF state token."""
    return secrets.token_urlsafe(STATE_BYTES)


def generate_pkce() -> PKCEPair:
    """Generate a fresh verifier, its S256 challenge and a state token.

    Each call draws new randomness; no value is reused across calls.

    Returns:
        A PKCEPair with code_verifier, code_challenge and state.
    """
    code_verifier = secrets.token_urlsafe(VERIFIER_BYTES)
    return PKCEPair(
        code_verifier=code_verifier,
        code_challenge=compute_code_challenge(code_verifier),
        state=generate_state(),
    )
