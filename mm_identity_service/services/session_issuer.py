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
"""Local session issuance.

The session is a stateless bearer token: nothing is persisted, the
signing secret is the only server-side state.
"""

from collections.abc import Callable
from datetime import datetime, timedelta, timezone

import structlog

from mm_identity_service.models.oauth import AuthSession
from mm_identity_service.models.user import LocalUser
from mm_identity_service.security.jwt import (
    SessionTokenClaims,
    mint_session_token,
    validate_session_token,
)

logger = structlog.get_logger(__name__)


class SessionIssuer:
    """Mints session tokens and the {token, user} envelope."""

    def __init__(
        self,
        jwt_secret: str,
        expiry_seconds: int,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._secret = jwt_secret
        self._expiry = timedelta(seconds=expiry_seconds)
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def issue(self, user: LocalUser) -> AuthSession:
        """Sign a token for the user and return it with the public projection.

        Raises:
            JWTMintError: If the token cannot be signed.
        """
        now = self._clock()
        token = mint_session_token(
            secret=self._secret,
            user_id=user.id,
            email=user.email,
            provider=user.provider,
            expires_at=now + self._expiry,
            issued_at=now,
        )
        logger.info(
            "session.issued",
            user_id=str(user.id),
            provider=user.provider,
            expires_at=(now + self._expiry).isoformat(),
        )
        return AuthSession(token=token, user=user.to_public())

    def verify(self, token: str) -> SessionTokenClaims:
        """Validate a token previously issued by this issuer."""
        return validate_session_token(token, self._secret, self._clock())
