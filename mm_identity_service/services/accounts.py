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
"""Account resolution for verified external identities.

This module maps a verified provider identity to a local user record,
creating the record on first sign-in for an (email, provider) pair.
Uniqueness is enforced by the repository, so a lookup-then-insert race
ends with the loser re-reading the winner's row.
"""

from collections.abc import Callable
from datetime import datetime, timezone

import structlog

from mm_identity_service.models.identity import ExternalIdentity
from mm_identity_service.models.user import MAX_NAME_LENGTH, LocalUser
from mm_identity_service.stores.user_store import (
    DatabaseConnectionError,
    DuplicateUserError,
    LocalUserRepository,
    UserNotFoundError,
)

logger = structlog.get_logger(__name__)

DEFAULT_DISPLAY_NAME = "User"


class AccountResolutionError(Exception):
    """Raised when the user store fails during account resolution."""

    pass


def display_name_for(identity: ExternalIdentity) -> str:
    """Pick a display name, falling back to the email local part."""
    name = (identity.display_name or "").strip()
    if not name:
        name = identity.email.split("@", 1)[0].strip()
    return (name or DEFAULT_DISPLAY_NAME)[:MAX_NAME_LENGTH]


class AccountResolver:
    """Find-or-create local users keyed by (email, provider).

    Every call, on either branch, stamps last_login with the current time.
    New users start with is_email_verified=True since the provider has
    already vouched for the address.
    """

    def __init__(
        self,
        user_repository: LocalUserRepository,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._users = user_repository
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    async def resolve(self, identity: ExternalIdentity) -> LocalUser:
        """Return the local user for an identity, creating it if absent.

        Args:
            identity: A verified provider identity.

        Returns:
            The created or updated LocalUser.

        Raises:
            AccountResolutionError: If the user store fails.
        """
        email = identity.email.strip().lower()
        now = self._clock()

        try:
            existing = await self._users.find_by_email_and_provider(email, identity.provider)
            if existing is None:
                created = await self._create(identity, email, now)
                if created is not None:
                    return created
                # Lost the insert race; the row exists now
                existing = await self._users.find_by_email_and_provider(email, identity.provider)
                if existing is None:
                    raise AccountResolutionError("User vanished after duplicate insert")

            return await self._touch(existing, identity, now)

        except (DatabaseConnectionError, UserNotFoundError) as e:
            logger.error(
                "account.resolve.failure",
                provider=identity.provider,
                error=str(e),
            )
            raise AccountResolutionError("Failed to resolve local account") from e

    async def _create(
        self, identity: ExternalIdentity, email: str, now: datetime
    ) -> LocalUser | None:
        user = LocalUser(
            name=display_name_for(identity),
            email=email,
            provider=identity.provider,
            provider_user_id=identity.provider_user_id,
            picture=identity.avatar_url,
            is_email_verified=True,
            last_login=now,
            created_at=now,
            updated_at=now,
        )
        try:
            await self._users.insert(user)
        except DuplicateUserError:
            logger.info("account.create.conflict", provider=identity.provider)
            return None

        logger.info("account.created", user_id=str(user.id), provider=user.provider)
        return user

    async def _touch(
        self, user: LocalUser, identity: ExternalIdentity, now: datetime
    ) -> LocalUser:
        updated = user.model_copy(
            update={
                "last_login": now,
                "updated_at": now,
                "picture": user.picture or identity.avatar_url,
                "provider_user_id": user.provider_user_id or identity.provider_user_id,
            }
        )
        await self._users.update(updated)
        logger.info("account.login", user_id=str(updated.id), provider=updated.provider)
        return updated
