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
"""Local user repository abstraction and in-memory implementation.

This module defines the LocalUserRepository abstract base class for user
persistence and provides an InMemoryUserRepository for development use.
Implementations must enforce (email, provider) uniqueness themselves,
raising DuplicateUserError on a conflicting insert.
"""

import threading
from abc import ABC, abstractmethod
from uuid import UUID

import structlog

from mm_identity_service.models.user import LocalUser

logger = structlog.get_logger(__name__)


class DuplicateUserError(Exception):
    """Raised when inserting a user whose (email, provider) already exists."""

    def __init__(self, email: str, provider: str) -> None:
        self.email = email
        self.provider = provider
        super().__init__(f"User with provider {provider} already exists for this email")


class UserNotFoundError(Exception):
    """Raised when updating a user that does not exist."""

    def __init__(self, user_id: UUID) -> None:
        self.user_id = user_id
        super().__init__(f"User {user_id} not found")


class DatabaseConnectionError(Exception):
    """Raised when the backing database cannot be reached.

    The message is sanitized and never contains credentials.
    """

    pass


class LocalUserRepository(ABC):
    """Abstract base class for LocalUser persistence.

    Implementations must be safe for concurrent use and must rely on
    the storage layer, not on callers, to keep (email, provider) unique.

    Methods:
        get_by_id: Retrieve a user by UUID.
        find_by_email_and_provider: Retrieve a user by its unique key.
        insert: Store a new user.
        update: Replace an existing user.
        count: Number of stored users.
    """

    @abstractmethod
    async def get_by_id(self, user_id: UUID) -> LocalUser | None:
        """Retrieve a user by their UUID.

        Args:
            user_id: The user's UUID.

        Returns:
            The LocalUser if found, None otherwise.

        Raises:
            ValueError: If user_id is not a UUID.
        """
        pass

    @abstractmethod
    async def find_by_email_and_provider(self, email: str, provider: str) -> LocalUser | None:
        """Retrieve a user by (email, provider).

        The email is compared case-insensitively.
        """
        pass

    @abstractmethod
    async def insert(self, user: LocalUser) -> LocalUser:
        """Store a new user.

        Raises:
            DuplicateUserError: If (email, provider) is already taken.
        """
        pass

    @abstractmethod
    async def update(self, user: LocalUser) -> LocalUser:
        """Replace an existing user record.

        Raises:
            UserNotFoundError: If no user with user.id exists.
        """
        pass

    @abstractmethod
    async def count(self) -> int:
        pass


class InMemoryUserRepository(LocalUserRepository):
    """In-memory implementation of LocalUserRepository.

    This implementation is suitable for development and testing only.
    The (email, provider) index plays the role of a unique constraint.

    WARNING: Data is lost when the process exits. Use SqlUserRepository
    for production deployments.

    Attributes:
        _users_by_id: Dictionary mapping user UUIDs to LocalUser instances.
        _ids_by_key: Dictionary mapping (email, provider) to user UUIDs.
        _lock: Threading lock for thread-safe operations.
    """

    def __init__(self) -> None:
        self._users_by_id: dict[UUID, LocalUser] = {}
        self._ids_by_key: dict[tuple[str, str], UUID] = {}
        self._lock = threading.Lock()
        logger.info("Initialized in-memory user repository (dev-only)")

    async def get_by_id(self, user_id: UUID) -> LocalUser | None:
        if not isinstance(user_id, UUID):
            raise ValueError(f"user_id must be a UUID, got {type(user_id).__name__}")

        with self._lock:
            return self._users_by_id.get(user_id)

    async def find_by_email_and_provider(self, email: str, provider: str) -> LocalUser | None:
        key = (email.strip().lower(), provider)
        with self._lock:
            user_id = self._ids_by_key.get(key)
            user = self._users_by_id.get(user_id) if user_id else None

        if user:
            logger.debug("User found by email and provider", user_id=str(user.id), provider=provider)
        else:
            logger.debug("User not found by email and provider", provider=provider)
        return user

    async def insert(self, user: LocalUser) -> LocalUser:
        key = (user.email, user.provider)
        with self._lock:
            if key in self._ids_by_key:
                raise DuplicateUserError(user.email, user.provider)
            self._users_by_id[user.id] = user
            self._ids_by_key[key] = user.id

        logger.info("Inserted user", user_id=str(user.id), provider=user.provider)
        return user

    async def update(self, user: LocalUser) -> LocalUser:
        with self._lock:
            existing = self._users_by_id.get(user.id)
            if existing is None:
                raise UserNotFoundError(user.id)

            new_key = (user.email, user.provider)
            owner = self._ids_by_key.get(new_key)
            if owner is not None and owner != user.id:
                raise DuplicateUserError(user.email, user.provider)

            self._ids_by_key.pop((existing.email, existing.provider), None)
            self._ids_by_key[new_key] = user.id
            self._users_by_id[user.id] = user

        logger.debug("Updated user", user_id=str(user.id))
        return user

    async def count(self) -> int:
        with self._lock:
            return len(self._users_by_id)
