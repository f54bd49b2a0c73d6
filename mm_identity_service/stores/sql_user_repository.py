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
"""SQL implementation of LocalUserRepository.

This module provides a durable implementation of the LocalUserRepository
interface using SQLAlchemy Core. The (email, provider) unique constraint
lives in the database, so concurrent inserts for the same identity
resolve to exactly one row.

The engine is synchronous; every statement runs in a worker thread via
asyncio.to_thread so the event loop is never blocked on the database.

Error Handling:
    - Conflicting (email, provider) inserts raise DuplicateUserError
    - Database connection errors raise DatabaseConnectionError
    - Invalid UUID inputs raise ValueError early
"""

import asyncio
from datetime import datetime, timezone
from uuid import UUID

import structlog
from sqlalchemy import func, insert, select, update
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError

from mm_identity_service.migrations.user_schema import users_table
from mm_identity_service.models.user import LocalUser
from mm_identity_service.stores.user_store import (
    DatabaseConnectionError,
    DuplicateUserError,
    LocalUserRepository,
    UserNotFoundError,
)

logger = structlog.get_logger(__name__)

_CONNECTION_ERROR_MESSAGE = "Failed to connect to database. Check connection settings."


def _as_utc(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class SqlUserRepository(LocalUserRepository):
    """SQLAlchemy Core implementation of LocalUserRepository.

    Each operation checks out its own connection from the engine's pool
    inside a worker thread. A pool checkout that times out is reported
    like a connection failure. All datetime fields are stored
    timezone-aware and returned as UTC-aware Python datetimes.

    Attributes:
        _engine: SQLAlchemy engine for database connections.
        _table: The users table.
    """

    def __init__(self, engine: Engine) -> None:
        self._engine = engine
        self._table = users_table
        logger.info("Initialized SqlUserRepository", dialect=engine.dialect.name)

    def _row_to_user(self, row) -> LocalUser:
        return LocalUser(
            id=row.id,
            name=row.name,
            email=row.email,
            provider=row.provider,
            provider_user_id=row.provider_user_id,
            picture=row.picture,
            is_email_verified=row.is_email_verified,
            last_login=_as_utc(row.last_login),
            created_at=_as_utc(row.created_at),
            updated_at=_as_utc(row.updated_at),
        )

    def _values(self, user: LocalUser) -> dict:
        return {
            "name": user.name,
            "email": user.email,
            "provider": user.provider,
            "provider_user_id": user.provider_user_id,
            "picture": user.picture,
            "is_email_verified": user.is_email_verified,
            "last_login": user.last_login,
            "created_at": user.created_at,
            "updated_at": user.updated_at,
        }

    async def get_by_id(self, user_id: UUID) -> LocalUser | None:
        if not isinstance(user_id, UUID):
            raise ValueError(f"user_id must be a UUID, got {type(user_id).__name__}")
        return await asyncio.to_thread(self._get_by_id, user_id)

    async def find_by_email_and_provider(self, email: str, provider: str) -> LocalUser | None:
        return await asyncio.to_thread(self._find_by_email_and_provider, email, provider)

    async def insert(self, user: LocalUser) -> LocalUser:
        return await asyncio.to_thread(self._insert, user)

    async def update(self, user: LocalUser) -> LocalUser:
        return await asyncio.to_thread(self._update, user)

    async def count(self) -> int:
        return await asyncio.to_thread(self._count)

    def _get_by_id(self, user_id: UUID) -> LocalUser | None:
        try:
            with self._engine.connect() as conn:
                stmt = select(self._table).where(self._table.c.id == user_id)
                row = conn.execute(stmt).fetchone()
        except (OperationalError, PoolTimeoutError) as e:
            logger.error("Database connection error in get_by_id", error=str(e))
            raise DatabaseConnectionError(_CONNECTION_ERROR_MESSAGE) from e

        return self._row_to_user(row) if row else None

    def _find_by_email_and_provider(self, email: str, provider: str) -> LocalUser | None:
        try:
            with self._engine.connect() as conn:
                stmt = select(self._table).where(
                    self._table.c.email == email.strip().lower(),
                    self._table.c.provider == provider,
                )
                row = conn.execute(stmt).fetchone()
        except (OperationalError, PoolTimeoutError) as e:
            logger.error("Database connection error in find_by_email_and_provider", error=str(e))
            raise DatabaseConnectionError(_CONNECTION_ERROR_MESSAGE) from e

        if row:
            logger.debug("User found by email and provider", user_id=str(row.id), provider=provider)
            return self._row_to_user(row)
        logger.debug("User not found by email and provider", provider=provider)
        return None

    def _insert(self, user: LocalUser) -> LocalUser:
        try:
            with self._engine.begin() as conn:
                conn.execute(insert(self._table).values(id=user.id, **self._values(user)))
        except IntegrityError as e:
            logger.info("Duplicate (email, provider) on insert", provider=user.provider)
            raise DuplicateUserError(user.email, user.provider) from e
        except (OperationalError, PoolTimeoutError) as e:
            logger.error("Database connection error in insert", error=str(e))
            raise DatabaseConnectionError(_CONNECTION_ERROR_MESSAGE) from e

        logger.info("Inserted user", user_id=str(user.id), provider=user.provider)
        return user

    def _update(self, user: LocalUser) -> LocalUser:
        try:
            with self._engine.begin() as conn:
                result = conn.execute(
                    update(self._table)
                    .where(self._table.c.id == user.id)
                    .values(**self._values(user))
                )
        except IntegrityError as e:
            raise DuplicateUserError(user.email, user.provider) from e
        except (OperationalError, PoolTimeoutError) as e:
            logger.error("Database connection error in update", error=str(e))
            raise DatabaseConnectionError(_CONNECTION_ERROR_MESSAGE) from e

        if result.rowcount == 0:
            raise UserNotFoundError(user.id)

        logger.debug("Updated user", user_id=str(user.id))
        return user

    def _count(self) -> int:
        try:
            with self._engine.connect() as conn:
                return conn.execute(select(func.count()).select_from(self._table)).scalar_one()
        except (OperationalError, PoolTimeoutError) as e:
            logger.error("Database connection error in count", error=str(e))
            raise DatabaseConnectionError(_CONNECTION_ERROR_MESSAGE) from e
