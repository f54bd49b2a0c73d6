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
"""Tests for the SQL user repository and users schema.

These run against an in-memory SQLite database; the repository only
uses portable SQLAlchemy Core constructs.
"""

import threading
from datetime import datetime, timezone
from uuid import uuid4

import pytest
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from mm_identity_service.migrations.user_schema import (
    EXPECTED_COLUMNS,
    create_users_table,
    verify_users_schema,
)
from mm_identity_service.models.user import LocalUser
from mm_identity_service.stores.sql_user_repository import SqlUserRepository
from mm_identity_service.stores.user_store import (
    DatabaseConnectionError,
    DuplicateUserError,
    UserNotFoundError,
)

CREATED = datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def engine():
    """Fixture providing an in-memory SQLite engine with the users table."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    create_users_table(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def repository(engine) -> SqlUserRepository:
    """Fixture providing a SqlUserRepository over the SQLite engine."""
    return SqlUserRepository(engine)


def make_user(**overrides) -> LocalUser:
    fields = {
        "name": "Grace Hopper",
        "email": "grace@example.com",
        "provider": "discord",
        "provider_user_id": "80351110224678912",
        "is_email_verified": True,
        "last_login": CREATED,
        "created_at": CREATED,
        "updated_at": CREATED,
    }
    fields.update(overrides)
    return LocalUser(**fields)


class TestUsersSchema:
    """Tests for the users table migration helpers."""

    def test_create_is_idempotent(self, engine) -> None:
        assert create_users_table(engine) is False

    def test_create_on_empty_database(self) -> None:
        engine = create_engine("sqlite://")

        assert create_users_table(engine) is True

    def test_verify_reports_all_checks_passing(self, engine) -> None:
        results = verify_users_schema(engine)

        assert results["table_exists"] is True
        assert results["email_provider_unique"] is True
        for name in EXPECTED_COLUMNS:
            assert results[f"{name}_column"] is True

    def test_verify_on_empty_database(self) -> None:
        results = verify_users_schema(create_engine("sqlite://"))

        assert results["table_exists"] is False
        assert not any(results.values())


class TestSqlUserRepository:
    """Tests for SqlUserRepository."""

    @pytest.mark.asyncio
    async def test_insert_and_get_by_id(self, repository: SqlUserRepository) -> None:
        user = await repository.insert(make_user(picture="https://cdn.example.com/g.png"))

        fetched = await repository.get_by_id(user.id)

        assert fetched is not None
        assert fetched.id == user.id
        assert fetched.email == "grace@example.com"
        assert fetched.provider == "discord"
        assert fetched.picture == "https://cdn.example.com/g.png"
        assert fetched.is_email_verified is True

    @pytest.mark.asyncio
    async def test_timestamps_come_back_as_utc(self, repository: SqlUserRepository) -> None:
        user = await repository.insert(make_user())

        fetched = await repository.get_by_id(user.id)

        assert fetched.created_at == CREATED
        assert fetched.created_at.tzinfo is not None
        assert fetched.last_login == CREATED

    @pytest.mark.asyncio
    async def test_get_by_id_missing_returns_none(self, repository: SqlUserRepository) -> None:
        assert await repository.get_by_id(uuid4()) is None

    @pytest.mark.asyncio
    async def test_get_by_id_rejects_non_uuid(self, repository: SqlUserRepository) -> None:
        with pytest.raises(ValueError):
            await repository.get_by_id("not-a-uuid")

    @pytest.mark.asyncio
    async def test_find_by_email_and_provider(self, repository: SqlUserRepository) -> None:
        user = await repository.insert(make_user())

        found = await repository.find_by_email_and_provider("Grace@Example.com", "discord")

        assert found is not None
        assert found.id == user.id
        assert await repository.find_by_email_and_provider("grace@example.com", "google") is None

    @pytest.mark.asyncio
    async def test_unique_constraint_raises_duplicate(self, repository: SqlUserRepository) -> None:
        """The database, not the caller, rejects a second (email, provider) row."""
        await repository.insert(make_user())

        with pytest.raises(DuplicateUserError):
            await repository.insert(make_user())

        assert await repository.count() == 1

    @pytest.mark.asyncio
    async def test_same_email_other_provider_allowed(self, repository: SqlUserRepository) -> None:
        await repository.insert(make_user(provider="discord"))
        await repository.insert(make_user(provider="facebook"))

        assert await repository.count() == 2

    @pytest.mark.asyncio
    async def test_update(self, repository: SqlUserRepository) -> None:
        user = await repository.insert(make_user())
        later = datetime(2025, 2, 1, tzinfo=timezone.utc)

        await repository.update(user.model_copy(update={"last_login": later, "updated_at": later}))

        fetched = await repository.get_by_id(user.id)
        assert fetched.last_login == later
        assert fetched.created_at == CREATED

    @pytest.mark.asyncio
    async def test_update_missing_user_raises(self, repository: SqlUserRepository) -> None:
        with pytest.raises(UserNotFoundError):
            await repository.update(make_user())

    @pytest.mark.asyncio
    async def test_unreachable_database_raises_connection_error(self, tmp_path) -> None:
        missing_dir = tmp_path / "missing" / "identity.db"
        repository = SqlUserRepository(create_engine(f"sqlite:///{missing_dir}"))

        with pytest.raises(DatabaseConnectionError) as exc_info:
            await repository.count()

        assert str(missing_dir) not in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_statements_run_off_the_event_loop(self, repository: SqlUserRepository) -> None:
        loop_thread = threading.get_ident()
        statement_threads: list[int] = []
        find = repository._find_by_email_and_provider

        def recording_find(email: str, provider: str):
            statement_threads.append(threading.get_ident())
            return find(email, provider)

        repository._find_by_email_and_provider = recording_find
        await repository.insert(make_user())

        found = await repository.find_by_email_and_provider("grace@example.com", "discord")

        assert found is not None
        assert statement_threads and statement_threads[0] != loop_thread
