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
"""Database schema for the users table.

This module defines the SQLAlchemy table and migration functions for
local users. The schema enforces uniqueness on (email, provider) and
uses timezone-aware timestamps for all datetime fields.

Columns:
    id: UUID primary key
    name: Display name
    email: Lowercased email address
    provider: One of email, google, facebook, discord
    provider_user_id: The provider's user id, if known
    picture: Avatar URL, if known
    is_email_verified: Whether the email is verified
    last_login: Timestamp (UTC) of the most recent sign-in
    created_at: Timestamp (UTC) when the user was created
    updated_at: Timestamp (UTC) when the user was last updated
"""

import structlog
from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    String,
    Table,
    UniqueConstraint,
    Uuid,
    inspect,
)
from sqlalchemy.engine import Engine
from sqlalchemy.schema import MetaData

logger = structlog.get_logger(__name__)

USERS_TABLE_NAME = "users"
EMAIL_PROVIDER_CONSTRAINT = "uq_users_email_provider"

metadata = MetaData()

users_table = Table(
    USERS_TABLE_NAME,
    metadata,
    Column("id", Uuid(as_uuid=True), primary_key=True),
    Column("name", String(50), nullable=False),
    Column("email", String(320), nullable=False),
    Column("provider", String(16), nullable=False),
    Column("provider_user_id", String(255), nullable=True),
    Column("picture", String, nullable=True),
    Column("is_email_verified", Boolean, nullable=False, default=False),
    Column("last_login", DateTime(timezone=True), nullable=True),
    Column("created_at", DateTime(timezone=True), nullable=False),
    Column("updated_at", DateTime(timezone=True), nullable=False),
    UniqueConstraint("email", "provider", name=EMAIL_PROVIDER_CONSTRAINT),
)

EXPECTED_COLUMNS = tuple(column.name for column in users_table.columns)


def create_users_table(engine: Engine) -> bool:
    """Create the users table if it doesn't exist.

    Idempotent: calling it on an already-initialized database is safe.

    Args:
        engine: SQLAlchemy engine connected to the target database.

    Returns:
        True if the table was created, False if it already existed.
    """
    try:
        if inspect(engine).has_table(USERS_TABLE_NAME):
            logger.info("users table already exists, skipping creation")
            return False

        metadata.create_all(engine, tables=[users_table])
        logger.info("users table created successfully")
        return True

    except Exception as e:
        logger.error("Failed to create users table", error=str(e))
        raise


def verify_users_schema(engine: Engine) -> dict[str, bool]:
    """Verify that the users table has the expected schema.

    Args:
        engine: SQLAlchemy engine connected to the target database.

    Returns:
        Dictionary with verification results for each schema element.
    """
    results = {"table_exists": False, "email_provider_unique": False}
    results.update({f"{name}_column": False for name in EXPECTED_COLUMNS})

    try:
        inspector = inspect(engine)
        results["table_exists"] = inspector.has_table(USERS_TABLE_NAME)
        if not results["table_exists"]:
            return results

        present = {column["name"] for column in inspector.get_columns(USERS_TABLE_NAME)}
        for name in EXPECTED_COLUMNS:
            results[f"{name}_column"] = name in present

        unique_sets = [
            set(constraint["column_names"])
            for constraint in inspector.get_unique_constraints(USERS_TABLE_NAME)
        ]
        unique_sets.extend(
            set(index["column_names"])
            for index in inspector.get_indexes(USERS_TABLE_NAME)
            if index.get("unique")
        )
        results["email_provider_unique"] = {"email", "provider"} in unique_sets

    except Exception as e:
        logger.error("Failed to verify users schema", error=str(e))
        raise

    return results
