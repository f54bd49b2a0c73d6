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
"""Local user model definitions.

This module defines the LocalUser Pydantic model which represents a user
record persisted by the identity service, and the PublicUser projection
that is safe to return to clients. All datetime fields are timezone-aware
and serialized in UTC.
"""

from datetime import datetime, timezone
from typing import Literal
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

AuthProviderName = Literal["email", "google", "facebook", "discord"]
OAuthProviderName = Literal["google", "facebook", "discord"]

MAX_NAME_LENGTH = 50


class PublicUser(BaseModel):
    """Client-facing user projection.

    Serialized with camelCase keys. Never carries credentials or
    provider tokens.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str = Field(..., description="The user's UUID.")
    name: str = Field(..., description="Display name.")
    email: str = Field(..., description="Lowercased email address.")
    picture: str | None = Field(default=None, description="Avatar URL, if any.")
    provider: AuthProviderName = Field(..., description="Provider the account belongs to.")
    is_email_verified: bool = Field(..., description="Whether the email is verified.")


class LocalUser(BaseModel):
    """Persisted user record.

    A user is unique per (email, provider) pair: the same email address
    signing in through Google and through Discord yields two distinct
    records.

    Attributes:
        id: Unique identifier for the user (UUID4).
        name: Display name, truncated to 50 characters.
        email: Email address, always stored lowercased.
        provider: Provider that owns the account.
        provider_user_id: The provider's subject/user id, if known.
        picture: Avatar URL, if known.
        is_email_verified: Whether the email is verified.
        last_login: Timestamp of the most recent sign-in (UTC).
        created_at: Timestamp when the user was created (UTC).
        updated_at: Timestamp when the user was last updated (UTC).
    """

    id: UUID = Field(default_factory=uuid4, description="Unique user identifier (UUID4)")
    name: str = Field(..., min_length=1, max_length=MAX_NAME_LENGTH)
    email: str = Field(..., min_length=3)
    provider: AuthProviderName
    provider_user_id: str | None = None
    picture: str | None = None
    is_email_verified: bool = False
    last_login: datetime | None = None
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Timestamp when the user was created (UTC)",
    )
    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Timestamp when the user was last updated (UTC)",
    )

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        """Store emails lowercased and trimmed."""
        return v.strip().lower()

    @field_validator("name", mode="before")
    @classmethod
    def truncate_name(cls, v: str) -> str:
        """Trim whitespace and clip overly long display names."""
        if isinstance(v, str):
            return v.strip()[:MAX_NAME_LENGTH]
        return v

    def to_public(self) -> PublicUser:
        """Return the client-facing projection of this user."""
        return PublicUser(
            id=str(self.id),
            name=self.name,
            email=self.email,
            picture=self.picture,
            provider=self.provider,
            is_email_verified=self.is_email_verified,
        )

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "id": "550e8400-e29b-41d4-a716-446655440000",
                    "name": "Ada Lovelace",
                    "email": "ada@example.com",
                    "provider": "google",
                    "provider_user_id": "109876543210987654321",
                    "picture": "https://lh3.googleusercontent.com/a/photo.jpg",
                    "is_email_verified": True,
                    "last_login": "2025-01-01T12:00:00Z",
                    "created_at": "2025-01-01T12:00:00Z",
                    "updated_at": "2025-01-01T12:00:00Z",
                }
            ]
        }
    }
