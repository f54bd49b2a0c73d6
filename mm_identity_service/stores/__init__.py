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
"""Money Monitoring Identity Stores.

This module exports the store abstractions and implementations for the
identity service.
"""

from mm_identity_service.stores.pkce_session_store import (
    InMemoryPKCESessionStore,
    PKCESessionStore,
    SessionSweeper,
)
from mm_identity_service.stores.sql_user_repository import SqlUserRepository
from mm_identity_service.stores.user_store import (
    DatabaseConnectionError,
    DuplicateUserError,
    InMemoryUserRepository,
    LocalUserRepository,
    UserNotFoundError,
)

__all__ = [
    "DatabaseConnectionError",
    "DuplicateUserError",
    "InMemoryPKCESessionStore",
    "InMemoryUserRepository",
    "LocalUserRepository",
    "PKCESessionStore",
    "SessionSweeper",
    "SqlUserRepository",
    "UserNotFoundError",
]
