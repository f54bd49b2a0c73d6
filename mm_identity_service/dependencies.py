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
"""Dependency wiring module for the Identity Service.

This module provides lazy instantiation of the service's dependencies:
- PKCESessionStore and SessionSweeper: pending authorizations
- LocalUserRepository: in-memory (dev) or SQL (prod)
- OAuth providers: stubs (dev) or Google/Facebook/Discord (prod)
- AccountResolver, SessionIssuer and OAuthService

Dependencies are instantiated without performing network I/O, ensuring
fast health checks and fail-fast behavior for configuration issues.
"""

from typing import TYPE_CHECKING, Any

import httpx

from mm_identity_service.config import Settings
from mm_identity_service.logging import get_logger

if TYPE_CHECKING:
    from sqlalchemy.engine import Engine

    from mm_identity_service.providers.base import OAuthProvider
    from mm_identity_service.services.accounts import AccountResolver
    from mm_identity_service.services.oauth import OAuthService
    from mm_identity_service.services.session_issuer import SessionIssuer
    from mm_identity_service.stores.pkce_session_store import PKCESessionStore, SessionSweeper
    from mm_identity_service.stores.user_store import LocalUserRepository

logger = get_logger(__name__)


def engine_options(database_url: str, timeout_seconds: float) -> dict[str, Any]:
    """Keyword arguments for create_engine.

    Postgres pool checkouts and connection attempts are bounded by the
    same timeout as provider calls. SQLite pools take no checkout
    timeout, so only the driver busy timeout is set there.
    """
    from sqlalchemy import make_url

    options: dict[str, Any] = {"pool_pre_ping": True}
    backend = make_url(database_url).get_backend_name()
    if backend == "postgresql":
        options["pool_timeout"] = timeout_seconds
        options["connect_args"] = {"connect_timeout": max(1, int(timeout_seconds))}
    elif backend == "sqlite":
        options["connect_args"] = {"timeout": timeout_seconds}
    return options


class DependencyContainer:
    """Container for managing service dependencies.

    This class lazily instantiates dependencies on first access,
    without performing network I/O, ensuring fast startup and health checks.

    The container respects the IDENTITY_ENVIRONMENT setting:
    - 'dev': in-memory user repository and stub providers (no external calls)
    - 'prod': SQL user repository and real providers
    """

    def __init__(self, settings: Settings) -> None:
        """Initialize the dependency container.

        Dependencies are NOT created here - they are lazily instantiated
        on first access to ensure fast startup and health checks.

        Args:
            settings: The service settings.
        """
        self._settings = settings
        self._http_client: httpx.AsyncClient | None = None
        self._engine: "Engine | None" = None
        self._pkce_session_store: "PKCESessionStore | None" = None
        self._session_sweeper: "SessionSweeper | None" = None
        self._user_repository: "LocalUserRepository | None" = None
        self._providers: "dict[str, OAuthProvider] | None" = None
        self._account_resolver: "AccountResolver | None" = None
        self._session_issuer: "SessionIssuer | None" = None
        self._oauth_service: "OAuthService | None" = None
        self._initialized = False
        self._initialization_error: Exception | None = None
        logger.info(
            "Initializing dependency container",
            environment=settings.identity_environment,
        )

    @property
    def settings(self) -> Settings:
        return self._settings

    @property
    def environment(self) -> str:
        return self._settings.identity_environment

    @property
    def is_prod(self) -> bool:
        return self._settings.is_prod

    @property
    def is_dev(self) -> bool:
        return self._settings.is_dev

    def _build_providers(self) -> "dict[str, OAuthProvider]":
        from mm_identity_service.providers.discord import DiscordProvider
        from mm_identity_service.providers.facebook import FacebookProvider
        from mm_identity_service.providers.google import GoogleProvider
        from mm_identity_service.providers.stub import StubOAuthProvider

        settings = self._settings
        if self.is_dev:
            return {
                "google": StubOAuthProvider("google", client_id=settings.google_client_id),
                "facebook": StubOAuthProvider("facebook", client_id=settings.facebook_app_id or "stub-facebook"),
                "discord": StubOAuthProvider("discord", client_id=settings.discord_client_id or "stub-discord"),
            }

        providers: "dict[str, OAuthProvider]" = {
            "google": GoogleProvider(
                client_id=settings.google_client_id,
                client_secret=settings.google_client_secret,
                http_client=self._http_client,
                timeout_seconds=settings.provider_timeout_seconds,
            )
        }
        if settings.facebook_enabled:
            providers["facebook"] = FacebookProvider(
                client_id=settings.facebook_app_id,
                client_secret=settings.facebook_app_secret,
                http_client=self._http_client,
            )
        if settings.discord_enabled:
            providers["discord"] = DiscordProvider(
                client_id=settings.discord_client_id,
                client_secret=settings.discord_client_secret,
                http_client=self._http_client,
            )
        return providers

    def _build_user_repository(self) -> "LocalUserRepository":
        from mm_identity_service.stores.user_store import InMemoryUserRepository

        if self.is_dev:
            return InMemoryUserRepository()

        from sqlalchemy import create_engine

        from mm_identity_service.stores.sql_user_repository import SqlUserRepository

        # create_engine does not connect until first use
        database_url = self._settings.database_url.get_secret_value()
        self._engine = create_engine(
            database_url,
            **engine_options(database_url, self._settings.provider_timeout_seconds),
        )
        return SqlUserRepository(self._engine)

    def _ensure_initialized(self) -> None:
        """Lazily initialize all dependencies on first access.

        This method creates instances of all dependencies without
        performing network I/O. It is called automatically when
        accessing any dependency.
        """
        if self._initialized:
            return

        try:
            # Import here to avoid circular imports
            from mm_identity_service.services.accounts import AccountResolver
            from mm_identity_service.services.oauth import OAuthService
            from mm_identity_service.services.session_issuer import SessionIssuer
            from mm_identity_service.stores.pkce_session_store import (
                InMemoryPKCESessionStore,
                SessionSweeper,
            )

            settings = self._settings
            if self.is_prod:
                logger.info("Production mode enabled - using SQL user repository and real providers")
            else:
                logger.info("Development mode - using in-memory stores and stub providers")

            self._http_client = httpx.AsyncClient(
                timeout=httpx.Timeout(settings.provider_timeout_seconds),
                follow_redirects=False,
            )
            self._pkce_session_store = InMemoryPKCESessionStore(
                ttl_seconds=settings.oauth_state_ttl_seconds,
            )
            self._session_sweeper = SessionSweeper(
                self._pkce_session_store,
                interval_seconds=settings.oauth_sweep_interval_seconds,
            )
            self._user_repository = self._build_user_repository()
            self._providers = self._build_providers()
            self._account_resolver = AccountResolver(self._user_repository)
            self._session_issuer = SessionIssuer(
                jwt_secret=settings.identity_jwt_secret,
                expiry_seconds=settings.session_token_expiry_seconds,
            )
            self._oauth_service = OAuthService(
                providers=self._providers,
                session_store=self._pkce_session_store,
                account_resolver=self._account_resolver,
                session_issuer=self._session_issuer,
                backend_base_url=settings.backend_base_url,
                frontend_base_url=settings.frontend_base_url,
                mobile_redirect_schemes=settings.mobile_redirect_schemes_list,
                call_timeout_seconds=settings.provider_timeout_seconds,
            )

            self._initialized = True
            logger.info(
                "Dependencies initialized successfully",
                environment=self.environment,
                providers=sorted(self._providers),
            )
        except Exception as e:
            self._initialization_error = e
            self._initialized = True  # Mark as initialized to avoid retrying
            logger.error("Failed to initialize dependencies", error=str(e))

    def _require(self, name: str) -> Any:
        self._ensure_initialized()
        if self._initialization_error:
            raise RuntimeError(
                f"Dependencies failed to initialize: {self._initialization_error}"
            )
        value = getattr(self, f"_{name}")
        if value is None:
            raise RuntimeError(f"{name} not initialized")
        return value

    @property
    def initialization_error(self) -> Exception | None:
        """The error raised while wiring dependencies, if any (triggers wiring)."""
        self._ensure_initialized()
        return self._initialization_error

    @property
    def http_client(self) -> httpx.AsyncClient:
        return self._require("http_client")

    @property
    def pkce_session_store(self) -> "PKCESessionStore":
        return self._require("pkce_session_store")

    @property
    def session_sweeper(self) -> "SessionSweeper":
        return self._require("session_sweeper")

    @property
    def user_repository(self) -> "LocalUserRepository":
        return self._require("user_repository")

    @property
    def providers(self) -> "dict[str, OAuthProvider]":
        return self._require("providers")

    @property
    def account_resolver(self) -> "AccountResolver":
        return self._require("account_resolver")

    @property
    def session_issuer(self) -> "SessionIssuer":
        return self._require("session_issuer")

    @property
    def oauth_service(self) -> "OAuthService":
        return self._require("oauth_service")

    async def health_check(self) -> dict[str, Any]:
        """Check the health of all dependencies.

        This triggers lazy initialization if not already done. No
        provider is contacted.

        Returns:
            A dictionary with health status for each dependency.
        """
        self._ensure_initialized()

        if self._initialization_error:
            return {
                "healthy": False,
                "error": str(self._initialization_error),
                "pkce_session_store": False,
                "user_repository": False,
            }

        return {
            "healthy": True,
            "pkce_session_store": True,
            "user_repository": True,
            "pending_authorizations": await self._pkce_session_store.size(),
            "sweeper_running": self._session_sweeper.running,
            "providers": sorted(self._providers),
        }

    async def close(self) -> None:
        """Stop the sweeper and release network and database resources."""
        if self._session_sweeper is not None:
            await self._session_sweeper.stop()
        if self._http_client is not None:
            await self._http_client.aclose()
        if self._engine is not None:
            self._engine.dispose()
        logger.info("Dependencies closed")


# Global dependency container - initialized when get_dependencies is called
_container: DependencyContainer | None = None


def get_dependencies(settings: Settings) -> DependencyContainer:
    """Get or create the dependency container.

    This function is idempotent and will return the same container
    instance on subsequent calls.

    Args:
        settings: The service settings.

    Returns:
        The dependency container instance.
    """
    global _container
    if _container is None:
        _container = DependencyContainer(settings)
    return _container


async def close_dependencies() -> None:
    """Close and drop the global container, if any."""
    global _container
    if _container is not None:
        await _container.close()
        _container = None


def reset_dependencies() -> None:
    """Reset the dependency container.

    This function is primarily used for testing to allow
    re-initialization with different settings.
    """
    global _container
    _container = None
