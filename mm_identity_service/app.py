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
"""FastAPI ASGI application factory for the Identity Service.

This module provides the main FastAPI application with:
- Request ID middleware for correlation
- Structlog context injection
- Health check endpoint
- Lifespan management for the session sweeper and resource cleanup
- Uvicorn entrypoint
"""

import re
import uuid
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator

from fastapi import APIRouter, FastAPI
from fastapi.responses import JSONResponse

from mm_identity_service import __service_name__, __version__
from mm_identity_service.config import ConfigurationError, Settings, get_settings
from mm_identity_service.dependencies import (
    DependencyContainer,
    close_dependencies,
    get_dependencies,
)
from mm_identity_service.logging import (
    configure_logging,
    get_logger,
    provider_ctx,
    request_id_ctx,
    user_id_ctx,
)

REQUEST_ID_HEADER = b"x-request-id"
_REQUEST_ID_PATTERN = re.compile(r"^[A-Za-z0-9._\-]{1,128}$")


class RequestIDMiddleware:
    """Middleware that assigns or propagates request IDs.

    This middleware:
    1. Reuses a well-formed incoming X-Request-ID, or generates a UUID4
    2. Sets the request ID in the structlog context for downstream logging
    3. Adds the request ID to the response headers

    Implemented as a pure ASGI middleware to ensure context is preserved
    through exception handling (unlike BaseHTTPMiddleware which resets
    context in finally blocks before exception middleware logs errors).
    """

    def __init__(self, app: Any) -> None:
        self.app = app

    @staticmethod
    def _incoming_request_id(scope: dict[str, Any]) -> str | None:
        for name, value in scope.get("headers", []):
            if name.lower() == REQUEST_ID_HEADER:
                candidate = value.decode("latin-1")
                if _REQUEST_ID_PATTERN.match(candidate):
                    return candidate
        return None

    async def __call__(self, scope: dict[str, Any], receive: Any, send: Any) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        request_id = self._incoming_request_id(scope) or str(uuid.uuid4())

        request_id_token = request_id_ctx.set(request_id)
        user_id_token = user_id_ctx.set(None)  # Set after authentication
        provider_token = provider_ctx.set(None)  # Set by the auth routes

        scope["state"] = scope.get("state", {})
        scope["state"]["request_id"] = request_id

        async def send_with_request_id(message: dict[str, Any]) -> None:
            if message["type"] == "http.response.start":
                headers = [
                    (k, v) for k, v in message.get("headers", []) if k.lower() != REQUEST_ID_HEADER
                ]
                headers.append((REQUEST_ID_HEADER, request_id.encode()))
                message["headers"] = headers
            await send(message)

        try:
            await self.app(scope, receive, send_with_request_id)
        finally:
            # Reset after the entire request/response cycle
            request_id_ctx.reset(request_id_token)
            user_id_ctx.reset(user_id_token)
            provider_ctx.reset(provider_token)


def create_health_router(container: DependencyContainer) -> APIRouter:
    """Create a router with the health check endpoint.

    Args:
        container: The dependency container for health checks.

    Returns:
        A FastAPI APIRouter with the health endpoint.
    """
    router = APIRouter()
    logger = get_logger(__name__)

    @router.get("/healthz")
    async def health_check() -> JSONResponse:
        """Health check endpoint.

        Response body:
        {
            "status": "healthy" | "unhealthy",
            "service": "mm-identity-service",
            "version": "0.1.0",
            "environment": "dev" | "prod",
            "dependencies": {...}
        }

        Providers are never contacted from here.
        """
        try:
            dep_health = await container.health_check()
        except Exception as e:
            logger.error("Health check failed", error=str(e))
            return JSONResponse(
                status_code=503,
                content={
                    "status": "unhealthy",
                    "service": __service_name__,
                    "version": __version__,
                    "error": "Internal health check error",
                },
            )

        healthy = dep_health.pop("healthy")
        if not healthy:
            logger.warning("Health check failed", dependencies=dep_health)

        return JSONResponse(
            status_code=200 if healthy else 503,
            content={
                "status": "healthy" if healthy else "unhealthy",
                "service": __service_name__,
                "version": __version__,
                "environment": container.environment,
                "dependencies": dep_health,
            },
        )

    return router


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Lifespan context manager for the FastAPI application.

    Starts the PKCE session sweeper on startup. On shutdown stops it and
    closes the shared HTTP client and database engine.
    """
    logger = get_logger(__name__)
    container: DependencyContainer = app.state.container
    container.session_sweeper.start()
    logger.info("Application lifespan started")
    yield
    logger.info("Application shutting down, closing dependencies...")
    await close_dependencies()
    logger.info("Application shutdown complete")


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    This is the ASGI application factory. It:
    1. Validates configuration (fails fast if invalid)
    2. Configures structured logging
    3. Initializes dependencies
    4. Sets up middleware and lifespan management
    5. Mounts routers

    Args:
        settings: Optional settings instance. If not provided,
                  will be loaded from environment variables.

    Returns:
        The configured FastAPI application.

    Raises:
        ConfigurationError: If required configuration is missing.
    """
    if settings is None:
        settings = get_settings()

    configure_logging(settings)
    logger = get_logger(__name__)

    logger.info(
        "Starting Identity Service",
        version=__version__,
        environment=settings.identity_environment,
        log_level=settings.log_level,
        log_format=settings.log_format,
    )
    logger.debug("Configuration loaded", config=settings.get_redacted_config_dict())

    container = get_dependencies(settings)
    error = container.initialization_error
    if error is not None:
        logger.error("Dependencies failed to initialize", error=str(error))
        raise ConfigurationError(f"Failed to initialize dependencies: {error}")

    app = FastAPI(
        title="Money Monitoring Identity Service",
        description="Google, Facebook and Discord sign-in for Money Monitoring",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    app.state.container = container

    app.add_middleware(RequestIDMiddleware)

    app.include_router(create_health_router(container))

    from mm_identity_service.routes.auth_oauth import create_auth_router
    from mm_identity_service.routes.login import create_login_router
    from mm_identity_service.routes.me import create_me_router

    app.include_router(create_me_router(
        jwt_secret=settings.identity_jwt_secret,
        user_repository=container.user_repository,
    ))
    app.include_router(create_auth_router(container.oauth_service))
    app.include_router(create_login_router(container.oauth_service))

    logger.info("Identity Service started successfully", providers=container.oauth_service.provider_names)
    return app


def main() -> None:
    """Uvicorn entrypoint for running the service.

    This function is called when running `mm-identity` from the command line
    or `python -m mm_identity_service.app`.
    """
    import uvicorn

    try:
        settings = get_settings()

        uvicorn.run(
            "mm_identity_service.app:create_app",
            factory=True,
            host=settings.service_host,
            port=settings.service_port,
            log_level=settings.log_level.lower(),
            reload=False,
        )
    except ConfigurationError as e:
        print(f"Configuration error: {e}")
        raise SystemExit(1) from e


if __name__ == "__main__":
    main()
