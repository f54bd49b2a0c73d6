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
"""Tests for the FastAPI application factory."""

import uuid

import pytest
from fastapi.testclient import TestClient

from mm_identity_service import __service_name__, __version__
from mm_identity_service.app import create_app
from mm_identity_service.config import ConfigurationError, Settings
from mm_identity_service.dependencies import reset_dependencies


def make_settings(**overrides) -> Settings:
    fields = {
        "identity_jwt_secret": "a" * 32,
        "google_client_id": "test-google-client-id",
        "google_client_secret": "test-google-client-secret",
    }
    fields.update(overrides)
    return Settings(**fields)


@pytest.fixture(autouse=True)
def fresh_container():
    """Start and finish every test with no global container."""
    reset_dependencies()
    yield
    reset_dependencies()


@pytest.fixture
def client():
    """Fixture providing a TestClient with the app lifespan running."""
    app = create_app(make_settings())
    with TestClient(app) as test_client:
        yield test_client


class TestHealthEndpoint:
    """Tests for the /healthz endpoint."""

    def test_healthz_returns_healthy_status(self, client: TestClient) -> None:
        response = client.get("/healthz")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["service"] == __service_name__
        assert data["version"] == __version__
        assert data["environment"] == "dev"

    def test_healthz_reports_sweeper_and_pending_authorizations(self, client: TestClient) -> None:
        client.get("/auth/google/url")

        dependencies = client.get("/healthz").json()["dependencies"]

        assert dependencies["sweeper_running"] is True
        assert dependencies["pending_authorizations"] == 1
        assert dependencies["providers"] == ["discord", "facebook", "google"]


class TestRequestIdMiddleware:
    """Tests for request ID middleware."""

    def test_generates_request_id_when_missing(self, client: TestClient) -> None:
        response = client.get("/healthz")

        request_id = response.headers["x-request-id"]
        assert str(uuid.UUID(request_id)) == request_id

    def test_propagates_existing_request_id(self, client: TestClient) -> None:
        response = client.get("/healthz", headers={"X-Request-ID": "test-request-id-12345"})

        assert response.headers["x-request-id"] == "test-request-id-12345"

    def test_replaces_malformed_request_id(self, client: TestClient) -> None:
        response = client.get("/healthz", headers={"X-Request-ID": "bad id with spaces"})

        assert response.headers["x-request-id"] != "bad id with spaces"

    def test_request_id_on_redirects(self, client: TestClient) -> None:
        response = client.get(
            "/auth/google/callback",
            params={"code": "x", "state": "deadbeef"},
            follow_redirects=False,
        )

        assert response.status_code == 302
        assert "x-request-id" in response.headers


class TestApplicationFactory:
    """Tests for the application factory."""

    def test_create_app_mounts_routes(self) -> None:
        app = create_app(make_settings())
        paths = {route.path for route in app.routes}

        assert "/healthz" in paths
        assert "/auth/{provider}/url" in paths
        assert "/auth/{provider}/callback" in paths
        assert "/auth/google/token" in paths
        assert "/login/{provider}" in paths
        assert "/auth/me" in paths

    def test_create_app_fails_fast_on_broken_dependencies(self) -> None:
        with pytest.raises(ConfigurationError):
            create_app(make_settings(identity_environment="prod"))

    def test_lifespan_stops_sweeper(self) -> None:
        app = create_app(make_settings())
        container = app.state.container

        with TestClient(app):
            assert container.session_sweeper.running is True

        assert container.session_sweeper.running is False
