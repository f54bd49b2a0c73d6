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
"""OAuth provider abstraction.

This module defines the OAuthProvider capability interface shared by the
Google, Facebook and Discord providers, plus the provider-layer error
types. Providers speak HTTP through a shared httpx.AsyncClient, parse
every response into a pydantic model and raise ProviderError subclasses;
mapping those errors to client-facing responses is the orchestrator's job.

Outbound calls are never retried: an authorization code is single-use,
so a retry after a timeout cannot succeed.
"""

from abc import ABC, abstractmethod
from typing import TypeVar

import httpx
import structlog
from pydantic import BaseModel

from mm_identity_service.logging import secret_prefix
from mm_identity_service.models.identity import (
    ExternalIdentity,
    ProviderErrorBody,
    ProviderTokens,
)

logger = structlog.get_logger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


class ProviderError(Exception):
    """Base exception for provider errors.

    Attributes:
        provider: The provider name.
        message: Server-side description. Never sent to clients verbatim.
    """

    def __init__(self, provider: str, message: str) -> None:
        super().__init__(message)
        self.provider = provider
        self.message = message


class ProviderRejectedError(ProviderError):
    """The provider answered a token or profile request with a non-2xx status."""

    def __init__(
        self,
        provider: str,
        status_code: int,
        error: str | None = None,
        description: str | None = None,
    ) -> None:
        super().__init__(provider, f"{provider} responded with HTTP {status_code}: {error or 'unknown_error'}")
        self.status_code = status_code
        self.error = error
        self.description = description


class ProviderUnavailableError(ProviderError):
    """The provider could not be reached in time."""

    pass


class ProviderResponseError(ProviderError):
    """The provider returned a body that could not be parsed."""

    pass


class IdentityVerificationError(ProviderError):
    """The provider identity failed verification.

    Raised for bad ID token signature, audience, issuer or expiry, and
    for profiles without a usable (verified) email address.
    """

    pass


class OAuthProvider(ABC):
    """Capability interface for an OAuth2 authorization-code provider.

    Subclasses declare their endpoints and scopes as class attributes and
    implement identity retrieval. The token exchange is shared: every
    provider uses a form-encoded POST with the server-held client secret,
    plus the PKCE verifier when requires_pkce is set.

    Attributes:
        name: Provider name used in routes, logs and user records.
        authorize_url: The provider's authorization endpoint.
        token_url: The provider's token endpoint.
        scopes: Scopes requested on the authorization URL.
        scope_separator: How scopes are joined in the 'scope' parameter.
        requires_pkce: Whether authorization and exchange carry PKCE values.
        authorize_params: Extra provider-specific authorization parameters.
    """

    name: str = ""
    authorize_url: str = ""
    token_url: str = ""
    scopes: tuple[str, ...] = ()
    scope_separator: str = " "
    requires_pkce: bool = False
    authorize_params: dict[str, str] = {}

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._client_id = client_id
        self._client_secret = client_secret
        self._http = http_client

    @property
    def client_id(self) -> str:
        return self._client_id

    @property
    def scope(self) -> str:
        return self.scope_separator.join(self.scopes)

    def build_authorization_url(
        self,
        redirect_uri: str,
        state: str,
        code_challenge: str | None = None,
    ) -> str:
        """Serialize the authorization endpoint URL.

        Args:
            redirect_uri: Must exactly match the redirect_uri later sent
                to the token endpoint.
            state: The anti-CSRF state token.
            code_challenge: S256 challenge, required for PKCE providers.

        Returns:
            The full authorization URL.

        Raises:
            ValueError: If a PKCE provider is called without a challenge.
        """
        params = {
            "client_id": self._client_id,
            "redirect_uri": redirect_uri,
            "response_type": "code",
            "scope": self.scope,
        }
        params.update(self.authorize_params)
        params["state"] = state

        if self.requires_pkce:
            if not code_challenge:
                raise ValueError(f"{self.name} requires a PKCE code challenge")
            params["code_challenge"] = code_challenge
            params["code_challenge_method"] = "S256"

        return str(httpx.URL(self.authorize_url, params=params))

    async def exchange_code(
        self,
        code: str,
        redirect_uri: str,
        code_verifier: str | None = None,
    ) -> ProviderTokens:
        """Exchange an authorization code for provider tokens.

        Args:
            code: The authorization code from the callback.
            redirect_uri: The redirect URI used on the authorization URL.
            code_verifier: The PKCE verifier, required for PKCE providers.

        Returns:
            ProviderTokens parsed from the token endpoint response.

        Raises:
            ValueError: If a PKCE provider is called without a verifier.
            ProviderRejectedError: If the provider rejects the exchange.
            ProviderUnavailableError: On timeout or connection failure.
            ProviderResponseError: If the response body does not parse.
        """
        data = {
            "client_id": self._client_id,
            "client_secret": self._client_secret,
            "code": code,
            "grant_type": "authorization_code",
            "redirect_uri": redirect_uri,
        }
        if self.requires_pkce:
            if not code_verifier:
                raise ValueError(f"{self.name} requires a PKCE code verifier")
            data["code_verifier"] = code_verifier

        logger.debug(
            "provider.token.exchange",
            provider=self.name,
            code_prefix=secret_prefix(code),
        )
        response = await self._request(
            "POST",
            self.token_url,
            data=data,
            headers={"Accept": "application/json"},
        )
        return self._parse(ProviderTokens, response)

    @abstractmethod
    async def fetch_identity(self, tokens: ProviderTokens) -> ExternalIdentity:
        """Obtain the verified identity behind freshly exchanged tokens."""
        pass

    @abstractmethod
    async def verify_access_token(
        self,
        access_token: str,
        id_token: str | None = None,
    ) -> ExternalIdentity:
        """Verify a token a client obtained on its own (legacy path)."""
        pass

    async def _get_json(self, url: str, access_token: str, params: dict | None = None) -> httpx.Response:
        return await self._request(
            "GET",
            url,
            params=params,
            headers={"Authorization": f"Bearer {access_token}", "Accept": "application/json"},
        )

    async def _request(self, method: str, url: str, **kwargs) -> httpx.Response:
        if self._http is None:
            raise ProviderUnavailableError(self.name, "No HTTP client configured")

        try:
            response = await self._http.request(method, url, **kwargs)
        except httpx.TimeoutException as e:
            logger.warning("provider.request.timeout", provider=self.name, url=url)
            raise ProviderUnavailableError(self.name, f"{self.name} request timed out") from e
        except httpx.TransportError as e:
            logger.warning("provider.request.unreachable", provider=self.name, url=url, error=str(e))
            raise ProviderUnavailableError(self.name, f"{self.name} is unreachable") from e

        if response.is_success:
            return response

        try:
            body = ProviderErrorBody.model_validate(response.json())
        except ValueError:
            body = ProviderErrorBody()

        logger.warning(
            "provider.request.rejected",
            provider=self.name,
            url=url,
            status_code=response.status_code,
            error=body.code,
            error_description=body.description,
        )
        raise ProviderRejectedError(
            self.name,
            status_code=response.status_code,
            error=body.code,
            description=body.description,
        )

    def _parse(self, model: type[ModelT], response: httpx.Response) -> ModelT:
        try:
            return model.model_validate(response.json())
        except ValueError as e:
            logger.warning(
                "provider.response.invalid",
                provider=self.name,
                model=model.__name__,
                error=str(e),
            )
            raise ProviderResponseError(
                self.name, f"Unexpected {self.name} response for {model.__name__}"
            ) from e
