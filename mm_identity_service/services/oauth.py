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
"""OAuth orchestration for Google, Facebook and Discord sign-in.

This module provides the OAuthService class that drives one generic
authorization-code flow over a registry of providers:
1. start: generate state (and PKCE for Google), store the pending
   session, build the authorization URL
2. handle_callback / exchange_mobile_code: consume the state, exchange
   the code, verify the identity, resolve the local user, issue a session
3. login_with_provider_token: deprecated path for clients that already
   hold a provider token

Provider and storage errors are mapped onto AuthFlowError subclasses
here, before anything crosses the API boundary.
"""

import asyncio
import hmac
from collections.abc import Awaitable
from typing import TypeVar
from urllib.parse import urlencode, urlsplit, urlunsplit

import structlog

from mm_identity_service.logging import provider_ctx, secret_prefix, user_id_ctx
from mm_identity_service.models.identity import ExternalIdentity
from mm_identity_service.models.oauth import (
    NEXT_FLOW_STATE,
    AuthorizationStart,
    AuthSession,
    CallbackResult,
    ClaimedProfile,
    FlowState,
)
from mm_identity_service.providers.base import (
    IdentityVerificationError,
    OAuthProvider,
    ProviderError,
    ProviderRejectedError,
    ProviderUnavailableError,
)
from mm_identity_service.security.jwt import JWTMintError
from mm_identity_service.security.pkce import generate_pkce, generate_state, is_valid_code_verifier
from mm_identity_service.services.accounts import AccountResolutionError, AccountResolver
from mm_identity_service.services.session_issuer import SessionIssuer
from mm_identity_service.stores.pkce_session_store import PKCESessionStore

logger = structlog.get_logger(__name__)

T = TypeVar("T")

MOBILE_PKCE_PROVIDER = "google"
BLOCKED_REDIRECT_SCHEMES = frozenset({"http", "https", "javascript", "data", "file"})


class AuthFlowError(Exception):
    """Base exception for authorization flow failures.

    Attributes:
        error_code: Coarse machine-readable code, safe for redirects.
        message: Human-readable message safe for clients.
        status_code: HTTP status for JSON responses.
        client_redirect_uri: Mobile deep link the browser should be sent
            back to, when the failed flow targeted one.
    """

    error_code = "auth_error"
    status_code = 400
    default_message = "Authentication failed"

    def __init__(
        self,
        message: str | None = None,
        status_code: int | None = None,
        client_redirect_uri: str | None = None,
    ) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)
        if status_code is not None:
            self.status_code = status_code
        self.client_redirect_uri = client_redirect_uri


class InvalidRequestError(AuthFlowError):
    """A required parameter is missing or malformed."""

    error_code = "invalid_request"
    default_message = "Invalid request, please try again"


class ReplayOrExpiredError(AuthFlowError):
    """The state is unknown, expired or already used.

    The message never says which, so it cannot serve as an oracle.
    """

    error_code = "invalid_session"
    default_message = "Invalid or expired session"

    def __init__(self, client_redirect_uri: str | None = None) -> None:
        super().__init__(client_redirect_uri=client_redirect_uri)


class AccessDeniedError(AuthFlowError):
    """The user declined consent at the provider."""

    error_code = "access_denied"
    default_message = "Sign-in was cancelled"


class ProviderRejectedFlowError(AuthFlowError):
    """The provider rejected the exchange or profile request."""

    error_code = "provider_rejected"
    status_code = 502
    default_message = "The identity provider rejected the request"


class IdentityMismatchError(AuthFlowError):
    """The identity failed verification or does not match the claim."""

    error_code = "identity_mismatch"
    status_code = 401
    default_message = "Identity could not be verified"


class UpstreamUnavailableError(AuthFlowError):
    """The provider timed out or could not be reached."""

    error_code = "provider_unavailable"
    status_code = 503
    default_message = "The identity provider is unavailable, please try again"


class InternalFailureError(AuthFlowError):
    """Storage or signing failed."""

    error_code = "internal_error"
    status_code = 500
    default_message = "Internal server error"


class UnknownProviderError(AuthFlowError):
    """The provider is not supported or not configured."""

    error_code = "unknown_provider"
    status_code = 404
    default_message = "Unknown authentication provider"


class FlowTracker:
    """Tracks one flow instance through FlowState.

    Only forward transitions along the success path are allowed; any
    non-terminal state may fail. Every transition is logged.
    """

    def __init__(
        self,
        provider: str,
        state: str | None = None,
        initial: FlowState = FlowState.STARTED,
    ) -> None:
        self.provider = provider
        self._state_prefix = secret_prefix(state) if state else None
        self.current = initial
        self.history = [initial]
        logger.debug(
            "auth.flow.transition",
            provider=provider,
            state_prefix=self._state_prefix,
            from_state=None,
            to_state=initial.value,
        )

    def advance(self, to: FlowState) -> None:
        expected = NEXT_FLOW_STATE.get(self.current)
        if to is not expected:
            raise RuntimeError(f"Illegal flow transition {self.current.value} -> {to.value}")
        self._move(to)

    def fail(self, reason: str) -> None:
        if self.current.is_terminal:
            return
        self._move(FlowState.FAILED, reason=reason)

    def _move(self, to: FlowState, **extra) -> None:
        logger.debug(
            "auth.flow.transition",
            provider=self.provider,
            state_prefix=self._state_prefix,
            from_state=self.current.value,
            to_state=to.value,
            **extra,
        )
        self.current = to
        self.history.append(to)


def ensure_claim_matches(
    identity: ExternalIdentity,
    claimed_email: str | None,
    claimed_id: str | None = None,
) -> None:
    """Reject a client-claimed profile that differs from the verified identity.

    Emails are compared case-insensitively. The claimed id is only
    checked when the client sent one.

    Raises:
        IdentityMismatchError: On any mismatch or a missing claimed email.
    """
    if not claimed_email or claimed_email.strip().lower() != identity.email.strip().lower():
        logger.warning("auth.identity.mismatch", provider=identity.provider, field="email")
        raise IdentityMismatchError("Claimed profile does not match the provider identity")

    if claimed_id and claimed_id != identity.provider_user_id:
        logger.warning("auth.identity.mismatch", provider=identity.provider, field="id")
        raise IdentityMismatchError("Claimed profile does not match the provider identity")


def append_query(uri: str, params: dict[str, str]) -> str:
    """Append query parameters to a URI, keeping any existing query."""
    parts = urlsplit(uri)
    query = urlencode(params)
    if parts.query:
        query = f"{parts.query}&{query}"
    return urlunsplit((parts.scheme, parts.netloc, parts.path, query, parts.fragment))


class OAuthService:
    """Service for orchestrating provider sign-in.

    The service holds no per-flow state of its own: pending
    authorizations live in the PKCE session store, users in the account
    resolver's repository, and sessions are stateless tokens.
    """

    def __init__(
        self,
        providers: dict[str, OAuthProvider],
        session_store: PKCESessionStore,
        account_resolver: AccountResolver,
        session_issuer: SessionIssuer,
        backend_base_url: str,
        frontend_base_url: str,
        mobile_redirect_schemes: list[str],
        call_timeout_seconds: float = 10.0,
    ) -> None:
        """Initialize the OAuth service.

        Args:
            providers: Enabled providers keyed by name.
            session_store: Store for pending authorizations.
            account_resolver: Find-or-create for local users.
            session_issuer: Mints session tokens.
            backend_base_url: Base URL of this service, for web callbacks.
            frontend_base_url: Base URL of the web client, for redirects.
            mobile_redirect_schemes: URI schemes accepted as mobile redirects.
            call_timeout_seconds: Upper bound for each provider call and for
                account resolution.
        """
        self._providers = providers
        self._sessions = session_store
        self._accounts = account_resolver
        self._issuer = session_issuer
        self._backend_base_url = backend_base_url.rstrip("/")
        self._frontend_base_url = frontend_base_url.rstrip("/")
        self._mobile_schemes = frozenset(
            s.lower() for s in mobile_redirect_schemes if s.lower() not in BLOCKED_REDIRECT_SCHEMES
        )
        self._timeout = call_timeout_seconds

    @property
    def provider_names(self) -> list[str]:
        return sorted(self._providers)

    def get_provider(self, name: str) -> OAuthProvider:
        provider = self._providers.get(name)
        if provider is None:
            raise UnknownProviderError(f"Provider '{name}' is not available")
        return provider

    def callback_uri(self, provider: str) -> str:
        """The web callback URI registered with the provider."""
        return f"{self._backend_base_url}/auth/{provider}/callback"

    def is_allowed_mobile_redirect(self, uri: str) -> bool:
        parts = urlsplit(uri)
        return bool(parts.scheme) and parts.scheme.lower() in self._mobile_schemes

    async def start(
        self,
        provider_name: str,
        mobile_redirect_uri: str | None = None,
    ) -> AuthorizationStart:
        """Start a flow and return the authorization URL.

        Args:
            provider_name: The provider to sign in with.
            mobile_redirect_uri: Deep link to use instead of the web
                callback. Only PKCE providers accept one, and its scheme
                must be allow-listed.

        Returns:
            AuthorizationStart. code_verifier is set only for mobile PKCE
            flows, where the client presents it back itself.

        Raises:
            UnknownProviderError: If the provider is not enabled.
            InvalidRequestError: If the mobile redirect is not acceptable.
        """
        provider = self.get_provider(provider_name)
        provider_ctx.set(provider.name)

        if mobile_redirect_uri:
            if not provider.requires_pkce:
                raise InvalidRequestError(f"{provider.name} does not support mobile redirects")
            if not self.is_allowed_mobile_redirect(mobile_redirect_uri):
                logger.warning("auth.redirect.rejected", provider=provider.name)
                raise InvalidRequestError("redirectUri is not an allowed mobile redirect")
            redirect_uri = mobile_redirect_uri
        else:
            redirect_uri = self.callback_uri(provider.name)

        code_verifier = None
        code_challenge = None
        if provider.requires_pkce:
            pair = generate_pkce()
            state, code_verifier, code_challenge = pair.state, pair.code_verifier, pair.code_challenge
        else:
            state = generate_state()

        await self._sessions.put(state, code_verifier, redirect_uri, provider.name)
        auth_url = provider.build_authorization_url(redirect_uri, state, code_challenge)
        FlowTracker(provider.name, state)

        logger.info(
            f"auth.{provider.name}.start",
            state_prefix=secret_prefix(state),
            redirect_uri=redirect_uri,
            mobile=bool(mobile_redirect_uri),
        )
        return AuthorizationStart(
            provider=provider.name,
            auth_url=auth_url,
            state=state,
            code_verifier=code_verifier if mobile_redirect_uri else None,
        )

    async def handle_callback(
        self,
        provider_name: str,
        code: str | None,
        state: str | None,
        error: str | None = None,
    ) -> CallbackResult:
        """Complete a browser callback.

        The state is consumed before anything else touches the network,
        so an unknown, expired or replayed state never reaches the provider.

        Args:
            provider_name: The provider in the callback path.
            code: The authorization code.
            state: The state issued by start().
            error: The provider's error parameter, set when the user
                declined consent.

        Returns:
            CallbackResult with the session and where to send the browser.

        Raises:
            AuthFlowError: On any failure. client_redirect_uri is set when
                the flow targeted a mobile deep link.
        """
        provider = self.get_provider(provider_name)
        provider_ctx.set(provider.name)
        tracker = FlowTracker(provider.name, state)
        client_redirect_uri = None

        try:
            if error:
                session = await self._sessions.take(state) if state else None
                if session is not None and session.provider == provider.name:
                    client_redirect_uri = self._client_redirect(provider.name, session.redirect_uri)
                logger.info(f"auth.{provider.name}.callback.denied", provider_error=error[:64])
                raise AccessDeniedError()

            if not code or not state:
                raise InvalidRequestError("Missing code or state")

            session = await self._sessions.take(state)
            if session is None or session.provider != provider.name:
                raise ReplayOrExpiredError()

            client_redirect_uri = self._client_redirect(provider.name, session.redirect_uri)
            tracker.advance(FlowState.CALLBACK_RECEIVED)

            auth_session = await self._complete(
                provider, tracker, code, session.redirect_uri, session.code_verifier
            )
        except AuthFlowError as e:
            e.client_redirect_uri = client_redirect_uri
            self._record_failure(tracker, e, state)
            raise

        return CallbackResult(
            session=auth_session,
            redirect_uri=session.redirect_uri,
            is_mobile=client_redirect_uri is not None,
        )

    async def exchange_mobile_code(
        self,
        code: str | None,
        code_verifier: str | None,
        redirect_uri: str | None = None,
        state: str | None = None,
    ) -> AuthSession:
        """Exchange a Google code obtained by a mobile client.

        When state is given, the pending session is consumed, the
        presented verifier must equal the stored one and a redirectUri, if
        sent, must equal the one the session was started with.

        Raises:
            AuthFlowError: On any failure.
        """
        provider = self.get_provider(MOBILE_PKCE_PROVIDER)
        provider_ctx.set(provider.name)
        tracker = FlowTracker(provider.name, state)

        try:
            if not code or not code_verifier:
                raise InvalidRequestError("code and codeVerifier are required")
            if not is_valid_code_verifier(code_verifier):
                raise InvalidRequestError("codeVerifier is malformed")

            if state:
                session = await self._sessions.take(state)
                if session is None or session.provider != provider.name:
                    raise ReplayOrExpiredError()
                if session.code_verifier is None or not hmac.compare_digest(
                    session.code_verifier, code_verifier
                ):
                    logger.warning("auth.google.verifier.mismatch", state_prefix=secret_prefix(state))
                    raise ReplayOrExpiredError()
                if redirect_uri and redirect_uri != session.redirect_uri:
                    logger.warning("auth.google.redirect.mismatch", state_prefix=secret_prefix(state))
                    raise InvalidRequestError("redirectUri does not match the pending session")
                exchange_redirect_uri = session.redirect_uri
            else:
                if redirect_uri and not (
                    redirect_uri == self.callback_uri(provider.name)
                    or self.is_allowed_mobile_redirect(redirect_uri)
                ):
                    raise InvalidRequestError("redirectUri is not an allowed redirect")
                exchange_redirect_uri = redirect_uri or self.callback_uri(provider.name)

            tracker.advance(FlowState.CALLBACK_RECEIVED)
            return await self._complete(provider, tracker, code, exchange_redirect_uri, code_verifier)
        except AuthFlowError as e:
            self._record_failure(tracker, e, state)
            raise

    async def login_with_provider_token(
        self,
        provider_name: str,
        access_token: str | None,
        claimed: ClaimedProfile | None,
        id_token: str | None = None,
    ) -> AuthSession:
        """Sign in with a provider token the client obtained itself.

        Deprecated: kept for older clients. The token is verified with
        the provider and the claimed profile must match what the provider
        asserts.

        Raises:
            AuthFlowError: On any failure.
        """
        provider = self.get_provider(provider_name)
        provider_ctx.set(provider.name)
        tracker = FlowTracker(provider.name, initial=FlowState.EXCHANGED)
        logger.warning(f"auth.{provider.name}.legacy_login")

        try:
            if not access_token and not id_token:
                raise InvalidRequestError("accessToken is required")
            if claimed is None or not claimed.email:
                raise InvalidRequestError("user.email is required")

            identity = await self._call_provider(
                provider.verify_access_token(access_token or "", id_token)
            )
            ensure_claim_matches(identity, claimed.email, claimed.id)
            tracker.advance(FlowState.VERIFIED)
            return await self._resolve_and_issue(tracker, identity)
        except AuthFlowError as e:
            self._record_failure(tracker, e, None)
            raise

    def success_redirect(self, result: CallbackResult) -> str:
        """Where to send the browser after a successful callback."""
        user_json = result.session.user.model_dump_json(by_alias=True)
        if result.is_mobile:
            return append_query(
                result.redirect_uri,
                {"token": result.session.token, "success": "true", "user": user_json},
            )
        return append_query(
            f"{self._frontend_base_url}/auth/success",
            {"token": result.session.token, "user": user_json},
        )

    def error_redirect(self, error: AuthFlowError) -> str:
        """Where to send the browser after a failed callback."""
        if error.client_redirect_uri:
            return append_query(
                error.client_redirect_uri, {"success": "false", "error": error.error_code}
            )
        return append_query(f"{self._frontend_base_url}/auth/error", {"error": error.error_code})

    def _client_redirect(self, provider: str, redirect_uri: str) -> str | None:
        if redirect_uri == self.callback_uri(provider):
            return None
        return redirect_uri

    async def _complete(
        self,
        provider: OAuthProvider,
        tracker: FlowTracker,
        code: str,
        redirect_uri: str,
        code_verifier: str | None,
    ) -> AuthSession:
        tokens = await self._call_provider(
            provider.exchange_code(code, redirect_uri, code_verifier)
        )
        tracker.advance(FlowState.EXCHANGED)

        identity = await self._call_provider(provider.fetch_identity(tokens))
        tracker.advance(FlowState.VERIFIED)

        return await self._resolve_and_issue(tracker, identity)

    async def _resolve_and_issue(
        self, tracker: FlowTracker, identity: ExternalIdentity
    ) -> AuthSession:
        try:
            user = await asyncio.wait_for(self._accounts.resolve(identity), timeout=self._timeout)
        except asyncio.TimeoutError as e:
            logger.error("account.resolve.timeout", provider=identity.provider, timeout_seconds=self._timeout)
            raise InternalFailureError() from e
        except AccountResolutionError as e:
            raise InternalFailureError() from e
        tracker.advance(FlowState.RESOLVED)
        user_id_ctx.set(str(user.id))

        try:
            session = self._issuer.issue(user)
        except JWTMintError as e:
            logger.error("session.issue.failure", error=str(e))
            raise InternalFailureError() from e
        tracker.advance(FlowState.ISSUED)

        logger.info(
            f"auth.{tracker.provider}.callback.success",
            user_id=str(user.id),
            flow=[s.value for s in tracker.history],
        )
        return session

    async def _call_provider(self, call: Awaitable[T]) -> T:
        try:
            return await asyncio.wait_for(call, timeout=self._timeout)
        except asyncio.TimeoutError as e:
            raise UpstreamUnavailableError() from e
        except ProviderUnavailableError as e:
            raise UpstreamUnavailableError() from e
        except ProviderRejectedError as e:
            status_code = e.status_code if 400 <= e.status_code < 500 else 502
            raise ProviderRejectedFlowError(status_code=status_code) from e
        except IdentityVerificationError as e:
            logger.warning("auth.identity.rejected", provider=e.provider, reason=e.message)
            raise IdentityMismatchError() from e
        except ProviderError as e:
            raise ProviderRejectedFlowError() from e
        except ValueError as e:
            logger.warning("auth.provider.invalid_input", error=str(e))
            raise InvalidRequestError() from e

    def _record_failure(self, tracker: FlowTracker, error: AuthFlowError, state: str | None) -> None:
        tracker.fail(error.error_code)
        log = logger.error if error.status_code >= 500 else logger.warning
        log(
            f"auth.{tracker.provider}.callback.failure",
            reason=error.error_code,
            status_code=error.status_code,
            state_prefix=secret_prefix(state) if state else None,
            cause=repr(error.__cause__) if error.__cause__ else None,
        )
