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
"""OAuth flow models.

This module defines the data carried through an authorization flow:
- FlowState: lifecycle of a single flow instance
- PKCEPair: verifier, challenge and anti-replay state from the generator
- PKCESession: pending authorization kept in server memory until callback
- AuthorizationStart / CallbackResult: orchestrator results
- AuthSession: the {token, user} envelope returned to clients
- ClaimedProfile: identity a client asserts alongside a provider token
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from mm_identity_service.models.user import PublicUser


class FlowState(str, Enum):
    """States of one authorization flow.

    A flow moves strictly forward through the success path; any state
    may move to FAILED. ISSUED and FAILED are terminal and there is no
    retry transition: a failed flow is restarted from STARTED with a new
    state/verifier pair.
    """

    STARTED = "started"
    CALLBACK_RECEIVED = "callback_received"
    EXCHANGED = "exchanged"
    VERIFIED = "verified"
    RESOLVED = "resolved"
    ISSUED = "issued"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (FlowState.ISSUED, FlowState.FAILED)


NEXT_FLOW_STATE: dict[FlowState, FlowState] = {
    FlowState.STARTED: FlowState.CALLBACK_RECEIVED,
    FlowState.CALLBACK_RECEIVED: FlowState.EXCHANGED,
    FlowState.EXCHANGED: FlowState.VERIFIED,
    FlowState.VERIFIED: FlowState.RESOLVED,
    FlowState.RESOLVED: FlowState.ISSUED,
}


@dataclass(frozen=True)
class PKCEPair:
    """Output of the PKCE generator.

    Attributes:
        code_verifier: High-entropy secret presented at the token endpoint.
        code_challenge: BASE64URL(SHA256(code_verifier)) sent with the authorization request.
        state: Independent random token correlating the callback with this flow.
    """

    code_verifier: str
    code_challenge: str
    state: str


@dataclass(frozen=True)
class PKCESession:
    """A pending authorization, keyed by its state token.

    Attributes:
        state: The anti-CSRF/anti-replay correlator.
        code_verifier: PKCE verifier, or None for providers without PKCE.
        redirect_uri: The exact redirect URI sent to the provider.
        provider: The provider the authorization was issued for.
        created_at: When the authorization URL was issued (UTC).
    """

    state: str
    code_verifier: str | None
    redirect_uri: str
    provider: str
    created_at: datetime

    def is_expired(self, now: datetime, ttl: timedelta) -> bool:
        """Check whether the session is older than the TTL."""
        return now >= self.created_at + ttl


@dataclass(frozen=True)
class AuthorizationStart:
    """Result of starting a flow."""

    provider: str
    auth_url: str
    state: str
    code_verifier: str | None = None


class AuthSession(BaseModel):
    """The {token, user} envelope issued after a successful sign-in."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    token: str = Field(..., description="Signed bearer token for the local session.")
    user: PublicUser


@dataclass(frozen=True)
class CallbackResult:
    """Result of completing a browser callback.

    Attributes:
        session: The issued session envelope.
        redirect_uri: The redirect URI the flow was started with.
        is_mobile: True when the flow targets a mobile deep link rather
            than the web callback.
    """

    session: AuthSession
    redirect_uri: str
    is_mobile: bool


class ClaimedProfile(BaseModel):
    """Profile a client claims for itself next to a provider token."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    id: str | None = None
    email: str | None = None
    name: str | None = None
    photo: str | None = None
