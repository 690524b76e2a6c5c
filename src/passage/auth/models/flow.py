"""Authorization flow models.

Contains the per-attempt flow record, the authorization request that becomes
the provider redirect, and the parsed provider callback.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit


class FlowPhase(str, Enum):
    """Lifecycle of one flow attempt. Phases only move forward."""

    ISSUED = "issued"
    CONSUMED = "consumed"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True)
class FlowState:
    """Server-side record of one authorization attempt, keyed by csrf_token."""

    csrf_token: str = field(repr=False)
    pkce_verifier: str = field(repr=False)
    code_challenge: str
    provider_name: str
    created_at: float
    expires_at: float

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at


@dataclass(frozen=True)
class AuthorizationRequest:
    """Authorization request parameters for the provider redirect."""

    authorization_endpoint: str
    client_id: str
    redirect_uri: str
    code_challenge: str
    state: str
    code_challenge_method: str = "S256"
    scope: str | None = None
    extra_params: tuple[tuple[str, str], ...] = ()

    def build_authorization_url(self) -> str:
        """Build the complete authorization URL.

        Query parameters already present on the endpoint are kept.
        """
        params = {
            "response_type": "code",
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
            "code_challenge": self.code_challenge,
            "code_challenge_method": self.code_challenge_method,
            "state": self.state,
        }

        if self.scope:
            params["scope"] = self.scope
        for key, value in self.extra_params:
            params.setdefault(key, value)

        parts = urlsplit(self.authorization_endpoint)
        existing = [
            (key, value)
            for key, value in parse_qsl(parts.query, keep_blank_values=True)
            if key not in params
        ]
        query = urlencode(existing + list(params.items()))
        return urlunsplit(parts._replace(query=query))


@dataclass(frozen=True)
class AuthorizationResponse:
    """Parameters the provider sent back to the callback endpoint."""

    code: str | None = None
    state: str | None = None
    error: str | None = None
    error_description: str | None = None

    @classmethod
    def from_query(cls, params: Mapping[str, str]) -> AuthorizationResponse:
        """Build from callback query parameters, treating blanks as absent."""

        def get_single_param(key: str) -> str | None:
            return params.get(key) or None

        return cls(
            code=get_single_param("code"),
            state=get_single_param("state"),
            error=get_single_param("error"),
            error_description=get_single_param("error_description"),
        )

    def is_error(self) -> bool:
        return self.error is not None
