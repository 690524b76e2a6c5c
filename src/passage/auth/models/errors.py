"""Exception hierarchy for the authorization relay.

Internal errors describe exactly what went wrong inside a flow. Each carries
the outward ErrorCategory it is reported as, so the orchestrator can translate
any of them into a FlowError without leaking provider details.
"""

from __future__ import annotations

from enum import Enum


class ErrorCategory(str, Enum):
    """Stable, user-facing failure categories."""

    UNKNOWN_PROVIDER = "unknown_provider"
    INVALID_STATE = "invalid_state"
    AUTHORIZATION_FAILED = "authorization_failed"
    PROVIDER_UNAVAILABLE = "provider_unavailable"
    PROVIDER_ERROR = "provider_error"
    TEMPORARILY_UNAVAILABLE = "temporarily_unavailable"

    @property
    def status_code(self) -> int:
        if self in (ErrorCategory.PROVIDER_UNAVAILABLE, ErrorCategory.PROVIDER_ERROR):
            return 502
        if self is ErrorCategory.TEMPORARILY_UNAVAILABLE:
            return 503
        return 400

    @property
    def public_message(self) -> str:
        return _PUBLIC_MESSAGES[self]


_PUBLIC_MESSAGES = {
    ErrorCategory.UNKNOWN_PROVIDER: "Unsupported identity provider",
    ErrorCategory.INVALID_STATE: "Login session is invalid or has expired, "
    "please start again",
    ErrorCategory.AUTHORIZATION_FAILED: "Authorization failed, please retry the login",
    ErrorCategory.PROVIDER_UNAVAILABLE: "Identity provider is unavailable, "
    "please try again later",
    ErrorCategory.PROVIDER_ERROR: "Identity provider returned an unexpected response",
    ErrorCategory.TEMPORARILY_UNAVAILABLE: "Too many logins in progress, "
    "please try again shortly",
}


class RelayError(Exception):
    """Base exception for all relay errors."""

    category: ErrorCategory = ErrorCategory.PROVIDER_ERROR


class ConfigurationError(RelayError):
    """Raised when provider or runtime configuration is invalid."""

    pass


class UnknownProviderError(RelayError):
    """Raised when a provider name is not registered."""

    category = ErrorCategory.UNKNOWN_PROVIDER

    def __init__(self, provider: str):
        super().__init__(f"Unknown provider: {provider!r}")
        self.provider = provider


class StateError(RelayError):
    """Raised when a CSRF state token does not validate."""

    category = ErrorCategory.INVALID_STATE


class StateNotFoundError(StateError):
    """The state token was never issued, was already consumed, or was evicted."""

    pass


class StateExpiredError(StateError):
    """The state token was issued but its flow outlived the TTL."""

    pass


class FlowCapacityError(RelayError):
    """Raised when the flow store is full of unexpired flows."""

    category = ErrorCategory.TEMPORARILY_UNAVAILABLE


class ProviderError(RelayError):
    """Base for errors raised while talking to an identity provider.

    Carries enough context for operators. Never carries secrets or
    provider response bodies.
    """

    def __init__(
        self,
        message: str,
        *,
        provider: str,
        endpoint: str | None = None,
        status_code: int | None = None,
    ):
        super().__init__(message)
        self.provider = provider
        self.endpoint = endpoint
        self.status_code = status_code


class ExchangeError(ProviderError):
    """Raised when the authorization code to token exchange fails."""

    pass


class ExchangeTransportError(ExchangeError):
    """Network failure, timeout or server-side error at the token endpoint."""

    category = ErrorCategory.PROVIDER_UNAVAILABLE


class InvalidGrantError(ExchangeError):
    """The provider rejected the code (expired, reused, or wrong verifier)."""

    category = ErrorCategory.AUTHORIZATION_FAILED

    def __init__(self, message: str, *, error_code: str | None = None, **kwargs):
        super().__init__(message, **kwargs)
        self.error_code = error_code


class ExchangeMalformedResponseError(ExchangeError):
    """The token endpoint answered with something that is not a token response."""

    category = ErrorCategory.PROVIDER_ERROR


class IdentityError(ProviderError):
    """Raised when the user identity cannot be retrieved or normalized."""

    pass


class IdentityTransportError(IdentityError):
    """Network failure, timeout or non-success status at the user info endpoint."""

    category = ErrorCategory.PROVIDER_UNAVAILABLE


class IdentityMalformedResponseError(IdentityError):
    """The user info endpoint did not return a JSON object."""

    category = ErrorCategory.PROVIDER_ERROR


class MissingIdentityFieldError(IdentityError):
    """The user info payload lacks the field used as the user identifier."""

    category = ErrorCategory.PROVIDER_ERROR


class AuthorizationDeniedError(RelayError):
    """The provider redirected back with an OAuth error instead of a code."""

    category = ErrorCategory.AUTHORIZATION_FAILED


class FlowError(RelayError):
    """Outward error raised by the orchestrator.

    The message is the category's public message. The internal error, if
    any, is chained as ``__cause__``.
    """

    def __init__(self, category: ErrorCategory):
        super().__init__(category.public_message)
        self.category = category

    @property
    def status_code(self) -> int:
        return self.category.status_code
