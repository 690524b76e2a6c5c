"""Provider client base class.

A ProviderClient drives the three provider-facing steps of a flow:
building the authorization redirect, exchanging the code for tokens
(RFC 6749 Section 4.1.3 with the PKCE verifier of RFC 7636), and reading the
user identity. Variants only differ in defaults and in how the user
identifier is extracted from the user info payload.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any, ClassVar

import httpx
from pydantic import ValidationError

from passage.auth.models.errors import (
    ExchangeMalformedResponseError,
    ExchangeTransportError,
    IdentityMalformedResponseError,
    IdentityTransportError,
    InvalidGrantError,
    MissingIdentityFieldError,
)
from passage.auth.models.flow import AuthorizationRequest
from passage.auth.models.identity import NormalizedIdentity
from passage.auth.models.provider import ProviderDescriptor, TokenAuthMethod
from passage.auth.models.tokens import TokenRequest, TokenResponse

logger = logging.getLogger(__name__)

USER_AGENT = "passage-oauth-relay"

# Statuses worth another attempt on an idempotent GET.
RETRYABLE_STATUS_CODES = frozenset({502, 503, 504})


class ProviderClient(ABC):
    """Base class for the identity provider variants.

    Subclasses set ``kind``, ``default_scopes`` and implement
    ``extract_user_id``. The HTTP client is shared and owned by the caller.
    """

    kind: ClassVar[str]
    default_scopes: ClassVar[tuple[str, ...]] = ()
    default_token_auth_method: ClassVar[TokenAuthMethod] = (
        TokenAuthMethod.CLIENT_SECRET_POST
    )

    def __init__(
        self,
        descriptor: ProviderDescriptor,
        http_client: httpx.AsyncClient,
        *,
        identity_retries: int = 2,
        retry_backoff: float = 0.2,
    ):
        """Initialize the provider client.

        Args:
            descriptor: Provider endpoints and credentials
            http_client: Shared HTTP client (timeouts are configured on it)
            identity_retries: Extra attempts for transient user info failures
            retry_backoff: Base delay in seconds between user info attempts
        """
        self._descriptor = descriptor
        self._http_client = http_client
        self._identity_retries = max(0, identity_retries)
        self._retry_backoff = retry_backoff

    @property
    def name(self) -> str:
        return self._descriptor.name

    @property
    def descriptor(self) -> ProviderDescriptor:
        return self._descriptor

    @property
    def scopes(self) -> tuple[str, ...]:
        return self._descriptor.scopes or self.default_scopes

    @property
    def token_auth_method(self) -> TokenAuthMethod:
        return self._descriptor.token_auth_method or self.default_token_auth_method

    # ================================
    # Authorization request
    # ================================

    def build_authorization_url(self, state: str, code_challenge: str) -> str:
        """Build the provider redirect URL for one flow.

        Args:
            state: CSRF token bound to the flow
            code_challenge: S256 PKCE challenge (the verifier never leaves
                the server at this step)

        Returns:
            The fully assembled authorization URL
        """
        auth_request = AuthorizationRequest(
            authorization_endpoint=self._descriptor.auth_url,
            client_id=self._descriptor.client_id,
            redirect_uri=self._descriptor.redirect_uri,
            code_challenge=code_challenge,
            state=state,
            scope=" ".join(self.scopes) or None,
            extra_params=self.extra_authorization_params(),
        )
        return auth_request.build_authorization_url()

    def extra_authorization_params(self) -> tuple[tuple[str, str], ...]:
        """Variant-specific authorization query parameters."""
        return ()

    # ================================
    # Token exchange
    # ================================

    async def exchange_code(self, code: str, code_verifier: str) -> TokenResponse:
        """Exchange an authorization code for tokens.

        Never retried: codes are single-use, so a second attempt after an
        ambiguous failure would be rejected anyway.

        Raises:
            ExchangeTransportError: Network failure or server-side error
            InvalidGrantError: The provider rejected the code
            ExchangeMalformedResponseError: The response is not a token response
        """
        token_request = TokenRequest(
            token_endpoint=self._descriptor.token_url,
            code=code,
            redirect_uri=self._descriptor.redirect_uri,
            client_id=self._descriptor.client_id,
            client_secret=self._descriptor.client_secret,
            code_verifier=code_verifier,
            include_client_secret=(
                self.token_auth_method is TokenAuthMethod.CLIENT_SECRET_POST
            ),
        )

        headers = {
            "Content-Type": "application/x-www-form-urlencoded",
            "Accept": "application/json",
            "User-Agent": USER_AGENT,
        }
        request_kwargs: dict[str, Any] = {
            "data": token_request.to_form_data(),
            "headers": headers,
        }
        if self.token_auth_method is TokenAuthMethod.CLIENT_SECRET_BASIC:
            request_kwargs["auth"] = httpx.BasicAuth(
                self._descriptor.client_id, self._descriptor.client_secret
            )

        logger.debug(
            f"Exchanging authorization code with {self.name} at "
            f"{token_request.token_endpoint} ({self.token_auth_method.value})"
        )

        try:
            response = await self._http_client.post(
                token_request.token_endpoint, **request_kwargs
            )
        except httpx.HTTPError as e:
            logger.error(
                f"Token exchange with {self.name} failed at "
                f"{token_request.token_endpoint}: {type(e).__name__}"
            )
            raise ExchangeTransportError(
                f"HTTP error during token exchange: {type(e).__name__}",
                provider=self.name,
                endpoint=token_request.token_endpoint,
            ) from e

        return self._parse_token_response(response)

    def _parse_token_response(self, response: httpx.Response) -> TokenResponse:
        """Classify a token endpoint response (RFC 6749 Section 5).

        Some providers (GitHub) report errors with a 200 status, so an
        ``error`` member is treated as a rejection regardless of status.
        """
        endpoint = self._descriptor.token_url
        status = response.status_code
        context = {"provider": self.name, "endpoint": endpoint, "status_code": status}

        if status >= 500 or status == 429:
            logger.error(
                f"Token endpoint of {self.name} unavailable: {endpoint} "
                f"returned {status}"
            )
            raise ExchangeTransportError(
                f"Token endpoint returned {status}", **context
            )

        try:
            response_data = response.json()
        except ValueError:
            if status >= 400:
                logger.warning(f"{self.name} rejected the authorization code ({status})")
                raise InvalidGrantError(
                    f"Token endpoint rejected the code with {status}", **context
                ) from None
            logger.error(f"Token response from {self.name} is not valid JSON")
            raise ExchangeMalformedResponseError(
                "Token response is not valid JSON", **context
            ) from None

        if not isinstance(response_data, dict):
            logger.error(f"Token response from {self.name} is not a JSON object")
            raise ExchangeMalformedResponseError(
                "Token response is not a JSON object", **context
            )

        if "error" in response_data or status >= 400:
            error_code = response_data.get("error")
            if not isinstance(error_code, str):
                error_code = None
            logger.warning(
                f"{self.name} rejected the authorization code with {status}: "
                f"{error_code or 'no error code'}"
            )
            raise InvalidGrantError(
                f"Token endpoint rejected the code: {error_code or status}",
                error_code=error_code,
                **context,
            )

        try:
            token = TokenResponse.model_validate(response_data)
        except ValidationError as e:
            # Field names only: pydantic messages echo input values.
            fields = ", ".join(
                ".".join(str(part) for part in error["loc"]) for error in e.errors()
            )
            logger.error(f"Token response from {self.name} has invalid fields: {fields}")
            raise ExchangeMalformedResponseError(
                f"Token response has missing or invalid fields: {fields}", **context
            ) from None

        logger.debug(f"Token exchange with {self.name} successful")
        return token

    # ================================
    # Identity
    # ================================

    async def fetch_identity(self, access_token: str) -> NormalizedIdentity:
        """Read the user info endpoint and normalize the payload.

        Raises:
            IdentityTransportError: Network failure or non-success status
            IdentityMalformedResponseError: The body is not a JSON object
            MissingIdentityFieldError: The identifier field is absent
        """
        endpoint = self._descriptor.user_info_url
        response = await self._get_user_info(endpoint, access_token)
        status = response.status_code
        context = {"provider": self.name, "endpoint": endpoint, "status_code": status}

        if not 200 <= status < 300:
            logger.error(
                f"User info endpoint of {self.name} returned {status}: {endpoint}"
            )
            raise IdentityTransportError(
                f"User info endpoint returned {status}", **context
            )

        try:
            claims = response.json()
        except ValueError:
            logger.error(f"User info from {self.name} is not valid JSON")
            raise IdentityMalformedResponseError(
                "User info response is not valid JSON", **context
            ) from None

        if not isinstance(claims, dict):
            logger.error(f"User info from {self.name} is not a JSON object")
            raise IdentityMalformedResponseError(
                "User info response is not a JSON object", **context
            )

        user_id = self.extract_user_id(claims)
        return NormalizedIdentity(user_id=user_id, provider=self.name, raw_claims=claims)

    async def _get_user_info(self, endpoint: str, access_token: str) -> httpx.Response:
        """GET the user info endpoint, retrying transient failures."""
        headers = self.user_info_headers(access_token)
        attempts = self._identity_retries + 1

        for attempt in range(1, attempts + 1):
            try:
                response = await self._http_client.get(endpoint, headers=headers)
            except httpx.TransportError as e:
                if attempt == attempts:
                    logger.error(
                        f"User info request to {self.name} failed at {endpoint}: "
                        f"{type(e).__name__}"
                    )
                    raise IdentityTransportError(
                        f"HTTP error during user info request: {type(e).__name__}",
                        provider=self.name,
                        endpoint=endpoint,
                    ) from e
                logger.warning(
                    f"User info request to {self.name} failed with "
                    f"{type(e).__name__}, retrying ({attempt}/{attempts})"
                )
            except httpx.HTTPError as e:
                logger.error(
                    f"User info request to {self.name} failed at {endpoint}: "
                    f"{type(e).__name__}"
                )
                raise IdentityTransportError(
                    f"HTTP error during user info request: {type(e).__name__}",
                    provider=self.name,
                    endpoint=endpoint,
                ) from e
            else:
                if response.status_code not in RETRYABLE_STATUS_CODES or (
                    attempt == attempts
                ):
                    return response
                logger.warning(
                    f"User info endpoint of {self.name} returned "
                    f"{response.status_code}, retrying ({attempt}/{attempts})"
                )

            await asyncio.sleep(self._retry_backoff * attempt)

        raise AssertionError("unreachable")

    def user_info_headers(self, access_token: str) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {access_token}",
            "Accept": "application/json",
            "User-Agent": USER_AGENT,
        }

    @abstractmethod
    def extract_user_id(self, claims: dict[str, Any]) -> str:
        """Pick the stable user identifier out of the user info payload."""
        ...

    # ================================
    # Helpers for variants
    # ================================

    def _missing(self, field_name: str) -> MissingIdentityFieldError:
        logger.error(f"User info from {self.name} has no usable {field_name!r}")
        return MissingIdentityFieldError(
            f"User info response has no usable {field_name!r} field",
            provider=self.name,
            endpoint=self._descriptor.user_info_url,
        )

    def _require_string(self, claims: dict[str, Any], field_name: str) -> str:
        value = claims.get(field_name)
        if not isinstance(value, str) or not value:
            raise self._missing(field_name)
        return value

    def _require_identifier(self, claims: dict[str, Any], field_name: str) -> str:
        """Accept numeric or string identifiers, returning them as strings."""
        value = claims.get(field_name)
        if isinstance(value, bool):
            raise self._missing(field_name)
        if isinstance(value, int):
            return str(value)
        if isinstance(value, str) and value:
            return value
        raise self._missing(field_name)
