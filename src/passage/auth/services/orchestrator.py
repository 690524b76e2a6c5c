"""Authorization flow orchestration.

Drives one login attempt through its phases:

    ISSUED -> CONSUMED -> COMPLETED | FAILED

``authorize`` issues a flow and returns the provider redirect. ``callback``
consumes the flow (the CSRF and replay defense), exchanges the code with the
PKCE verifier bound to that flow, and normalizes the user identity. Internal
errors are translated into FlowError categories here, and nowhere else.
"""

from __future__ import annotations

import logging
from typing import Protocol

from passage.auth.models.errors import (
    AuthorizationDeniedError,
    ErrorCategory,
    FlowCapacityError,
    FlowError,
    ProviderError,
    RelayError,
    StateError,
    StateExpiredError,
    UnknownProviderError,
)
from passage.auth.models.flow import AuthorizationResponse, FlowPhase, FlowState
from passage.auth.models.identity import NormalizedIdentity
from passage.auth.services.flow_store import FlowStateStore
from passage.auth.services.registry import ProviderRegistry
from passage.auth.services.security import fingerprint

logger = logging.getLogger(__name__)


class SessionAdapter(Protocol):
    """Persists an application session for an authenticated identity.

    Implementations decide where sessions live; the orchestrator only
    hands over the identity once a flow completes.
    """

    async def establish(self, identity: NormalizedIdentity) -> None: ...


class FlowOrchestrator:
    """Coordinates the registry, the flow store and the provider clients."""

    def __init__(self, registry: ProviderRegistry, flow_store: FlowStateStore):
        self._registry = registry
        self._flow_store = flow_store

    @property
    def registry(self) -> ProviderRegistry:
        return self._registry

    async def authorize(self, provider_name: str) -> str:
        """Start a flow and return the URL to redirect the browser to.

        The provider is resolved before anything is stored, so an unknown
        name leaves no state behind and makes no network call.

        Raises:
            FlowError: ``unknown_provider`` if the name is not registered,
                ``temporarily_unavailable`` if too many flows are pending
        """
        try:
            provider = self._registry.lookup(provider_name)
        except UnknownProviderError as e:
            logger.warning(f"Authorization requested for unknown provider {provider_name!r}")
            raise FlowError(e.category) from e

        try:
            flow_state = await self._flow_store.issue(provider.name)
        except FlowCapacityError as e:
            raise FlowError(e.category) from e

        authorization_url = provider.build_authorization_url(
            flow_state.csrf_token, flow_state.code_challenge
        )

        logger.info(
            f"Flow {fingerprint(flow_state.csrf_token)} {FlowPhase.ISSUED.value} "
            f"for {provider.name}"
        )
        return authorization_url

    async def callback(
        self,
        code: str | None,
        state: str | None,
        *,
        error: str | None = None,
        session: SessionAdapter | None = None,
    ) -> NormalizedIdentity:
        """Complete a flow from the provider's callback parameters."""
        return await self.handle_callback(
            AuthorizationResponse(code=code, state=state, error=error),
            session=session,
        )

    async def handle_callback(
        self,
        response: AuthorizationResponse,
        *,
        session: SessionAdapter | None = None,
    ) -> NormalizedIdentity:
        """Complete a flow.

        Args:
            response: Parameters the provider redirected back with
            session: Optional adapter that receives the identity on success

        Returns:
            NormalizedIdentity: The authenticated user

        Raises:
            FlowError: With the outward category; the internal error is
                chained as ``__cause__``
        """
        if not response.state:
            logger.warning("Callback without state parameter rejected")
            raise FlowError(ErrorCategory.INVALID_STATE)

        flow_id = fingerprint(response.state)

        try:
            flow_state = await self._flow_store.consume(response.state)
        except StateError as e:
            reason = "expired" if isinstance(e, StateExpiredError) else "unknown or reused"
            logger.warning(f"Callback with {reason} state {flow_id} rejected")
            raise FlowError(e.category) from e

        logger.debug(f"Flow {flow_id} {FlowPhase.CONSUMED.value} for {flow_state.provider_name}")

        try:
            identity = await self._complete(flow_state, response)
            if session is not None:
                await session.establish(identity)
        except RelayError as e:
            self._log_failure(flow_id, flow_state.provider_name, e)
            raise FlowError(e.category) from e

        logger.info(
            f"Flow {flow_id} {FlowPhase.COMPLETED.value} for {identity.provider}"
        )
        return identity

    async def _complete(
        self, flow_state: FlowState, response: AuthorizationResponse
    ) -> NormalizedIdentity:
        # Only the provider bound to the validated state is trusted.
        provider = self._registry.lookup(flow_state.provider_name)

        if response.is_error():
            description = (response.error_description or "")[:200]
            logger.warning(
                f"{provider.name} denied authorization with {response.error!r}: "
                f"{description or 'no description'!r}"
            )
            raise AuthorizationDeniedError(f"Provider returned error {response.error!r}")
        if not response.code:
            raise AuthorizationDeniedError("Callback is missing the authorization code")

        token = await provider.exchange_code(response.code, flow_state.pkce_verifier)
        return await provider.fetch_identity(token.access_token)

    def _log_failure(self, flow_id: str, provider_name: str, error: RelayError) -> None:
        phase = FlowPhase.FAILED.value
        if isinstance(error, ProviderError):
            logger.warning(
                f"Flow {flow_id} {phase} for {provider_name}: "
                f"{type(error).__name__} at {error.endpoint} "
                f"(status {error.status_code})"
            )
        else:
            logger.warning(
                f"Flow {flow_id} {phase} for {provider_name}: {type(error).__name__}"
            )
