"""Tests for the flow orchestrator state machine and its error boundary."""

from unittest.mock import AsyncMock
from urllib.parse import parse_qs, urlparse

import httpx
import pytest

from passage.auth.models.errors import (
    AuthorizationDeniedError,
    ErrorCategory,
    ExchangeTransportError,
    FlowCapacityError,
    FlowError,
    InvalidGrantError,
    MissingIdentityFieldError,
    StateNotFoundError,
    UnknownProviderError,
)
from passage.auth.models.flow import AuthorizationResponse
from passage.auth.primitives.pkce import compute_code_challenge
from passage.auth.services.flow_store import InMemoryFlowStateStore
from passage.auth.services.orchestrator import FlowOrchestrator
from passage.auth.services.registry import ProviderRegistry

GOOGLE_USERINFO = {"sub": "1", "email": "user@example.com", "email_verified": True}


@pytest.fixture
def store():
    return InMemoryFlowStateStore(ttl=300)


@pytest.fixture
def orchestrator(make_descriptor, mock_http_client, store):
    registry = ProviderRegistry.from_descriptors(
        [make_descriptor("google"), make_descriptor("github")],
        mock_http_client,
        identity_retries=0,
    )
    return FlowOrchestrator(registry, store)


async def start_flow(orchestrator, provider: str = "google") -> str:
    url = await orchestrator.authorize(provider)
    return parse_qs(urlparse(url).query)["state"][0]


class TestAuthorize:
    async def test_returns_provider_url_bound_to_stored_flow(
        self, orchestrator, store, mock_http_client
    ):
        # Act
        url = await orchestrator.authorize("google")

        # Assert
        parsed = urlparse(url)
        query = parse_qs(parsed.query)
        assert parsed.netloc == "accounts.google.com"
        assert query["client_id"] == ["google-client-id"]
        assert query["redirect_uri"] == ["http://localhost:8080/callback"]
        assert query["code_challenge_method"] == ["S256"]
        assert len(query["state"][0]) >= 32

        flow_state = await store.consume(query["state"][0])
        assert flow_state.code_challenge == query["code_challenge"][0]
        assert flow_state.pkce_verifier not in url
        mock_http_client.post.assert_not_awaited()
        mock_http_client.get.assert_not_awaited()

    async def test_unknown_provider_leaves_no_state(
        self, orchestrator, store, mock_http_client
    ):
        with pytest.raises(FlowError) as exc_info:
            await orchestrator.authorize("unknown_provider")

        assert exc_info.value.category is ErrorCategory.UNKNOWN_PROVIDER
        assert isinstance(exc_info.value.__cause__, UnknownProviderError)
        assert len(store) == 0
        mock_http_client.post.assert_not_awaited()
        mock_http_client.get.assert_not_awaited()

    async def test_full_store_is_temporarily_unavailable(
        self, make_descriptor, mock_http_client
    ):
        # Arrange
        registry = ProviderRegistry.from_descriptors(
            [make_descriptor("google")], mock_http_client
        )
        store = InMemoryFlowStateStore(ttl=300, max_entries=1)
        orchestrator = FlowOrchestrator(registry, store)
        pending_state = await start_flow(orchestrator)

        # Act
        with pytest.raises(FlowError) as exc_info:
            await orchestrator.authorize("google")

        # Assert
        assert exc_info.value.category is ErrorCategory.TEMPORARILY_UNAVAILABLE
        assert exc_info.value.status_code == 503
        assert isinstance(exc_info.value.__cause__, FlowCapacityError)
        assert (await store.consume(pending_state)).provider_name == "google"


class TestCallback:
    async def test_success_returns_identity_and_establishes_session(
        self, orchestrator, mock_http_client, make_response
    ):
        # Arrange
        state = await start_flow(orchestrator)
        mock_http_client.post.return_value = make_response(
            200, {"access_token": "at-123", "token_type": "Bearer"}
        )
        mock_http_client.get.return_value = make_response(200, GOOGLE_USERINFO)
        session = AsyncMock()

        # Act
        identity = await orchestrator.callback("abc123", state, session=session)

        # Assert
        assert identity.user_id == "user@example.com"
        assert identity.provider == "google"
        session.establish.assert_awaited_once_with(identity)
        get_headers = mock_http_client.get.call_args[1]["headers"]
        assert get_headers["Authorization"] == "Bearer at-123"

    async def test_exchange_uses_verifier_of_the_consumed_flow(
        self, orchestrator, mock_http_client, make_response
    ):
        # Arrange
        url = await orchestrator.authorize("github")
        query = parse_qs(urlparse(url).query)
        mock_http_client.post.return_value = make_response(200, {"access_token": "at"})
        mock_http_client.get.return_value = make_response(200, {"id": 1, "login": "x"})

        # Act
        identity = await orchestrator.callback("abc123", query["state"][0])

        # Assert
        form_data = mock_http_client.post.call_args[1]["data"]
        assert compute_code_challenge(form_data["code_verifier"]) == (
            query["code_challenge"][0]
        )
        assert mock_http_client.post.call_args[0][0] == (
            "https://github.com/login/oauth/access_token"
        )
        assert identity.provider == "github"

    async def test_missing_state_is_invalid_state(self, orchestrator):
        with pytest.raises(FlowError) as exc_info:
            await orchestrator.callback("abc123", None)

        assert exc_info.value.category is ErrorCategory.INVALID_STATE

    async def test_replayed_state_is_rejected(
        self, orchestrator, mock_http_client, make_response
    ):
        # Arrange
        state = await start_flow(orchestrator)
        mock_http_client.post.return_value = make_response(200, {"access_token": "at"})
        mock_http_client.get.return_value = make_response(200, GOOGLE_USERINFO)
        await orchestrator.callback("abc123", state)

        # Act / Assert
        with pytest.raises(FlowError) as exc_info:
            await orchestrator.callback("abc123", state)

        assert exc_info.value.category is ErrorCategory.INVALID_STATE
        assert isinstance(exc_info.value.__cause__, StateNotFoundError)
        assert mock_http_client.post.await_count == 1

    async def test_provider_error_consumes_state(
        self, orchestrator, store, mock_http_client
    ):
        state = await start_flow(orchestrator)

        with pytest.raises(FlowError) as exc_info:
            await orchestrator.callback(None, state, error="access_denied")

        assert exc_info.value.category is ErrorCategory.AUTHORIZATION_FAILED
        assert isinstance(exc_info.value.__cause__, AuthorizationDeniedError)
        assert len(store) == 0
        mock_http_client.post.assert_not_awaited()

    async def test_provider_error_description_is_logged(self, orchestrator, caplog):
        state = await start_flow(orchestrator)
        response = AuthorizationResponse(
            state=state,
            error="access_denied",
            error_description="The user denied access",
        )

        with caplog.at_level("WARNING"):
            with pytest.raises(FlowError):
                await orchestrator.handle_callback(response)

        assert "access_denied" in caplog.text
        assert "The user denied access" in caplog.text

    async def test_missing_code_fails_flow(self, orchestrator, store):
        state = await start_flow(orchestrator)

        with pytest.raises(FlowError) as exc_info:
            await orchestrator.callback(None, state)

        assert exc_info.value.category is ErrorCategory.AUTHORIZATION_FAILED
        with pytest.raises(StateNotFoundError):
            await store.consume(state)

    async def test_rejected_code_is_authorization_failed(
        self, orchestrator, mock_http_client, make_response
    ):
        state = await start_flow(orchestrator)
        mock_http_client.post.return_value = make_response(
            400, {"error": "invalid_grant", "error_description": "Bad code"}
        )
        session = AsyncMock()

        with pytest.raises(FlowError) as exc_info:
            await orchestrator.callback("abc123", state, session=session)

        assert exc_info.value.category is ErrorCategory.AUTHORIZATION_FAILED
        assert exc_info.value.status_code == 400
        assert isinstance(exc_info.value.__cause__, InvalidGrantError)
        assert "Bad code" not in str(exc_info.value)
        session.establish.assert_not_awaited()

    async def test_transport_failure_is_provider_unavailable(
        self, orchestrator, mock_http_client
    ):
        state = await start_flow(orchestrator)
        mock_http_client.post.side_effect = httpx.ConnectError("refused")

        with pytest.raises(FlowError) as exc_info:
            await orchestrator.callback("abc123", state)

        assert exc_info.value.category is ErrorCategory.PROVIDER_UNAVAILABLE
        assert exc_info.value.status_code == 502
        assert isinstance(exc_info.value.__cause__, ExchangeTransportError)

    async def test_missing_identity_field_is_provider_error(
        self, orchestrator, mock_http_client, make_response
    ):
        state = await start_flow(orchestrator)
        mock_http_client.post.return_value = make_response(200, {"access_token": "at"})
        mock_http_client.get.return_value = make_response(200, {"sub": "1"})

        with pytest.raises(FlowError) as exc_info:
            await orchestrator.callback("abc123", state)

        assert exc_info.value.category is ErrorCategory.PROVIDER_ERROR
        assert isinstance(exc_info.value.__cause__, MissingIdentityFieldError)

    async def test_failed_flow_leaves_store_serviceable(
        self, orchestrator, mock_http_client, make_response
    ):
        # Arrange
        failed_state = await start_flow(orchestrator)
        mock_http_client.post.side_effect = httpx.ConnectError("refused")
        with pytest.raises(FlowError):
            await orchestrator.callback("abc123", failed_state)

        # Act
        mock_http_client.post.side_effect = None
        mock_http_client.post.return_value = make_response(200, {"access_token": "at"})
        mock_http_client.get.return_value = make_response(200, GOOGLE_USERINFO)
        state = await start_flow(orchestrator)
        identity = await orchestrator.callback("abc123", state)

        # Assert
        assert identity.user_id == "user@example.com"

    async def test_error_messages_never_contain_secrets(
        self, orchestrator, store, mock_http_client, make_response, caplog
    ):
        url = await orchestrator.authorize("google")
        state = parse_qs(urlparse(url).query)["state"][0]
        mock_http_client.post.return_value = make_response(200, {"access_token": "at-999"})
        mock_http_client.get.return_value = make_response(500, ValueError)

        with caplog.at_level("DEBUG"):
            with pytest.raises(FlowError) as exc_info:
                await orchestrator.callback("abc123", state)

        for text in (str(exc_info.value), caplog.text):
            assert "at-999" not in text
            assert "google-client-secret" not in text
            assert state not in text
