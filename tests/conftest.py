from typing import Any
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from passage.auth.models.provider import ProviderDescriptor

PROVIDER_ENDPOINTS = {
    "google": (
        "https://accounts.google.com/o/oauth2/v2/auth",
        "https://oauth2.googleapis.com/token",
        "https://openidconnect.googleapis.com/v1/userinfo",
    ),
    "github": (
        "https://github.com/login/authorize",
        "https://github.com/login/oauth/access_token",
        "https://api.github.com/user",
    ),
    "twitter": (
        "https://twitter.com/i/oauth2/authorize",
        "https://api.twitter.com/2/oauth2/token",
        "https://api.twitter.com/2/users/me",
    ),
    "discord": (
        "https://discord.com/oauth2/authorize",
        "https://discord.com/api/oauth2/token",
        "https://discord.com/api/users/@me",
    ),
    "spotify": (
        "https://accounts.spotify.com/authorize",
        "https://accounts.spotify.com/api/token",
        "https://api.spotify.com/v1/me",
    ),
}


@pytest.fixture
def make_descriptor():
    """Factory for provider descriptors pointing at the real provider URLs."""

    def _make(name: str = "google", kind: str | None = None, **overrides: Any):
        auth_url, token_url, user_info_url = PROVIDER_ENDPOINTS[kind or name]
        fields = {
            "name": name,
            "kind": kind or name,
            "client_id": f"{name}-client-id",
            "client_secret": f"{name}-client-secret",
            "auth_url": auth_url,
            "token_url": token_url,
            "user_info_url": user_info_url,
            "redirect_uri": "http://localhost:8080/callback",
        }
        fields.update(overrides)
        return ProviderDescriptor(**fields)

    return _make


@pytest.fixture
def mock_http_client():
    return AsyncMock(spec=httpx.AsyncClient)


@pytest.fixture
def make_response():
    """Factory for mocked httpx responses.

    Pass ``json_data=ValueError`` to simulate a body that is not JSON.
    """

    def _make(status_code: int = 200, json_data: Any = None):
        response = MagicMock(spec=httpx.Response)
        response.status_code = status_code
        if json_data is ValueError:
            response.json.side_effect = ValueError("Expecting value")
        else:
            response.json.return_value = json_data
        return response

    return _make
