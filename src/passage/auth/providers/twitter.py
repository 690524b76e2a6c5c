"""Twitter (X) identity provider.

The ``/2/users/me`` endpoint wraps the user in a ``data`` object. The numeric
user ``id`` is used because usernames can be changed and later reclaimed by
somebody else. Twitter requires confidential clients to authenticate to the
token endpoint with HTTP Basic credentials.
"""

from __future__ import annotations

from typing import Any

from passage.auth.models.provider import TokenAuthMethod
from passage.auth.providers.base import ProviderClient


class TwitterProvider(ProviderClient):
    kind = "twitter"
    default_scopes = ("users.read", "tweet.read")
    default_token_auth_method = TokenAuthMethod.CLIENT_SECRET_BASIC

    def extract_user_id(self, claims: dict[str, Any]) -> str:
        data = claims.get("data")
        user_id = data.get("id") if isinstance(data, dict) else None
        if not isinstance(user_id, str) or not user_id:
            raise self._missing("data.id")
        return user_id
