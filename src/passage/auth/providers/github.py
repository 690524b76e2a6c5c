"""GitHub identity provider.

GitHub has no guaranteed public email (users may hide it, and it can change),
so the immutable numeric account ``id`` is used as the user identifier. The
``login`` is still available in the raw claims.
"""

from __future__ import annotations

from typing import Any

from passage.auth.providers.base import USER_AGENT, ProviderClient


class GithubProvider(ProviderClient):
    kind = "github"
    default_scopes = ("read:user", "user:email")

    def user_info_headers(self, access_token: str) -> dict[str, str]:
        # The REST API rejects requests without a User-Agent.
        return {
            "Authorization": f"Bearer {access_token}",
            "Accept": "application/vnd.github+json",
            "User-Agent": USER_AGENT,
        }

    def extract_user_id(self, claims: dict[str, Any]) -> str:
        return self._require_identifier(claims, "id")
