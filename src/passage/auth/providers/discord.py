"""Discord identity provider.

Uses the snowflake ``id`` from ``/users/@me``; usernames are not unique
over time.
"""

from __future__ import annotations

from typing import Any

from passage.auth.providers.base import ProviderClient


class DiscordProvider(ProviderClient):
    kind = "discord"
    default_scopes = ("identify",)

    def extract_user_id(self, claims: dict[str, Any]) -> str:
        return self._require_identifier(claims, "id")
