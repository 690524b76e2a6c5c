"""Spotify identity provider. Uses the Spotify user ``id`` from ``/v1/me``."""

from __future__ import annotations

from typing import Any

from passage.auth.providers.base import ProviderClient


class SpotifyProvider(ProviderClient):
    kind = "spotify"
    default_scopes = ("user-read-email",)

    def extract_user_id(self, claims: dict[str, Any]) -> str:
        return self._require_string(claims, "id")
