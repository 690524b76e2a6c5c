"""Google identity provider.

Uses the OpenID Connect userinfo endpoint. The user identifier is the email
address, which Google only vouches for when ``email_verified`` is true, so an
explicitly unverified address is rejected rather than trusted.
"""

from __future__ import annotations

from typing import Any

from passage.auth.providers.base import ProviderClient


class GoogleProvider(ProviderClient):
    kind = "google"
    default_scopes = ("openid", "email")

    def extract_user_id(self, claims: dict[str, Any]) -> str:
        email = self._require_string(claims, "email")
        if claims.get("email_verified") is False:
            raise self._missing("email_verified")
        return email
