"""Application session backed by Starlette's signed cookie session."""

from __future__ import annotations

import time

from starlette.requests import Request

from passage.auth.models.identity import NormalizedIdentity

SESSION_IDENTITY_KEY = "identity"


class CookieSessionAdapter:
    """Stores the authenticated identity in the request's session cookie.

    Only the identifier and provider are kept: cookies are size-limited and
    readable by the client (signed, not encrypted).
    """

    def __init__(self, request: Request):
        self._request = request

    async def establish(self, identity: NormalizedIdentity) -> None:
        self._request.session.clear()
        self._request.session[SESSION_IDENTITY_KEY] = {
            **identity.summary(),
            "authenticated_at": int(time.time()),
        }
