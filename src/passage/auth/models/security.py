"""Security-related models for the authorization relay.

Contains the PKCE verifier/challenge pair generated for every flow.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

UNRESERVED_CHARACTERS = re.compile(r"^[A-Za-z0-9\-._~]+$")


@dataclass(frozen=True)
class PKCEParameters:
    """PKCE (Proof Key for Code Exchange) parameters (RFC 7636).

    Immutable parameters generated for each authorization flow. The verifier
    stays server-side until the code exchange; only the challenge is sent to
    the provider.
    """

    code_verifier: str = field(repr=False)
    code_challenge: str = field()
    code_challenge_method: str = field(default="S256")

    def __post_init__(self) -> None:
        """Validate PKCE parameters meet RFC 7636 requirements."""
        if not (43 <= len(self.code_verifier) <= 128):
            raise ValueError("code_verifier must be 43-128 characters")
        if not UNRESERVED_CHARACTERS.match(self.code_verifier):
            raise ValueError("code_verifier must use only unreserved characters")
        if not (43 <= len(self.code_challenge) <= 128):
            raise ValueError("code_challenge must be 43-128 characters")
        if self.code_challenge_method != "S256":
            raise ValueError("Only S256 code challenge method is supported")
