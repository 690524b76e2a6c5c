"""PKCE (Proof Key for Code Exchange) primitives.

Implements RFC 7636 S256 parameter generation. Every flow
gets a fresh pair so an intercepted authorization code is useless without the
verifier held by this server.
"""

from __future__ import annotations

import base64
import hashlib
import secrets
import string

from passage.auth.models.security import PKCEParameters

VERIFIER_ALPHABET = string.ascii_letters + string.digits + "-._~"
VERIFIER_LENGTH = 128


class PKCEManager:
    """Generates PKCE parameters.

    This implementation follows RFC 7636 requirements:
    - Uses S256 code challenge method (SHA256 + base64url)
    - Generates cryptographically secure code verifiers
    """

    def generate_parameters(self) -> PKCEParameters:
        """Generate a new verifier/challenge pair.

        Returns:
            PKCEParameters: Immutable parameters for one authorization flow
        """
        code_verifier = self._generate_code_verifier()
        return PKCEParameters(
            code_verifier=code_verifier,
            code_challenge=compute_code_challenge(code_verifier),
            code_challenge_method="S256",
        )

    def _generate_code_verifier(self) -> str:
        """Generate a cryptographically secure code verifier.

        RFC 7636 Section 4.1: code verifier must be 43-128 characters long
        and use only unreserved characters:
            [A-Z] / [a-z] / [0-9] / "-" / "." / "_" / "~"

        Returns:
            A 128-character code verifier (about 770 bits of entropy)
        """
        return "".join(
            secrets.choice(VERIFIER_ALPHABET) for _ in range(VERIFIER_LENGTH)
        )


def compute_code_challenge(code_verifier: str) -> str:
    """Derive the S256 code challenge for a verifier.

    RFC 7636 Section 4.2: BASE64URL-ENCODE(SHA256(ASCII(code_verifier)))
    with the trailing padding stripped.
    """
    digest = hashlib.sha256(code_verifier.encode("ascii")).digest()
    return base64.urlsafe_b64encode(digest).decode("ascii").rstrip("=")
