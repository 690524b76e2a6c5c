"""Token exchange models.

Contains the token endpoint request and the provider's token response.
Tokens are transient: the relay uses the access token once to read the user
identity and never stores it.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from pydantic import BaseModel, ConfigDict, Field


@dataclass(frozen=True)
class TokenRequest:
    """Token exchange request parameters (RFC 6749 Section 4.1.3).

    Includes the PKCE code_verifier (RFC 7636). The client secret is only
    placed in the form body when ``include_client_secret`` is set; otherwise
    the caller presents it with HTTP Basic authentication.
    """

    # Required fields first
    token_endpoint: str
    code: str = field(repr=False)
    redirect_uri: str
    client_id: str
    client_secret: str = field(repr=False)
    code_verifier: str = field(repr=False)  # RFC 7636 PKCE

    # Optional fields with defaults last
    grant_type: str = "authorization_code"
    include_client_secret: bool = True

    def to_form_data(self) -> dict[str, str]:
        """Convert to form data for application/x-www-form-urlencoded request.

        Token requests must use form encoding, not JSON (RFC 6749 Section 4.1.3).

        Returns:
            Dictionary suitable for httpx data parameter
        """
        data = {
            "grant_type": self.grant_type,
            "code": self.code,
            "redirect_uri": self.redirect_uri,
            "client_id": self.client_id,
            "code_verifier": self.code_verifier,
        }

        if self.include_client_secret:
            data["client_secret"] = self.client_secret

        return data


class TokenResponse(BaseModel):
    """Successful token response (RFC 6749 Section 5.1).

    Provider-specific extras (``id_token``, ``scope`` formats and so on) are
    ignored.
    """

    model_config = ConfigDict(extra="ignore")

    access_token: str = Field(min_length=1)
    token_type: str = "Bearer"
    expires_in: int | None = None  # Seconds until expiry
    refresh_token: str | None = None
    scope: str | None = None

    def __repr__(self) -> str:
        return (
            f"TokenResponse(token_type={self.token_type!r}, "
            f"expires_in={self.expires_in!r}, scope={self.scope!r})"
        )

    __str__ = __repr__
