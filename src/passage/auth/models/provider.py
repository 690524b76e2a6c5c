"""Static provider configuration."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from passage.auth.services.security import is_absolute_http_url, validate_redirect_uri


class TokenAuthMethod(str, Enum):
    """How client credentials are presented at the token endpoint."""

    CLIENT_SECRET_POST = "client_secret_post"
    CLIENT_SECRET_BASIC = "client_secret_basic"


@dataclass(frozen=True)
class ProviderDescriptor:
    """Immutable configuration for one identity provider.

    ``kind`` selects the provider variant and defaults to ``name``, so a
    second Google tenant can be registered as ``name="google-work",
    kind="google"``. Empty ``scopes`` and a ``None`` token auth method mean
    "use the variant's defaults".
    """

    name: str
    client_id: str
    client_secret: str = field(repr=False)
    auth_url: str
    token_url: str
    user_info_url: str
    redirect_uri: str
    scopes: tuple[str, ...] = ()
    kind: str = ""
    token_auth_method: TokenAuthMethod | None = None

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("Provider name must not be empty")
        if not self.kind:
            object.__setattr__(self, "kind", self.name)
        if not self.client_id:
            raise ValueError(f"{self.name}: client_id must not be empty")
        for attr in ("auth_url", "token_url", "user_info_url"):
            if not is_absolute_http_url(getattr(self, attr)):
                raise ValueError(f"{self.name}: {attr} must be an absolute http(s) URL")
        if not validate_redirect_uri(self.redirect_uri):
            raise ValueError(
                f"{self.name}: redirect_uri must use HTTPS or a loopback host"
            )
        object.__setattr__(self, "scopes", tuple(self.scopes))
