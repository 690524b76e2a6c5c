"""Runtime configuration for the relay.

Settings are read from, in priority order: keyword arguments, environment
variables (``PASSAGE_`` prefix, ``__`` between nested keys), a ``.env`` file,
and a TOML file (``PASSAGE_CONFIG_FILE``, default ``Settings.toml``)::

    port = 8080

    [providers.google]
    client_id = "..."
    client_secret = "..."
    auth_url = "https://accounts.google.com/o/oauth2/v2/auth"
    token_url = "https://oauth2.googleapis.com/token"
    user_info_url = "https://openidconnect.googleapis.com/v1/userinfo"
    redirect_uri = "http://localhost:8080/callback"
"""

from __future__ import annotations

import os
import secrets

from pydantic import BaseModel, Field, SecretStr
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    TomlConfigSettingsSource,
)

from passage.auth.models.errors import ConfigurationError
from passage.auth.models.provider import ProviderDescriptor, TokenAuthMethod
from passage.auth.providers.variants import PROVIDER_VARIANTS

CONFIG_FILE_ENV = "PASSAGE_CONFIG_FILE"
DEFAULT_CONFIG_FILE = "Settings.toml"


class ProviderSettings(BaseModel):
    """One ``[providers.NAME]`` table."""

    client_id: str
    client_secret: SecretStr
    auth_url: str
    token_url: str
    user_info_url: str
    redirect_uri: str
    kind: str | None = None
    scopes: list[str] | None = None
    token_auth_method: TokenAuthMethod | None = None


class Settings(BaseSettings):
    """Relay settings."""

    model_config = SettingsConfigDict(
        env_prefix="PASSAGE_",
        env_nested_delimiter="__",
        env_file=".env",
        extra="ignore",
    )

    host: str = "0.0.0.0"
    port: int = 8080
    log_level: str = "INFO"

    flow_ttl_seconds: float = Field(default=300.0, gt=0)
    max_pending_flows: int = Field(default=10_000, ge=1)
    eviction_interval_seconds: float = Field(default=60.0, gt=0)

    http_timeout_seconds: float = Field(default=10.0, gt=0)
    identity_retries: int = Field(default=2, ge=0)

    # Signs the application session cookie. A random secret means sessions
    # do not survive a restart.
    session_secret: SecretStr = Field(
        default_factory=lambda: SecretStr(secrets.token_urlsafe(32))
    )
    session_https_only: bool = False

    providers: dict[str, ProviderSettings] = Field(default_factory=dict)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        toml_file = os.getenv(CONFIG_FILE_ENV, DEFAULT_CONFIG_FILE)
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            TomlConfigSettingsSource(settings_cls, toml_file=toml_file),
        )

    def provider_descriptors(self) -> list[ProviderDescriptor]:
        """Build validated descriptors for every configured provider.

        Raises:
            ConfigurationError: If a provider entry is invalid
        """
        descriptors = []
        for name, provider in self.providers.items():
            kind = provider.kind or name
            if kind not in PROVIDER_VARIANTS:
                supported = ", ".join(sorted(PROVIDER_VARIANTS))
                raise ConfigurationError(
                    f"Invalid provider configuration: {name}: unsupported kind "
                    f"{kind!r} (supported: {supported})"
                )
            try:
                descriptors.append(
                    ProviderDescriptor(
                        name=name,
                        kind=kind,
                        client_id=provider.client_id,
                        client_secret=provider.client_secret.get_secret_value(),
                        auth_url=provider.auth_url,
                        token_url=provider.token_url,
                        user_info_url=provider.user_info_url,
                        redirect_uri=provider.redirect_uri,
                        scopes=tuple(provider.scopes or ()),
                        token_auth_method=provider.token_auth_method,
                    )
                )
            except ValueError as e:
                raise ConfigurationError(f"Invalid provider configuration: {e}") from e
        return descriptors
