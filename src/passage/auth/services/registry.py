"""Provider registry.

Built once at startup, then frozen. After ``freeze`` the registry is only
read, so concurrent lookups need no locking.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

import httpx

from passage.auth.models.errors import UnknownProviderError
from passage.auth.models.provider import ProviderDescriptor
from passage.auth.providers.base import ProviderClient
from passage.auth.providers.variants import PROVIDER_VARIANTS

logger = logging.getLogger(__name__)


class ProviderRegistry:
    """Maps provider names to their ProviderClient."""

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        *,
        identity_retries: int = 2,
    ) -> None:
        self._http_client = http_client
        self._identity_retries = identity_retries
        self._clients: dict[str, ProviderClient] = {}
        self._frozen = False

    @classmethod
    def from_descriptors(
        cls,
        descriptors: Iterable[ProviderDescriptor],
        http_client: httpx.AsyncClient,
        *,
        identity_retries: int = 2,
    ) -> ProviderRegistry:
        """Build a registry from descriptors and freeze it."""
        registry = cls(http_client, identity_retries=identity_retries)
        for descriptor in descriptors:
            registry.register(descriptor.name, descriptor)
        registry.freeze()
        return registry

    # ================================
    # Registration
    # ================================

    def register(self, name: str, descriptor: ProviderDescriptor) -> ProviderClient:
        """Register a provider under ``name``.

        The variant is chosen by ``descriptor.kind``.

        Raises:
            RuntimeError: If the registry is frozen
            ValueError: On duplicate names or unsupported kinds
        """
        if self._frozen:
            raise RuntimeError("Provider registry is frozen")
        if name in self._clients:
            raise ValueError(f"Provider {name!r} is already registered")
        if name != descriptor.name:
            raise ValueError(
                f"Provider name {name!r} does not match descriptor {descriptor.name!r}"
            )

        variant = PROVIDER_VARIANTS.get(descriptor.kind)
        if variant is None:
            supported = ", ".join(sorted(PROVIDER_VARIANTS))
            raise ValueError(
                f"Unsupported provider kind {descriptor.kind!r} for {name!r} "
                f"(supported: {supported})"
            )

        client = variant(
            descriptor, self._http_client, identity_retries=self._identity_retries
        )
        self._clients[name] = client
        logger.debug(f"Registered provider {name} ({descriptor.kind})")
        return client

    def freeze(self) -> None:
        self._frozen = True
        logger.info(f"Provider registry ready: {', '.join(self.names()) or 'empty'}")

    @property
    def frozen(self) -> bool:
        return self._frozen

    # ================================
    # Access
    # ================================

    def lookup(self, name: str) -> ProviderClient:
        """Resolve a provider name.

        Raises:
            UnknownProviderError: If no provider is registered under ``name``
        """
        client = self._clients.get(name)
        if client is None:
            raise UnknownProviderError(name)
        return client

    def names(self) -> list[str]:
        return list(self._clients)

    def __contains__(self, name: object) -> bool:
        return name in self._clients

    def __len__(self) -> int:
        return len(self._clients)
