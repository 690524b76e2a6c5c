"""The closed set of provider variants, keyed by kind."""

from __future__ import annotations

from passage.auth.providers.base import ProviderClient
from passage.auth.providers.discord import DiscordProvider
from passage.auth.providers.github import GithubProvider
from passage.auth.providers.google import GoogleProvider
from passage.auth.providers.spotify import SpotifyProvider
from passage.auth.providers.twitter import TwitterProvider

PROVIDER_VARIANTS: dict[str, type[ProviderClient]] = {
    variant.kind: variant
    for variant in (
        GoogleProvider,
        GithubProvider,
        TwitterProvider,
        DiscordProvider,
        SpotifyProvider,
    )
}
