"""Factory for creating provider adapters."""

import logging
from typing import Optional

import requests

from .apify_adapter import ACTORS, ApifyActorAdapter
from .base_adapter import ProviderAdapter
from .config import AppSettings

logger = logging.getLogger(__name__)

# Provider id -> platform whose roster handle it consumes
PROVIDER_PLATFORMS: dict[str, str] = {
    "spotify": "spotify",
    **{provider_id: spec.platform for provider_id, spec in ACTORS.items()},
}


def create_adapters(
    settings: AppSettings,
    http_logging: bool = False,
    session: Optional[requests.Session] = None,
) -> list[ProviderAdapter]:
    """Create adapters for every configured provider, in priority order.

    Providers whose credentials are missing are skipped with a log line.

    Args:
        settings: Application settings.
        http_logging: Log every provider HTTP call with timing.
        session: Shared HTTP session for the Apify adapters.

    Raises:
        ValueError: If the priority list names an unknown provider.
    """
    if http_logging:
        from .http_logging import patch_requests_session, setup_http_logging

        setup_http_logging()

    adapters: list[ProviderAdapter] = []
    apify_session = session

    for provider_id in settings.ingestion.provider_priority:
        if provider_id == "spotify":
            if not settings.spotify.enabled:
                logger.info("Spotify provider disabled - no client credentials")
                continue
            from .spotify_adapter import SpotifyAdapter

            adapter = SpotifyAdapter(settings=settings.spotify)
            if http_logging:
                from .http_logging import patch_spotipy_client

                patch_spotipy_client(adapter._client)
            adapters.append(adapter)

        elif provider_id in ACTORS:
            if not settings.apify.enabled:
                logger.info(f"{provider_id} provider disabled - no Apify token")
                continue
            if apify_session is None:
                apify_session = requests.Session()
                if http_logging:
                    apify_session = patch_requests_session(apify_session)
            adapters.append(
                ApifyActorAdapter(ACTORS[provider_id], settings.apify, session=apify_session)
            )

        else:
            raise ValueError(f"Unknown provider: {provider_id}")

    logger.info(f"Providers in priority order: {[a.provider_id for a in adapters]}")
    return adapters
