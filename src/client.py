"""Steam client factory for scrapwatch.

The transport builds the client on its own gevent thread, so this module
only knows how to configure a fresh SteamClient.
"""

from __future__ import annotations

import logging
import os

from dotenv import load_dotenv
from steam.client import SteamClient

import settings
from adapters.steam_transport import SteamTransport


def build_client() -> SteamClient:
    """Create a SteamClient, storing login sentry files if configured.

    STEAM_CREDENTIAL_DIR lets credentialed logons reuse sentry data between
    restarts instead of prompting for a new guard code.
    """

    load_dotenv()

    client = SteamClient()
    credential_dir = os.getenv("STEAM_CREDENTIAL_DIR")
    if credential_dir:
        os.makedirs(credential_dir, exist_ok=True)
        client.set_credential_location(credential_dir)

    logging.getLogger(__name__).info("Initializing Steam client")
    return client


def build_transport() -> SteamTransport:
    return SteamTransport(
        client_factory=build_client,
        connect_retries=settings.CONNECT_RETRIES,
        request_timeout=settings.REQUEST_TIMEOUT_SECONDS,
    )
