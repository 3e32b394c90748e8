"""Static configuration for scrapwatch.

Tracked apps, webhook destinations, and session timings live in a single
JSON file. Secrets (Steam credentials, webhook URLs, bot tokens) come from
the environment, with .env support via python-dotenv.
"""

import json
import logging
import os
from typing import Optional

from dotenv import load_dotenv

from core.config import DEFAULT_HISTORY_URL, Credentials, NotificationConfig, SessionConfig
from core.models import WebhookDestination
from core.registry import DEFAULT_TRACKED_APPS

LOGGER = logging.getLogger(__name__)

load_dotenv()

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))

# SCRAPWATCH_CONFIG overrides the default config.json location.
CONFIG_PATH = os.getenv("SCRAPWATCH_CONFIG", os.path.join(PROJECT_ROOT, "config.json"))


def _load_json_config() -> dict:
    """Load config.json with a flat, user-friendly schema."""

    if not os.path.exists(CONFIG_PATH):
        raise FileNotFoundError(f"Config file not found: {CONFIG_PATH}")

    with open(CONFIG_PATH, "r", encoding="utf-8") as handle:
        return json.load(handle)


def _normalize_apps(raw_apps: Optional[list]) -> dict[int, str]:
    """Build the tracked-app map; fall back to the built-in apps."""

    apps: dict[int, str] = {}
    for entry in raw_apps or []:
        if not isinstance(entry, dict) or "app_id" not in entry:
            LOGGER.warning("Skipping malformed app entry: %r", entry)
            continue
        if not entry.get("enabled", True):
            continue
        app_id = int(entry["app_id"])
        apps[app_id] = str(entry.get("name") or app_id)
    return apps or dict(DEFAULT_TRACKED_APPS)


def _resolve_address(entry: dict) -> str:
    env_name = entry.get("address_env")
    if env_name:
        return os.getenv(env_name, "")
    return str(entry.get("address") or "")


def _normalize_webhooks(raw_webhooks: Optional[list]) -> list[WebhookDestination]:
    """Build destinations in config order.

    Entries with a bad kind or missing address are kept so the failure is
    logged per destination at delivery time.
    """

    destinations: list[WebhookDestination] = []
    for entry in raw_webhooks or []:
        if not isinstance(entry, dict):
            LOGGER.warning("Skipping malformed webhook entry: %r", entry)
            continue
        if not entry.get("enabled", True):
            continue
        channel_id = entry.get("channel_id")
        destinations.append(
            WebhookDestination(
                kind=str(entry.get("kind", "")).strip().lower(),
                address=_resolve_address(entry),
                channel_id=str(channel_id) if channel_id else None,
            )
        )
    return destinations


def _credentials() -> Optional[Credentials]:
    """Return Steam credentials, or None for anonymous logon."""

    username = os.getenv("STEAM_USERNAME")
    password = os.getenv("STEAM_PASSWORD")
    if not username or not password:
        return None
    return Credentials(username=username, password=password)


_CONFIG = _load_json_config()

# Expose the raw config for modules that need structured access.
CONFIG = _CONFIG

TRACKED_APPS = _normalize_apps(_CONFIG.get("apps"))
WEBHOOKS = _normalize_webhooks(_CONFIG.get("webhooks"))

# Session timings.
# - MAX_RECONNECT_DELAY_SECONDS caps the exponential reconnect backoff
# - BACKOFF_BASE_SECONDS is the first reconnect delay, doubled per attempt
# - CALLBACK_WAIT_SECONDS bounds each wait on the event queue
# - REQUEST_TIMEOUT_SECONDS abandons a change request that never answers
_steam = _CONFIG.get("steam", {})
MAX_RECONNECT_DELAY_SECONDS = float(_steam.get("max_reconnect_delay_seconds", 300))
POLL_INTERVAL_SECONDS = float(_steam.get("poll_interval_seconds", 5))
BACKOFF_BASE_SECONDS = float(_steam.get("backoff_base_seconds", 15))
CALLBACK_WAIT_SECONDS = float(_steam.get("callback_wait_seconds", 5))
CONNECT_RETRIES = int(_steam.get("connect_retries", 1))
REQUEST_TIMEOUT_SECONDS = float(_steam.get("request_timeout_seconds", 10))

_notifications = _CONFIG.get("notifications", {})
HISTORY_URL_TEMPLATE = _notifications.get("history_url", DEFAULT_HISTORY_URL)
REVOLT_API_BASE = _notifications.get("revolt_api_base", "https://api.revolt.chat")

# Logging configuration (optional).
LOGGING = _CONFIG.get("logging", {})


def session_config() -> SessionConfig:
    return SessionConfig(
        credentials=_credentials(),
        max_reconnect_delay_seconds=MAX_RECONNECT_DELAY_SECONDS,
        poll_interval_seconds=POLL_INTERVAL_SECONDS,
        backoff_base_seconds=BACKOFF_BASE_SECONDS,
        wait_seconds=CALLBACK_WAIT_SECONDS,
    )


def notification_config() -> NotificationConfig:
    return NotificationConfig(history_url_template=HISTORY_URL_TEMPLATE)
