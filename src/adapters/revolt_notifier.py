"""Revolt chat REST notification adapter.

Each send opens a short-lived REST session authenticated with the bot token
stored as the destination address, resolves the destination channel, and
posts the message there. The session is closed on every exit path.
"""

from __future__ import annotations

import asyncio
import http.client
import json
import logging
from typing import Any, Callable, Optional
from urllib.parse import quote, urlparse

from core.errors import DeliveryError
from core.models import WebhookDestination

LOGGER = logging.getLogger(__name__)

DEFAULT_API_BASE = "https://api.revolt.chat"

ConnectionFactory = Callable[[str, float], http.client.HTTPConnection]


def _default_connection(netloc: str, timeout: float) -> http.client.HTTPConnection:
    return http.client.HTTPSConnection(netloc, timeout=timeout)


class RevoltSession:
    """One authenticated connection to the Revolt REST API."""

    def __init__(
        self,
        token: str,
        api_base: str = DEFAULT_API_BASE,
        timeout: float = 10,
        connection_factory: Optional[ConnectionFactory] = None,
    ) -> None:
        parsed = urlparse(api_base)
        self._prefix = parsed.path.rstrip("/")
        factory = connection_factory or _default_connection
        self._connection = factory(parsed.netloc, timeout)
        self._headers = {
            "X-Bot-Token": token,
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    def __enter__(self) -> "RevoltSession":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def close(self) -> None:
        self._connection.close()

    def request(self, method: str, path: str, payload: Optional[dict] = None) -> tuple[int, Any]:
        """Issue one request and return ``(status, decoded_json_or_None)``."""

        body = json.dumps(payload).encode("utf-8") if payload is not None else None
        try:
            self._connection.request(method, f"{self._prefix}{path}", body=body, headers=self._headers)
            response = self._connection.getresponse()
            raw = response.read()
        except (http.client.HTTPException, OSError) as e:
            raise DeliveryError(f"Revolt request {method} {path} failed: {e}") from e

        if not raw:
            return response.status, None
        try:
            return response.status, json.loads(raw.decode("utf-8"))
        except ValueError:
            return response.status, None

    def authenticate(self) -> dict:
        status, data = self.request("GET", "/users/@me")
        if status in (401, 403):
            raise DeliveryError("Revolt rejected the bot token")
        if not 200 <= status < 300:
            raise DeliveryError(f"Revolt authentication returned status {status}")
        return data or {}

    def get_channel(self, channel_id: str) -> Optional[dict]:
        status, data = self.request("GET", f"/channels/{quote(channel_id, safe='')}")
        if status == 404:
            return None
        if not 200 <= status < 300:
            raise DeliveryError(f"Revolt channel lookup returned status {status}")
        return data or {}

    def send_message(self, channel_id: str, content: str) -> None:
        status, _ = self.request(
            "POST",
            f"/channels/{quote(channel_id, safe='')}/messages",
            {"content": content},
        )
        if not 200 <= status < 300:
            raise DeliveryError(f"Revolt send returned status {status}")


class RevoltNotifier:
    """Notifier adapter that posts chat messages through the Revolt REST API."""

    kind = "revolt"

    def __init__(
        self,
        api_base: str = DEFAULT_API_BASE,
        timeout: float = 10,
        connection_factory: Optional[ConnectionFactory] = None,
    ) -> None:
        self._api_base = api_base
        self._timeout = timeout
        self._connection_factory = connection_factory

    async def send(self, message: str, destination: WebhookDestination) -> None:
        await asyncio.to_thread(self._send_blocking, message, destination)

    def _send_blocking(self, message: str, destination: WebhookDestination) -> None:
        if not destination.address:
            raise DeliveryError("Revolt destination has no bot token")
        if not destination.channel_id:
            raise DeliveryError("No channel configured for Revolt destination")

        with RevoltSession(
            destination.address,
            api_base=self._api_base,
            timeout=self._timeout,
            connection_factory=self._connection_factory,
        ) as session:
            user = session.authenticate()
            LOGGER.debug("Revolt session opened as %s", user.get("username", "unknown"))
            if session.get_channel(destination.channel_id) is None:
                raise DeliveryError(f"Revolt channel {destination.channel_id} not found")
            session.send_message(destination.channel_id, message)
