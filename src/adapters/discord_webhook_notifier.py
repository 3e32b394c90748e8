"""Discord-style JSON webhook notification adapter.

Posts ``{"content": message}`` to the webhook URL stored as the destination
address.
"""

from __future__ import annotations

import asyncio
import json
import urllib.error
import urllib.request

from core.errors import DeliveryError
from core.models import WebhookDestination


class DiscordWebhookNotifier:
    """Notifier adapter that delivers messages to a JSON webhook."""

    kind = "discord"

    def __init__(self, timeout: float = 10) -> None:
        self._timeout = timeout

    async def send(self, message: str, destination: WebhookDestination) -> None:
        """Send the message without blocking the worker loop."""

        await asyncio.to_thread(self._post, message, destination.address)

    def _post(self, message: str, url: str) -> None:
        if not url:
            raise DeliveryError("Webhook destination has no address")

        data = json.dumps({"content": message}).encode("utf-8")
        request = urllib.request.Request(url, data=data, method="POST")
        request.add_header("Content-Type", "application/json; charset=utf-8")
        try:
            with urllib.request.urlopen(request, timeout=self._timeout) as response:
                status = response.status
        except urllib.error.HTTPError as e:
            body = e.read().decode("utf-8", errors="replace")
            raise DeliveryError(f"Webhook error {e.code}: {body}") from e
        except (urllib.error.URLError, OSError, ValueError) as e:
            raise DeliveryError(f"Webhook request failed: {e}") from e

        if not 200 <= status < 300:
            raise DeliveryError(f"Webhook returned status {status}")
