"""Change dispatcher (core domain).

Renders one message per change record and fans it out to every configured
destination. Destinations are delivered concurrently, records sequentially,
and the dispatcher joins all sends of a record before moving on.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Iterable, Mapping, Sequence

from core.config import NotificationConfig
from core.errors import DeliveryError
from core.formatting import format_app_label, format_change_notification
from core.models import ChangeRecord, WebhookDestination
from core.ports import NotifierPort
from core.registry import TrackedAppRegistry

LOGGER = logging.getLogger(__name__)


class ChangeDispatcher:
    """Delivers change notifications with per-destination failure isolation."""

    def __init__(
        self,
        registry: TrackedAppRegistry,
        destinations: Iterable[WebhookDestination],
        notifiers: Mapping[str, NotifierPort],
        notification_config: NotificationConfig = NotificationConfig(),
    ) -> None:
        self._registry = registry
        self._destinations = list(destinations)
        self._notifiers = dict(notifiers)
        self._config = notification_config

    async def dispatch(self, changes: Sequence[ChangeRecord]) -> int:
        """Deliver every record to every destination; return delivered count."""

        delivered = 0
        for record in changes:
            app_name = self._registry.name_for(record.app_id)
            message = format_change_notification(
                app_name, record, self._config.history_url_template
            )
            label = format_app_label(app_name, record.app_id)
            results = await asyncio.gather(
                *(self._deliver(destination, message, label) for destination in self._destinations)
            )
            delivered += sum(1 for ok in results if ok)
        return delivered

    async def _deliver(self, destination: WebhookDestination, message: str, label: str) -> bool:
        notifier = self._notifiers.get(destination.kind)
        if notifier is None:
            LOGGER.error("No notifier for destination kind %r; skipping", destination.kind)
            return False

        try:
            await notifier.send(message, destination)
        except DeliveryError as e:
            LOGGER.error("Delivery to %s failed for %s: %s", destination.kind, label, e)
            return False
        except Exception:
            LOGGER.exception("Unexpected error delivering to %s for %s", destination.kind, label)
            return False

        LOGGER.info("Notified %s about %s", destination.kind, label)
        return True
