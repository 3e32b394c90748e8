"""Ports (interfaces) used by the core pipeline.

Ports define the minimal contracts for the remote session transport and the
notification adapters so that the core can be reused with different backends.
"""

from __future__ import annotations

from typing import Callable, Optional, Protocol

from core.config import Credentials
from core.events import SessionEvent
from core.models import WebhookDestination


class TransportPort(Protocol):
    """Remote metadata service operations required by the session manager.

    Every method only starts the operation. Outcomes come back as events
    through the callable passed to ``bind``.
    """

    def bind(self, emit: Callable[[SessionEvent], None]) -> None:
        ...

    def connect(self) -> None:
        ...

    def disconnect(self) -> None:
        ...

    def log_on(self, credentials: Optional[Credentials]) -> None:
        ...

    def set_online(self) -> None:
        ...

    def request_changes_since(
        self, change_number: int, app_changes: bool, package_changes: bool
    ) -> None:
        ...


class NotifierPort(Protocol):
    """Notification operations required by the dispatcher.

    Implementations raise ``DeliveryError`` when delivery fails.
    """

    async def send(self, message: str, destination: WebhookDestination) -> None:
        ...
