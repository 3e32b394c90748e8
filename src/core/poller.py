"""Change poller (core domain).

The poller owns the change cursor. It advances the cursor before handing
tracked changes to the dispatcher, so a crash mid-dispatch can drop a
notification but never replays a stale one.
"""

from __future__ import annotations

import logging
from typing import Optional

from core.dispatcher import ChangeDispatcher
from core.models import ChangesResponse, SessionState
from core.ports import TransportPort
from core.registry import TrackedAppRegistry

LOGGER = logging.getLogger(__name__)


class ChangePoller:
    """Requests changes since the cursor and filters them to tracked apps."""

    def __init__(
        self,
        state: SessionState,
        transport: TransportPort,
        registry: TrackedAppRegistry,
        dispatcher: ChangeDispatcher,
    ) -> None:
        self._state = state
        self._transport = transport
        self._registry = registry
        self._dispatcher = dispatcher

    @property
    def cursor(self) -> int:
        return self._state.change_cursor

    def poll_once(self) -> None:
        """Ask the service for app and package changes since the cursor."""

        LOGGER.debug("Requesting changes since %s", self._state.change_cursor)
        self._transport.request_changes_since(
            self._state.change_cursor,
            app_changes=True,
            package_changes=True,
        )

    async def handle_response(self, response: Optional[ChangesResponse]) -> None:
        """Advance the cursor and dispatch tracked changes from one response."""

        if response is None:
            # The next tick retries with the same cursor.
            LOGGER.debug("Changes request returned nothing; cursor stays at %s", self.cursor)
            return

        if response.current_change_number == response.last_change_number:
            return

        if response.current_change_number <= self._state.change_cursor:
            LOGGER.debug(
                "Skipping already seen change %s (cursor %s)",
                response.current_change_number,
                self._state.change_cursor,
            )
            return

        previous = self._state.change_cursor
        self._state.change_cursor = response.current_change_number

        # Overlapping requests can return records an earlier response already covered.
        fresh = [record for record in response.app_changes if record.change_number > previous]
        tracked = self._registry.filter(fresh)
        if not tracked:
            return

        LOGGER.info(
            "Detected %s tracked change(s) up to change %s",
            len(tracked),
            response.current_change_number,
        )
        await self._dispatcher.dispatch(tracked)
