"""Session manager: connection state machine and single worker loop.

Every input to the session (transport callbacks, poll ticks, reconnect
timers, shutdown requests) arrives as a typed event on one asyncio queue.
The worker drains that queue and is the only code that mutates
``SessionState``, so no locking is needed.

Phases cycle DISCONNECTED -> CONNECTING -> CONNECTED -> LOGGING_ON ->
LOGGED_ON -> DISCONNECTED until a stop request moves the session to STOPPED.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Dict, Optional

from core.backoff import format_seconds, reconnect_delay
from core.config import SessionConfig
from core.events import (
    ChangesReceived,
    Connected,
    Disconnected,
    LoggedOff,
    LoggedOn,
    PollDue,
    ReconnectDue,
    SessionEvent,
    StopRequested,
)
from core.models import AuthMode, SessionPhase, SessionState
from core.poller import ChangePoller
from core.ports import TransportPort
from core.scheduler import PollTimer

LOGGER = logging.getLogger(__name__)


class SessionManager:
    """Owns the connection lifecycle and arms polling once logged on."""

    def __init__(
        self,
        state: SessionState,
        transport: TransportPort,
        poller: ChangePoller,
        config: SessionConfig,
        timer: Optional[PollTimer] = None,
    ) -> None:
        self._state = state
        self._transport = transport
        self._poller = poller
        self._config = config
        self._timer = timer or PollTimer(self.post)
        self._queue: "asyncio.Queue[SessionEvent]" = asyncio.Queue()
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._reconnect_handle: Optional[asyncio.TimerHandle] = None
        self._handlers: Dict[type, Callable[..., Awaitable[None]]] = {
            Connected: self._on_connected,
            Disconnected: self._on_disconnected,
            LoggedOn: self._on_logged_on,
            LoggedOff: self._on_logged_off,
            ChangesReceived: self._on_changes_received,
            PollDue: self._on_poll_due,
            ReconnectDue: self._on_reconnect_due,
            StopRequested: self._on_stop_requested,
        }

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def reconnect_scheduled(self) -> bool:
        return self._reconnect_handle is not None

    def post(self, event: SessionEvent) -> None:
        """Enqueue an event from the worker's own thread."""

        self._queue.put_nowait(event)

    def post_threadsafe(self, event: SessionEvent) -> None:
        """Enqueue an event from any thread (transport callbacks)."""

        if self._loop is None:
            self.post(event)
            return
        self._loop.call_soon_threadsafe(self._queue.put_nowait, event)

    def request_stop(self) -> None:
        self.post_threadsafe(StopRequested())

    def start(self) -> None:
        """Begin connecting; failures surface only as a Disconnected event."""

        LOGGER.info("Connecting")
        self._state.phase = SessionPhase.CONNECTING
        self._transport.connect()

    def stop(self) -> None:
        """Stop polling and disconnect without scheduling a reconnect."""

        if self._state.is_stopping:
            return
        LOGGER.info("Stopping")
        self._state.is_stopping = True
        self._timer.disarm()
        self._cancel_reconnect()
        if self._state.phase is SessionPhase.DISCONNECTED:
            self._state.phase = SessionPhase.STOPPED
            return
        self._transport.disconnect()

    async def run(self) -> None:
        """Drain the event queue until the session is stopped."""

        self._loop = asyncio.get_running_loop()
        self._transport.bind(self.post_threadsafe)
        self.start()

        while self._state.phase is not SessionPhase.STOPPED:
            try:
                event = await asyncio.wait_for(self._queue.get(), timeout=self._config.wait_seconds)
            except asyncio.TimeoutError:
                if self._state.is_stopping:
                    LOGGER.warning("No disconnect confirmation received; stopping anyway")
                    self._state.phase = SessionPhase.STOPPED
                continue
            await self.handle(event)

        self._timer.disarm()
        LOGGER.info("Stopped")

    async def handle(self, event: SessionEvent) -> None:
        """Route one event to its handler; handler errors never end the loop."""

        handler = self._handlers.get(type(event))
        if handler is None:
            LOGGER.warning("Ignoring unknown session event %r", event)
            return
        try:
            await handler(event)
        except Exception:
            LOGGER.exception("Error while handling %s", type(event).__name__)

    async def _on_connected(self, event: Connected) -> None:
        if self._state.is_stopping:
            return
        self._state.reconnect_attempts = 0
        self._state.phase = SessionPhase.CONNECTED
        LOGGER.info("Client %s", "reconnected" if self._state.has_connected else "connected")
        self._state.has_connected = True

        credentials = self._config.credentials
        self._state.auth_mode = AuthMode.CREDENTIALED if credentials else AuthMode.ANONYMOUS
        anonymous = self._state.auth_mode is AuthMode.ANONYMOUS
        LOGGER.info("Logging on%s", " anonymously" if anonymous else "")

        self._state.phase = SessionPhase.LOGGING_ON
        self._transport.log_on(None if anonymous else credentials)

    async def _on_disconnected(self, event: Disconnected) -> None:
        self._timer.disarm()
        LOGGER.info("Disconnected")
        if self._state.is_stopping:
            self._state.phase = SessionPhase.STOPPED
            return

        self._state.phase = SessionPhase.DISCONNECTED
        if self._reconnect_handle is not None:
            return

        attempt = self._state.reconnect_attempts + 1
        delay = reconnect_delay(
            self._state.reconnect_attempts,
            self._config.backoff_base_seconds,
            self._config.max_reconnect_delay_seconds,
        )
        LOGGER.info("Reconnecting in %s (attempt %s)", format_seconds(delay), attempt)
        loop = asyncio.get_running_loop()
        self._reconnect_handle = loop.call_later(delay, self.post, ReconnectDue())

    async def _on_reconnect_due(self, event: ReconnectDue) -> None:
        self._reconnect_handle = None
        if self._state.is_stopping:
            return
        self._state.reconnect_attempts += 1
        LOGGER.info("Reconnecting (attempt %s)", self._state.reconnect_attempts)
        self.start()

    async def _on_logged_on(self, event: LoggedOn) -> None:
        result = event.result
        if not result.ok:
            # A failed logon is followed by a disconnect, which drives backoff.
            LOGGER.error("Log on failed: EResult.%s(%s)", result.name, result.code)
            return

        self._state.phase = SessionPhase.LOGGED_ON
        anonymous = self._state.auth_mode is AuthMode.ANONYMOUS
        if not anonymous:
            self._transport.set_online()
        LOGGER.info("Logged on%s", " anonymously" if anonymous else "")
        self._timer.arm(self._config.poll_interval_seconds)

    async def _on_logged_off(self, event: LoggedOff) -> None:
        if event.reason:
            LOGGER.info("Logged off (%s)", event.reason)
        else:
            LOGGER.info("Logged off")

    async def _on_poll_due(self, event: PollDue) -> None:
        if self._state.is_stopping or self._state.phase is not SessionPhase.LOGGED_ON:
            return
        self._poller.poll_once()

    async def _on_changes_received(self, event: ChangesReceived) -> None:
        await self._poller.handle_response(event.response)

    async def _on_stop_requested(self, event: StopRequested) -> None:
        self.stop()

    def _cancel_reconnect(self) -> None:
        if self._reconnect_handle is None:
            return
        self._reconnect_handle.cancel()
        self._reconnect_handle = None
