"""Steam transport adapter.

The ``steam`` SDK is gevent based, so the SteamClient lives on a dedicated
thread with its own gevent hub. Commands from the session worker are queued
to that thread and executed as greenlets; SDK callbacks and command results
are converted to core events and handed back through the bound emitter,
which must be thread-safe.
"""

from __future__ import annotations

import logging
import queue
import threading
from functools import partial
from typing import Any, Callable, Optional

import gevent
from steam.client import SteamClient
from steam.enums import EPersonaState, EResult
from steam.enums.emsg import EMsg

from core.config import Credentials
from core.events import (
    ChangesReceived,
    Connected,
    Disconnected,
    LoggedOff,
    LoggedOn,
    SessionEvent,
)
from core.models import ChangeRecord, ChangesResponse, LogOnResult

LOGGER = logging.getLogger(__name__)

Command = Callable[[SteamClient], None]


def to_changes_response(message: Any) -> Optional[ChangesResponse]:
    """Convert a ClientPICSChangesSinceResponse body to a core response."""

    if message is None:
        return None
    last = int(message.since_change_number)
    records = tuple(
        ChangeRecord(
            app_id=int(change.appid),
            change_number=int(change.change_number),
            previous_change_number=last,
        )
        for change in message.app_changes
    )
    return ChangesResponse(
        last_change_number=last,
        current_change_number=int(message.current_change_number),
        app_changes=records,
    )


def to_log_on_result(result: Any) -> LogOnResult:
    try:
        result = EResult(result)
    except ValueError:
        return LogOnResult(ok=False, code=int(result), name="Unknown")
    return LogOnResult(ok=result == EResult.OK, code=int(result), name=result.name)


class SteamTransport:
    """TransportPort implementation backed by ``steam.client.SteamClient``."""

    def __init__(
        self,
        client_factory: Callable[[], SteamClient] = SteamClient,
        connect_retries: int = 1,
        request_timeout: float = 10,
        idle_seconds: float = 0.1,
    ) -> None:
        self._client_factory = client_factory
        self._connect_retries = connect_retries
        self._request_timeout = request_timeout
        self._idle_seconds = idle_seconds
        self._commands: "queue.Queue[Command]" = queue.Queue()
        self._closed = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._emit: Optional[Callable[[SessionEvent], None]] = None

    def bind(self, emit: Callable[[SessionEvent], None]) -> None:
        self._emit = emit

    def connect(self) -> None:
        self._ensure_thread()
        self._submit(self._do_connect)

    def disconnect(self) -> None:
        self._submit(self._do_disconnect)

    def log_on(self, credentials: Optional[Credentials]) -> None:
        self._submit(partial(self._do_log_on, credentials=credentials))

    def set_online(self) -> None:
        self._submit(self._do_set_online)

    def request_changes_since(
        self, change_number: int, app_changes: bool, package_changes: bool
    ) -> None:
        self._submit(
            partial(
                self._do_request_changes,
                change_number=change_number,
                app_changes=app_changes,
                package_changes=package_changes,
            )
        )

    def close(self, timeout: float = 5) -> None:
        """Stop the SDK thread after disconnecting the client."""

        self._closed.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None

    def _ensure_thread(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            return
        self._closed.clear()
        self._thread = threading.Thread(target=self._run, name="steam-client", daemon=True)
        self._thread.start()

    def _submit(self, command: Command) -> None:
        self._commands.put(command)

    def _publish(self, event: SessionEvent) -> None:
        if self._emit is None:
            LOGGER.warning("Dropping %s: transport is not bound", type(event).__name__)
            return
        self._emit(event)

    def _run(self) -> None:
        client = self._client_factory()
        client.on(SteamClient.EVENT_CONNECTED, self._on_connected)
        client.on(SteamClient.EVENT_DISCONNECTED, self._on_disconnected)
        client.on(EMsg.ClientLoggedOff, self._on_logged_off)

        while not self._closed.is_set():
            try:
                command = self._commands.get_nowait()
            except queue.Empty:
                gevent.sleep(self._idle_seconds)
                continue
            gevent.spawn(self._execute, command, client)

        if client.connected:
            client.disconnect()
        LOGGER.debug("Steam client thread finished")

    def _execute(self, command: Command, client: SteamClient) -> None:
        try:
            command(client)
        except Exception:
            LOGGER.exception("Steam command failed")

    def _on_connected(self, *_args) -> None:
        self._publish(Connected())

    def _on_disconnected(self, *_args) -> None:
        self._publish(Disconnected())

    def _on_logged_off(self, message: Any = None) -> None:
        reason = ""
        body = getattr(message, "body", None)
        if body is not None and hasattr(body, "eresult"):
            reason = to_log_on_result(body.eresult).name
        self._publish(LoggedOff(reason=reason))

    def _do_connect(self, client: SteamClient) -> None:
        if client.connected:
            return
        if not client.connect(retry=self._connect_retries):
            # Connect failures look the same as any other disconnect.
            self._publish(Disconnected())

    def _do_disconnect(self, client: SteamClient) -> None:
        if not client.connected:
            self._publish(Disconnected())
            return
        client.disconnect()

    def _do_log_on(self, client: SteamClient, credentials: Optional[Credentials]) -> None:
        if credentials is None:
            result = client.anonymous_login()
        else:
            result = client.login(credentials.username, credentials.password)
        self._publish(LoggedOn(to_log_on_result(result)))

    def _do_set_online(self, client: SteamClient) -> None:
        client.change_status(persona_state=EPersonaState.Online)

    def _do_request_changes(
        self,
        client: SteamClient,
        change_number: int,
        app_changes: bool,
        package_changes: bool,
    ) -> None:
        message = None
        try:
            with gevent.Timeout(self._request_timeout, False):
                message = client.get_changes_since(
                    change_number,
                    app_changes=app_changes,
                    package_changes=package_changes,
                )
        except Exception as e:
            LOGGER.debug("Changes request failed: %s", e)
        if message is None:
            LOGGER.debug("No changes answer since %s", change_number)
        self._publish(ChangesReceived(to_changes_response(message)))
