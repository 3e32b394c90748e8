from __future__ import annotations

import asyncio
from typing import Optional

from core.config import Credentials, SessionConfig
from core.dispatcher import ChangeDispatcher
from core.events import (
    ChangesReceived,
    Connected,
    Disconnected,
    LoggedOff,
    LoggedOn,
    PollDue,
    ReconnectDue,
)
from core.models import (
    AuthMode,
    ChangeRecord,
    ChangesResponse,
    LogOnResult,
    SessionPhase,
    SessionState,
    WebhookDestination,
)
from core.poller import ChangePoller
from core.registry import DEFAULT_TRACKED_APPS, TrackedAppRegistry
from core.session import SessionManager

OK = LogOnResult(ok=True, code=1, name="OK")
INVALID_PASSWORD = LogOnResult(ok=False, code=5, name="InvalidPassword")


class FakeTransport:
    def __init__(self) -> None:
        self.emit = None
        self.connects = 0
        self.disconnects = 0
        self.log_ons: list[Optional[Credentials]] = []
        self.online_calls = 0
        self.change_requests: list[int] = []

    def bind(self, emit) -> None:
        self.emit = emit

    def connect(self) -> None:
        self.connects += 1

    def disconnect(self) -> None:
        self.disconnects += 1

    def log_on(self, credentials: Optional[Credentials]) -> None:
        self.log_ons.append(credentials)

    def set_online(self) -> None:
        self.online_calls += 1

    def request_changes_since(self, change_number: int, app_changes: bool, package_changes: bool) -> None:
        self.change_requests.append(change_number)


class FakeTimer:
    def __init__(self) -> None:
        self.armed_with: Optional[float] = None

    @property
    def armed(self) -> bool:
        return self.armed_with is not None

    def arm(self, interval_seconds: float) -> None:
        self.armed_with = interval_seconds

    def disarm(self) -> None:
        self.armed_with = None


class NullDispatcher:
    async def dispatch(self, changes) -> int:
        return 0


def _config(credentials: Optional[Credentials] = None, **overrides) -> SessionConfig:
    values = dict(
        credentials=credentials,
        max_reconnect_delay_seconds=300,
        poll_interval_seconds=5,
        backoff_base_seconds=15,
        wait_seconds=5,
    )
    values.update(overrides)
    return SessionConfig(**values)


def _make_manager(credentials: Optional[Credentials] = None, state: Optional[SessionState] = None):
    state = state or SessionState()
    transport = FakeTransport()
    timer = FakeTimer()
    poller = ChangePoller(state, transport, TrackedAppRegistry(DEFAULT_TRACKED_APPS), NullDispatcher())
    manager = SessionManager(state, transport, poller, _config(credentials), timer=timer)
    return manager, state, transport, timer


def test_connected_resets_attempts_and_logs_on_anonymously() -> None:
    manager, state, transport, _ = _make_manager(state=SessionState(reconnect_attempts=4))

    asyncio.run(manager.handle(Connected()))

    assert state.reconnect_attempts == 0
    assert state.auth_mode is AuthMode.ANONYMOUS
    assert state.phase is SessionPhase.LOGGING_ON
    assert transport.log_ons == [None]


def test_credentialed_logon_sets_persona_online_and_arms_timer() -> None:
    credentials = Credentials(username="bot", password="hunter2")
    manager, state, transport, timer = _make_manager(credentials=credentials)

    async def scenario() -> None:
        await manager.handle(Connected())
        await manager.handle(LoggedOn(OK))

    asyncio.run(scenario())

    assert state.auth_mode is AuthMode.CREDENTIALED
    assert transport.log_ons == [credentials]
    assert transport.online_calls == 1
    assert state.phase is SessionPhase.LOGGED_ON
    assert timer.armed_with == 5


def test_failed_logon_does_not_arm_timer_or_retry() -> None:
    manager, state, transport, timer = _make_manager()

    async def scenario() -> None:
        await manager.handle(Connected())
        await manager.handle(LoggedOn(INVALID_PASSWORD))

    asyncio.run(scenario())

    assert not timer.armed
    assert state.phase is SessionPhase.LOGGING_ON
    assert transport.connects == 0
    assert not manager.reconnect_scheduled


def test_successful_logon_does_not_reset_attempts() -> None:
    manager, state, _, _ = _make_manager(state=SessionState(reconnect_attempts=3))
    state.phase = SessionPhase.LOGGING_ON

    asyncio.run(manager.handle(LoggedOn(OK)))

    assert state.reconnect_attempts == 3


def test_disconnect_schedules_reconnect_and_disarms_timer() -> None:
    manager, state, transport, timer = _make_manager()
    timer.arm(5)
    state.phase = SessionPhase.LOGGED_ON

    async def scenario() -> None:
        await manager.handle(Disconnected())
        assert manager.reconnect_scheduled
        assert state.phase is SessionPhase.DISCONNECTED
        # A second disconnect while waiting does not stack another reconnect.
        await manager.handle(Disconnected())
        await manager.handle(ReconnectDue())

    asyncio.run(scenario())

    assert not timer.armed
    assert state.reconnect_attempts == 1
    assert transport.connects == 1
    assert state.phase is SessionPhase.CONNECTING
    assert not manager.reconnect_scheduled


def test_disconnect_while_stopping_does_not_reconnect() -> None:
    manager, state, transport, _ = _make_manager()
    state.phase = SessionPhase.LOGGED_ON

    async def scenario() -> None:
        manager.stop()
        await manager.handle(Disconnected())

    asyncio.run(scenario())

    assert transport.disconnects == 1
    assert not manager.reconnect_scheduled
    assert state.phase is SessionPhase.STOPPED
    assert state.reconnect_attempts == 0


def test_stop_during_backoff_cancels_pending_reconnect() -> None:
    manager, state, transport, _ = _make_manager()

    async def scenario() -> None:
        await manager.handle(Disconnected())
        manager.stop()
        await manager.handle(ReconnectDue())

    asyncio.run(scenario())

    assert not manager.reconnect_scheduled
    assert state.phase is SessionPhase.STOPPED
    assert transport.connects == 0
    assert transport.disconnects == 0


def test_poll_due_only_polls_when_logged_on() -> None:
    manager, state, transport, _ = _make_manager(state=SessionState(change_cursor=9))

    async def scenario() -> None:
        await manager.handle(PollDue())
        state.phase = SessionPhase.LOGGED_ON
        await manager.handle(PollDue())
        manager.stop()
        await manager.handle(PollDue())

    asyncio.run(scenario())

    assert transport.change_requests == [9]


def test_handler_errors_are_logged_not_raised(caplog) -> None:
    manager, state, _, _ = _make_manager()

    class ExplodingDispatcher:
        async def dispatch(self, changes) -> int:
            raise RuntimeError("sink wiring broke")

    manager._poller = ChangePoller(
        state, FakeTransport(), TrackedAppRegistry(DEFAULT_TRACKED_APPS), ExplodingDispatcher()
    )
    response = ChangesResponse(
        last_change_number=1,
        current_change_number=2,
        app_changes=(ChangeRecord(app_id=387990, change_number=2),),
    )

    async def scenario() -> None:
        await manager.handle(ChangesReceived(response))
        await manager.handle(LoggedOff())

    asyncio.run(scenario())

    assert state.change_cursor == 2
    assert "Error while handling ChangesReceived" in caplog.text


class ScriptedTransport(FakeTransport):
    """Emits the events a live service would send back."""

    def __init__(self, responses: list[ChangesResponse]) -> None:
        super().__init__()
        self._responses = responses

    def connect(self) -> None:
        super().connect()
        self.emit(Connected())

    def disconnect(self) -> None:
        super().disconnect()
        self.emit(Disconnected())

    def log_on(self, credentials: Optional[Credentials]) -> None:
        super().log_on(credentials)
        self.emit(LoggedOn(OK))

    def request_changes_since(self, change_number: int, app_changes: bool, package_changes: bool) -> None:
        super().request_changes_since(change_number, app_changes, package_changes)
        if self._responses:
            self.emit(ChangesReceived(self._responses.pop(0)))
        else:
            self.emit(ChangesReceived(None))


def test_worker_runs_from_connect_to_notification_to_stop() -> None:
    state = SessionState(change_cursor=100)
    transport = ScriptedTransport(
        [
            ChangesResponse(
                last_change_number=100,
                current_change_number=105,
                app_changes=(
                    ChangeRecord(app_id=999999, change_number=105, previous_change_number=100),
                    ChangeRecord(app_id=387990, change_number=105, previous_change_number=100),
                ),
            )
        ]
    )
    sent: list[str] = []
    holder: dict[str, SessionManager] = {}

    class StoppingNotifier:
        async def send(self, message: str, destination: WebhookDestination) -> None:
            sent.append(message)
            holder["manager"].request_stop()

    registry = TrackedAppRegistry(DEFAULT_TRACKED_APPS)
    dispatcher = ChangeDispatcher(
        registry,
        [WebhookDestination(kind="discord", address="https://hooks.test/a")],
        {"discord": StoppingNotifier()},
    )
    poller = ChangePoller(state, transport, registry, dispatcher)
    manager = SessionManager(
        state,
        transport,
        poller,
        _config(poll_interval_seconds=0.01, wait_seconds=0.05),
    )
    holder["manager"] = manager

    asyncio.run(asyncio.wait_for(manager.run(), timeout=5))

    assert transport.change_requests[0] == 100
    assert state.change_cursor == 105
    assert len(sent) == 1
    assert "Scrap Mechanic (387990)" in sent[0]
    assert "changeid=105" in sent[0]
    assert state.phase is SessionPhase.STOPPED
    assert transport.disconnects == 1


def test_worker_backs_off_between_failed_connects() -> None:
    state = SessionState()
    holder: dict[str, SessionManager] = {}

    class RefusingTransport(FakeTransport):
        def connect(self) -> None:
            super().connect()
            self.emit(Disconnected())
            if self.connects == 4:
                holder["manager"].request_stop()

    transport = RefusingTransport()
    poller = ChangePoller(state, transport, TrackedAppRegistry(DEFAULT_TRACKED_APPS), NullDispatcher())
    manager = SessionManager(
        state,
        transport,
        poller,
        _config(backoff_base_seconds=0.005, max_reconnect_delay_seconds=0.02, wait_seconds=0.05),
    )
    holder["manager"] = manager

    asyncio.run(asyncio.wait_for(manager.run(), timeout=5))

    assert transport.connects == 4
    assert state.reconnect_attempts == 3
    assert state.phase is SessionPhase.STOPPED
    assert transport.log_ons == []
