"""Core domain models.

These dataclasses are shared across the core and adapters to avoid tight
coupling to any SDK-specific types.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


class SessionPhase(Enum):
    """Connection phases driven by the session manager."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    LOGGING_ON = "logging_on"
    LOGGED_ON = "logged_on"
    STOPPED = "stopped"


class AuthMode(Enum):
    ANONYMOUS = "anonymous"
    CREDENTIALED = "credentialed"


@dataclass
class SessionState:
    """Mutable per-process session state.

    Only the session manager and the change poller write to it, and both run
    on the single worker that drains the event queue.
    """

    phase: SessionPhase = SessionPhase.DISCONNECTED
    auth_mode: AuthMode = AuthMode.ANONYMOUS
    reconnect_attempts: int = 0
    change_cursor: int = 0
    is_stopping: bool = False
    has_connected: bool = False


@dataclass(frozen=True)
class ChangeRecord:
    """A single app change reported by a changes-since response."""

    app_id: int
    change_number: int
    previous_change_number: int = 0


@dataclass(frozen=True)
class ChangesResponse:
    """SDK-neutral view of a changes-since response."""

    last_change_number: int
    current_change_number: int
    app_changes: tuple[ChangeRecord, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class LogOnResult:
    ok: bool
    code: int
    name: str


@dataclass(frozen=True)
class WebhookDestination:
    """One configured notification destination."""

    kind: str
    address: str
    channel_id: Optional[str] = None
