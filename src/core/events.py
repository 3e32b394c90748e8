"""Typed events consumed by the session worker loop.

Transport callbacks, the poll timer, reconnect scheduling, and shutdown
requests all become one of these events on the same queue, so the worker
sees them strictly in arrival order.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Union

from core.models import ChangesResponse, LogOnResult


@dataclass(frozen=True)
class Connected:
    pass


@dataclass(frozen=True)
class Disconnected:
    pass


@dataclass(frozen=True)
class LoggedOn:
    result: LogOnResult


@dataclass(frozen=True)
class LoggedOff:
    reason: str = ""


@dataclass(frozen=True)
class ChangesReceived:
    # None means the request failed or returned nothing.
    response: Optional[ChangesResponse]


@dataclass(frozen=True)
class PollDue:
    pass


@dataclass(frozen=True)
class ReconnectDue:
    pass


@dataclass(frozen=True)
class StopRequested:
    pass


SessionEvent = Union[
    Connected,
    Disconnected,
    LoggedOn,
    LoggedOff,
    ChangesReceived,
    PollDue,
    ReconnectDue,
    StopRequested,
]
