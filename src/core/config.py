"""Core configuration dataclasses.

We keep config parsing outside the core, but these dataclasses define the
shape the core expects so adapters and app layers can build safely.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

DEFAULT_HISTORY_URL = "https://steamdb.info/app/{app_id}/history/?changeid={change_number}"


@dataclass(frozen=True)
class Credentials:
    username: str
    password: str


@dataclass(frozen=True)
class SessionConfig:
    """Session timings and optional login credentials."""

    credentials: Optional[Credentials]
    max_reconnect_delay_seconds: float
    poll_interval_seconds: float
    backoff_base_seconds: float = 15
    wait_seconds: float = 5


@dataclass(frozen=True)
class NotificationConfig:
    """Notification rendering settings consumed by the dispatcher."""

    history_url_template: str = DEFAULT_HISTORY_URL
