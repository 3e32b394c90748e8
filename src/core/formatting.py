"""Notification text rendering.

Keeping formatting here prevents drift between sinks and keeps messages
consistent regardless of delivery channel. Both Discord and Revolt render
Markdown, so one format serves every destination.
"""

from __future__ import annotations

from core.config import DEFAULT_HISTORY_URL
from core.models import ChangeRecord


def code_span(value: str) -> str:
    # Markdown code spans cannot escape backticks.
    return "`" + value.replace("`", "'") + "`"


def format_app_label(app_name: str, app_id: int) -> str:
    return f"{app_name} ({app_id})"


def history_link(record: ChangeRecord, template: str = DEFAULT_HISTORY_URL) -> str:
    """Return the change-history deep link for one record."""

    return template.format(app_id=record.app_id, change_number=record.change_number)


def format_change_notification(
    app_name: str,
    record: ChangeRecord,
    template: str = DEFAULT_HISTORY_URL,
) -> str:
    """Create the Markdown body sent to every destination."""

    label = code_span(format_app_label(app_name, record.app_id))
    lines = [
        f"New SteamDB change detected! {label} (change {record.change_number})",
        history_link(record, template),
    ]
    return "\n".join(lines)
