from __future__ import annotations

from core.formatting import format_change_notification, history_link
from core.models import ChangeRecord


def test_message_names_app_and_links_history() -> None:
    record = ChangeRecord(app_id=387990, change_number=105, previous_change_number=100)

    message = format_change_notification("Scrap Mechanic", record)

    assert "Scrap Mechanic (387990)" in message
    assert "change 105" in message
    assert "https://steamdb.info/app/387990/history/?changeid=105" in message


def test_custom_history_template() -> None:
    record = ChangeRecord(app_id=10, change_number=3)

    link = history_link(record, "https://example.test/{app_id}?c={change_number}")

    assert link == "https://example.test/10?c=3"


def test_backticks_in_names_do_not_break_code_span() -> None:
    record = ChangeRecord(app_id=1, change_number=2)

    message = format_change_notification("Odd`Name", record)

    first_line = message.splitlines()[0]
    assert first_line.count("`") == 2
    assert "Odd'Name (1)" in first_line
