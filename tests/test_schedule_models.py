# tests/test_schedule_models.py

from __future__ import annotations

from datetime import UTC, datetime
from zoneinfo import ZoneInfo

import pytest

from daybook.schedule.errors import InvalidZoneError
from daybook.schedule.models import ItemKind, User, format_item, new_item, new_user, resolve_zone


def test_new_item_normalizes_target_to_utc() -> None:
    local = datetime(2025, 3, 1, 12, 0, tzinfo=ZoneInfo("Europe/Moscow"))
    item = new_item(owner_id="42", kind="reminder", title="Call mom", target_time=local)

    assert item.kind == ItemKind.REMINDER
    assert item.target_time_utc == datetime(2025, 3, 1, 9, 0, tzinfo=UTC)
    assert item.target_time_utc.tzinfo is UTC
    assert item.is_editable is True


def test_new_item_treats_naive_time_as_utc_and_stamps_unique_ids() -> None:
    naive = datetime(2025, 3, 1, 12, 0)
    a = new_item(owner_id="42", kind=ItemKind.EVENT, title="Standup", target_time=naive)
    b = new_item(owner_id="42", kind=ItemKind.EVENT, title="Standup", target_time=naive)

    assert a.target_time_utc == datetime(2025, 3, 1, 12, 0, tzinfo=UTC)
    assert a.id != b.id


def test_new_item_validation() -> None:
    # Notes may be undated, everything else needs a time.
    note = new_item(owner_id="42", kind="Note", title="Ideas")
    assert note.target_time_utc is None

    with pytest.raises(ValueError):
        new_item(owner_id="42", kind="Event", title="Party")
    with pytest.raises(ValueError):
        new_item(owner_id="42", kind="Note", title="   ")
    with pytest.raises(ValueError):
        new_item(owner_id="", kind="Note", title="x")
    with pytest.raises(ValueError):
        new_item(owner_id="42", kind="Birthday", title="x")


def test_item_kind_parsing() -> None:
    assert ItemKind.parse("eVeNt") == ItemKind.EVENT
    assert ItemKind.from_db("Reminder") == ItemKind.REMINDER
    assert ItemKind.from_db("garbage") == ItemKind.NOTE
    assert ItemKind.from_db(None) == ItemKind.NOTE


def test_user_defaults_to_utc_and_rejects_unknown_zone() -> None:
    user = new_user("42", "alice")
    assert user.time_zone == "UTC"

    with pytest.raises(InvalidZoneError):
        user.set_time_zone("Mars/Olympus_Mons")
    assert user.time_zone == "UTC"

    user.set_time_zone("Europe/Moscow")
    assert user.time_zone == "Europe/Moscow"
    assert user.zone == ZoneInfo("Europe/Moscow")


@pytest.mark.parametrize("name", ["", "   ", "Not/AZone", "../../etc/passwd"])
def test_resolve_zone_rejects_bad_names(name: str) -> None:
    with pytest.raises(InvalidZoneError):
        resolve_zone(name)


def test_new_user_rejects_unknown_zone() -> None:
    with pytest.raises(InvalidZoneError):
        new_user("42", "alice", "Nowhere/Land")


def test_format_item_shows_local_time_without_touching_stored_value() -> None:
    target = datetime(2025, 3, 1, 9, 0, tzinfo=UTC)
    item = new_item(owner_id="42", kind="Event", title="Dentist", content="bring x-ray", target_time=target)

    text = format_item(item, ZoneInfo("Europe/Moscow"))

    assert "2025-03-01 12:00" in text
    assert "Dentist (Event)" in text
    assert "bring x-ray" in text
    assert item.target_time_utc == target


def test_format_note_has_no_time() -> None:
    item = new_item(
        owner_id="42",
        kind="Note",
        title="Groceries",
        target_time=datetime(2025, 3, 1, 9, 0, tzinfo=UTC),
    )
    assert "no time" in format_item(item, ZoneInfo("UTC"))


def test_user_zone_property_follows_name() -> None:
    user = User(id="7", display_name="bob", time_zone="Asia/Tokyo")
    assert user.zone.key == "Asia/Tokyo"
