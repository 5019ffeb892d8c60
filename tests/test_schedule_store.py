# tests/test_schedule_store.py

from __future__ import annotations

import os
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import replace
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest

from daybook.schedule.errors import NotFoundError, StoreUnavailableError
from daybook.schedule.models import ItemKind, new_item, new_user
from daybook.schedule.schedule_api import local_day_start_utc
from daybook.schedule.store import ReadWriteLock, SqliteScheduleStore

NOW = datetime(2025, 6, 15, 10, 0, tzinfo=UTC)
DAY_START = datetime(2025, 6, 15, 0, 0, tzinfo=UTC)


def _item(kind: str, target: datetime | None, *, owner: str = "42", title: str = "thing", editable: bool = True):
    return new_item(owner_id=owner, kind=kind, title=title, target_time=target, is_editable=editable)


# ---- users ----

def test_user_upsert_and_lookup(store) -> None:
    with pytest.raises(NotFoundError):
        store.get_user("42")

    store.save_user(new_user("42", "alice"))
    assert store.get_user("42").display_name == "alice"

    store.save_user(new_user("42", "alice v2", "Europe/Moscow"))
    user = store.get_user("42")
    assert user.display_name == "alice v2"
    assert user.time_zone == "Europe/Moscow"


def test_returned_user_is_a_copy(store) -> None:
    store.save_user(new_user("42", "alice"))
    user = store.get_user("42")
    user.set_time_zone("Asia/Tokyo")

    assert store.get_user("42").time_zone == "UTC"


# ---- items ----

def test_add_then_update_preserves_identity_and_owner(store) -> None:
    item = _item("Reminder", NOW, title="Pay rent")
    store.add_item(item)

    store.update_item(replace(item, content="before noon"))
    got = store.get_item(item.id)

    assert got.id == item.id
    assert got.owner_id == "42"
    assert got.content == "before noon"
    assert got.title == "Pay rent"
    assert got.target_time_utc == NOW
    assert got.last_edited is not None

    store.update_item(replace(item, content="after lunch"))
    assert store.get_item(item.id).content == "after lunch"
    assert store.count_items() == 1


def test_delete_is_silent_for_unknown_ids(store) -> None:
    a = _item("Event", NOW)
    b = _item("Event", NOW)
    store.add_item(a)
    store.add_item(b)

    store.delete_item("does-not-exist")
    store.delete_item(a.id)
    store.delete_items([b.id, "also-missing"])
    store.delete_items([])

    assert store.count_items() == 0
    with pytest.raises(NotFoundError):
        store.get_item(a.id)


def test_list_items_for_user_orders_by_time_with_undated_last(store) -> None:
    late = _item("Event", NOW + timedelta(hours=5), title="late")
    undated = _item("Note", None, title="undated")
    early = _item("Reminder", NOW, title="early")
    foreign = _item("Event", NOW, owner="99", title="foreign")
    for it in (late, undated, early, foreign):
        store.add_item(it)

    titles = [it.title for it in store.list_items_for_user("42")]
    assert titles == ["early", "late", "undated"]


# ---- day window ----

def test_notes_are_always_in_the_day_listing(store) -> None:
    far_past = _item("Note", datetime(2001, 1, 1, tzinfo=UTC), title="old note")
    undated = _item("Note", None, title="undated note")
    store.add_item(far_past)
    store.add_item(undated)

    got = {it.id for it in store.items_for_user_on_day("42", DAY_START)}
    assert got == {far_past.id, undated.id}


def test_day_window_is_half_open(store) -> None:
    at_start = _item("Event", DAY_START, title="at start")
    last_second = _item("Event", DAY_START + timedelta(hours=24) - timedelta(seconds=1), title="last second")
    at_end = _item("Event", DAY_START + timedelta(hours=24), title="at end")
    before = _item("Reminder", DAY_START - timedelta(seconds=1), title="before")
    foreign = _item("Event", DAY_START + timedelta(hours=1), owner="99", title="foreign")
    for it in (at_start, last_second, at_end, before, foreign):
        store.add_item(it)

    got = {it.title for it in store.items_for_user_on_day("42", DAY_START)}
    assert got == {"at start", "last second"}


def test_event_in_an_hour_is_today_but_not_in_two_days(store) -> None:
    event = _item("Event", NOW + timedelta(hours=1), title="meeting")
    store.add_item(event)
    utc = new_user("42", "alice").zone

    today = store.items_for_user_on_day("42", local_day_start_utc(utc, NOW))
    later = store.items_for_user_on_day("42", local_day_start_utc(utc, NOW + timedelta(days=2)))

    assert [it.id for it in today] == [event.id]
    assert later == []


# ---- due reminders ----

def test_due_reminders_selects_past_non_notes_only(store) -> None:
    past_reminder = _item("Reminder", NOW - timedelta(seconds=1), title="past reminder")
    past_event = _item("Event", NOW - timedelta(hours=2), title="past event")
    exactly_now = _item("Reminder", NOW, title="exactly now")
    future = _item("Reminder", NOW + timedelta(minutes=1), title="future")
    past_note = _item("Note", NOW - timedelta(days=1), title="past note")
    undated_note = _item("Note", None, title="undated")
    for it in (past_reminder, past_event, exactly_now, future, past_note, undated_note):
        store.add_item(it)

    due = store.due_reminders(NOW)
    assert sorted(it.title for it in due) == ["past event", "past reminder"]
    assert len({it.id for it in due}) == len(due)


def test_due_reminders_is_a_pure_read(store) -> None:
    keep = _item("Reminder", NOW - timedelta(minutes=5), editable=True)
    once = _item("Reminder", NOW - timedelta(minutes=5), editable=False)
    store.add_item(keep)
    store.add_item(once)

    first = {it.id for it in store.due_reminders(NOW)}
    second = {it.id for it in store.due_reminders(NOW)}

    assert first == second == {keep.id, once.id}
    assert store.count_items() == 2


@pytest.fixture()
def new_york_host_zone():
    """Run with the process local time zone set far from UTC."""
    old = os.environ.get("TZ")
    os.environ["TZ"] = "America/New_York"
    if hasattr(time, "tzset"):
        time.tzset()
    yield
    if old is None:
        os.environ.pop("TZ", None)
    else:
        os.environ["TZ"] = old
    if hasattr(time, "tzset"):
        time.tzset()


def test_naive_query_times_are_read_as_utc(store, new_york_host_zone) -> None:
    soon = _item("Reminder", NOW + timedelta(hours=2), title="soon")
    past = _item("Reminder", NOW - timedelta(minutes=1), title="past")
    store.add_item(soon)
    store.add_item(past)

    due = store.due_reminders(NOW.replace(tzinfo=None))
    assert [it.id for it in due] == [past.id]

    today = store.items_for_user_on_day("42", datetime(2025, 6, 15))
    assert {it.title for it in today} == {"soon", "past"}
    assert store.items_for_user_on_day("42", datetime(2025, 6, 16)) == []


# ---- search ----

def test_search_by_title_is_case_insensitive_and_scoped(store) -> None:
    store.add_item(_item("Event", NOW, title="Dentist appointment"))
    store.add_item(_item("Note", None, title="dentist: bring x-ray"))
    store.add_item(_item("Event", NOW, title="Gym"))
    store.add_item(_item("Event", NOW, owner="99", title="DENTIST for someone else"))

    got = sorted(it.title for it in store.search_by_title("DENT", "42"))
    assert got == ["Dentist appointment", "dentist: bring x-ray"]
    assert store.search_by_title("", "42") == []
    assert store.search_by_title("nothing like it", "42") == []


def test_search_folds_non_ascii_titles(store) -> None:
    store.add_item(_item("Event", NOW, title="Стоматолог в 15:00"))
    assert len(store.search_by_title("стоматолог", "42")) == 1


# ---- concurrency ----

def test_concurrent_adds_are_all_visible(store) -> None:
    items = [_item("Reminder", NOW + timedelta(minutes=i), title=f"t{i}") for i in range(200)]

    with ThreadPoolExecutor(max_workers=8) as pool:
        list(pool.map(store.add_item, items))

    assert store.count_items() == 200
    assert {it.id for it in store.list_items_for_user("42")} == {it.id for it in items}


def test_reads_never_see_torn_records(store) -> None:
    base = _item("Reminder", NOW, title="v0")
    store.add_item(replace(base, content="v0"))
    stop = threading.Event()
    torn: list[tuple[str, str]] = []

    def writer() -> None:
        for i in range(1, 200):
            store.update_item(replace(base, title=f"v{i}", content=f"v{i}"))
        stop.set()

    def reader() -> None:
        while not stop.is_set():
            for it in store.list_items_for_user("42"):
                if it.title != it.content:
                    torn.append((it.title, it.content))

    threads = [threading.Thread(target=writer)] + [threading.Thread(target=reader) for _ in range(3)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=30)

    assert torn == []
    assert store.get_item(base.id).title == "v199"


def test_read_write_lock_allows_parallel_readers() -> None:
    lock = ReadWriteLock()
    barrier = threading.Barrier(2, timeout=5)
    errors: list[BaseException] = []

    def reader() -> None:
        try:
            with lock.read():
                # Both readers must be inside at the same time to pass the barrier.
                barrier.wait()
        except BaseException as e:  # noqa: BLE001
            errors.append(e)

    threads = [threading.Thread(target=reader) for _ in range(2)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=10)

    assert errors == []


def test_read_write_lock_writer_is_exclusive() -> None:
    lock = ReadWriteLock()
    inside_write = threading.Event()
    release_write = threading.Event()
    reader_done = threading.Event()

    def writer() -> None:
        with lock.write():
            inside_write.set()
            release_write.wait(timeout=5)

    def reader() -> None:
        with lock.read():
            reader_done.set()

    w = threading.Thread(target=writer)
    w.start()
    assert inside_write.wait(timeout=5)

    r = threading.Thread(target=reader)
    r.start()
    assert not reader_done.wait(timeout=0.2)

    release_write.set()
    assert reader_done.wait(timeout=5)
    w.join(timeout=5)
    r.join(timeout=5)


# ---- SQLite specifics ----

def test_sqlite_store_persists_across_instances(tmp_path: Path) -> None:
    db = tmp_path / "schedule.sqlite3"
    first = SqliteScheduleStore(db)
    first.save_user(new_user("42", "alice", "Europe/Moscow"))
    item = _item("Reminder", NOW, title="persisted", editable=False)
    first.add_item(item)

    second = SqliteScheduleStore(db)
    got = second.get_item(item.id)
    assert got.kind == ItemKind.REMINDER
    assert got.is_editable is False
    assert got.target_time_utc == NOW
    assert second.get_user("42").time_zone == "Europe/Moscow"


def test_sqlite_store_reports_a_broken_database_as_unavailable(tmp_path: Path) -> None:
    db = tmp_path / "broken.sqlite3"
    db.write_bytes(b"this is not a sqlite database at all" * 100)

    with pytest.raises(StoreUnavailableError):
        SqliteScheduleStore(db)
