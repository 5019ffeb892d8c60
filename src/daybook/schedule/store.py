# src/daybook/schedule/store.py

from __future__ import annotations

import contextlib
import logging
import sqlite3
import threading
from collections.abc import Iterable, Iterator
from dataclasses import replace
from datetime import UTC, datetime, timedelta
from pathlib import Path

from .errors import NotFoundError, StoreUnavailableError
from .models import DEFAULT_TIME_ZONE, ItemKind, ScheduleItem, User, to_utc, utc_now

logger = logging.getLogger(__name__)

DAY = timedelta(hours=24)


# ---- shared predicates (both backends must agree on these) ----

def in_day_window(item: ScheduleItem, day_start_utc: datetime) -> bool:
    """Notes always match; anything else must fall in [day_start, day_start + 24h)."""
    if item.kind == ItemKind.NOTE:
        return True
    t = item.target_time_utc
    return t is not None and day_start_utc <= t < day_start_utc + DAY


def is_due(item: ScheduleItem, now_utc: datetime) -> bool:
    return (
        item.kind != ItemKind.NOTE
        and bool(item.owner_id)
        and item.target_time_utc is not None
        and item.target_time_utc < now_utc
    )


def title_matches(item: ScheduleItem, query: str) -> bool:
    needle = (query or "").casefold()
    return bool(needle) and needle in (item.title or "").casefold()


def _sort_key(item: ScheduleItem) -> tuple[bool, datetime]:
    # Undated notes go last.
    t = item.target_time_utc
    return (t is None, t or datetime.min.replace(tzinfo=UTC))


class ReadWriteLock:
    """
    Shared/exclusive lock: many concurrent readers or a single writer.

    Waiting writers block new readers, so a steady stream of queries cannot starve
    the dispatcher's deletions. Not reentrant.
    """

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    @contextlib.contextmanager
    def read(self) -> Iterator[None]:
        with self._cond:
            while self._writer or self._writers_waiting:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if self._readers == 0:
                    self._cond.notify_all()

    @contextlib.contextmanager
    def write(self) -> Iterator[None]:
        with self._cond:
            self._writers_waiting += 1
            try:
                while self._writer or self._readers:
                    self._cond.wait()
            finally:
                self._writers_waiting -= 1
            self._writer = True
        try:
            yield
        finally:
            with self._cond:
                self._writer = False
                self._cond.notify_all()


class InMemoryScheduleStore:
    """
    Process-lifetime store.

    Thread-safety:
    - one ReadWriteLock per collection (users, items)
    - records are copied on the way in and on the way out, so callers never
      hold a reference into the collections
    """

    def __init__(self) -> None:
        self._users: dict[str, User] = {}
        self._items: dict[str, ScheduleItem] = {}
        self._users_lock = ReadWriteLock()
        self._items_lock = ReadWriteLock()
        logger.info("InMemoryScheduleStore ready")

    def close(self) -> None:
        return

    # ---- users ----

    def save_user(self, user: User) -> None:
        with self._users_lock.write():
            self._users[user.id] = replace(user)

    def get_user(self, user_id: str) -> User:
        with self._users_lock.read():
            user = self._users.get(user_id)
            if user is None:
                raise NotFoundError(f"user not found: {user_id}")
            return replace(user)

    # ---- items ----

    def add_item(self, item: ScheduleItem) -> None:
        with self._items_lock.write():
            self._items[item.id] = replace(item)
        logger.debug("Item added id=%s kind=%s owner=%s", item.id, item.kind.value, item.owner_id)

    def update_item(self, item: ScheduleItem) -> None:
        with self._items_lock.write():
            self._items[item.id] = replace(item, last_edited=utc_now())

    def delete_item(self, item_id: str) -> None:
        with self._items_lock.write():
            self._items.pop(item_id, None)

    def delete_items(self, item_ids: Iterable[str]) -> None:
        ids = list(item_ids)
        if not ids:
            return
        with self._items_lock.write():
            for item_id in ids:
                self._items.pop(item_id, None)

    def get_item(self, item_id: str) -> ScheduleItem:
        with self._items_lock.read():
            item = self._items.get(item_id)
            if item is None:
                raise NotFoundError(f"item not found: {item_id}")
            return replace(item)

    def count_items(self) -> int:
        with self._items_lock.read():
            return len(self._items)

    def list_items_for_user(self, user_id: str) -> list[ScheduleItem]:
        out = self._select(lambda it: it.owner_id == user_id)
        out.sort(key=_sort_key)
        return out

    # ---- queries ----

    def items_for_user_on_day(self, user_id: str, day_start_utc: datetime) -> list[ScheduleItem]:
        day_start_utc = to_utc(day_start_utc)
        return self._select(lambda it: it.owner_id == user_id and in_day_window(it, day_start_utc))

    def due_reminders(self, now_utc: datetime) -> list[ScheduleItem]:
        now_utc = to_utc(now_utc)
        return self._select(lambda it: is_due(it, now_utc))

    def search_by_title(self, query: str, user_id: str) -> list[ScheduleItem]:
        if not query:
            return []
        return self._select(lambda it: it.owner_id == user_id and title_matches(it, query))

    def _select(self, predicate) -> list[ScheduleItem]:
        # Read-only pass; callers that want to delete do it afterwards via delete_items().
        with self._items_lock.read():
            return [replace(it) for it in self._items.values() if predicate(it)]


class SqliteScheduleStore:
    """
    SQLite schedule store.

    Thread-safety:
    - each method opens its own SQLite connection
    - every call is a single transaction, so readers never see half-written rows

    Any sqlite3 failure is re-raised as StoreUnavailableError.
    """

    def __init__(self, db_path: str | Path = "schedule.sqlite3", *, timeout: float = 10.0) -> None:
        self._db_path = Path(db_path)
        self._timeout = float(timeout)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()
        try:
            total = self.count_items()
        except StoreUnavailableError:
            total = -1
        logger.info("SqliteScheduleStore ready db=%s items=%s", self._db_path, total)

    def close(self) -> None:
        """Compatibility hook for shutdown (no persistent connections to close)."""
        return

    # ---- low-level helpers ----

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), timeout=self._timeout)
        conn.row_factory = sqlite3.Row
        with contextlib.suppress(sqlite3.Error):
            conn.execute("PRAGMA journal_mode=WAL")
        return conn

    @contextlib.contextmanager
    def _session(self) -> Iterator[sqlite3.Connection]:
        try:
            conn = self._get_conn()
        except sqlite3.Error as e:
            raise StoreUnavailableError(f"cannot open {self._db_path}: {e}") from e
        try:
            yield conn
            conn.commit()
        except sqlite3.Error as e:
            with contextlib.suppress(sqlite3.Error):
                conn.rollback()
            raise StoreUnavailableError(f"sqlite failure on {self._db_path}: {e}") from e
        finally:
            conn.close()

    def _ensure_schema(self) -> None:
        with self._session() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS users (
                    id TEXT PRIMARY KEY,
                    display_name TEXT NOT NULL DEFAULT '',
                    time_zone TEXT NOT NULL DEFAULT 'UTC'
                )
                """
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS items (
                    id TEXT PRIMARY KEY,
                    owner_id TEXT NOT NULL,
                    kind TEXT NOT NULL,
                    title TEXT NOT NULL,
                    content TEXT NOT NULL DEFAULT '',
                    target_time_utc REAL,
                    is_editable INTEGER NOT NULL DEFAULT 1,
                    last_edited REAL
                )
                """
            )
            conn.execute("CREATE INDEX IF NOT EXISTS idx_items_owner ON items(owner_id, target_time_utc)")
            conn.execute("CREATE INDEX IF NOT EXISTS idx_items_due ON items(kind, target_time_utc)")

    @staticmethod
    def _ts(moment: datetime | None) -> float | None:
        return moment.timestamp() if moment is not None else None

    @staticmethod
    def _dt(raw: float | None) -> datetime | None:
        return datetime.fromtimestamp(float(raw), UTC) if raw is not None else None

    def _row_to_item(self, row: sqlite3.Row) -> ScheduleItem:
        return ScheduleItem(
            id=str(row["id"]),
            owner_id=str(row["owner_id"] or ""),
            kind=ItemKind.from_db(row["kind"]),
            title=str(row["title"] or ""),
            content=str(row["content"] or ""),
            target_time_utc=self._dt(row["target_time_utc"]),
            is_editable=bool(row["is_editable"]),
            last_edited=self._dt(row["last_edited"]),
        )

    def _upsert_item(self, item: ScheduleItem, last_edited: datetime | None) -> None:
        with self._session() as conn:
            conn.execute(
                """
                INSERT INTO items(id, owner_id, kind, title, content, target_time_utc, is_editable, last_edited)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    owner_id = excluded.owner_id,
                    kind = excluded.kind,
                    title = excluded.title,
                    content = excluded.content,
                    target_time_utc = excluded.target_time_utc,
                    is_editable = excluded.is_editable,
                    last_edited = excluded.last_edited
                """,
                (
                    item.id,
                    item.owner_id,
                    item.kind.value,
                    item.title,
                    item.content,
                    self._ts(item.target_time_utc),
                    1 if item.is_editable else 0,
                    self._ts(last_edited),
                ),
            )

    def _fetch_items(self, sql: str, params: tuple) -> list[ScheduleItem]:
        with self._session() as conn:
            rows = conn.execute(sql, params).fetchall()
        return [self._row_to_item(r) for r in rows]

    # ---- users ----

    def save_user(self, user: User) -> None:
        with self._session() as conn:
            conn.execute(
                """
                INSERT INTO users(id, display_name, time_zone) VALUES (?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    display_name = excluded.display_name,
                    time_zone = excluded.time_zone
                """,
                (user.id, user.display_name, user.time_zone),
            )

    def get_user(self, user_id: str) -> User:
        with self._session() as conn:
            row = conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
        if row is None:
            raise NotFoundError(f"user not found: {user_id}")
        return User(
            id=str(row["id"]),
            display_name=str(row["display_name"] or ""),
            time_zone=str(row["time_zone"] or DEFAULT_TIME_ZONE),
        )

    # ---- items ----

    def add_item(self, item: ScheduleItem) -> None:
        self._upsert_item(item, item.last_edited)
        logger.debug("Item added id=%s kind=%s owner=%s", item.id, item.kind.value, item.owner_id)

    def update_item(self, item: ScheduleItem) -> None:
        self._upsert_item(item, utc_now())

    def delete_item(self, item_id: str) -> None:
        with self._session() as conn:
            conn.execute("DELETE FROM items WHERE id = ?", (item_id,))

    def delete_items(self, item_ids: Iterable[str]) -> None:
        ids = [(i,) for i in item_ids]
        if not ids:
            return
        with self._session() as conn:
            conn.executemany("DELETE FROM items WHERE id = ?", ids)

    def get_item(self, item_id: str) -> ScheduleItem:
        items = self._fetch_items("SELECT * FROM items WHERE id = ?", (item_id,))
        if not items:
            raise NotFoundError(f"item not found: {item_id}")
        return items[0]

    def count_items(self) -> int:
        with self._session() as conn:
            (n,) = conn.execute("SELECT COUNT(*) FROM items").fetchone()
        return int(n)

    def list_items_for_user(self, user_id: str) -> list[ScheduleItem]:
        return self._fetch_items(
            """
            SELECT * FROM items
            WHERE owner_id = ?
            ORDER BY target_time_utc IS NULL, target_time_utc ASC
            """,
            (user_id,),
        )

    # ---- queries ----

    def items_for_user_on_day(self, user_id: str, day_start_utc: datetime) -> list[ScheduleItem]:
        day_start_utc = to_utc(day_start_utc)
        start = day_start_utc.timestamp()
        end = (day_start_utc + DAY).timestamp()
        return self._fetch_items(
            """
            SELECT * FROM items
            WHERE owner_id = ?
              AND (
                kind = ?
                    OR (target_time_utc >= ? AND target_time_utc < ?)
                )
            """,
            (user_id, ItemKind.NOTE.value, start, end),
        )

    def due_reminders(self, now_utc: datetime) -> list[ScheduleItem]:
        now_utc = to_utc(now_utc)
        return self._fetch_items(
            """
            SELECT * FROM items
            WHERE kind != ?
              AND owner_id != ''
              AND target_time_utc IS NOT NULL
              AND target_time_utc < ?
            """,
            (ItemKind.NOTE.value, now_utc.timestamp()),
        )

    def search_by_title(self, query: str, user_id: str) -> list[ScheduleItem]:
        # SQLite LOWER() only folds ASCII, so matching happens in Python.
        if not query:
            return []
        return [
            it
            for it in self._fetch_items("SELECT * FROM items WHERE owner_id = ?", (user_id,))
            if title_matches(it, query)
        ]
