# src/daybook/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the core.

The core depends on Protocols instead of concrete implementations.
This keeps connectors and storage backends swappable and makes testing easier.
"""

from collections.abc import Awaitable, Callable, Iterable
from datetime import datetime
from typing import Protocol

from ..schedule.models import ScheduleItem, User

Deliver = Callable[[str, str], Awaitable[None] | None]
# Outbound sink: deliver(owner_id, text). May be a plain function or a coroutine function.
# It must handle its own transport failures (e.g. unknown owner) instead of raising.


class ScheduleRepo(Protocol):
    """
    Store contract shared by the in-memory and SQLite backends.

    Every call is atomic on its own; there are no transactions spanning calls.
    Lookups raise NotFoundError, backend failures raise StoreUnavailableError.
    """

    # Users
    def save_user(self, user: User) -> None: ...
    def get_user(self, user_id: str) -> User: ...

    # Items (CRUD)
    def add_item(self, item: ScheduleItem) -> None: ...
    def update_item(self, item: ScheduleItem) -> None: ...
    def delete_item(self, item_id: str) -> None: ...
    def delete_items(self, item_ids: Iterable[str]) -> None: ...
    def get_item(self, item_id: str) -> ScheduleItem: ...
    def list_items_for_user(self, user_id: str) -> list[ScheduleItem]: ...
    def count_items(self) -> int: ...

    # Queries
    def items_for_user_on_day(self, user_id: str, day_start_utc: datetime) -> list[ScheduleItem]: ...
    def due_reminders(self, now_utc: datetime) -> list[ScheduleItem]: ...
    def search_by_title(self, query: str, user_id: str) -> list[ScheduleItem]: ...

    def close(self) -> None: ...
