# src/daybook/schedule/models.py

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import StrEnum
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from .errors import InvalidZoneError

# Shared display/parse format for date-times ("2025-03-01 18:30").
DATE_FORMAT = "%Y-%m-%d %H:%M"

DEFAULT_TIME_ZONE = "UTC"


class ItemKind(StrEnum):
    """
    Closed set of schedule item kinds.

    Notes have no delivery semantics: they never become due, but they always show up
    in "today" listings.
    """

    NOTE = "Note"
    EVENT = "Event"
    REMINDER = "Reminder"

    @classmethod
    def parse(cls, raw: str | ItemKind) -> ItemKind:
        """Case-insensitive lookup for user input ("note", "EVENT", ...)."""
        if isinstance(raw, ItemKind):
            return raw
        key = (raw or "").strip().lower()
        for kind in cls:
            if kind.value.lower() == key:
                return kind
        raise ValueError(f"unknown item kind: {raw!r}")

    @classmethod
    def from_db(cls, raw: str | None) -> ItemKind:
        # Unknown rows degrade to NOTE so they can never be delivered by mistake.
        if not raw:
            return cls.NOTE
        try:
            return cls(raw)
        except ValueError:
            return cls.NOTE


def resolve_zone(zone_name: str) -> ZoneInfo:
    """Return the ZoneInfo for zone_name or raise InvalidZoneError."""
    name = (zone_name or "").strip()
    if not name:
        raise InvalidZoneError(zone_name)
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise InvalidZoneError(zone_name) from e


def to_utc(moment: datetime) -> datetime:
    """Normalize to an aware UTC datetime. Naive values are taken as UTC already."""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=UTC)
    return moment.astimezone(UTC)


def utc_now() -> datetime:
    return datetime.now(UTC)


@dataclass(slots=True)
class User:
    id: str
    display_name: str
    time_zone: str = DEFAULT_TIME_ZONE

    @property
    def zone(self) -> ZoneInfo:
        return resolve_zone(self.time_zone)

    def set_time_zone(self, zone_name: str) -> None:
        """
        Switch the user's zone.

        The name is resolved first; on failure InvalidZoneError is raised and the
        current zone is left untouched.
        """
        resolve_zone(zone_name)
        self.time_zone = zone_name.strip()


@dataclass(slots=True)
class ScheduleItem:
    id: str
    owner_id: str
    kind: ItemKind
    title: str
    content: str
    target_time_utc: datetime | None
    is_editable: bool = True
    last_edited: datetime | None = None

    def local_target_time(self, zone: ZoneInfo) -> datetime | None:
        """Target time shown in `zone`. The stored UTC value is never modified."""
        if self.target_time_utc is None:
            return None
        return self.target_time_utc.astimezone(zone)


def new_user(user_id: str, display_name: str, time_zone: str = DEFAULT_TIME_ZONE) -> User:
    if not user_id or not str(user_id).strip():
        raise ValueError("user_id is required")
    resolve_zone(time_zone)
    return User(id=str(user_id).strip(), display_name=display_name or "", time_zone=time_zone.strip())


def new_item(
    *,
    owner_id: str,
    kind: ItemKind | str,
    title: str,
    content: str = "",
    target_time: datetime | None = None,
    is_editable: bool = True,
) -> ScheduleItem:
    """
    Build a fresh ScheduleItem.

    Stamps a new uuid4 identity and normalizes target_time to UTC. Only notes may
    omit the target time.
    """
    if not owner_id or not owner_id.strip():
        raise ValueError("owner_id is required")
    if not title or not title.strip():
        raise ValueError("title is required")

    item_kind = ItemKind.parse(kind)
    if target_time is None and item_kind != ItemKind.NOTE:
        raise ValueError(f"{item_kind.value} requires a target time")

    return ScheduleItem(
        id=str(uuid.uuid4()),
        owner_id=owner_id.strip(),
        kind=item_kind,
        title=title.strip(),
        content=(content or "").strip(),
        target_time_utc=to_utc(target_time) if target_time is not None else None,
        is_editable=bool(is_editable),
        last_edited=utc_now(),
    )


def format_item(item: ScheduleItem, zone: ZoneInfo) -> str:
    """Render an item for a chat reply, with the time shown in the reader's zone."""
    local = item.local_target_time(zone)
    if item.kind == ItemKind.NOTE or local is None:
        time_str = "no time"
    else:
        time_str = local.strftime(DATE_FORMAT)

    lines = [f"➡️ {item.title} ({item.kind.value})", time_str]
    if item.content:
        lines.append(item.content)
    return "\n".join(lines)
