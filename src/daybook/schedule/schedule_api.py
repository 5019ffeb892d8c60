# src/daybook/schedule/schedule_api.py

from __future__ import annotations

import contextlib
import logging
from dataclasses import replace
from datetime import UTC, datetime
from zoneinfo import ZoneInfo

from ..core.state import AppState
from .errors import InvalidZoneError, NotFoundError, ScheduleError, StoreUnavailableError
from .models import (
    DATE_FORMAT,
    DEFAULT_TIME_ZONE,
    ItemKind,
    ScheduleItem,
    User,
    format_item,
    new_item,
    new_user,
    to_utc,
    utc_now,
)

logger = logging.getLogger(__name__)

SHORT_ID_LEN = 8


def local_day_start_utc(zone: ZoneInfo, moment: datetime) -> datetime:
    """
    UTC instant of local midnight for the day that contains `moment` in `zone`.

    The day window built on top of it is a fixed 24h in UTC; around DST changes a
    local day may therefore cover 23 or 25 wall-clock hours.
    """
    local = to_utc(moment).astimezone(zone)
    midnight = local.replace(hour=0, minute=0, second=0, microsecond=0)
    return midnight.astimezone(UTC)


def parse_local_datetime(text: str, zone: ZoneInfo) -> datetime:
    """Parse "YYYY-MM-DD HH:MM" typed in the user's zone and return it in UTC."""
    naive = datetime.strptime((text or "").strip(), DATE_FORMAT)
    return naive.replace(tzinfo=zone).astimezone(UTC)


def short_id(item: ScheduleItem) -> str:
    return item.id[:SHORT_ID_LEN]


def _presentation_key(item: ScheduleItem) -> tuple[bool, datetime]:
    # Dated items by time, undated notes last.
    if item.kind == ItemKind.NOTE or item.target_time_utc is None:
        return (True, datetime.min.replace(tzinfo=UTC))
    return (False, item.target_time_utc)


def _format_line(item: ScheduleItem, zone: ZoneInfo) -> str:
    local = item.local_target_time(zone)
    when = "no time" if item.kind == ItemKind.NOTE or local is None else local.strftime(DATE_FORMAT)
    keep = "" if item.is_editable else ", once"
    return f"[{short_id(item)}] {item.title} ({item.kind.value}, {when}{keep})"


# ---- users ----

def create_user(state: AppState, user_id: str, display_name: str) -> User:
    zone_name = str(getattr(state.settings, "default_time_zone", DEFAULT_TIME_ZONE) or DEFAULT_TIME_ZONE)
    try:
        user = new_user(user_id, display_name, zone_name)
    except InvalidZoneError:
        logger.warning("Configured default zone %r is invalid; using UTC", zone_name)
        user = new_user(user_id, display_name)
    state.store.save_user(user)
    logger.info("User created id=%s zone=%s", user.id, user.time_zone)
    return user


def ensure_user(state: AppState, user_id: str, display_name: str = "") -> tuple[User, bool]:
    """Fetch the user, creating it on first contact. Returns (user, created)."""
    try:
        return state.store.get_user(user_id), False
    except NotFoundError:
        return create_user(state, user_id, display_name), True


def set_user_time_zone(state: AppState, user_id: str, zone_name: str) -> User:
    user = state.store.get_user(user_id)
    user.set_time_zone(zone_name)
    state.store.save_user(user)
    logger.info("User %s time zone -> %s", user_id, user.time_zone)
    return user


# ---- items ----

def create_item(
    state: AppState,
    owner_id: str,
    kind: ItemKind | str,
    title: str,
    content: str = "",
    target: datetime | None = None,
    *,
    is_editable: bool = True,
) -> ScheduleItem:
    item = new_item(
        owner_id=owner_id,
        kind=kind,
        title=title,
        content=content,
        target_time=target,
        is_editable=is_editable,
    )
    state.store.add_item(item)
    logger.info("Item created id=%s kind=%s owner=%s", item.id, item.kind.value, owner_id)
    return item


def get_owned_item(state: AppState, owner_id: str, item_ref: str) -> ScheduleItem:
    """
    Look up an item of `owner_id` by full id or by a unique id prefix.

    Items of other owners are reported as missing.
    """
    ref = (item_ref or "").strip()
    if not ref:
        raise NotFoundError("item id is required")

    with contextlib.suppress(NotFoundError):
        item = state.store.get_item(ref)
        if item.owner_id == owner_id:
            return item

    matches = [it for it in state.store.list_items_for_user(owner_id) if it.id.startswith(ref)]
    if len(matches) == 1:
        return matches[0]
    if len(matches) > 1:
        raise NotFoundError(f"id prefix {ref!r} is ambiguous")
    raise NotFoundError(f"item not found: {ref}")


def update_item(
    state: AppState,
    owner_id: str,
    item_ref: str,
    *,
    title: str | None = None,
    content: str | None = None,
    target: datetime | None = None,
    kind: ItemKind | str | None = None,
    is_editable: bool | None = None,
) -> ScheduleItem:
    """Apply the given changes; identity and owner are never touched."""
    item = get_owned_item(state, owner_id, item_ref)
    changes: dict[str, object] = {}

    if title is not None:
        if not title.strip():
            raise ValueError("title is required")
        changes["title"] = title.strip()
    if content is not None:
        changes["content"] = content.strip()
    if target is not None:
        changes["target_time_utc"] = to_utc(target)
    if kind is not None:
        changes["kind"] = ItemKind.parse(kind)
    if is_editable is not None:
        changes["is_editable"] = bool(is_editable)

    updated = replace(item, **changes)
    if updated.kind != ItemKind.NOTE and updated.target_time_utc is None:
        raise ValueError(f"{updated.kind.value} requires a target time")

    state.store.update_item(updated)
    logger.info("Item updated id=%s fields=%s", item.id, ",".join(sorted(changes)) or "-")
    return state.store.get_item(item.id)


def delete_item(state: AppState, owner_id: str, item_ref: str) -> ScheduleItem:
    item = get_owned_item(state, owner_id, item_ref)
    state.store.delete_item(item.id)
    logger.info("Item deleted id=%s owner=%s", item.id, owner_id)
    return item


# ---- rendered views ----

def list_today(state: AppState, owner_id: str, now: datetime | None = None) -> str:
    user = state.store.get_user(owner_id)
    zone = user.zone
    moment = now if now is not None else utc_now()
    day_start = local_day_start_utc(zone, moment)

    items = sorted(state.store.items_for_user_on_day(owner_id, day_start), key=_presentation_key)
    day_label = day_start.astimezone(zone).strftime("%Y-%m-%d")
    if not items:
        return f"Nothing planned for {day_label}."

    blocks = [f"Plans for {day_label} ({user.time_zone}):"]
    blocks.extend(format_item(it, zone) for it in items)
    return "\n\n".join(blocks)


def list_items(state: AppState, owner_id: str) -> str:
    user = state.store.get_user(owner_id)
    items = state.store.list_items_for_user(owner_id)
    if not items:
        return "You have no items yet. Add one with /add."
    lines = [f"All items ({len(items)}):"]
    lines.extend(_format_line(it, user.zone) for it in items)
    return "\n".join(lines)


def search(state: AppState, query: str, owner_id: str) -> str:
    q = (query or "").strip()
    if not q:
        return "Nothing to search for."

    user = state.store.get_user(owner_id)
    items = sorted(state.store.search_by_title(q, owner_id), key=_presentation_key)
    if not items:
        return f"Nothing found for {q!r}."
    lines = [f"Found {len(items)} for {q!r}:"]
    lines.extend(_format_line(it, user.zone) for it in items)
    return "\n".join(lines)


def friendly_error_message(exc: BaseException) -> str:
    """Map core failures to short user-facing text."""
    if isinstance(exc, InvalidZoneError):
        return f"Unknown time zone {exc.zone_name!r}. Use a name like Europe/Moscow or UTC."
    if isinstance(exc, NotFoundError):
        return "Not found. Check the id with /list."
    if isinstance(exc, StoreUnavailableError):
        return "Storage is temporarily unavailable, please try again in a minute."
    if isinstance(exc, ScheduleError):
        return "Something went wrong with your schedule, please try again."
    if isinstance(exc, ValueError):
        return f"Invalid input: {exc}"
    return "Internal error."
