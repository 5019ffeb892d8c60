# src/daybook/cli/commands.py

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime

from ..core.state import AppState
from ..schedule import schedule_api
from ..schedule.errors import ScheduleError
from ..schedule.models import ItemKind

CommandHandler = Callable[[AppState, list[str], str], str]

logger = logging.getLogger(__name__)

ON_WORDS = ("on", "1", "true", "yes")
OFF_WORDS = ("off", "0", "false", "no")


class CommandRegistry:
    """Simple slash-command registry used by connectors (/help, /today, ...)."""

    def __init__(self) -> None:
        self._handlers: dict[str, CommandHandler] = {}
        self._help: dict[str, str] = {}

    def register(
        self,
        name: str,
        handler: CommandHandler,
        help_text: str,
        aliases: list[str] | None = None,
    ) -> None:
        aliases = aliases or []
        key = name.lower()
        self._handlers[key] = handler
        self._help[key] = help_text
        for alias in aliases:
            self._handlers[alias.lower()] = handler

    def handle(self, state: AppState, line: str, user_id: str) -> str | None:
        """
        Handle a string like "/command args" on behalf of user_id.

        Returns a reply string or None if not a command. Schedule errors and bad input
        become friendly replies; anything else propagates to the connector.
        """
        if not line.startswith("/"):
            return None

        parts = line[1:].split()
        if not parts:
            return "Empty command. Use /help to list available commands."

        name = parts[0].lower()
        args = parts[1:]

        handler = self._handlers.get(name)
        if not handler:
            return f"Unknown command: /{name}. Use /help to list available commands."

        try:
            return handler(state, args, user_id)
        except (ScheduleError, ValueError) as e:
            logger.info("/%s failed for %s: %s", name, user_id, e)
            return schedule_api.friendly_error_message(e)

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


def _take_datetime(state: AppState, user_id: str, args: list[str]) -> tuple[datetime, list[str]]:
    """Consume "YYYY-MM-DD HH:MM" (user's local time) from the head of args."""
    if len(args) < 2:
        raise ValueError("expected date and time as <YYYY-MM-DD> <HH:MM>")
    zone = state.store.get_user(user_id).zone
    try:
        moment = schedule_api.parse_local_datetime(f"{args[0]} {args[1]}", zone)
    except ValueError:
        raise ValueError("date/time must look like 2025-03-01 18:30") from None
    return moment, args[2:]


def _split_title_content(words: list[str]) -> tuple[str, str]:
    # "/add ... Dentist | bring the x-ray" -> ("Dentist", "bring the x-ray")
    text = " ".join(words)
    title, _, content = text.partition("|")
    return title.strip(), content.strip()


def cmd_help(state: AppState, args: list[str], user_id: str) -> str:
    return registry.build_help()


def cmd_start(state: AppState, args: list[str], user_id: str) -> str:
    user, _ = schedule_api.ensure_user(state, user_id)
    return (
        "Hi! I keep your notes, events and reminders.\n"
        f"Your time zone is {user.time_zone}; change it with /tz Europe/Moscow.\n"
        "Use /help to see everything I can do."
    )


def cmd_tz(state: AppState, args: list[str], user_id: str) -> str:
    """
    /tz            -> show current zone
    /tz <Zone>     -> set zone (IANA name, e.g. Europe/Moscow)
    """
    if not args:
        user = state.store.get_user(user_id)
        return f"Your time zone is {user.time_zone}."
    user = schedule_api.set_user_time_zone(state, user_id, args[0])
    return f"Time zone set to {user.time_zone}."


def cmd_add(state: AppState, args: list[str], user_id: str) -> str:
    """
    /add note <title> [| content]
    /add event <YYYY-MM-DD> <HH:MM> <title> [| content]
    /add reminder [keep] <YYYY-MM-DD> <HH:MM> <title> [| content]

    Reminders and events are one-shot unless "keep" is given; kept items are
    re-sent on every sweep until moved or deleted.
    """
    if not args:
        return "Usage: /add note|event|reminder [keep] <YYYY-MM-DD> <HH:MM> <title> [| content]"

    kind = ItemKind.parse(args[0])
    rest = args[1:]

    keep = bool(rest) and rest[0].lower() == "keep"
    if keep:
        rest = rest[1:]

    target: datetime | None = None
    if kind != ItemKind.NOTE:
        target, rest = _take_datetime(state, user_id, rest)

    title, content = _split_title_content(rest)
    item = schedule_api.create_item(
        state,
        user_id,
        kind,
        title,
        content,
        target,
        is_editable=keep or kind == ItemKind.NOTE,
    )
    return f"Added {item.kind.value.lower()} [{schedule_api.short_id(item)}] {item.title}."


def cmd_today(state: AppState, args: list[str], user_id: str) -> str:
    return schedule_api.list_today(state, user_id)


def cmd_list(state: AppState, args: list[str], user_id: str) -> str:
    return schedule_api.list_items(state, user_id)


def cmd_search(state: AppState, args: list[str], user_id: str) -> str:
    if not args:
        return "Usage: /search <part of a title>"
    return schedule_api.search(state, " ".join(args), user_id)


def cmd_move(state: AppState, args: list[str], user_id: str) -> str:
    """/move <id> <YYYY-MM-DD> <HH:MM>"""
    if len(args) < 3:
        return "Usage: /move <id> <YYYY-MM-DD> <HH:MM>"
    target, _ = _take_datetime(state, user_id, args[1:])
    item = schedule_api.update_item(state, user_id, args[0], target=target)
    return f"Moved [{schedule_api.short_id(item)}] {item.title}."


def cmd_keep(state: AppState, args: list[str], user_id: str) -> str:
    """
    /keep <id> on   -> keep after delivery (re-sent every sweep until changed)
    /keep <id> off  -> one-shot, removed once delivered
    """
    if len(args) < 2 or args[1].lower() not in ON_WORDS + OFF_WORDS:
        return "Usage: /keep <id> on|off"
    keep = args[1].lower() in ON_WORDS
    item = schedule_api.update_item(state, user_id, args[0], is_editable=keep)
    state_word = "kept after delivery" if keep else "one-shot"
    return f"[{schedule_api.short_id(item)}] {item.title} is now {state_word}."


def cmd_del(state: AppState, args: list[str], user_id: str) -> str:
    if not args:
        return "Usage: /del <id>"
    item = schedule_api.delete_item(state, user_id, args[0])
    return f"Deleted [{schedule_api.short_id(item)}] {item.title}."


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register("start", cmd_start, help_text="Greeting and setup hints.")
registry.register("tz", cmd_tz, help_text="Show or set your time zone: /tz Europe/Moscow.")
registry.register(
    "add",
    cmd_add,
    help_text="Add an item: /add note|event|reminder [keep] <YYYY-MM-DD> <HH:MM> <title> [| content].",
)
registry.register("today", cmd_today, help_text="Show today's plans in your time zone.")
registry.register("list", cmd_list, help_text="List all your items with their ids.", aliases=["ls"])
registry.register("search", cmd_search, help_text="Search your items by title: /search dentist.")
registry.register("move", cmd_move, help_text="Change an item's time: /move <id> <YYYY-MM-DD> <HH:MM>.")
registry.register("keep", cmd_keep, help_text="Keep an item after delivery: /keep <id> on|off.")
registry.register("del", cmd_del, help_text="Delete an item: /del <id>.", aliases=["rm"])
