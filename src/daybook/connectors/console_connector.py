# src/daybook/connectors/console_connector.py

from __future__ import annotations

import logging
import sys
from datetime import datetime

from ..cli.commands import registry as command_registry
from ..core.state import AppState
from ..schedule import schedule_api

logger = logging.getLogger(__name__)


def _ts_local() -> str:
    return datetime.now().astimezone().strftime("%Y-%m-%d %H:%M:%S")


def _rewrite_prev_line(line: str) -> None:
    """
    Replace the last terminal line with `line`.
    Best-effort: if not a TTY, just print a new line.
    """
    if sys.stdout.isatty():
        sys.stdout.write("\033[1A\033[2K\r")
        sys.stdout.write(line + "\n")
        sys.stdout.flush()
    else:
        print(line)


def _print_ts(text: str) -> None:
    print(f"[{_ts_local()}] {text}", flush=True)


def make_console_deliver(state: AppState):
    """
    Delivery sink for console-only runs.

    Only the local console user has a terminal to print to; reminders of other owners
    (e.g. Matrix users in a shared database) are logged and dropped.
    """
    local_user_id = str(getattr(state.settings, "console_user_id", "local"))

    def deliver(owner_id: str, text: str) -> None:
        if owner_id != local_user_id:
            logger.warning("No console for owner %s; reminder dropped.", owner_id)
            return
        _print_ts(text)

    return deliver


def run_console_loop(state: AppState) -> None:
    settings = state.settings
    user_id = str(getattr(settings, "console_user_id", "local"))
    display_name = str(getattr(settings, "console_display_name", "") or user_id)

    user, created = schedule_api.ensure_user(state, user_id, display_name)
    logger.info("Console connector started (user=%s, zone=%s, new=%s).", user.id, user.time_zone, created)
    _print_ts("[CONSOLE] Use /help for commands. Use /exit to quit.\n")
    if created:
        _print_ts(command_registry.handle(state, "/start", user_id) or "")

    while True:
        try:
            line = input(">>> ").strip()
            _rewrite_prev_line(f"[{_ts_local()}] >>> {line}")
        except EOFError:
            logger.info("Console EOF received, exiting.")
            break
        except KeyboardInterrupt:
            logger.info("Console KeyboardInterrupt, exiting.")
            print()
            break

        if not line:
            continue

        if line.lower() in ("/exit", "/quit"):
            logger.info("Console exit command received.")
            break

        try:
            reply = command_registry.handle(state, line, user_id)
        except Exception as e:
            logger.exception("Command handler crashed.")
            reply = schedule_api.friendly_error_message(e)

        _print_ts(reply if reply is not None else "I only understand commands. Use /help.")

    logger.info("Console connector finished.")
