# src/daybook/connectors/matrix_connector.py

from __future__ import annotations

import asyncio
import contextlib
import logging
import time

from nio import AsyncClient, MatrixRoom, RoomMessageText

from ..cli.commands import registry as command_registry
from ..core.state import AppState
from ..schedule import schedule_api
from ..schedule.dispatcher import run_reminder_dispatcher
from .background import BackgroundRunner, start_in_background
from .console_connector import make_console_deliver
from .matrix_client import create_matrix_client

logger = logging.getLogger(__name__)

WELCOME_TEXT = (
    "Hi! I'm your planner. Your time zone is {zone}; set yours with /tz Europe/Moscow.\n"
    "Use /help to see the commands."
)


def _ms_now() -> int:
    return int(time.time() * 1000)


def _room_allowlist(settings_rooms: list[str]) -> set[str] | None:
    rooms = [r.strip() for r in (settings_rooms or []) if str(r).strip()]
    return set(rooms) if rooms else None


async def _send_text(client: AsyncClient, *, room_id: str, text: str) -> None:
    await client.room_send(
        room_id=room_id,
        message_type="m.room.message",
        content={"msgtype": "m.text", "body": text},
    )


class ReminderRouter:
    """
    Maps schedule owners (Matrix user ids) to the room their reminders go to.

    Preference order:
    - the room the owner last wrote from,
    - a joined (allowed) room the owner is in, smallest first (DMs win).
    """

    def __init__(self, client: AsyncClient, allowed_rooms: set[str] | None) -> None:
        self._client = client
        self._allowed = allowed_rooms
        self._last_room: dict[str, str] = {}

    def remember(self, user_id: str, room_id: str) -> None:
        self._last_room[user_id] = room_id

    def room_for(self, user_id: str) -> str | None:
        room_id = self._last_room.get(user_id)
        if room_id:
            return room_id

        candidates: list[MatrixRoom] = []
        for rid, room in self._client.rooms.items():
            if self._allowed is not None and rid not in self._allowed:
                continue
            if user_id in room.users:
                candidates.append(room)
        if not candidates:
            return None
        candidates.sort(key=lambda r: r.member_count)
        return candidates[0].room_id

    async def deliver(self, owner_id: str, text: str) -> None:
        """Outbound sink for the dispatcher. Transport failures are logged, never raised."""
        room_id = self.room_for(owner_id)
        if not room_id:
            logger.warning("No room known for %s; reminder dropped.", owner_id)
            return
        try:
            await _send_text(self._client, room_id=room_id, text=text)
            logger.info("Reminder sent to %s in %s.", owner_id, room_id)
        except Exception:
            logger.exception("Failed to send reminder to %s in %s.", owner_id, room_id)


def make_reminder_deliver(state: AppState, router: ReminderRouter):
    """
    Deliver for the dispatcher running inside the Matrix loop.

    With the console also enabled, the console user has no Matrix room; their reminders
    are printed locally and everyone else goes through the router.
    """
    if not getattr(state.settings, "console_enabled", False):
        return router.deliver

    console_user_id = str(getattr(state.settings, "console_user_id", "local"))
    console_deliver = make_console_deliver(state)

    async def deliver(owner_id: str, text: str) -> None:
        if owner_id == console_user_id:
            console_deliver(owner_id, text)
            return
        await router.deliver(owner_id, text)

    return deliver


async def _run_matrix_bot(state: AppState, stop_event: asyncio.Event) -> None:
    """
    Matrix connector (async):

    init -> dispatcher -> callbacks -> sync loop

    Shutdown model:
    - main thread sets stop_event via loop.call_soon_threadsafe(stop_event.set)
    - we run a manual sync loop so we can exit promptly.
    """
    settings = state.settings
    startup_ts = _ms_now()

    allowed_rooms = _room_allowlist(getattr(settings, "matrix_rooms", []) or [])
    logger.info("Matrix allowed_rooms=%s", allowed_rooms if allowed_rooms is not None else "ALL")

    client = await create_matrix_client(settings)
    if client is None:
        logger.error("Matrix client creation failed; connector will stop.")
        return

    router = ReminderRouter(client, allowed_rooms)

    dispatcher_task = asyncio.create_task(
        run_reminder_dispatcher(
            state.store,
            make_reminder_deliver(state, router),
            interval_seconds=float(getattr(settings, "dispatch_interval_seconds", 30.0)),
        )
    )

    # ---- Message callback ----

    async def message_callback(room: MatrixRoom, event: RoomMessageText) -> None:
        # Ignore history from before startup, our own echoes, and foreign rooms.
        ts = getattr(event, "server_timestamp", None)
        if ts is not None and ts <= startup_ts:
            return
        if event.sender == client.user_id:
            return
        if allowed_rooms is not None and room.room_id not in allowed_rooms:
            return

        body = (event.body or "").strip()
        if not body:
            return

        logger.info("Matrix <%s> %s: %r", room.display_name, event.sender, body)
        router.remember(event.sender, room.room_id)

        try:
            # Store calls may block (SQLite), keep them off the sync loop.
            user, created = await asyncio.to_thread(
                schedule_api.ensure_user, state, event.sender, room.user_name(event.sender) or ""
            )
            if created:
                await _send_text(client, room_id=room.room_id, text=WELCOME_TEXT.format(zone=user.time_zone))

            if body.startswith("/"):
                reply = await asyncio.to_thread(command_registry.handle, state, body, event.sender)
            else:
                reply = "I only understand commands. Use /help."
        except Exception as e:
            logger.exception("Failed to handle Matrix message.")
            reply = schedule_api.friendly_error_message(e)

        if reply:
            try:
                await _send_text(client, room_id=room.room_id, text=reply)
            except Exception:
                logger.exception("Failed to send reply to %s.", room.room_id)

    client.add_event_callback(message_callback, RoomMessageText)

    # ---- Sync loop ----

    try:
        logger.info("Matrix initial sync...")
        await client.sync(timeout=30000, full_state=True)
        logger.info("Matrix initial sync done. Joined rooms: %d", len(client.rooms))

        while not stop_event.is_set():
            await client.sync(timeout=30000, full_state=False)

    except asyncio.CancelledError:
        logger.info("Matrix connector cancelled.")
    except Exception:
        logger.exception("Matrix connector crashed.")
    finally:
        dispatcher_task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await dispatcher_task

        with contextlib.suppress(Exception):
            await client.close()

        logger.info("Matrix connector stopped.")


def start_matrix_in_background(state: AppState) -> BackgroundRunner | None:
    """Start the Matrix connector (and the reminder dispatcher inside it) in a background thread."""
    if not getattr(state.settings, "matrix_enabled", False):
        logger.info("Matrix connector disabled, not starting.")
        return None

    return start_in_background("matrix", lambda stop_event: _run_matrix_bot(state, stop_event))
