# src/daybook/schedule/dispatcher.py

from __future__ import annotations

"""
Reminder dispatcher.

A small polling loop that, every tick:
- reads the due reminders from the store (pure read),
- deletes the one-shot (non-editable) ones in a separate write,
- renders one text per due item and hands it to a delivery queue.

A worker drains the queue into the injected deliver(owner_id, text) callback, so a slow
transport never holds up the sweep or a store lock. Editable items are left in place and
come back on every tick until their owner moves, retypes or deletes them.
"""

import asyncio
import contextlib
import inspect
import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime

from ..core.ports import Deliver, ScheduleRepo
from .models import DATE_FORMAT, ScheduleItem, utc_now

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL_SECONDS = 30.0


@dataclass(slots=True, frozen=True)
class ReminderDelivery:
    """What the dispatcher wants to send, and to whom. The connector decides how."""

    item_id: str
    owner_id: str
    text: str


def render_reminder_text(item: ScheduleItem) -> str:
    # Always UTC: the owner may read it much later, from anywhere.
    when = item.target_time_utc.strftime(DATE_FORMAT) if item.target_time_utc else "?"
    text = f"🔔 REMINDER: {item.title} (⏰ {when} UTC)"
    if item.content:
        text += f"\n{item.content}"
    return text


def sweep_due_reminders(store: ScheduleRepo, now_utc: datetime) -> list[ReminderDelivery]:
    """
    Run one sweep and return what must be delivered.

    Store failures are logged and turn the whole tick into a no-op: nothing is deleted
    and nothing is delivered, so the next tick sees the same items again.
    """
    try:
        due = store.due_reminders(now_utc)
    except Exception:
        logger.exception("due_reminders failed; skipping tick")
        return []

    if not due:
        return []

    seen: set[str] = set()
    items: list[ScheduleItem] = []
    for item in due:
        if item.id not in seen:
            seen.add(item.id)
            items.append(item)

    one_shot = [it.id for it in items if not it.is_editable]
    if one_shot:
        try:
            store.delete_items(one_shot)
        except Exception:
            logger.exception("delete_items failed for %d one-shot reminders; skipping tick", len(one_shot))
            return []

    logger.info("Sweep: %d due, %d one-shot removed", len(items), len(one_shot))
    return [ReminderDelivery(item_id=it.id, owner_id=it.owner_id, text=render_reminder_text(it)) for it in items]


async def _drain_deliveries(queue: asyncio.Queue[ReminderDelivery], deliver: Deliver) -> None:
    while True:
        delivery = await queue.get()
        try:
            result = deliver(delivery.owner_id, delivery.text)
            if inspect.isawaitable(result):
                await result
            logger.info("Reminder %s handed to transport for %s", delivery.item_id, delivery.owner_id)
        except Exception:
            # deliver() is supposed to swallow transport errors itself; never let one stop the worker.
            logger.exception("deliver failed item_id=%s owner=%s", delivery.item_id, delivery.owner_id)
        finally:
            queue.task_done()


async def run_reminder_dispatcher(
        store: ScheduleRepo,
        deliver: Deliver,
        *,
        interval_seconds: float = DEFAULT_INTERVAL_SECONDS,
        stop_event: asyncio.Event | None = None,
        clock: Callable[[], datetime] = utc_now,
) -> None:
    """
    Perpetual polling dispatcher.

    Every interval_seconds:
    - now = clock() (UTC)
    - sweep_due_reminders(store, now), run in a worker thread so a blocking backend
      does not stall the event loop
    - enqueue every ReminderDelivery for the delivery worker

    To stop it, cancel the coroutine or set stop_event. With stop_event, deliveries
    already queued are flushed before returning.
    """
    sleep_s = max(0.01, float(interval_seconds))
    queue: asyncio.Queue[ReminderDelivery] = asyncio.Queue()
    worker = asyncio.create_task(_drain_deliveries(queue, deliver))
    logger.info("Reminder dispatcher started (interval=%.1fs)", sleep_s)

    try:
        while stop_event is None or not stop_event.is_set():
            now_utc = clock()
            deliveries = await asyncio.to_thread(sweep_due_reminders, store, now_utc)
            for delivery in deliveries:
                queue.put_nowait(delivery)

            if stop_event is None:
                await asyncio.sleep(sleep_s)
            else:
                with contextlib.suppress(asyncio.TimeoutError):
                    await asyncio.wait_for(stop_event.wait(), timeout=sleep_s)

        await queue.join()
    finally:
        worker.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await worker
        logger.info("Reminder dispatcher stopped")
