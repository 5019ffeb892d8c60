# src/daybook/connectors/background.py

from __future__ import annotations

import asyncio
import contextlib
import logging
import threading
from collections.abc import Callable, Coroutine
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger(__name__)

LoopMain = Callable[[asyncio.Event], Coroutine[Any, Any, None]]


@dataclass
class BackgroundRunner:
    """Handle for an asyncio coroutine running on its own event loop in a daemon thread."""

    name: str
    thread: threading.Thread
    loop: asyncio.AbstractEventLoop
    stop_event: asyncio.Event

    def stop(self) -> None:
        try:
            self.loop.call_soon_threadsafe(self.stop_event.set)
        except RuntimeError:
            # Loop already closed.
            logger.debug("%s: loop already closed on stop.", self.name)

    def join(self, timeout: float | None = None) -> None:
        self.thread.join(timeout=timeout)


def start_in_background(name: str, main: LoopMain) -> BackgroundRunner | None:
    """
    Run main(stop_event) in a background thread with a fresh event loop.

    Why a thread:
    - console REPL is blocking (input()).
    - the dispatcher and the Matrix connector are async and want their own loop.
    """
    ready = threading.Event()
    holder: dict[str, object] = {}

    def runner() -> None:
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        stop_event = asyncio.Event()

        holder["loop"] = loop
        holder["stop_event"] = stop_event
        ready.set()

        try:
            loop.run_until_complete(main(stop_event))
        except Exception:
            logger.exception("%s crashed.", name)
        finally:
            with contextlib.suppress(Exception):
                loop.run_until_complete(loop.shutdown_asyncgens())
            loop.close()

    t = threading.Thread(target=runner, name=name, daemon=True)
    t.start()

    ready.wait(timeout=5.0)
    loop = holder.get("loop")
    stop_event = holder.get("stop_event")

    if not isinstance(loop, asyncio.AbstractEventLoop) or not isinstance(stop_event, asyncio.Event):
        logger.error("%s thread did not initialize properly.", name)
        return None

    logger.info("%s background thread started.", name)
    return BackgroundRunner(name=name, thread=t, loop=loop, stop_event=stop_event)
