# src/daybook/cli/main.py

"""
CLI entrypoint.

Initializes logging, builds AppState, then starts:
- the Matrix connector in a background thread (optional); it also runs the reminder
  dispatcher and delivers reminders to Matrix rooms,
- otherwise a background dispatcher that prints reminders to the console,
- the console REPL in the main thread (optional).
"""

from __future__ import annotations

import logging
import signal
import threading

from ..cli.bootstrap import create_initial_state
from ..config import get_settings
from ..connectors.background import BackgroundRunner, start_in_background
from ..connectors.console_connector import make_console_deliver, run_console_loop
from ..logging_setup import setup_logging
from ..schedule.dispatcher import run_reminder_dispatcher

logger = logging.getLogger(__name__)


def _start_console_dispatcher(state) -> BackgroundRunner | None:
    deliver = make_console_deliver(state)
    interval = float(getattr(state.settings, "dispatch_interval_seconds", 30.0))
    return start_in_background(
        "dispatcher",
        lambda stop_event: run_reminder_dispatcher(
            state.store, deliver, interval_seconds=interval, stop_event=stop_event
        ),
    )


def main() -> None:
    settings = get_settings()

    level_name = str(getattr(settings, "log_level", "INFO")).upper()
    console_level = getattr(logging, level_name, logging.INFO)
    setup_logging(log_dir=settings.data_dir, console_level=console_level)

    logger.info("Starting %s (store=%s)...", settings.app_name, settings.store_backend)

    state = create_initial_state(settings=settings)

    runners: list[BackgroundRunner] = []
    if settings.matrix_enabled:
        from ..connectors.matrix_connector import start_matrix_in_background

        runner = start_matrix_in_background(state)
    else:
        runner = _start_console_dispatcher(state)
    if runner is not None:
        runners.append(runner)

    # Use an Event so main can wait without a busy while-loop.
    stop_main = threading.Event()

    def _handle_signal(signum, _frame) -> None:
        logger.info("Signal %s received, shutting down...", signum)
        stop_main.set()

    try:
        if settings.console_enabled:
            # The REPL handles Ctrl+C / EOF itself.
            run_console_loop(state)
        else:
            try:
                signal.signal(signal.SIGINT, _handle_signal)
                signal.signal(signal.SIGTERM, _handle_signal)
            except (ValueError, OSError):
                # Not in the main thread, or the platform lacks SIGTERM.
                logger.debug("Signal handlers not installed.", exc_info=True)
            logger.info("Console disabled. Running background connectors only. Press Ctrl+C to stop.")
            stop_main.wait()
    finally:
        for r in runners:
            r.stop()
            r.join(timeout=10.0)
        state.store.close()
        logger.info("Bye.")


if __name__ == "__main__":
    main()
