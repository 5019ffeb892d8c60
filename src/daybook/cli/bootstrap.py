# src/daybook/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- wires the configured store backend into AppState.
"""

from __future__ import annotations

import logging

from ..config import get_settings
from ..core.ports import ScheduleRepo
from ..core.state import AppState
from ..schedule.store import InMemoryScheduleStore, SqliteScheduleStore

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.matrix_store_path.mkdir(parents=True, exist_ok=True)
    settings.schedule_db_path.parent.mkdir(parents=True, exist_ok=True)


def create_store(settings) -> ScheduleRepo:
    backend = str(getattr(settings, "store_backend", "sqlite")).lower()
    if backend == "memory":
        logger.warning("Using the in-memory store: items are lost on restart.")
        return InMemoryScheduleStore()
    return SqliteScheduleStore(
        settings.schedule_db_path,
        timeout=float(getattr(settings, "store_timeout_seconds", 10.0)),
    )


def create_initial_state(*, settings=None) -> AppState:
    """
    Create AppState from the provided settings.

    Keeping settings injectable makes the app easier to test and avoids hidden global config reads.
    If settings is None, falls back to get_settings().
    """
    if settings is None:
        settings = get_settings()

    _ensure_local_dirs(settings)
    return AppState(settings=settings, store=create_store(settings))
