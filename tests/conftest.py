# tests/conftest.py

from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace

import pytest

from daybook.core.state import AppState
from daybook.schedule.store import InMemoryScheduleStore, SqliteScheduleStore


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with AppState and core modules.

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated and deterministic.
    """
    return SimpleNamespace(
        data_dir=tmp_path,
        matrix_store_path=tmp_path / "matrix_store",
        schedule_db_path=tmp_path / "schedule.sqlite3",
        store_backend="sqlite",
        store_timeout_seconds=5.0,
        dispatch_interval_seconds=30.0,
        default_time_zone="UTC",
        console_user_id="local",
        console_display_name="tester",
    )


@pytest.fixture(params=["memory", "sqlite"])
def store(request: pytest.FixtureRequest, tmp_path: Path):
    """
    Both store backends share one contract, so every store-level test runs against each.
    """
    if request.param == "memory":
        s = InMemoryScheduleStore()
    else:
        s = SqliteScheduleStore(tmp_path / "schedule.sqlite3", timeout=5.0)
    yield s
    s.close()


@pytest.fixture()
def state(settings: SimpleNamespace, store) -> AppState:
    return AppState(settings=settings, store=store)
