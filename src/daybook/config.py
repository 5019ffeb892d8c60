# src/daybook/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole app (normal "settings layer").
- No secrets required at import time.
- Every variable uses the DAYBOOK_ prefix; see config.example.py for the full list.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import List

from dotenv import load_dotenv

ENV_PREFIX = "DAYBOOK"

STORE_BACKENDS = ("memory", "sqlite")

load_dotenv(override=False)


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_list(name: str, default: List[str]) -> List[str]:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return list(default)
    return [p.strip() for p in raw.replace(",", " ").split() if p.strip()]


def _env_path(name: str, default: Path) -> Path:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return Path(raw).expanduser()


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- App / logging ----
    app_name: str
    log_level: str

    # ---- Connector flags ----
    console_enabled: bool
    matrix_enabled: bool

    # ---- Console identity (single local user) ----
    console_user_id: str
    console_display_name: str

    # ---- Matrix ----
    matrix_homeserver: str
    matrix_user_id: str
    matrix_password: str
    matrix_rooms: List[str]

    # ---- Local data paths (ignored by git) ----
    data_dir: Path
    matrix_store_path: Path
    schedule_db_path: Path

    # ---- Store ----
    store_backend: str
    store_timeout_seconds: float

    # ---- Scheduling ----
    dispatch_interval_seconds: float
    default_time_zone: str

    @staticmethod
    def from_env() -> "Settings":
        app_name = _env(_k("APP_NAME"), "daybook").strip() or "daybook"
        log_level = _env(_k("LOG_LEVEL"), "INFO")

        console_enabled = _env_bool(_k("CONSOLE_ENABLED"), True)
        matrix_enabled = _env_bool(_k("MATRIX_ENABLED"), False)

        console_user_id = _env(_k("CONSOLE_USER_ID"), "local").strip() or "local"
        console_display_name = _env(_k("CONSOLE_DISPLAY_NAME"), os.getenv("USER", "me"))

        matrix_homeserver = _env(_k("MATRIX_HOMESERVER")).strip()
        matrix_user_id = _env(_k("MATRIX_USER_ID")).strip()
        matrix_password = _env(_k("MATRIX_PASSWORD")).strip()
        matrix_rooms = _env_list(_k("MATRIX_ROOMS"), [])

        data_dir = _env_path(_k("DATA_DIR"), Path(".local/daybook"))
        matrix_store_path = _env_path(_k("MATRIX_STORE_PATH"), data_dir / "matrix_store")
        schedule_db_path = _env_path(_k("SCHEDULE_DB_PATH"), data_dir / "schedule.sqlite3")

        store_backend = _env(_k("STORE_BACKEND"), "sqlite").strip().lower()
        if store_backend not in STORE_BACKENDS:
            store_backend = "sqlite"
        store_timeout_seconds = max(0.1, _env_float(_k("STORE_TIMEOUT_SECONDS"), 10.0))

        dispatch_interval_seconds = max(0.5, _env_float(_k("DISPATCH_INTERVAL_SECONDS"), 30.0))
        default_time_zone = _env(_k("DEFAULT_TIME_ZONE"), "UTC").strip() or "UTC"

        return Settings(
            app_name=app_name,
            log_level=log_level,
            console_enabled=console_enabled,
            matrix_enabled=matrix_enabled,
            console_user_id=console_user_id,
            console_display_name=console_display_name,
            matrix_homeserver=matrix_homeserver,
            matrix_user_id=matrix_user_id,
            matrix_password=matrix_password,
            matrix_rooms=matrix_rooms,
            data_dir=data_dir,
            matrix_store_path=matrix_store_path,
            schedule_db_path=schedule_db_path,
            store_backend=store_backend,
            store_timeout_seconds=store_timeout_seconds,
            dispatch_interval_seconds=dispatch_interval_seconds,
            default_time_zone=default_time_zone,
        )


def _apply_local_overrides(settings: Settings) -> Settings:
    """
    Optional local overrides (never committed).

    Prefer .env for secrets; use config_local.py only for safe overrides of the
    connector switches and the store backend.
    """
    try:
        import config_local as _config_local  # type: ignore
    except ImportError:
        return settings

    overrides: dict[str, object] = {}
    if hasattr(_config_local, "CONSOLE_ENABLED"):
        overrides["console_enabled"] = bool(_config_local.CONSOLE_ENABLED)
    if hasattr(_config_local, "MATRIX_ENABLED"):
        overrides["matrix_enabled"] = bool(_config_local.MATRIX_ENABLED)
    if getattr(_config_local, "STORE_BACKEND", None) in STORE_BACKENDS:
        overrides["store_backend"] = _config_local.STORE_BACKEND
    return replace(settings, **overrides) if overrides else settings


SETTINGS = _apply_local_overrides(Settings.from_env())


def get_settings() -> Settings:
    return SETTINGS
