# src/daybook/core/state.py

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from .ports import ScheduleRepo


@dataclass
class AppState:
    """
    Process-wide runtime state shared by connectors and commands.

    The store is the only shared mutable resource and is safe to use from any thread.
    """

    settings: Any
    store: ScheduleRepo
