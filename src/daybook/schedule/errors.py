# src/daybook/schedule/errors.py

from __future__ import annotations


class ScheduleError(Exception):
    """Base class for every failure raised by the schedule subsystem."""


class NotFoundError(ScheduleError, LookupError):
    """A user or item lookup missed. Callers decide the fallback (e.g. auto-create)."""


class InvalidZoneError(ScheduleError, ValueError):
    """The time-zone name cannot be resolved by the zoneinfo database."""

    def __init__(self, zone_name: str) -> None:
        super().__init__(f"unknown time zone: {zone_name!r}")
        self.zone_name = zone_name


class StoreUnavailableError(ScheduleError, RuntimeError):
    """The backing store failed (I/O, lock timeout, corrupt file, ...)."""
