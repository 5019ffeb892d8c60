"""
Schedule subsystem.

Components:
- models.py: data structures (User, ScheduleItem, ItemKind)
- errors.py: typed failures (NotFoundError, InvalidZoneError, StoreUnavailableError)
- store.py: in-memory and SQLite-backed stores + query helpers
- dispatcher.py: polling loop that delivers due reminders
- schedule_api.py: request-level helpers used by connectors and commands
"""
