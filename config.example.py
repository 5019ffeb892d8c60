# config.example.py

"""
Documentation-only module (safe to commit).

The real configuration is loaded from environment variables (optionally via a local .env file).
Do NOT commit real secrets. Use:
- .env (local, gitignored)
- config_local.py (local safe overrides, gitignored)

This file exists to make the repo self-documenting even without opening .env.
"""

ENV_VARS = {
    # App / logging
    "DAYBOOK_APP_NAME": "App display name (default: daybook).",
    "DAYBOOK_LOG_LEVEL": "Console logging level (default: INFO). The log file always gets DEBUG.",
    # Connectors
    "DAYBOOK_CONSOLE_ENABLED": "Enable console connector (true/false, default: true).",
    "DAYBOOK_MATRIX_ENABLED": "Enable Matrix connector (true/false, default: false).",
    "DAYBOOK_CONSOLE_USER_ID": "Owner id used for the console user (default: local).",
    "DAYBOOK_CONSOLE_DISPLAY_NAME": "Display name of the console user (default: $USER).",
    # Matrix
    "DAYBOOK_MATRIX_HOMESERVER": "Matrix homeserver URL.",
    "DAYBOOK_MATRIX_USER_ID": "Matrix user ID (bot).",
    "DAYBOOK_MATRIX_PASSWORD": "Password for first login (session stored locally).",
    "DAYBOOK_MATRIX_ROOMS": "Optional allowlist of room IDs (empty => all rooms).",
    # Paths (gitignored)
    "DAYBOOK_DATA_DIR": "Local data directory (default: .local/daybook).",
    "DAYBOOK_MATRIX_STORE_PATH": "Matrix session store path (default: <data_dir>/matrix_store).",
    "DAYBOOK_SCHEDULE_DB_PATH": "Schedule SQLite path (default: <data_dir>/schedule.sqlite3).",
    # Store / dispatcher
    "DAYBOOK_STORE_BACKEND": "sqlite (persistent, default) or memory (lost on exit).",
    "DAYBOOK_STORE_TIMEOUT_SECONDS": "SQLite busy timeout in seconds (default: 10).",
    "DAYBOOK_DISPATCH_INTERVAL_SECONDS": "Reminder sweep interval in seconds (default: 30, min 0.5).",
    "DAYBOOK_DEFAULT_TIME_ZONE": "IANA zone given to new users (default: UTC).",
}
