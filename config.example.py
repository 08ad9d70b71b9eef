# config.example.py

"""
Documentation-only module (safe to commit).

The real configuration is loaded from environment variables (optionally via a local .env file).
See src/taskdesk/config.py for parsing and defaults.

This file exists to make the repo self-documenting even without opening .env.example.
"""

ENV_VARS = {
    # App / logging
    "TASKDESK_APP_NAME": "App display name (default: taskdesk).",
    "TASKDESK_LOG_LEVEL": "Console logging level (default: INFO). The log file is always DEBUG.",
    # Storage
    "TASKDESK_DATA_DIR": "Local data directory, also holds taskdesk.log (default: .local/taskdesk).",
    "TASKDESK_STORAGE_BACKEND": "memory | json | sqlite (default: json).",
    "TASKDESK_STORAGE_NAMESPACE": "Key prefix for stored records (default: taskManagementApp_v2).",
    "TASKDESK_JSON_STORE_DIR": "Directory for the json backend (default: <data_dir>/store).",
    "TASKDESK_SQLITE_PATH": "SQLite file for the sqlite backend (default: <data_dir>/taskdesk.sqlite3).",
    "TASKDESK_CACHE_TTL_SECONDS": "Repository read-cache lifetime (default: 300).",
    # Validation / queries
    "TASKDESK_TITLE_MAX_LENGTH": "Max task title length accepted by forms (default: 100).",
    "TASKDESK_DESCRIPTION_MAX_LENGTH": "Max task description length (default: 500).",
    "TASKDESK_DUE_SOON_DAYS": "Window for the 'due soon' statistic, in days (default: 3).",
    # Demo bootstrap
    "TASKDESK_SEED_DEMO_USER": "Create and log in a demo user on an empty store (default: true).",
    "TASKDESK_DEMO_USERNAME": "Demo username (default: demo_user).",
    "TASKDESK_DEMO_EMAIL": "Demo email (default: demo@example.com).",
}
