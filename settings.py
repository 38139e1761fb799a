"""App settings.

Flask loads this module on startup via ``app.config.from_pyfile(...)``.

Deployment-specific values (source URL, store) come from the environment via
`config.py`; this file only holds app-level defaults.
"""

import os

SETTINGS: dict[str, object] = {
    # Flask
    "SECRET_KEY": os.getenv("SECRET_KEY", "dev-not-secret"),
    # Logging
    "LOG_LEVEL": os.getenv("LOG_LEVEL", "INFO").upper(),
    # Requests slower than this are logged as warnings; 0 disables.
    "SLOW_REQUEST_MS": int(os.getenv("SLOW_REQUEST_MS", "250") or "250"),
    # Port for the standalone dev server (`python app.py`).
    "SERVER_PORT": int(os.getenv("SERVER_PORT", "10443") or "10443"),
    # Descriptive User-Agent sent to the exchange site.
    "SOURCE_USER_AGENT": os.getenv(
        "SOURCE_USER_AGENT", "shares-monitor/0.1 (issuer list crawler)"
    ),
}

SECRET_KEY = SETTINGS["SECRET_KEY"]
LOG_LEVEL = SETTINGS["LOG_LEVEL"]
SLOW_REQUEST_MS = SETTINGS["SLOW_REQUEST_MS"]
SERVER_PORT = SETTINGS["SERVER_PORT"]
SOURCE_USER_AGENT = SETTINGS["SOURCE_USER_AGENT"]
