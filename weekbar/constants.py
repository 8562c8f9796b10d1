from __future__ import annotations

import logging

LOGGER = logging.getLogger("weekbar")
APP_VERSION = "0.1.0"

DEFAULT_SCOPES = ["tweet.read", "tweet.write", "users.read", "offline.access"]
DEFAULT_CALLBACK_URL = "http://127.0.0.1:5000/callback"
DEFAULT_TOKEN_STORE_PATH = "data.json"
DEFAULT_POST_INTERVAL_SECONDS = 86400

MAX_POST_LENGTH = 280
DEVELOPMENT_MODE = "development"
