from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv
from pydantic import AnyHttpUrl, ValidationError

from .constants import (
    DEFAULT_CALLBACK_URL,
    DEFAULT_POST_INTERVAL_SECONDS,
    DEFAULT_SCOPES,
    DEFAULT_TOKEN_STORE_PATH,
    DEVELOPMENT_MODE,
    LOGGER,
)


@dataclass(frozen=True)
class Settings:
    client_id: str
    client_secret: str
    callback_url: str = DEFAULT_CALLBACK_URL
    scopes: list[str] = field(default_factory=lambda: list(DEFAULT_SCOPES))
    mode: str = "production"
    host: str = "127.0.0.1"
    port: int = 5000
    token_store_path: str = DEFAULT_TOKEN_STORE_PATH
    post_interval_seconds: int = DEFAULT_POST_INTERVAL_SECONDS
    timeout: float = 30.0
    max_retries: int = 2
    debug: bool = True

    @property
    def listener_enabled(self) -> bool:
        return self.mode == DEVELOPMENT_MODE


def is_truthy(value: str | None) -> bool:
    if value is None:
        return False
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _get_env_int(key: str, default: int) -> int:
    raw = os.getenv(key, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise RuntimeError(f"{key} must be an integer value.")


def _get_env_float(key: str, default: float) -> float:
    raw = os.getenv(key, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        raise RuntimeError(f"{key} must be a number.")


def _get_scopes() -> list[str]:
    return os.getenv("X_OAUTH2_SCOPES", " ".join(DEFAULT_SCOPES)).split()


def load_env() -> None:
    env_path = Path(__file__).resolve().parent.parent / ".env"
    if not env_path.exists():
        return
    load_dotenv(env_path, override=True)


def validate_env() -> None:
    required = (
        "X_OAUTH2_CLIENT_ID",
        "X_OAUTH2_CLIENT_SECRET",
    )
    missing = [key for key in required if not os.getenv(key, "").strip()]
    if missing:
        raise RuntimeError(f"Missing required environment variables: {', '.join(missing)}")

    callback_url = os.getenv("X_OAUTH2_CALLBACK_URL", DEFAULT_CALLBACK_URL).strip()
    try:
        AnyHttpUrl(callback_url)
    except ValidationError as error:
        raise RuntimeError(
            "X_OAUTH2_CALLBACK_URL must be a valid HTTP(S) URL (for example: "
            f"{DEFAULT_CALLBACK_URL})."
        ) from error

    if "offline.access" not in _get_scopes():
        LOGGER.warning(
            "X_OAUTH2_SCOPES is missing offline.access; refresh tokens will not be issued."
        )
        raise RuntimeError("X_OAUTH2_SCOPES must include offline.access.")

    if _get_env_int("X_POST_INTERVAL_SECONDS", DEFAULT_POST_INTERVAL_SECONDS) < 0:
        raise RuntimeError("X_POST_INTERVAL_SECONDS must not be negative.")


def load_settings() -> Settings:
    return Settings(
        client_id=os.getenv("X_OAUTH2_CLIENT_ID", "").strip(),
        client_secret=os.getenv("X_OAUTH2_CLIENT_SECRET", "").strip(),
        callback_url=os.getenv("X_OAUTH2_CALLBACK_URL", DEFAULT_CALLBACK_URL).strip(),
        scopes=_get_scopes(),
        mode=os.getenv("WEEKBAR_ENV", "production").strip().lower(),
        host=os.getenv("HOST", "127.0.0.1"),
        port=_get_env_int("PORT", 5000),
        token_store_path=os.getenv("X_TOKEN_STORE_PATH", DEFAULT_TOKEN_STORE_PATH),
        post_interval_seconds=_get_env_int(
            "X_POST_INTERVAL_SECONDS", DEFAULT_POST_INTERVAL_SECONDS
        ),
        timeout=_get_env_float("X_API_TIMEOUT", 30.0),
        max_retries=_get_env_int("X_API_MAX_RETRIES", 2),
        debug=is_truthy(os.getenv("X_API_DEBUG", "1")),
    )


def setup_logging() -> bool:
    debug_enabled = is_truthy(os.getenv("X_API_DEBUG", "1"))
    if debug_enabled:
        logging.basicConfig(level=logging.INFO)
        LOGGER.setLevel(logging.INFO)
    return debug_enabled
